"""subloom-core: Translation and verification workflow for subloom."""

from subloom_core.glossary import Glossary
from subloom_core.jobs import JobContext, JobRegistry
from subloom_core.orchestrator import (
    BatchTranslationOrchestrator,
    BatchWindow,
    TranslationOutcome,
    overlay_translations,
    plan_windows,
    sort_blocks,
)
from subloom_core.run_control import RunControl, RunControlStore
from subloom_core.service import SubtitleJobService, build_job_settings
from subloom_core.telemetry import JobReporter, utc_timestamp
from subloom_core.verification import (
    ApprovalGate,
    VerificationCoordinator,
    VerificationScanner,
    group_issues,
)
from subloom_core.version import VERSION

__version__ = "0.1.0"

__all__ = [
    "VERSION",
    "ApprovalGate",
    "BatchTranslationOrchestrator",
    "BatchWindow",
    "Glossary",
    "JobContext",
    "JobRegistry",
    "JobReporter",
    "RunControl",
    "RunControlStore",
    "SubtitleJobService",
    "TranslationOutcome",
    "VerificationCoordinator",
    "VerificationScanner",
    "build_job_settings",
    "group_issues",
    "overlay_translations",
    "plan_windows",
    "sort_blocks",
    "utc_timestamp",
]
