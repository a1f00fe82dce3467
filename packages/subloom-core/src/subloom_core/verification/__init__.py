"""Verification and approval workflow."""

from subloom_core.verification.coordinator import (
    VerificationCoordinator,
    VerificationOutcome,
    apply_decision,
)
from subloom_core.verification.gate import ApprovalGate
from subloom_core.verification.grouping import group_issues
from subloom_core.verification.scanner import (
    IssueStream,
    VerificationScanner,
    align_blocks,
    plan_scan_windows,
)

__all__ = [
    "ApprovalGate",
    "IssueStream",
    "VerificationCoordinator",
    "VerificationOutcome",
    "VerificationScanner",
    "align_blocks",
    "apply_decision",
    "group_issues",
    "plan_scan_windows",
]
