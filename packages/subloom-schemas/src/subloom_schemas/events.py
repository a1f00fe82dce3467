"""Event taxonomy and structured payloads for job observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import (
    BlockNumber,
    IssueStatus,
    JobStatus,
    LanguageName,
    ProblemType,
    TranslationStyle,
)


class JobEvent(StrEnum):
    """Event names for job log entries."""

    STARTED = "job_started"
    COMPLETED = "job_completed"
    FAILED = "job_failed"
    CANCELLED = "job_cancelled"
    BATCH_FAILED = "batch_failed"
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"
    ISSUE_PUBLISHED = "issue_published"
    DECISION_APPLIED = "decision_applied"
    RETRANSLATION_EMPTY = "retranslation_empty"
    RUN_STATE_CHANGED = "run_state_changed"


class ProgressEvent(StrEnum):
    """Event names for progress updates pushed to observers."""

    BLOCK_TRANSLATED = "block_translated"
    TRANSLATION_PROGRESS = "translation_progress"
    VERIFICATION_STEP = "verification_step"
    ISSUE_DETECTED = "issue_detected"
    APPROVAL_REQUESTED = "approval_requested"
    DECISION_APPLIED = "decision_applied"
    VERIFICATION_ERROR = "verification_error"
    RUN_STATE_CHANGED = "run_state_changed"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_CANCELLED = "job_cancelled"


class JobStartedData(BaseSchema):
    """Payload for job start events."""

    block_count: int = Field(..., ge=0, description="Blocks in the source document")
    target_language: LanguageName = Field(..., description="Target language")
    style: TranslationStyle = Field(..., description="Translation style")
    batch_size: int = Field(..., ge=1, description="Blocks per window")
    verify: bool = Field(..., description="Whether verification runs")


class JobCompletedData(BaseSchema):
    """Payload for job completion events."""

    status: JobStatus = Field(..., description="Final job status")
    translated_blocks: int = Field(..., ge=0, description="Blocks translated")
    failed_batches: int = Field(..., ge=0, description="Windows that fell back")
    decisions_applied: int = Field(..., ge=0, description="Approval decisions applied")


class JobFailedData(BaseSchema):
    """Payload for job failure events."""

    error_code: str | None = Field(None, description="Structured error code")
    error_message: str = Field(..., min_length=1, description="Failure reason")


class BatchFailedData(BaseSchema):
    """Payload for a window that fell back to source text."""

    first_block: BlockNumber = Field(..., description="First block in the window")
    last_block: BlockNumber = Field(..., description="Last block in the window")
    error_message: str = Field(..., min_length=1, description="Failure reason")


class IssuePublishedData(BaseSchema):
    """Payload for an issue published for approval."""

    block_number: BlockNumber = Field(..., description="Issue block number")
    token: str = Field(..., min_length=1, description="Publication token")
    problem_types: list[ProblemType] = Field(..., description="Detected defects")


class DecisionAppliedData(BaseSchema):
    """Payload for a reconciled approval decision."""

    block_number: BlockNumber = Field(..., description="Issue block number")
    status: IssueStatus = Field(..., description="Decided status")
    changed: bool = Field(..., description="Whether the block text changed")


class RetranslationEmptyData(BaseSchema):
    """Payload for a re-translation call that returned nothing usable."""

    first_block: BlockNumber = Field(..., description="First block of the group")
    last_block: BlockNumber = Field(..., description="Last block of the group")


class RunStateChangedData(BaseSchema):
    """Payload for pause/resume/cancel signals."""

    paused: bool = Field(..., description="Paused flag after the signal")
    cancelled: bool = Field(..., description="Cancelled flag after the signal")
