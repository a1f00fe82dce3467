"""Protocol definitions, errors, and log helpers for job orchestration."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.events import (
    BatchFailedData,
    DecisionAppliedData,
    IssuePublishedData,
    JobCompletedData,
    JobEvent,
    JobFailedData,
    JobStartedData,
    RetranslationEmptyData,
    RunStateChangedData,
)
from subloom_schemas.jobs import JobRunState, JobSettings
from subloom_schemas.logs import LogEntry
from subloom_schemas.primitives import (
    BlockNumber,
    IssueStatus,
    JobId,
    JobStage,
    JobStatus,
    LogLevel,
    ProblemType,
    Timestamp,
    TranslationStyle,
)
from subloom_schemas.progress import ProgressUpdate
from subloom_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


@runtime_checkable
class ProgressSinkProtocol(Protocol):
    """Protocol for emitting progress updates."""

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Emit a progress update."""
        raise NotImplementedError


class JobCancelledError(Exception):
    """Raised at a checkpoint once a job has been cancelled.

    Cancellation is an expected control-flow exit, not a failure.
    """

    def __init__(self, job_id: JobId) -> None:
        """Initialize the cancellation signal.

        Args:
            job_id: Cancelled job identifier.
        """
        super().__init__(f"Job {job_id} was cancelled")
        self.job_id = job_id


class JobControlErrorCode(StrEnum):
    """Error codes for control-channel requests."""

    JOB_NOT_FOUND = "job_not_found"
    JOB_EXISTS = "job_exists"
    JOB_FINISHED = "job_finished"
    NO_PENDING_ISSUE = "no_pending_issue"
    INVALID_DECISION = "invalid_decision"
    DECISION_CONFLICT = "decision_conflict"
    DOCUMENT_UNAVAILABLE = "document_unavailable"


class JobControlErrorDetails(BaseSchema):
    """Detailed control error context."""

    job_id: str | None = Field(None, description="Job identifier if applicable")
    block_number: BlockNumber | None = Field(
        None, description="Block number if applicable"
    )
    reason: str | None = Field(None, description="Additional error context")


class JobControlErrorInfo(BaseSchema):
    """Structured control error data."""

    code: JobControlErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: JobControlErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert control error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.block_number is not None:
            details = ErrorDetails(
                field="block_number",
                provided=str(self.details.block_number),
                valid_options=None,
            )
        elif self.details is not None and self.details.job_id is not None:
            details = ErrorDetails(
                field="job_id", provided=self.details.job_id, valid_options=None
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class JobControlError(Exception):
    """Control-channel error with structured details."""

    def __init__(self, info: JobControlErrorInfo) -> None:
        """Initialize the control error.

        Args:
            info: Structured control error information.
        """
        super().__init__(info.message)
        self.info = info


def job_control_error(
    code: JobControlErrorCode,
    message: str,
    *,
    job_id: str | None = None,
    block_number: int | None = None,
    reason: str | None = None,
) -> JobControlError:
    """Build a JobControlError.

    Args:
        code: Error code.
        message: Error message.
        job_id: Optional job identifier.
        block_number: Optional block number.
        reason: Optional extra context.

    Returns:
        JobControlError: Error ready to raise.
    """
    details = None
    if job_id is not None or block_number is not None or reason is not None:
        details = JobControlErrorDetails(
            job_id=job_id, block_number=block_number, reason=reason
        )
    return JobControlError(
        JobControlErrorInfo(code=code, message=message, details=details)
    )


class VerificationErrorCode(StrEnum):
    """Error codes for verification workflow failures."""

    SCAN_FAILED = "scan_failed"
    RETRANSLATION_FAILED = "retranslation_failed"
    GATE_FAILED = "gate_failed"


class VerificationErrorDetails(BaseSchema):
    """Detailed verification error context."""

    first_block: BlockNumber | None = Field(
        None, description="First block of the failing window or group"
    )
    last_block: BlockNumber | None = Field(
        None, description="Last block of the failing window or group"
    )
    reason: str | None = Field(None, description="Additional error context")


class VerificationErrorInfo(BaseSchema):
    """Structured verification error data."""

    code: VerificationErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: VerificationErrorDetails | None = Field(
        None, description="Error details"
    )

    def to_error_response(self) -> ErrorResponse:
        """Convert verification error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.first_block is not None:
            span = f"{self.details.first_block}-{self.details.last_block}"
            details = ErrorDetails(field="blocks", provided=span, valid_options=None)
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class VerificationError(Exception):
    """Verification workflow error with structured details."""

    def __init__(self, info: VerificationErrorInfo) -> None:
        """Initialize the verification error.

        Args:
            info: Structured verification error information.
        """
        super().__init__(info.message)
        self.info = info


def build_job_started_log(
    timestamp: Timestamp, job_id: JobId, block_count: int, settings: JobSettings
) -> LogEntry:
    """Build a log entry for job start.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        block_count: Blocks in the source document.
        settings: Resolved job settings.

    Returns:
        LogEntry: Structured job start log entry.
    """
    data = JobStartedData(
        block_count=block_count,
        target_language=settings.target_language,
        style=TranslationStyle(settings.style),
        batch_size=settings.batch_size,
        verify=settings.verify,
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.STARTED,
        job_id=job_id,
        stage=None,
        message="Job started",
        data=data.model_dump(exclude_none=True),
    )


def build_job_completed_log(
    timestamp: Timestamp,
    job_id: JobId,
    *,
    translated_blocks: int,
    failed_batches: int,
    decisions_applied: int,
) -> LogEntry:
    """Build a log entry for job completion.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        translated_blocks: Blocks that received a translation.
        failed_batches: Windows that fell back to source text.
        decisions_applied: Approval decisions reconciled.

    Returns:
        LogEntry: Structured job completion log entry.
    """
    data = JobCompletedData(
        status=JobStatus.COMPLETED,
        translated_blocks=translated_blocks,
        failed_batches=failed_batches,
        decisions_applied=decisions_applied,
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.COMPLETED,
        job_id=job_id,
        stage=None,
        message="Job completed",
        data=data.model_dump(exclude_none=True),
    )


def build_job_failed_log(
    timestamp: Timestamp,
    job_id: JobId,
    stage: JobStage | None,
    error_message: str,
    error_code: str | None = None,
) -> LogEntry:
    """Build a log entry for job failure.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        stage: Stage that failed.
        error_message: Failure reason.
        error_code: Structured error code when available.

    Returns:
        LogEntry: Structured job failure log entry.
    """
    data = JobFailedData(error_code=error_code, error_message=error_message)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.ERROR,
        event=JobEvent.FAILED,
        job_id=job_id,
        stage=stage,
        message="Job failed",
        data=data.model_dump(exclude_none=True),
    )


def build_job_cancelled_log(
    timestamp: Timestamp, job_id: JobId, stage: JobStage | None
) -> LogEntry:
    """Build a log entry for job cancellation.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        stage: Stage during which the cancel was observed.

    Returns:
        LogEntry: Structured job cancellation log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.CANCELLED,
        job_id=job_id,
        stage=stage,
        message="Job cancelled",
        data=None,
    )


def build_batch_failed_log(
    timestamp: Timestamp,
    job_id: JobId,
    first_block: int,
    last_block: int,
    error_message: str,
) -> LogEntry:
    """Build a log entry for a window that kept its source text.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        first_block: First block number of the window.
        last_block: Last block number of the window.
        error_message: Translator failure reason.

    Returns:
        LogEntry: Structured batch failure log entry.
    """
    data = BatchFailedData(
        first_block=first_block,
        last_block=last_block,
        error_message=error_message or "unknown error",
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=JobEvent.BATCH_FAILED,
        job_id=job_id,
        stage=JobStage.TRANSLATION,
        message=f"Blocks {first_block}-{last_block} kept source text",
        data=data.model_dump(exclude_none=True),
    )


def build_verification_log(
    timestamp: Timestamp,
    job_id: JobId,
    event: JobEvent,
    message: str,
    *,
    level: LogLevel = LogLevel.INFO,
    error: ErrorResponse | None = None,
) -> LogEntry:
    """Build a log entry for verification lifecycle events.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        event: Verification event name.
        message: Log message.
        level: Log level.
        error: Error payload for failures.

    Returns:
        LogEntry: Structured verification log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        job_id=job_id,
        stage=JobStage.VERIFICATION,
        message=message,
        data=error.model_dump(exclude_none=True) if error is not None else None,
    )


def build_issue_published_log(
    timestamp: Timestamp,
    job_id: JobId,
    block_number: int,
    token: str,
    problem_types: list[ProblemType],
) -> LogEntry:
    """Build a log entry for an issue published for approval.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        block_number: Issue block number.
        token: Publication token.
        problem_types: Detected defect categories.

    Returns:
        LogEntry: Structured issue publication log entry.
    """
    data = IssuePublishedData(
        block_number=block_number,
        token=token,
        problem_types=[ProblemType(value) for value in problem_types],
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.ISSUE_PUBLISHED,
        job_id=job_id,
        stage=JobStage.VERIFICATION,
        message=f"Block {block_number} awaiting approval",
        data=data.model_dump(exclude_none=True),
    )


def build_decision_applied_log(
    timestamp: Timestamp,
    job_id: JobId,
    block_number: int,
    status: IssueStatus,
    changed: bool,
) -> LogEntry:
    """Build a log entry for a reconciled decision.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        block_number: Decided block number.
        status: Decided status.
        changed: Whether the block text changed.

    Returns:
        LogEntry: Structured decision log entry.
    """
    data = DecisionAppliedData(
        block_number=block_number, status=IssueStatus(status), changed=changed
    )
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.DECISION_APPLIED,
        job_id=job_id,
        stage=JobStage.VERIFICATION,
        message=f"Decision {status} applied to block {block_number}",
        data=data.model_dump(exclude_none=True),
    )


def build_retranslation_empty_log(
    timestamp: Timestamp, job_id: JobId, first_block: int, last_block: int
) -> LogEntry:
    """Build a log entry for a re-translation that returned nothing usable.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        first_block: First block of the group.
        last_block: Last block of the group.

    Returns:
        LogEntry: Structured log entry.
    """
    data = RetranslationEmptyData(first_block=first_block, last_block=last_block)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=JobEvent.RETRANSLATION_EMPTY,
        job_id=job_id,
        stage=JobStage.VERIFICATION,
        message=f"Re-translation of blocks {first_block}-{last_block} was empty",
        data=data.model_dump(exclude_none=True),
    )


def build_run_state_log(
    timestamp: Timestamp, job_id: JobId, state: JobRunState, signal: str
) -> LogEntry:
    """Build a log entry for a pause/resume/cancel signal.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Job identifier.
        state: Run state after the signal.
        signal: Signal name.

    Returns:
        LogEntry: Structured run state log entry.
    """
    data = RunStateChangedData(paused=state.paused, cancelled=state.cancelled)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.RUN_STATE_CHANGED,
        job_id=job_id,
        stage=None,
        message=f"Run control signal: {signal}",
        data=data.model_dump(exclude_none=True),
    )
