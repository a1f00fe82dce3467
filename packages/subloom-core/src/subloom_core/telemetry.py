"""Emit structured job events to log and progress sinks."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from subloom_core.ports.orchestrator import LogSinkProtocol, ProgressSinkProtocol
from subloom_schemas.events import ProgressEvent
from subloom_schemas.jobs import JobRunState
from subloom_schemas.logs import LogEntry
from subloom_schemas.primitives import JobId, JobStage, Timestamp
from subloom_schemas.progress import (
    BlockProgress,
    DecisionOutcome,
    ProgressUpdate,
    VerificationStep,
)
from subloom_schemas.responses import ErrorResponse
from subloom_schemas.verification import IssuePublication, TranslationIssue


def utc_timestamp() -> Timestamp:
    """Return the current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class JobReporter:
    """Emit job-scoped log entries and progress updates.

    Either sink may be absent; emission to a missing sink is a no-op.
    """

    def __init__(
        self,
        job_id: JobId,
        *,
        log_sink: LogSinkProtocol | None,
        progress_sink: ProgressSinkProtocol | None,
        clock: Callable[[], Timestamp] = utc_timestamp,
    ) -> None:
        """Initialize the reporter.

        Args:
            job_id: Job identifier stamped on every event.
            log_sink: Optional log sink.
            progress_sink: Optional progress sink.
            clock: Timestamp provider.
        """
        self.job_id = job_id
        self._log_sink = log_sink
        self._progress_sink = progress_sink
        self._clock = clock

    def now(self) -> Timestamp:
        """Return a timestamp from the configured clock."""
        return self._clock()

    async def log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)

    async def progress(
        self,
        event: ProgressEvent,
        *,
        stage: JobStage | None = None,
        percent: float | None = None,
        block: BlockProgress | None = None,
        step: VerificationStep | None = None,
        issue: TranslationIssue | None = None,
        approval: IssuePublication | None = None,
        decision: DecisionOutcome | None = None,
        run_state: JobRunState | None = None,
        error: ErrorResponse | None = None,
        message: str | None = None,
    ) -> None:
        """Emit a progress update for this job."""
        if self._progress_sink is None:
            return
        update = ProgressUpdate(
            job_id=self.job_id,
            event=event,
            timestamp=self._clock(),
            stage=stage,
            percent=percent,
            block=block,
            step=step,
            issue=issue,
            approval=approval,
            decision=decision,
            run_state=run_state,
            error=error,
            message=message,
        )
        await self._progress_sink.emit_progress(update)

    async def step(
        self,
        name: str,
        description: str,
        percent: float,
    ) -> None:
        """Emit a verification step update."""
        await self.progress(
            ProgressEvent.VERIFICATION_STEP,
            stage=JobStage.VERIFICATION,
            percent=percent,
            step=VerificationStep(
                name=name, description=description, percent=percent
            ),
        )
