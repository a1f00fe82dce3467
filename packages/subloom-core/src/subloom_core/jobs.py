"""Per-job context and the registry that owns it."""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

from subloom_core.glossary import Glossary
from subloom_core.ports.orchestrator import (
    JobControlErrorCode,
    ProgressSinkProtocol,
    job_control_error,
)
from subloom_core.run_control import RunControl, RunControlStore
from subloom_core.telemetry import JobReporter
from subloom_core.verification.gate import ApprovalGate
from subloom_schemas.events import ProgressEvent
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.jobs import JobSettings, JobSnapshot
from subloom_schemas.primitives import JobId, JobStage, JobStatus, Timestamp
from subloom_schemas.progress import ProgressUpdate

type ReporterFactory = Callable[[JobId, ProgressSinkProtocol], JobReporter]

DEFAULT_MAX_FINISHED_JOBS = 100


@dataclass(slots=True)
class JobContext:
    """Everything scoped to one running job."""

    job_id: JobId
    settings: JobSettings
    source: list[SubtitleBlock]
    control: RunControl
    glossary: Glossary
    gate: ApprovalGate
    reporter: JobReporter | None = None
    status: JobStatus = JobStatus.PENDING
    stage: JobStage | None = None
    percent: float = 0.0
    failed_batches: int = 0
    decisions_applied: int = 0
    error_message: str | None = None
    blocks: list[SubtitleBlock] | None = None
    task: asyncio.Task[JobSnapshot] | None = field(default=None, repr=False)

    def observe(self, update: ProgressUpdate) -> None:
        """Track stage and percent from a progress update."""
        if update.stage is not None:
            stage = JobStage(update.stage)
            if stage != self.stage:
                self.stage = stage
                self.percent = 0.0
        if update.percent is not None:
            self.percent = update.percent
        if ProgressEvent(update.event) == ProgressEvent.DECISION_APPLIED:
            self.decisions_applied += 1

    def snapshot(self, timestamp: Timestamp) -> JobSnapshot:
        """Build a snapshot of the job.

        Args:
            timestamp: Snapshot timestamp.

        Returns:
            JobSnapshot: Current view of the job.
        """
        return JobSnapshot(
            job_id=self.job_id,
            status=self.status,
            stage=self.stage,
            percent=self.percent,
            run_state=self.control.snapshot(),
            block_count=len(self.source),
            failed_batches=self.failed_batches,
            decisions_applied=self.decisions_applied,
            pending_approval=self.gate.pending,
            error_message=self.error_message,
            updated_at=timestamp,
            blocks=list(self.blocks) if self.blocks is not None else None,
        )


class _TrackingProgressSink:
    """Update the job context, then forward to the downstream sink."""

    def __init__(
        self, context: JobContext, downstream: ProgressSinkProtocol | None
    ) -> None:
        self._context = context
        self._downstream = downstream

    async def emit_progress(self, update: ProgressUpdate) -> None:
        self._context.observe(update)
        if self._downstream is not None:
            await self._downstream.emit_progress(update)


class JobRegistry:
    """Live job contexts plus snapshots of recently finished jobs.

    At most ``max_finished`` snapshots are kept; the oldest is evicted first.
    """

    def __init__(self, *, max_finished: int = DEFAULT_MAX_FINISHED_JOBS) -> None:
        """Initialize an empty registry.

        Args:
            max_finished: Number of finished job snapshots to keep.

        Raises:
            ValueError: If ``max_finished`` is not positive.
        """
        if max_finished < 1:
            raise ValueError("max_finished must be positive")
        self._controls = RunControlStore()
        self._active: dict[JobId, JobContext] = {}
        self._finished: OrderedDict[JobId, JobSnapshot] = OrderedDict()
        self._max_finished = max_finished

    @property
    def controls(self) -> RunControlStore:
        """Return the keyed run control view."""
        return self._controls

    def create(
        self,
        job_id: JobId,
        *,
        settings: JobSettings,
        source: list[SubtitleBlock],
        progress_sink: ProgressSinkProtocol | None,
        reporter_factory: ReporterFactory,
    ) -> JobContext:
        """Create and register the context for a new job.

        Args:
            job_id: Job identifier, unique among live jobs.
            settings: Resolved job settings.
            source: Source blocks.
            progress_sink: Downstream progress sink.
            reporter_factory: Builds the job reporter around the tracking sink.

        Returns:
            JobContext: Registered job context.

        Raises:
            JobControlError: If a live job already uses the identifier.
        """
        if job_id in self._active:
            raise job_control_error(
                JobControlErrorCode.JOB_EXISTS,
                f"Job {job_id} is already running",
                job_id=job_id,
            )
        self._finished.pop(job_id, None)
        context = JobContext(
            job_id=job_id,
            settings=settings,
            source=source,
            control=self._controls.create(job_id),
            glossary=Glossary(),
            gate=ApprovalGate(job_id),
        )
        context.reporter = reporter_factory(
            job_id, _TrackingProgressSink(context, progress_sink)
        )
        self._active[job_id] = context
        return context

    def get(self, job_id: JobId) -> JobContext:
        """Return the context of a live job.

        Raises:
            JobControlError: If no live job has the identifier.
        """
        context = self._active.get(job_id)
        if context is None:
            code = (
                JobControlErrorCode.JOB_FINISHED
                if job_id in self._finished
                else JobControlErrorCode.JOB_NOT_FOUND
            )
            raise job_control_error(
                code, f"Job {job_id} is not running", job_id=job_id
            )
        return context

    def snapshot(self, job_id: JobId, timestamp: Timestamp) -> JobSnapshot:
        """Return the snapshot of a live or finished job.

        Raises:
            JobControlError: If the job is unknown.
        """
        context = self._active.get(job_id)
        if context is not None:
            return context.snapshot(timestamp)
        finished = self._finished.get(job_id)
        if finished is None:
            raise job_control_error(
                JobControlErrorCode.JOB_NOT_FOUND,
                f"Job {job_id} was not found",
                job_id=job_id,
            )
        return finished

    def close(self, job_id: JobId, timestamp: Timestamp) -> JobSnapshot:
        """Tear down a job's context and keep its final snapshot.

        The oldest finished snapshot is dropped once the limit is exceeded.

        Args:
            job_id: Job identifier.
            timestamp: Snapshot timestamp.

        Returns:
            JobSnapshot: Final snapshot of the job.
        """
        context = self._active.pop(job_id)
        context.gate.close_round()
        context.glossary.clear()
        self._controls.discard(job_id)
        snapshot = context.snapshot(timestamp)
        self._finished[job_id] = snapshot
        while len(self._finished) > self._max_finished:
            self._finished.popitem(last=False)
        return snapshot

    def active_ids(self) -> list[JobId]:
        """Return the identifiers of live jobs."""
        return list(self._active)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._active
