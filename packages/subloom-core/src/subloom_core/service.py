"""Job service: start, steer, and observe translation jobs."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from subloom_core.jobs import DEFAULT_MAX_FINISHED_JOBS, JobContext, JobRegistry
from subloom_core.orchestrator import BatchTranslationOrchestrator, sort_blocks
from subloom_core.ports.orchestrator import (
    JobCancelledError,
    JobControlErrorCode,
    LogSinkProtocol,
    ProgressSinkProtocol,
    VerificationError,
    build_job_cancelled_log,
    build_job_completed_log,
    build_job_failed_log,
    build_job_started_log,
    build_run_state_log,
    job_control_error,
)
from subloom_core.ports.translator import TranslatorClientProtocol
from subloom_core.telemetry import JobReporter, utc_timestamp
from subloom_core.verification.coordinator import VerificationCoordinator
from subloom_schemas.config import RunConfig, VerificationConfig
from subloom_schemas.events import ProgressEvent
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.jobs import JobRunState, JobSettings, JobSnapshot
from subloom_schemas.primitives import JobId, JobStage, JobStatus, Timestamp
from subloom_schemas.responses import ErrorResponse
from subloom_schemas.verification import ApprovalDecision

JOB_FAILED_CODE = "job_failed"


def build_job_settings(
    config: RunConfig,
    *,
    target_language: str | None = None,
    style: str | None = None,
    seed: int | None = None,
    verify: bool | None = None,
) -> JobSettings:
    """Resolve job settings from config plus per-job overrides.

    Args:
        config: Loaded run configuration.
        target_language: Optional target language override.
        style: Optional style override.
        seed: Optional seed override.
        verify: Optional verification toggle override.

    Returns:
        JobSettings: Settings for one job.
    """
    translation = config.translation
    batch_size, context_before, context_after = translation.resolved_sizes()
    return JobSettings.model_validate({
        "target_language": target_language or translation.target_language,
        "style": style or translation.style,
        "seed": seed if seed is not None else translation.seed,
        "batch_size": batch_size,
        "context_before": context_before,
        "context_after": context_after,
        "verify": verify if verify is not None else config.verification.enabled,
    })


class SubtitleJobService:
    """Single owner of every live job.

    Each job runs as an asyncio task: batch translation first, then, when
    enabled, the verification and approval workflow. Control signals and
    approval decisions are routed to the job by its identifier.
    """

    def __init__(
        self,
        translator: TranslatorClientProtocol,
        *,
        verification_config: VerificationConfig | None = None,
        pacing_delay_s: float = 1.0,
        log_sink: LogSinkProtocol | None = None,
        progress_sink: ProgressSinkProtocol | None = None,
        max_finished_jobs: int = DEFAULT_MAX_FINISHED_JOBS,
        clock: Callable[[], Timestamp] = utc_timestamp,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the job service.

        Args:
            translator: Translator client shared by every job.
            verification_config: Verification settings.
            pacing_delay_s: Delay between translation windows.
            log_sink: Optional log sink.
            progress_sink: Optional progress sink.
            max_finished_jobs: Finished job snapshots kept for lookup.
            clock: Timestamp provider.
            sleep: Awaitable sleep used for pacing.
        """
        self._registry = JobRegistry(max_finished=max_finished_jobs)
        self._orchestrator = BatchTranslationOrchestrator(
            translator, pacing_delay_s=pacing_delay_s, sleep=sleep
        )
        self._coordinator = VerificationCoordinator(
            translator, verification_config or VerificationConfig()
        )
        self._log_sink = log_sink
        self._progress_sink = progress_sink
        self._clock = clock

    def start_job(
        self,
        job_id: JobId,
        blocks: list[SubtitleBlock],
        settings: JobSettings,
    ) -> asyncio.Task[JobSnapshot]:
        """Register a job and start it in the background.

        Args:
            job_id: Job identifier, unique among live jobs.
            blocks: Source blocks.
            settings: Resolved job settings.

        Returns:
            asyncio.Task[JobSnapshot]: Task resolving to the final snapshot.

        Raises:
            JobControlError: If a live job already uses the identifier.
            ValueError: If two blocks share a number.
        """
        source = sort_blocks(blocks)
        context = self._registry.create(
            job_id,
            settings=settings,
            source=source,
            progress_sink=self._progress_sink,
            reporter_factory=self._build_reporter,
        )
        context.task = asyncio.create_task(self._run(context), name=f"job-{job_id}")
        return context.task

    async def run_job(
        self,
        job_id: JobId,
        blocks: list[SubtitleBlock],
        settings: JobSettings,
    ) -> JobSnapshot:
        """Run a job to completion.

        Returns:
            JobSnapshot: Final snapshot of the job.
        """
        return await self.start_job(job_id, blocks, settings)

    async def pause(self, job_id: JobId) -> JobRunState:
        """Pause a job at its next checkpoint."""
        context = self._registry.get(job_id)
        state = context.control.pause()
        await self._announce(context, state, "pause")
        return state

    async def resume(self, job_id: JobId) -> JobRunState:
        """Resume a paused job."""
        context = self._registry.get(job_id)
        state = context.control.resume()
        await self._announce(context, state, "resume")
        return state

    async def cancel(self, job_id: JobId) -> JobRunState:
        """Cancel a job and release any decision it is waiting for."""
        context = self._registry.get(job_id)
        state = context.control.cancel()
        context.gate.release()
        await self._announce(context, state, "cancel")
        return state

    def submit_decision(self, job_id: JobId, decision: ApprovalDecision) -> None:
        """Route an approval decision to a job's gate.

        Raises:
            JobControlError: If the job is not live or the gate refuses the
                decision.
        """
        self._registry.get(job_id).gate.submit(decision)

    def ensure_active(self, job_id: JobId) -> None:
        """Check that a job is live.

        Raises:
            JobControlError: If the job is unknown or already finished.
        """
        self._registry.get(job_id)

    def snapshot(self, job_id: JobId) -> JobSnapshot:
        """Return the snapshot of a live or finished job."""
        return self._registry.snapshot(job_id, self._clock())

    def document(self, job_id: JobId) -> tuple[JobSnapshot, list[SubtitleBlock]]:
        """Return a finished job's snapshot and output blocks.

        Raises:
            JobControlError: If the job is unknown, still running, or ended
                without a document.
        """
        snapshot = self.snapshot(job_id)
        if job_id in self._registry or snapshot.blocks is None:
            raise job_control_error(
                JobControlErrorCode.DOCUMENT_UNAVAILABLE,
                f"Job {job_id} has no final document",
                job_id=job_id,
            )
        return snapshot, snapshot.blocks

    async def shutdown(self) -> None:
        """Cancel every live job and wait for them to finish."""
        tasks: list[asyncio.Task[JobSnapshot]] = []
        for job_id in list(self._registry.active_ids()):
            context = self._registry.get(job_id)
            context.control.cancel()
            context.gate.release()
            if context.task is not None:
                tasks.append(context.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _build_reporter(
        self, job_id: JobId, progress_sink: ProgressSinkProtocol
    ) -> JobReporter:
        return JobReporter(
            job_id,
            log_sink=self._log_sink,
            progress_sink=progress_sink,
            clock=self._clock,
        )

    async def _announce(
        self, context: JobContext, state: JobRunState, signal: str
    ) -> None:
        reporter = _reporter(context)
        await reporter.log(
            build_run_state_log(reporter.now(), context.job_id, state, signal)
        )
        await reporter.progress(
            ProgressEvent.RUN_STATE_CHANGED, run_state=state, message=signal
        )

    async def _run(self, context: JobContext) -> JobSnapshot:
        try:
            await self._execute(context)
        finally:
            snapshot = self._registry.close(context.job_id, self._clock())
        return snapshot

    async def _execute(self, context: JobContext) -> None:
        reporter = _reporter(context)
        settings = context.settings
        context.status = JobStatus.RUNNING
        await reporter.log(
            build_job_started_log(
                reporter.now(), context.job_id, len(context.source), settings
            )
        )
        try:
            context.stage = JobStage.TRANSLATION
            translated = await self._orchestrator.translate(
                context.source,
                settings=settings,
                control=context.control,
                glossary=context.glossary,
                reporter=reporter,
            )
            context.blocks = translated.blocks
            context.failed_batches = translated.failed_batches
            if settings.verify:
                context.stage = JobStage.VERIFICATION
                context.percent = 0.0
                verified = await self._coordinator.verify(
                    context.source,
                    translated.blocks,
                    settings=settings,
                    control=context.control,
                    gate=context.gate,
                    reporter=reporter,
                )
                context.blocks = verified.blocks
        except JobCancelledError:
            context.status = JobStatus.CANCELLED
            await reporter.log(
                build_job_cancelled_log(reporter.now(), context.job_id, context.stage)
            )
            await reporter.progress(
                ProgressEvent.JOB_CANCELLED,
                stage=context.stage,
                message="Job cancelled",
            )
            return
        except VerificationError as exc:
            await self._fail(context, exc.info.to_error_response())
            return
        except Exception as exc:
            await self._fail(
                context,
                ErrorResponse(
                    code=JOB_FAILED_CODE,
                    message=str(exc) or type(exc).__name__,
                ),
            )
            return

        context.status = JobStatus.COMPLETED
        await reporter.log(
            build_job_completed_log(
                reporter.now(),
                context.job_id,
                translated_blocks=translated.translated_blocks,
                failed_batches=context.failed_batches,
                decisions_applied=context.decisions_applied,
            )
        )
        await reporter.progress(
            ProgressEvent.JOB_COMPLETED,
            stage=context.stage,
            percent=100.0,
            message="Job completed",
        )

    async def _fail(self, context: JobContext, error: ErrorResponse) -> None:
        reporter = _reporter(context)
        context.status = JobStatus.FAILED
        context.error_message = error.message
        await reporter.log(
            build_job_failed_log(
                reporter.now(),
                context.job_id,
                context.stage,
                error.message,
                error.code,
            )
        )
        await reporter.progress(
            ProgressEvent.JOB_FAILED,
            stage=context.stage,
            error=error,
            message=error.message,
        )


def _reporter(context: JobContext) -> JobReporter:
    if context.reporter is None:
        raise RuntimeError(f"Job {context.job_id} has no reporter")
    return context.reporter
