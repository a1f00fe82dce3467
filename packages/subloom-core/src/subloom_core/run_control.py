"""Pause/cancel state for running jobs."""

from __future__ import annotations

import asyncio

from subloom_core.ports.orchestrator import JobCancelledError
from subloom_schemas.jobs import JobRunState
from subloom_schemas.primitives import JobId


class RunControl:
    """Pause/cancel flags for one job with an awaitable checkpoint.

    Waiters are woken as soon as the job is resumed or cancelled.
    """

    def __init__(self, job_id: JobId) -> None:
        """Initialize run control for a job.

        Args:
            job_id: Job identifier.
        """
        self.job_id = job_id
        self._paused = False
        self._cancelled = False
        self._wakeup = asyncio.Event()
        self._wakeup.set()

    @property
    def is_paused(self) -> bool:
        """Return True while the job is paused."""
        return self._paused

    @property
    def is_cancelled(self) -> bool:
        """Return True once the job was cancelled."""
        return self._cancelled

    def snapshot(self) -> JobRunState:
        """Return the current flags."""
        return JobRunState(paused=self._paused, cancelled=self._cancelled)

    def pause(self) -> JobRunState:
        """Pause the job at its next checkpoint.

        Returns:
            JobRunState: Flags after the signal.
        """
        if not self._cancelled:
            self._paused = True
            self._wakeup.clear()
        return self.snapshot()

    def resume(self) -> JobRunState:
        """Resume a paused job.

        Returns:
            JobRunState: Flags after the signal.
        """
        self._paused = False
        self._wakeup.set()
        return self.snapshot()

    def cancel(self) -> JobRunState:
        """Cancel the job. Cancellation is terminal.

        Returns:
            JobRunState: Flags after the signal.
        """
        self._cancelled = True
        self._paused = False
        self._wakeup.set()
        return self.snapshot()

    def raise_if_cancelled(self) -> None:
        """Raise the cancellation signal if the job was cancelled.

        Raises:
            JobCancelledError: If the job was cancelled.
        """
        if self._cancelled:
            raise JobCancelledError(self.job_id)

    async def checkpoint(self) -> None:
        """Block while paused; raise once cancelled.

        Raises:
            JobCancelledError: If the job is or becomes cancelled.
        """
        self.raise_if_cancelled()
        while self._paused:
            await self._wakeup.wait()
        self.raise_if_cancelled()


class RunControlStore:
    """Run control entries keyed by job id."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._controls: dict[JobId, RunControl] = {}

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._controls

    def create(self, job_id: JobId) -> RunControl:
        """Create (or replace) the run control for a job.

        Returns:
            RunControl: Fresh run control.
        """
        control = RunControl(job_id)
        self._controls[job_id] = control
        return control

    def get(self, job_id: JobId) -> RunControl | None:
        """Return the run control for a job, if registered."""
        return self._controls.get(job_id)

    def state(self, job_id: JobId) -> JobRunState:
        """Return the flags for a job, defaulting to not paused/not cancelled."""
        control = self._controls.get(job_id)
        if control is None:
            return JobRunState()
        return control.snapshot()

    def discard(self, job_id: JobId) -> None:
        """Forget a job's run control."""
        self._controls.pop(job_id, None)
