"""Fan progress updates out to WebSocket subscribers."""

from __future__ import annotations

import asyncio

from subloom_core.ports.orchestrator import ProgressSinkProtocol
from subloom_schemas.events import ProgressEvent
from subloom_schemas.primitives import JobId
from subloom_schemas.progress import ProgressUpdate

TERMINAL_EVENTS = frozenset({
    ProgressEvent.JOB_COMPLETED,
    ProgressEvent.JOB_FAILED,
    ProgressEvent.JOB_CANCELLED,
})


def is_terminal(update: ProgressUpdate) -> bool:
    """Return True if the update ends the job's event stream."""
    return ProgressEvent(update.event) in TERMINAL_EVENTS


class EventHub(ProgressSinkProtocol):
    """Progress sink that copies each update into per-job subscriber queues.

    Updates emitted before a subscriber joins are not replayed; the job
    snapshot carries the current state, including any pending approval.
    """

    def __init__(self) -> None:
        """Initialize a hub with no subscribers."""
        self._subscribers: dict[JobId, set[asyncio.Queue[ProgressUpdate]]] = {}

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Deliver a progress update to every subscriber of its job."""
        for queue in self._subscribers.get(update.job_id, ()):
            queue.put_nowait(update)

    def subscribe(self, job_id: JobId) -> asyncio.Queue[ProgressUpdate]:
        """Register a subscriber queue for a job.

        Returns:
            asyncio.Queue[ProgressUpdate]: Queue receiving the job's updates.
        """
        queue: asyncio.Queue[ProgressUpdate] = asyncio.Queue()
        self._subscribers.setdefault(job_id, set()).add(queue)
        return queue

    def unsubscribe(self, job_id: JobId, queue: asyncio.Queue[ProgressUpdate]) -> None:
        """Remove a subscriber queue."""
        queues = self._subscribers.get(job_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[job_id]

    def subscriber_count(self, job_id: JobId) -> int:
        """Return the number of subscribers for a job."""
        return len(self._subscribers.get(job_id, ()))
