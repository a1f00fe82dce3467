"""Progress sinks: per-job JSONL files, memory, and fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

from subloom_core.ports.orchestrator import ProgressSinkProtocol
from subloom_schemas.config import LoggingConfig
from subloom_schemas.events import ProgressEvent
from subloom_schemas.progress import ProgressUpdate

PROGRESS_FILE_SUFFIX = ".progress.jsonl"


class JobProgressFileSink(ProgressSinkProtocol):
    """Append each job's progress updates to ``<job_id>.progress.jsonl``."""

    def __init__(self, progress_dir: str | Path) -> None:
        """Initialize the sink.

        Args:
            progress_dir: Directory holding the per-job progress files.
        """
        self._progress_dir = Path(progress_dir)

    def path_for(self, job_id: str) -> Path:
        """Return the progress file path for a job."""
        return self._progress_dir / f"{job_id}{PROGRESS_FILE_SUFFIX}"

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Append an update, without null fields, to the job's file."""
        line = update.model_dump_json(exclude_none=True)
        await asyncio.to_thread(_append_line, self.path_for(update.job_id), line)


class InMemoryProgressSink(ProgressSinkProtocol):
    """Keep every update in memory, in emission order."""

    def __init__(self) -> None:
        self._updates: list[ProgressUpdate] = []

    @property
    def updates(self) -> list[ProgressUpdate]:
        """Return a copy of stored progress updates."""
        return list(self._updates)

    def of_event(self, event: ProgressEvent) -> list[ProgressUpdate]:
        """Return stored updates with the given event name."""
        return [update for update in self._updates if update.event == event]

    async def emit_progress(self, update: ProgressUpdate) -> None:
        self._updates.append(update)


class CompositeProgressSink(ProgressSinkProtocol):
    """Forward each update to several sinks in order."""

    def __init__(self, sinks: Iterable[ProgressSinkProtocol]) -> None:
        self._sinks = list(sinks)

    async def emit_progress(self, update: ProgressUpdate) -> None:
        for sink in self._sinks:
            await sink.emit_progress(update)


def build_progress_sink(
    logging_config: LoggingConfig,
    *,
    downstream: ProgressSinkProtocol | None = None,
) -> ProgressSinkProtocol | None:
    """Build the progress sink for a service.

    Args:
        logging_config: Logging configuration; ``progress_files`` adds a
            per-job JSONL file under ``log_dir``.
        downstream: Live observer (event hub, terminal) receiving updates first.

    Returns:
        ProgressSinkProtocol | None: The configured sink, or None when nothing
        observes progress.
    """
    sinks: list[ProgressSinkProtocol] = []
    if downstream is not None:
        sinks.append(downstream)
    if logging_config.progress_files:
        sinks.append(JobProgressFileSink(logging_config.log_dir))
    if not sinks:
        return None
    if len(sinks) == 1:
        return sinks[0]
    return CompositeProgressSink(sinks)


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(line + "\n")
