"""Unit tests for log and progress sinks."""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path

import pytest

from subloom_io.storage import (
    CompositeLogSink,
    CompositeProgressSink,
    ConsoleLogSink,
    FileLogSink,
    InMemoryProgressSink,
    JobProgressFileSink,
    NoopLogSink,
    build_log_sink,
    build_progress_sink,
)
from subloom_schemas.config import LoggingConfig, LogSinkConfig
from subloom_schemas.events import JobEvent, ProgressEvent
from subloom_schemas.logs import LogEntry
from subloom_schemas.primitives import LogLevel, LogSinkType
from subloom_schemas.progress import ProgressUpdate
from tests.helpers.stubs import FIXED_TIMESTAMP, RecordingLogSink


def _entry(job_id: str = "job-1") -> LogEntry:
    return LogEntry(
        timestamp=FIXED_TIMESTAMP,
        level=LogLevel.INFO,
        event=JobEvent.STARTED,
        job_id=job_id,
        message="Job started",
    )


def _update(job_id: str = "job-1") -> ProgressUpdate:
    return ProgressUpdate(
        job_id=job_id,
        event=ProgressEvent.TRANSLATION_PROGRESS,
        timestamp=FIXED_TIMESTAMP,
        percent=50.0,
    )


@pytest.mark.unit
def test_file_log_sink_writes_one_file_per_job(tmp_path: Path) -> None:
    """Entries are appended to ``<job_id>.jsonl``."""
    sink = FileLogSink(tmp_path / "logs")

    asyncio.run(sink.emit_log(_entry()))
    asyncio.run(sink.emit_log(_entry()))
    asyncio.run(sink.emit_log(_entry("job-2")))

    lines = sink.path_for("job-1").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["event"] == "job_started"
    assert sink.path_for("job-2").exists()


@pytest.mark.unit
def test_console_log_sink_writes_jsonl() -> None:
    """Console entries are written as one JSON object per line."""
    stream = io.StringIO()

    asyncio.run(ConsoleLogSink(stream=stream).emit_log(_entry()))

    payload = json.loads(stream.getvalue())
    assert payload["job_id"] == "job-1"
    assert payload["stage"] is None


@pytest.mark.unit
def test_build_log_sink_single_and_composite(tmp_path: Path) -> None:
    """One configured sink is returned as is; several are composed."""
    single = build_log_sink(
        LoggingConfig(sinks=[LogSinkConfig(type=LogSinkType.NOOP)])
    )
    composite = build_log_sink(
        LoggingConfig(
            sinks=[
                LogSinkConfig(type=LogSinkType.CONSOLE),
                LogSinkConfig(type=LogSinkType.FILE),
            ],
            log_dir=str(tmp_path),
        ),
        stream=io.StringIO(),
    )

    assert isinstance(single, NoopLogSink)
    assert isinstance(composite, CompositeLogSink)


@pytest.mark.unit
def test_composite_log_sink_fans_out() -> None:
    """Every wrapped sink receives each entry."""
    first, second = RecordingLogSink(), RecordingLogSink()

    asyncio.run(CompositeLogSink([first, second]).emit_log(_entry()))

    assert first.events() == second.events() == ["job_started"]


@pytest.mark.unit
def test_progress_sinks_store_and_append(tmp_path: Path) -> None:
    """Updates reach memory and the job's JSONL file without null fields."""
    memory = InMemoryProgressSink()
    files = JobProgressFileSink(tmp_path / "logs")
    sink = CompositeProgressSink([memory, files])

    asyncio.run(sink.emit_progress(_update()))
    asyncio.run(sink.emit_progress(_update("job-2")))

    assert memory.of_event(ProgressEvent.TRANSLATION_PROGRESS)[0] == _update()
    assert memory.of_event(ProgressEvent.JOB_COMPLETED) == []
    assert files.path_for("job-1").name == "job-1.progress.jsonl"
    payload = json.loads(files.path_for("job-1").read_text(encoding="utf-8"))
    assert payload == {
        "job_id": "job-1",
        "event": "translation_progress",
        "timestamp": FIXED_TIMESTAMP,
        "percent": 50.0,
    }
    assert files.path_for("job-2").exists()


@pytest.mark.unit
def test_build_progress_sink_follows_logging_config(tmp_path: Path) -> None:
    """Progress files are added next to the live observer only when enabled."""
    memory = InMemoryProgressSink()
    disabled = LoggingConfig(log_dir=str(tmp_path))
    enabled = LoggingConfig(log_dir=str(tmp_path), progress_files=True)

    assert build_progress_sink(disabled) is None
    assert build_progress_sink(disabled, downstream=memory) is memory
    assert isinstance(build_progress_sink(enabled), JobProgressFileSink)

    sink = build_progress_sink(enabled, downstream=memory)
    assert isinstance(sink, CompositeProgressSink)
    asyncio.run(sink.emit_progress(_update()))

    assert len(memory.updates) == 1
    assert (tmp_path / "job-1.progress.jsonl").exists()
