"""Log and progress sinks."""

from subloom_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    FileLogSink,
    NoopLogSink,
    build_log_sink,
)
from subloom_io.storage.progress_sink import (
    CompositeProgressSink,
    InMemoryProgressSink,
    JobProgressFileSink,
    build_progress_sink,
)

__all__ = [
    "CompositeLogSink",
    "CompositeProgressSink",
    "ConsoleLogSink",
    "FileLogSink",
    "InMemoryProgressSink",
    "JobProgressFileSink",
    "NoopLogSink",
    "build_log_sink",
    "build_progress_sink",
]
