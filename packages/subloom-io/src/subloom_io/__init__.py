"""subloom-io: Subtitle documents, config files, and event sinks."""

from subloom_io.config_loader import ConfigError, load_run_config
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
from subloom_io.subtitles import (
    SrtSubtitleFormat,
    load_srt,
    parse_srt_document,
    write_srt,
)

__version__ = "0.1.0"

__all__ = [
    "CompositeLogSink",
    "CompositeProgressSink",
    "ConfigError",
    "ConsoleLogSink",
    "FileLogSink",
    "InMemoryProgressSink",
    "JobProgressFileSink",
    "NoopLogSink",
    "SrtSubtitleFormat",
    "build_log_sink",
    "build_progress_sink",
    "load_run_config",
    "load_srt",
    "parse_srt_document",
    "write_srt",
]
