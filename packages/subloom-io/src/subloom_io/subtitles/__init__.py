"""Subtitle document adapters."""

from subloom_io.subtitles.srt_adapter import (
    SrtSubtitleFormat,
    load_srt,
    parse_srt_document,
    write_srt,
)

__all__ = [
    "SrtSubtitleFormat",
    "load_srt",
    "parse_srt_document",
    "write_srt",
]
