"""Test doubles shared by subloom unit tests."""

from __future__ import annotations

from collections.abc import Callable

from subloom_core.ports.translator import TranslatorClientProtocol
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.logs import LogEntry
from subloom_schemas.primitives import ProblemType
from subloom_schemas.translation import (
    AnalysisRequest,
    RetranslationRequest,
    TranslationRequest,
    TranslationResult,
)
from subloom_schemas.verification import DefectReport, TranslationIssue

FIXED_TIMESTAMP = "2026-01-01T00:00:00Z"

type TranslateHandler = Callable[[TranslationRequest], TranslationResult]
type AnalyzeHandler = Callable[[AnalysisRequest], list[DefectReport]]
type RetranslateHandler = Callable[[RetranslationRequest], dict[int, str]]


def fixed_clock() -> str:
    """Return a constant timestamp."""
    return FIXED_TIMESTAMP


def make_blocks(
    count: int, *, start: int = 1, prefix: str = "line"
) -> list[SubtitleBlock]:
    """Build ``count`` consecutive blocks."""
    return [
        SubtitleBlock(
            number=number,
            time=f"00:00:{number:02d},000 --> 00:00:{number:02d},900",
            text=f"{prefix} {number}",
        )
        for number in range(start, start + count)
    ]


def echo_translate(request: TranslationRequest) -> TranslationResult:
    """Translate each block to ``T<number>``."""
    return TranslationResult(
        translations={block.number: f"T{block.number}" for block in request.blocks}
    )


def no_defects(request: AnalysisRequest) -> list[DefectReport]:
    """Report nothing."""
    return []


def echo_retranslate(request: RetranslationRequest) -> dict[int, str]:
    """Improve each issue block to ``R<number>``."""
    return {issue.block_number: f"R{issue.block_number}" for issue in request.issues}


class ScriptedTranslator(TranslatorClientProtocol):
    """Translator double that records requests and answers through handlers."""

    def __init__(
        self,
        *,
        translate: TranslateHandler = echo_translate,
        analyze: AnalyzeHandler = no_defects,
        retranslate: RetranslateHandler = echo_retranslate,
    ) -> None:
        self.translate_requests: list[TranslationRequest] = []
        self.analyze_requests: list[AnalysisRequest] = []
        self.retranslate_requests: list[RetranslationRequest] = []
        self._translate = translate
        self._analyze = analyze
        self._retranslate = retranslate

    async def translate_batch(self, request: TranslationRequest) -> TranslationResult:
        self.translate_requests.append(request)
        return self._translate(request)

    async def analyze(self, request: AnalysisRequest) -> list[DefectReport]:
        self.analyze_requests.append(request)
        return self._analyze(request)

    async def retranslate(self, request: RetranslationRequest) -> dict[int, str]:
        self.retranslate_requests.append(request)
        return self._retranslate(request)


class RecordingLogSink:
    """Log sink that keeps every entry in memory."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    async def emit_log(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self) -> list[str]:
        """Return the event names in emission order."""
        return [entry.event for entry in self.entries]


def make_issue(
    number: int,
    *,
    original: str | None = None,
    current: str | None = None,
    problems: list[ProblemType] | None = None,
    score: int = 4,
) -> TranslationIssue:
    """Build a pending issue for one block."""
    return TranslationIssue(
        block_number=number,
        problem_types=problems or [ProblemType.TOO_LITERAL],
        original_text=original if original is not None else f"line {number}",
        current_translation=current if current is not None else f"T{number}",
        quality_score=score,
    )
