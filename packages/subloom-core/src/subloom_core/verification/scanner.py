"""Scan translated blocks for defects as a lazy stream of issues."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from subloom_core.ports.orchestrator import (
    VerificationError,
    VerificationErrorCode,
    VerificationErrorDetails,
    VerificationErrorInfo,
)
from subloom_core.ports.translator import TranslatorClientProtocol
from subloom_core.run_control import RunControl
from subloom_core.telemetry import JobReporter
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.translation import AnalysisRequest
from subloom_schemas.verification import TranslationIssue

SCAN_PERCENT_START = 5.0
SCAN_PERCENT_SPAN = 90.0

type IssueEmitter = Callable[[TranslationIssue], Awaitable[None]]
type IssueProducer = Callable[[IssueEmitter], Awaitable[None]]


class _EndOfStream:
    pass


_END = _EndOfStream()


class IssueStream:
    """Finite, forward-only async stream of issues fed by a producer task.

    Iteration starts the producer. A producer failure is raised to the
    consumer after the issues produced before it. The stream cannot be
    iterated twice.
    """

    def __init__(self, produce: IssueProducer) -> None:
        """Initialize the stream.

        Args:
            produce: Coroutine function that emits issues through a callback.
        """
        self._produce = produce
        self._queue: asyncio.Queue[TranslationIssue | _EndOfStream] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._error: Exception | None = None
        self._started = False
        self._finished = False

    def __aiter__(self) -> IssueStream:
        if self._started:
            raise RuntimeError("Issue stream can only be consumed once")
        self._started = True
        self._task = asyncio.create_task(self._run())
        return self

    async def __anext__(self) -> TranslationIssue:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            self._finished = True
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item

    async def _emit(self, issue: TranslationIssue) -> None:
        self._queue.put_nowait(issue)

    async def _run(self) -> None:
        try:
            await self._produce(self._emit)
        except Exception as exc:
            self._error = exc
        finally:
            self._queue.put_nowait(_END)

    async def aclose(self) -> None:
        """Stop the producer if it is still running."""
        self._finished = True
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


def plan_scan_windows(
    count: int, window_size: int, overlap: int
) -> list[tuple[int, int]]:
    """Plan overlapping scan windows as (start, end) positions.

    Args:
        count: Number of aligned blocks.
        window_size: Blocks per window.
        overlap: Blocks shared with the previous window.

    Returns:
        list[tuple[int, int]]: Half-open position ranges; the last one is
        clamped to the end of the sequence.

    Raises:
        ValueError: If the window would not advance.
    """
    if window_size < 1 or not 0 <= overlap < window_size:
        raise ValueError("window_size must be positive and larger than overlap")
    stride = window_size - overlap
    windows: list[tuple[int, int]] = []
    start = 0
    while start < count:
        end = min(start + window_size, count)
        windows.append((start, end))
        if end == count:
            break
        start += stride
    return windows


def align_blocks(
    original: list[SubtitleBlock], translated: list[SubtitleBlock]
) -> list[tuple[SubtitleBlock, SubtitleBlock]]:
    """Pair original and translated blocks that share a number.

    Returns:
        list[tuple[SubtitleBlock, SubtitleBlock]]: Pairs ordered by number.
    """
    by_number = {block.number: block for block in translated}
    pairs = [
        (block, by_number[block.number])
        for block in original
        if block.number in by_number
    ]
    return sorted(pairs, key=lambda pair: pair[0].number)


class VerificationScanner:
    """Ask the translator to report defects over overlapping windows."""

    def __init__(
        self,
        translator: TranslatorClientProtocol,
        *,
        window_size: int = 10,
        overlap: int = 3,
    ) -> None:
        """Initialize the scanner.

        Args:
            translator: Translator client used in analysis mode.
            window_size: Blocks per scan window.
            overlap: Blocks shared by adjacent windows.
        """
        self._translator = translator
        self._window_size = window_size
        self._overlap = overlap

    def scan(
        self,
        original: list[SubtitleBlock],
        translated: list[SubtitleBlock],
        *,
        target_language: str,
        reporter: JobReporter,
        control: RunControl | None = None,
    ) -> IssueStream:
        """Return a lazy stream of issues for the aligned documents.

        Args:
            original: Source blocks.
            translated: Translated blocks.
            target_language: Target language name.
            reporter: Event reporter for scan progress.
            control: Optional run control checked before each window.

        Returns:
            IssueStream: Issues in scan order, at most one per block.
        """
        pairs = align_blocks(original, translated)

        async def produce(emit: IssueEmitter) -> None:
            await self._produce(pairs, target_language, reporter, control, emit)

        return IssueStream(produce)

    async def _produce(
        self,
        pairs: list[tuple[SubtitleBlock, SubtitleBlock]],
        target_language: str,
        reporter: JobReporter,
        control: RunControl | None,
        emit: IssueEmitter,
    ) -> None:
        windows = plan_scan_windows(len(pairs), self._window_size, self._overlap)
        reported: set[int] = set()
        for done, (start, end) in enumerate(windows, start=1):
            if control is not None:
                await control.checkpoint()
            chunk = pairs[start:end]
            first, last = chunk[0][0].number, chunk[-1][0].number
            request = AnalysisRequest(
                original=[source for source, _ in chunk],
                translated=[target for _, target in chunk],
                target_language=target_language,
            )
            try:
                reports = await self._translator.analyze(request)
            except Exception as exc:
                raise VerificationError(
                    VerificationErrorInfo(
                        code=VerificationErrorCode.SCAN_FAILED,
                        message=f"Scanning blocks {first}-{last} failed: {exc}",
                        details=VerificationErrorDetails(
                            first_block=first, last_block=last, reason=str(exc)
                        ),
                    )
                ) from exc

            window_pairs = {source.number: (source, target) for source, target in chunk}
            for report in reports:
                pair = window_pairs.get(report.block_number)
                if pair is None or not report.problem_types:
                    continue
                if report.block_number in reported:
                    continue
                reported.add(report.block_number)
                source, target = pair
                await emit(
                    TranslationIssue(
                        block_number=report.block_number,
                        problem_types=list(report.problem_types),
                        original_text=source.text,
                        current_translation=target.text,
                        quality_score=report.quality_score,
                        recommendations=report.recommendations,
                    )
                )
            await reporter.step(
                "scanning",
                f"Checked blocks {first}-{last}",
                SCAN_PERCENT_START + SCAN_PERCENT_SPAN * done / len(windows),
            )
