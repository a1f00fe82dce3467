"""Batch translation orchestrator."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass

from subloom_core.glossary import Glossary
from subloom_core.ports.orchestrator import build_batch_failed_log
from subloom_core.ports.translator import TranslatorClientProtocol
from subloom_core.run_control import RunControl
from subloom_core.telemetry import JobReporter
from subloom_schemas.events import ProgressEvent
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.jobs import JobSettings
from subloom_schemas.primitives import JobStage, TranslationStyle
from subloom_schemas.progress import BlockProgress
from subloom_schemas.translation import TranslationRequest


@dataclass(frozen=True, slots=True)
class BatchWindow:
    """One translation window and its positional context."""

    index: int
    start: int
    blocks: list[SubtitleBlock]
    before: list[SubtitleBlock]
    after: list[SubtitleBlock]

    @property
    def first_number(self) -> int:
        """Return the first block number of the window."""
        return self.blocks[0].number

    @property
    def last_number(self) -> int:
        """Return the last block number of the window."""
        return self.blocks[-1].number


@dataclass(slots=True)
class TranslationOutcome:
    """Result of a full translation pass."""

    blocks: list[SubtitleBlock]
    translated_blocks: int
    failed_batches: int


def sort_blocks(blocks: Iterable[SubtitleBlock]) -> list[SubtitleBlock]:
    """Sort blocks by ascending number.

    Args:
        blocks: Blocks in any order.

    Returns:
        list[SubtitleBlock]: Blocks ordered by number.

    Raises:
        ValueError: If two blocks share a number.
    """
    ordered = sorted(blocks, key=lambda block: block.number)
    for previous, current in zip(ordered, ordered[1:], strict=False):
        if previous.number == current.number:
            raise ValueError(f"Duplicate block number: {current.number}")
    return ordered


def plan_windows(
    blocks: list[SubtitleBlock],
    batch_size: int,
    context_before: int,
    context_after: int,
) -> list[BatchWindow]:
    """Partition ordered blocks into windows with clamped positional context.

    Args:
        blocks: Blocks ordered by number.
        batch_size: Blocks per window.
        context_before: Blocks of context preceding each window.
        context_after: Blocks of context following each window.

    Returns:
        list[BatchWindow]: Windows in document order.

    Raises:
        ValueError: If batch_size is not positive or a context size is negative.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    if context_before < 0 or context_after < 0:
        raise ValueError("context sizes must not be negative")
    windows: list[BatchWindow] = []
    for index, start in enumerate(range(0, len(blocks), batch_size)):
        end = min(start + batch_size, len(blocks))
        windows.append(
            BatchWindow(
                index=index,
                start=start,
                blocks=blocks[start:end],
                before=blocks[max(0, start - context_before) : start],
                after=blocks[end : end + context_after],
            )
        )
    return windows


def overlay_translations(
    blocks: list[SubtitleBlock], translations: Mapping[int, str]
) -> list[SubtitleBlock]:
    """Replace block text with translations, keeping source time ranges.

    Args:
        blocks: Source blocks.
        translations: Translated text keyed by block number.

    Returns:
        list[SubtitleBlock]: New blocks; untranslated blocks keep source text.
    """
    return [
        block.model_copy(update={"text": translations[block.number]})
        if block.number in translations
        else block
        for block in blocks
    ]


class BatchTranslationOrchestrator:
    """Translate a block sequence window by window.

    A window whose translator call fails keeps its source text; the job always
    continues with the next window.
    """

    def __init__(
        self,
        translator: TranslatorClientProtocol,
        *,
        pacing_delay_s: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            translator: Translator client used for every window.
            pacing_delay_s: Delay awaited between windows.
            sleep: Awaitable sleep used for pacing.
        """
        self._translator = translator
        self._pacing_delay_s = pacing_delay_s
        self._sleep = sleep

    async def translate(
        self,
        blocks: list[SubtitleBlock],
        *,
        settings: JobSettings,
        control: RunControl,
        glossary: Glossary,
        reporter: JobReporter,
    ) -> TranslationOutcome:
        """Translate every block of a document.

        Args:
            blocks: Source blocks.
            settings: Resolved job settings.
            control: Run control checked before each window.
            glossary: Job glossary, updated with first-write-wins.
            reporter: Event reporter for the job.

        Returns:
            TranslationOutcome: Output blocks and pass statistics.

        Raises:
            JobCancelledError: If the job is cancelled before a window starts.
        """
        ordered = sort_blocks(blocks)
        windows = plan_windows(
            ordered,
            settings.batch_size,
            settings.context_before,
            settings.context_after,
        )
        total = len(ordered)
        translations: dict[int, str] = {}
        processed = 0
        failed_batches = 0

        for window in windows:
            if window.index > 0 and self._pacing_delay_s > 0:
                await self._sleep(self._pacing_delay_s)
            await control.checkpoint()

            request = TranslationRequest(
                blocks=list(window.blocks),
                context_before=overlay_translations(window.before, translations),
                context_after=list(window.after),
                glossary=glossary.snapshot(),
                target_language=settings.target_language,
                style=TranslationStyle(settings.style),
                seed=settings.seed,
            )
            window_translations: dict[int, str] = {}
            try:
                result = await self._translator.translate_batch(request)
            except Exception as exc:
                failed_batches += 1
                await reporter.log(
                    build_batch_failed_log(
                        reporter.now(),
                        reporter.job_id,
                        window.first_number,
                        window.last_number,
                        str(exc) or type(exc).__name__,
                    )
                )
            else:
                members = {block.number for block in window.blocks}
                window_translations = {
                    number: text
                    for number, text in result.translations.items()
                    if number in members and text.strip()
                }
                glossary.merge(result.terms)

            translations.update(window_translations)
            for block in window.blocks:
                translated = window_translations.get(block.number)
                await reporter.progress(
                    ProgressEvent.BLOCK_TRANSLATED,
                    stage=JobStage.TRANSLATION,
                    block=BlockProgress(
                        number=block.number,
                        original_text=block.text,
                        translated_text=translated
                        if translated is not None
                        else block.text,
                        fallback=translated is None,
                    ),
                )
            processed += len(window.blocks)
            await reporter.progress(
                ProgressEvent.TRANSLATION_PROGRESS,
                stage=JobStage.TRANSLATION,
                percent=processed / total * 100,
            )

        await reporter.progress(
            ProgressEvent.TRANSLATION_PROGRESS,
            stage=JobStage.TRANSLATION,
            percent=100.0,
            message="Translation complete",
        )
        return TranslationOutcome(
            blocks=overlay_translations(ordered, translations),
            translated_blocks=len(translations),
            failed_batches=failed_batches,
        )
