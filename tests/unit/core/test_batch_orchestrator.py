"""Unit tests for the batch translation orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from subloom_core.glossary import Glossary
from subloom_core.orchestrator import (
    BatchTranslationOrchestrator,
    plan_windows,
    sort_blocks,
)
from subloom_core.ports.orchestrator import JobCancelledError
from subloom_core.ports.translator import (
    TranslatorError,
    TranslatorErrorCode,
    TranslatorErrorInfo,
)
from subloom_core.run_control import RunControl
from subloom_core.telemetry import JobReporter
from subloom_io.storage import InMemoryProgressSink
from subloom_schemas.events import JobEvent, ProgressEvent
from subloom_schemas.jobs import JobSettings
from subloom_schemas.translation import TranslationRequest, TranslationResult
from tests.helpers.stubs import (
    RecordingLogSink,
    ScriptedTranslator,
    echo_translate,
    fixed_clock,
    make_blocks,
)


async def _no_sleep(delay: float) -> None:
    return None


def _reporter(
    progress_sink: InMemoryProgressSink, log_sink: RecordingLogSink
) -> JobReporter:
    return JobReporter(
        "job-1", log_sink=log_sink, progress_sink=progress_sink, clock=fixed_clock
    )


def _numbers(blocks: list) -> list[int]:
    return [block.number for block in blocks]


@pytest.mark.unit
def test_windows_carry_clamped_context() -> None:
    """Each window sees up to the configured number of neighbours."""
    windows = plan_windows(make_blocks(10), 4, 2, 2)

    assert [_numbers(window.blocks) for window in windows] == [
        [1, 2, 3, 4],
        [5, 6, 7, 8],
        [9, 10],
    ]
    assert _numbers(windows[0].before) == []
    assert _numbers(windows[1].before) == [3, 4]
    assert _numbers(windows[1].after) == [9, 10]
    assert _numbers(windows[2].before) == [7, 8]
    assert _numbers(windows[2].after) == []


@pytest.mark.unit
def test_windows_reject_empty_batches() -> None:
    """A batch size below one is refused."""
    with pytest.raises(ValueError):
        plan_windows(make_blocks(3), 0, 1, 1)


@pytest.mark.unit
def test_sort_blocks_rejects_duplicates() -> None:
    """Block numbers must be unique."""
    blocks = make_blocks(2) + make_blocks(1, start=2)

    with pytest.raises(ValueError):
        sort_blocks(blocks)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translates_every_window(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """Every block gets its translation and keeps its time range."""
    source = make_blocks(10)
    translator = ScriptedTranslator()
    orchestrator = BatchTranslationOrchestrator(translator, sleep=_no_sleep)

    outcome = await orchestrator.translate(
        source,
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=Glossary(),
        reporter=_reporter(progress_sink, log_sink),
    )

    assert [block.text for block in outcome.blocks] == [f"T{n}" for n in range(1, 11)]
    assert [block.time for block in outcome.blocks] == [b.time for b in source]
    assert outcome.translated_blocks == 10
    assert outcome.failed_batches == 0
    assert len(translator.translate_requests) == 3
    assert len(progress_sink.of_event(ProgressEvent.BLOCK_TRANSLATED)) == 10
    assert progress_sink.of_event(ProgressEvent.TRANSLATION_PROGRESS)[-1].percent == 100


@pytest.mark.unit
@pytest.mark.asyncio
async def test_context_before_uses_translated_text(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """Preceding context shows already translated text; following stays source."""
    translator = ScriptedTranslator()
    orchestrator = BatchTranslationOrchestrator(translator, sleep=_no_sleep)

    await orchestrator.translate(
        make_blocks(10),
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=Glossary(),
        reporter=_reporter(progress_sink, log_sink),
    )

    second = translator.translate_requests[1]
    assert [block.text for block in second.context_before] == ["T3", "T4"]
    assert [block.text for block in second.context_after] == ["line 9", "line 10"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_window_keeps_source_text(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """A failing window falls back to source text and the job continues."""

    def translate(request: TranslationRequest) -> TranslationResult:
        if request.blocks[0].number == 5:
            raise TranslatorError(
                TranslatorErrorInfo(
                    code=TranslatorErrorCode.UPSTREAM_FAILED,
                    message="Upstream unavailable",
                )
            )
        return echo_translate(request)

    orchestrator = BatchTranslationOrchestrator(
        ScriptedTranslator(translate=translate), sleep=_no_sleep
    )

    outcome = await orchestrator.translate(
        make_blocks(10),
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=Glossary(),
        reporter=_reporter(progress_sink, log_sink),
    )

    texts = [block.text for block in outcome.blocks]
    assert texts[4:8] == ["line 5", "line 6", "line 7", "line 8"]
    assert texts[8:] == ["T9", "T10"]
    assert outcome.failed_batches == 1
    assert log_sink.events() == [JobEvent.BATCH_FAILED]
    fallbacks = [
        update.block.number
        for update in progress_sink.of_event(ProgressEvent.BLOCK_TRANSLATED)
        if update.block is not None and update.block.fallback
    ]
    assert fallbacks == [5, 6, 7, 8]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_and_foreign_translations_are_dropped(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """Only non-empty text for blocks of the window is applied."""

    def translate(request: TranslationRequest) -> TranslationResult:
        return TranslationResult(translations={1: "one", 2: "   ", 99: "stray"})

    orchestrator = BatchTranslationOrchestrator(
        ScriptedTranslator(translate=translate), sleep=_no_sleep
    )

    outcome = await orchestrator.translate(
        make_blocks(2),
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=Glossary(),
        reporter=_reporter(progress_sink, log_sink),
    )

    assert [block.text for block in outcome.blocks] == ["one", "line 2"]
    assert outcome.translated_blocks == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_glossary_keeps_first_translation(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """Terms from earlier windows are sent to later ones and never replaced."""
    proposals = iter([{"Neo": "Нео"}, {"Neo": "Нио", "Zion": "Зион"}, {}])

    def translate(request: TranslationRequest) -> TranslationResult:
        result = echo_translate(request)
        return result.model_copy(update={"terms": next(proposals)})

    translator = ScriptedTranslator(translate=translate)
    glossary = Glossary()
    orchestrator = BatchTranslationOrchestrator(translator, sleep=_no_sleep)

    await orchestrator.translate(
        make_blocks(10),
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=glossary,
        reporter=_reporter(progress_sink, log_sink),
    )

    assert translator.translate_requests[0].glossary == {}
    assert translator.translate_requests[1].glossary == {"Neo": "Нео"}
    assert glossary.snapshot() == {"Neo": "Нео", "Zion": "Зион"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_stops_before_next_window(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """No window starts after the job is cancelled."""
    control = RunControl("job-1")

    def translate(request: TranslationRequest) -> TranslationResult:
        control.cancel()
        return echo_translate(request)

    translator = ScriptedTranslator(translate=translate)
    orchestrator = BatchTranslationOrchestrator(translator, sleep=_no_sleep)

    with pytest.raises(JobCancelledError):
        await orchestrator.translate(
            make_blocks(10),
            settings=job_settings,
            control=control,
            glossary=Glossary(),
            reporter=_reporter(progress_sink, log_sink),
        )

    assert len(translator.translate_requests) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pause_holds_next_window(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """A pause takes effect before the next window and resume continues."""
    control = RunControl("job-1")

    def translate(request: TranslationRequest) -> TranslationResult:
        if request.blocks[0].number == 1:
            control.pause()
        return echo_translate(request)

    translator = ScriptedTranslator(translate=translate)
    orchestrator = BatchTranslationOrchestrator(translator, sleep=_no_sleep)
    task = asyncio.create_task(
        orchestrator.translate(
            make_blocks(10),
            settings=job_settings,
            control=control,
            glossary=Glossary(),
            reporter=_reporter(progress_sink, log_sink),
        )
    )
    for _ in range(10):
        await asyncio.sleep(0)

    assert not task.done()
    assert len(translator.translate_requests) == 1

    control.resume()
    outcome = await asyncio.wait_for(task, timeout=1)

    assert len(translator.translate_requests) == 3
    assert outcome.translated_blocks == 10


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pacing_delay_between_windows(
    job_settings: JobSettings,
    progress_sink: InMemoryProgressSink,
    log_sink: RecordingLogSink,
) -> None:
    """The pacing delay is awaited between windows, not before the first."""
    delays: list[float] = []

    async def record_sleep(delay: float) -> None:
        delays.append(delay)

    orchestrator = BatchTranslationOrchestrator(
        ScriptedTranslator(), pacing_delay_s=0.5, sleep=record_sleep
    )

    await orchestrator.translate(
        make_blocks(10),
        settings=job_settings,
        control=RunControl("job-1"),
        glossary=Glossary(),
        reporter=_reporter(progress_sink, log_sink),
    )

    assert delays == [0.5, 0.5]
