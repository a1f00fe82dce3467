"""CLI entry point - thin adapter over subloom-core."""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from uuid import uuid4

import typer
import uvicorn
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)
from rich.prompt import Prompt

from subloom_api.main import create_app
from subloom_core import VERSION, SubtitleJobService, build_job_settings
from subloom_core.ports import (
    JobControlError,
    SubtitleFormatError,
    TranslatorError,
    VerificationError,
)
from subloom_core.ports.orchestrator import ProgressSinkProtocol
from subloom_core.telemetry import utc_timestamp
from subloom_io import (
    ConfigError,
    build_log_sink,
    build_progress_sink,
    load_run_config,
    load_srt,
    write_srt,
)
from subloom_llm import build_translator_client
from subloom_schemas.config import RunConfig
from subloom_schemas.events import ProgressEvent
from subloom_schemas.jobs import JobSettings, JobSnapshot
from subloom_schemas.primitives import (
    IssueStatus,
    JobId,
    JobStage,
    JobStatus,
    TranslationStyle,
)
from subloom_schemas.progress import ProgressUpdate
from subloom_schemas.responses import ApiResponse, ErrorResponse, MetaInfo
from subloom_schemas.verification import ApprovalDecision, IssuePublication

CONFIG_OPTION = typer.Option(
    Path("subloom.toml"),
    "--config",
    "-c",
    help="Path to subloom TOML config",
)
INPUT_OPTION = typer.Option(..., "--input", "-i", help="SRT file to translate")
OUTPUT_OPTION = typer.Option(
    ..., "--output", "-o", help="Path to write the translated SRT"
)
TARGET_LANGUAGE_OPTION = typer.Option(
    None, "--target-language", "-t", help="Target language name"
)
STYLE_OPTION = typer.Option(None, "--style", "-s", help="Translation style")
SEED_OPTION = typer.Option(None, "--seed", help="Deterministic sampling seed")
JOB_ID_OPTION = typer.Option(None, "--job-id", help="Job identifier")
VERIFY_OPTION = typer.Option(
    None, "--verify/--no-verify", help="Run verification after translation"
)
AUTO_APPROVE_OPTION = typer.Option(
    False, "--auto-approve", help="Approve every proposed re-translation"
)

app = typer.Typer(
    help="AI subtitle translation with human review",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Subloom CLI."""


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]subloom[/bold] v{VERSION}")


@app.command("validate-config")
def validate_config(config_path: Path = CONFIG_OPTION) -> None:
    """Validate a config file and print the resolved job settings.

    Raises:
        typer.Exit: When the config is invalid.
    """
    try:
        config = load_run_config(config_path)
        summary = _config_summary(config, build_job_settings(config))
        response: ApiResponse[dict[str, str | int | bool | None]] = ApiResponse(
            data=summary, error=None, meta=MetaInfo(timestamp=utc_timestamp())
        )
    except Exception as exc:
        response = _error_response(_error_from_exception(exc))
    print(response.model_dump_json())
    if response.error is not None:
        raise typer.Exit(code=1)


@app.command()
def translate(
    config_path: Path = CONFIG_OPTION,
    input_path: Path = INPUT_OPTION,
    output_path: Path = OUTPUT_OPTION,
    target_language: str | None = TARGET_LANGUAGE_OPTION,
    style: TranslationStyle | None = STYLE_OPTION,
    seed: int | None = SEED_OPTION,
    job_id: str | None = JOB_ID_OPTION,
    verify: bool | None = VERIFY_OPTION,
    auto_approve: bool = AUTO_APPROVE_OPTION,
) -> None:
    """Translate an SRT file, reviewing flagged blocks along the way.

    Raises:
        typer.Exit: When the job does not complete.
    """
    progress: Progress | None = None
    console = Console(stderr=True)
    try:
        config = load_run_config(config_path)
        settings = build_job_settings(
            config,
            target_language=target_language,
            style=style,
            seed=seed,
            verify=verify,
        )
        if _should_render_progress():
            progress = _build_progress(console)
        job = _TranslateJob(
            config=config,
            settings=settings,
            job_id=job_id or _new_job_id(),
            input_path=input_path,
            output_path=output_path,
            auto_approve=auto_approve,
            progress=progress,
            console=console,
        )
        if progress is not None:
            with progress:
                snapshot = asyncio.run(job.run())
        else:
            snapshot = asyncio.run(job.run())
        response: ApiResponse[JobSnapshot] = ApiResponse(
            data=snapshot.model_copy(update={"blocks": None}),
            error=None,
            meta=MetaInfo(timestamp=utc_timestamp()),
        )
    except Exception as exc:
        response = _error_response(_error_from_exception(exc))
    print(response.model_dump_json())
    if response.error is not None or (
        response.data is not None and response.data.status != JobStatus.COMPLETED
    ):
        raise typer.Exit(code=1)


@app.command()
def serve(config_path: Path = CONFIG_OPTION) -> None:
    """Run the HTTP and WebSocket API.

    Raises:
        typer.Exit: When the config cannot be loaded.
    """
    try:
        config = load_run_config(config_path)
    except Exception as exc:
        print(_error_response(_error_from_exception(exc)).model_dump_json())
        raise typer.Exit(code=1) from exc
    uvicorn.run(
        create_app(config=config), host=config.api.host, port=config.api.port
    )


class _TranslateJob:
    """One local translation job driven from the terminal."""

    def __init__(
        self,
        *,
        config: RunConfig,
        settings: JobSettings,
        job_id: JobId,
        input_path: Path,
        output_path: Path,
        auto_approve: bool,
        progress: Progress | None,
        console: Console,
    ) -> None:
        self._config = config
        self._settings = settings
        self._job_id = job_id
        self._input_path = input_path
        self._output_path = output_path
        self._auto_approve = auto_approve
        self._progress = progress
        self._console = console

    async def run(self) -> JobSnapshot:
        blocks = await load_srt(self._input_path)
        responder = _ApprovalResponder(
            self._job_id, auto_approve=self._auto_approve, console=self._console
        )
        sink: ProgressSinkProtocol = responder
        if self._progress is not None:
            sink = _ProgressReporter(responder, self._progress, self._console)
        service = SubtitleJobService(
            build_translator_client(self._config),
            verification_config=self._config.verification,
            pacing_delay_s=self._config.translation.pacing_delay_s,
            log_sink=build_log_sink(self._config.logging),
            progress_sink=build_progress_sink(
                self._config.logging, downstream=sink
            ),
        )
        responder.bind(service)
        task = service.start_job(self._job_id, blocks, self._settings)
        loop = asyncio.get_running_loop()
        interrupt = _InterruptHandler(
            service,
            self._job_id,
            self._console,
            prompt_open=lambda: responder.prompt_open,
        )
        interrupt.install(loop)
        try:
            snapshot = await task
        finally:
            interrupt.uninstall(loop)
            await responder.aclose()
        if snapshot.blocks is not None and snapshot.status != JobStatus.CANCELLED:
            await write_srt(self._output_path, snapshot.blocks)
        return snapshot


class _ApprovalResponder(ProgressSinkProtocol):
    """Answer approval requests from the terminal or automatically."""

    def __init__(self, job_id: JobId, *, auto_approve: bool, console: Console) -> None:
        self._job_id = job_id
        self._auto_approve = auto_approve
        self._console = console
        self._service: SubtitleJobService | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._prompts_open = 0

    def bind(self, service: SubtitleJobService) -> None:
        self._service = service

    @property
    def prompt_open(self) -> bool:
        """Return True while a terminal prompt is waiting for input."""
        return self._prompts_open > 0

    async def emit_progress(self, update: ProgressUpdate) -> None:
        if ProgressEvent(update.event) != ProgressEvent.APPROVAL_REQUESTED:
            return
        if update.approval is None:
            return
        task = asyncio.create_task(self._respond(update.approval))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with suppress(asyncio.CancelledError):
                await task

    async def _respond(self, publication: IssuePublication) -> None:
        if self._auto_approve:
            decision = ApprovalDecision(
                block_number=publication.issue.block_number,
                status=IssueStatus.APPROVED,
                token=publication.token,
            )
        else:
            self._prompts_open += 1
            try:
                decision = await asyncio.to_thread(self._ask, publication)
            finally:
                self._prompts_open -= 1
        if self._service is None:
            raise RuntimeError("Approval responder is not bound to a service")
        try:
            self._service.submit_decision(self._job_id, decision)
        except JobControlError as exc:
            self._console.print(f"[yellow]Decision not applied:[/yellow] {exc}")

    def _ask(self, publication: IssuePublication) -> ApprovalDecision:
        issue = publication.issue
        self._console.print()
        for block in publication.context_before:
            self._console.print(f"[dim]{block.number}: {block.translated_text}[/dim]")
        self._console.print(f"[bold]Block {issue.block_number}[/bold]")
        self._console.print(f"  Original: {issue.original_text}")
        self._console.print(f"  Current:  {issue.current_translation}")
        self._console.print(f"  Proposed: {issue.improved_translation}")
        problems = ", ".join(str(problem) for problem in issue.problem_types)
        self._console.print(f"  Problems: {problems}")
        if issue.recommendations:
            self._console.print(f"  Notes:    {issue.recommendations}")
        for block in publication.context_after:
            self._console.print(f"[dim]{block.number}: {block.translated_text}[/dim]")
        choice = Prompt.ask(
            "Approve, edit, or skip",
            choices=["a", "e", "s"],
            default="a",
            console=self._console,
        )
        if choice == "e":
            text = Prompt.ask("Edited text", console=self._console)
            return ApprovalDecision(
                block_number=issue.block_number,
                status=IssueStatus.MANUALLY_EDITED,
                text=text,
                token=publication.token,
            )
        status = IssueStatus.APPROVED if choice == "a" else IssueStatus.SKIPPED
        return ApprovalDecision(
            block_number=issue.block_number, status=status, token=publication.token
        )


class _InterruptHandler:
    """Map Ctrl+C to a job cancel request.

    A prompt already reading from the terminal runs in a worker thread and
    only returns once the user presses Enter.
    """

    def __init__(
        self,
        service: SubtitleJobService,
        job_id: JobId,
        console: Console,
        *,
        prompt_open: Callable[[], bool] | None = None,
    ) -> None:
        self._service = service
        self._prompt_open = prompt_open
        self._job_id = job_id
        self._console = console
        self._pending: set[asyncio.Task[None]] = set()

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, self._on_interrupt)

    def uninstall(self, loop: asyncio.AbstractEventLoop) -> None:
        with suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGINT)

    def _on_interrupt(self) -> None:
        if self._prompt_open is not None and self._prompt_open():
            self._console.print(
                "[yellow]Cancelling job... press Enter to close the open prompt."
                "[/yellow]"
            )
        else:
            self._console.print("[yellow]Cancelling job...[/yellow]")
        task = asyncio.ensure_future(self._cancel())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _cancel(self) -> None:
        try:
            await self._service.cancel(self._job_id)
        except JobControlError as exc:
            self._console.print(f"[yellow]Cancel ignored:[/yellow] {exc}")


class _ProgressReporter(ProgressSinkProtocol):
    def __init__(
        self,
        sink: ProgressSinkProtocol,
        progress: Progress,
        console: Console,
    ) -> None:
        self._sink = sink
        self._progress = progress
        self._console = console
        self._tasks: dict[JobStage, TaskID] = {}

    async def emit_progress(self, update: ProgressUpdate) -> None:
        await self._sink.emit_progress(update)
        self._handle_update(update)

    def _handle_update(self, update: ProgressUpdate) -> None:
        event = ProgressEvent(update.event)
        if event == ProgressEvent.JOB_COMPLETED:
            self._console.print("Job complete")
        if event == ProgressEvent.JOB_CANCELLED:
            self._console.print("Job cancelled")
        if event in {ProgressEvent.JOB_FAILED, ProgressEvent.VERIFICATION_ERROR}:
            message = update.error.message if update.error else update.message
            self._console.print(f"[red]{event}:[/red] {message}")
        if update.stage is None:
            return

        stage = JobStage(update.stage)
        percent = update.percent
        description = str(stage)
        if event == ProgressEvent.VERIFICATION_STEP and update.step is not None:
            percent = update.step.percent
            description = f"{stage}: {update.step.description}"
        if percent is None:
            return

        task_id = self._tasks.get(stage)
        if task_id is None:
            self._tasks[stage] = self._progress.add_task(
                description, total=100, completed=percent
            )
        else:
            self._progress.update(task_id, description=description, completed=percent)
        self._progress.refresh()


def _should_render_progress() -> bool:
    return sys.stderr.isatty()


def _build_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console,
    )


def _new_job_id() -> JobId:
    return f"job-{uuid4().hex}"


def _config_summary(
    config: RunConfig, settings: JobSettings
) -> dict[str, str | int | bool | None]:
    return {
        "provider_name": config.endpoint.provider_name,
        "base_url": config.endpoint.base_url,
        "model_id": config.model.model_id,
        "target_language": settings.target_language,
        "style": str(settings.style),
        "seed": settings.seed,
        "batch_size": settings.batch_size,
        "context_before": settings.context_before,
        "context_after": settings.context_after,
        "verify": settings.verify,
    }


def _error_response[ResponseT](error: ErrorResponse) -> ApiResponse[ResponseT]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=utc_timestamp()),
    )


def _error_from_exception(exc: Exception) -> ErrorResponse:
    if isinstance(
        exc, (TranslatorError, SubtitleFormatError, VerificationError, JobControlError)
    ):
        return exc.info.to_error_response()
    if isinstance(exc, ValidationError):
        message = "Config validation failed"
        errors = exc.errors()
        if errors:
            first = errors[0]
            loc = first.get("loc", [])
            label = ".".join(str(part) for part in loc) if loc else ""
            detail = first.get("msg", "")
            if label and detail:
                message = f"Config validation failed: {label} - {detail}"
            elif detail:
                message = f"Config validation failed: {detail}"
        return ErrorResponse(code="validation_error", message=message, details=None)
    if isinstance(exc, ConfigError):
        return ErrorResponse(code="config_error", message=str(exc), details=None)
    if isinstance(exc, ValueError):
        return ErrorResponse(code="validation_error", message=str(exc), details=None)
    return ErrorResponse(
        code="runtime_error", message=str(exc) or type(exc).__name__, details=None
    )


if __name__ == "__main__":
    app()
