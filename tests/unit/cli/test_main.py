"""Unit tests for subloom-cli."""

from __future__ import annotations

import asyncio
import io
import json
import textwrap
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console
from typer.testing import CliRunner

import subloom_cli.main as cli_main
from subloom_cli.main import app
from subloom_schemas.config import RunConfig
from subloom_schemas.primitives import ProblemType
from subloom_schemas.translation import AnalysisRequest
from subloom_schemas.verification import DefectReport
from tests.helpers.stubs import ScriptedTranslator

runner = CliRunner()

CONFIG = textwrap.dedent(
    """
    [endpoint]
    provider_name = "local"
    base_url = "http://localhost:8000/v1"
    api_key_env = "SUBLOOM_CLI_KEY"

    [model]
    model_id = "test-model"

    [translation]
    target_language = "Russian"
    pacing_delay_s = 0.0

    [logging]
    sinks = [{ type = "noop" }]
    """
)

SRT = (
    "1\n00:00:01,000 --> 00:00:02,000\nline 1\n\n"
    "2\n00:00:03,000 --> 00:00:04,000\nline 2\n"
)


def _flag_block_one(request: AnalysisRequest) -> list[DefectReport]:
    return [
        DefectReport(
            block_number=1,
            problem_types=[ProblemType.TOO_LITERAL],
            quality_score=4,
        )
    ]


def _last_json(output: str) -> dict[str, object]:
    return json.loads(output.strip().splitlines()[-1])


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory holding a config and an input SRT.

    Returns:
        Path: Workspace directory.
    """
    (tmp_path / "subloom.toml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / "episode.srt").write_text(SRT, encoding="utf-8")
    return tmp_path


@pytest.fixture
def translator(monkeypatch: pytest.MonkeyPatch) -> ScriptedTranslator:
    """Replace the configured translator with a scripted one.

    Returns:
        ScriptedTranslator: Translator used by the CLI.
    """
    scripted = ScriptedTranslator(analyze=_flag_block_one)

    def build(config: RunConfig) -> ScriptedTranslator:
        return scripted

    monkeypatch.setattr(cli_main, "build_translator_client", build)
    return scripted


def _translate_args(workspace: Path, *extra: str) -> list[str]:
    return [
        "translate",
        "--config",
        str(workspace / "subloom.toml"),
        "--input",
        str(workspace / "episode.srt"),
        "--output",
        str(workspace / "episode.ru.srt"),
        "--job-id",
        "cli-job",
        *extra,
    ]


@pytest.mark.unit
def test_version_command() -> None:
    """Version command prints the package version."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "0.1.0" in result.stdout


@pytest.mark.unit
def test_validate_config_prints_resolved_settings(workspace: Path) -> None:
    """Valid configs print the resolved job settings."""
    result = runner.invoke(
        app, ["validate-config", "--config", str(workspace / "subloom.toml")]
    )

    assert result.exit_code == 0
    data = _last_json(result.stdout)["data"]
    assert isinstance(data, dict)
    assert data["target_language"] == "Russian"
    assert data["batch_size"] == 50
    assert data["verify"] is True


@pytest.mark.unit
def test_validate_config_reports_missing_file(tmp_path: Path) -> None:
    """Missing configs exit with a config error."""
    result = runner.invoke(
        app, ["validate-config", "--config", str(tmp_path / "absent.toml")]
    )

    assert result.exit_code == 1
    error = _last_json(result.stdout)["error"]
    assert isinstance(error, dict)
    assert error["code"] == "config_error"


@pytest.mark.unit
def test_translate_without_verification(
    workspace: Path, translator: ScriptedTranslator
) -> None:
    """Translation writes the output file and prints the final snapshot."""
    result = runner.invoke(app, _translate_args(workspace, "--no-verify"))

    assert result.exit_code == 0
    data = _last_json(result.stdout)["data"]
    assert isinstance(data, dict)
    assert data["status"] == "completed"
    assert data["job_id"] == "cli-job"
    assert data["blocks"] is None
    assert translator.analyze_requests == []
    output = (workspace / "episode.ru.srt").read_text(encoding="utf-8")
    assert output == (
        "1\n00:00:01,000 --> 00:00:02,000\nT1\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\nT2\n\n"
    )


@pytest.mark.unit
def test_translate_auto_approve(
    workspace: Path, translator: ScriptedTranslator
) -> None:
    """Auto-approve accepts every proposed re-translation."""
    result = runner.invoke(app, _translate_args(workspace, "--auto-approve"))

    assert result.exit_code == 0
    data = _last_json(result.stdout)["data"]
    assert isinstance(data, dict)
    assert data["decisions_applied"] == 1
    output = (workspace / "episode.ru.srt").read_text(encoding="utf-8")
    assert "\nR1\n" in output
    assert "\nT2\n" in output


@pytest.mark.unit
def test_translate_interactive_edit(
    workspace: Path,
    translator: ScriptedTranslator,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Interactive review can replace a block with edited text."""
    answers: Iterator[str] = iter(["e", "hand edited"])

    def ask(prompt: str, **kwargs: object) -> str:
        return next(answers)

    monkeypatch.setattr(cli_main.Prompt, "ask", ask)

    result = runner.invoke(app, _translate_args(workspace))

    assert result.exit_code == 0
    output = (workspace / "episode.ru.srt").read_text(encoding="utf-8")
    assert "\nhand edited\n" in output


@pytest.mark.unit
def test_translate_missing_input_fails(
    workspace: Path, translator: ScriptedTranslator
) -> None:
    """Unreadable input exits with a structured IO error."""
    (workspace / "episode.srt").unlink()

    result = runner.invoke(app, _translate_args(workspace))

    assert result.exit_code == 1
    error = _last_json(result.stdout)["error"]
    assert isinstance(error, dict)
    assert error["code"] == "io_error"
    assert not (workspace / "episode.ru.srt").exists()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("prompt_open", "expected"),
    [
        (True, "press Enter to close the open prompt"),
        (False, "Cancelling job..."),
    ],
)
def test_interrupt_cancels_job_and_mentions_open_prompt(
    prompt_open: bool, expected: str
) -> None:
    """Ctrl+C cancels the job and says how to leave an open prompt."""
    service = MagicMock()
    service.cancel = AsyncMock()
    output = io.StringIO()
    handler = cli_main._InterruptHandler(
        service,
        "job-1",
        Console(file=output, width=120),
        prompt_open=lambda: prompt_open,
    )

    async def interrupt() -> None:
        handler._on_interrupt()
        await asyncio.gather(*list(handler._pending))

    asyncio.run(interrupt())

    service.cancel.assert_awaited_once_with("job-1")
    assert expected in output.getvalue()
    assert ("press Enter" in output.getvalue()) is prompt_open
