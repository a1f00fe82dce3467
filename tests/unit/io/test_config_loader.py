"""Unit tests for config file loading."""

from __future__ import annotations

import os
import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from subloom_io.config_loader import ConfigError, load_run_config

CONFIG = textwrap.dedent(
    """
    [endpoint]
    provider_name = "local"
    base_url = "http://localhost:8000/v1"
    api_key_env = "SUBLOOM_TEST_KEY"

    [model]
    model_id = "test-model"

    [translation]
    target_language = "German"
    context_preset = "small"
    """
)


@pytest.mark.unit
def test_load_run_config_reads_toml_and_dotenv(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The config is validated and the neighbouring .env is loaded."""
    monkeypatch.setenv("SUBLOOM_TEST_KEY", "placeholder")
    monkeypatch.delenv("SUBLOOM_TEST_KEY")
    (tmp_path / "subloom.toml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / ".env").write_text("SUBLOOM_TEST_KEY=secret\n", encoding="utf-8")

    config = load_run_config(tmp_path / "subloom.toml")

    assert config.endpoint.provider_name == "local"
    assert config.translation.target_language == "German"
    assert config.translation.resolved_sizes() == (30, 15, 15)
    assert config.verification.enabled is True
    assert os.environ["SUBLOOM_TEST_KEY"] == "secret"


@pytest.mark.unit
def test_dotenv_does_not_override_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Variables already set win over the .env file."""
    monkeypatch.setenv("SUBLOOM_TEST_KEY", "from-env")
    (tmp_path / "subloom.toml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / ".env").write_text("SUBLOOM_TEST_KEY=from-file\n", encoding="utf-8")

    load_run_config(tmp_path / "subloom.toml")

    assert os.environ["SUBLOOM_TEST_KEY"] == "from-env"


@pytest.mark.unit
def test_missing_config_raises(tmp_path: Path) -> None:
    """A missing file is a config error."""
    with pytest.raises(ConfigError, match="Config not found"):
        load_run_config(tmp_path / "absent.toml")


@pytest.mark.unit
def test_invalid_toml_raises(tmp_path: Path) -> None:
    """Unparseable TOML is a config error."""
    path = tmp_path / "subloom.toml"
    path.write_text("[endpoint\nbroken", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to read config"):
        load_run_config(path)


@pytest.mark.unit
def test_schema_violations_raise_validation_error(tmp_path: Path) -> None:
    """Structurally valid TOML still has to match the config schema."""
    path = tmp_path / "subloom.toml"
    path.write_text(
        CONFIG + "\n[verification]\nwindow_size = 3\noverlap = 3\n",
        encoding="utf-8",
    )

    with pytest.raises(ValidationError):
        load_run_config(path)
