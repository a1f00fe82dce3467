"""Load run configuration from TOML files."""

from __future__ import annotations

import tomllib
from pathlib import Path

from dotenv import load_dotenv

from subloom_schemas.config import RunConfig
from subloom_schemas.primitives import JsonValue
from subloom_schemas.validation import validate_run_config


class ConfigError(Exception):
    """Raised when a config file cannot be found or read."""


def load_run_config(config_path: str | Path) -> RunConfig:
    """Load and validate a run configuration file.

    A ``.env`` file next to the config is loaded first without overriding
    variables that are already set.

    Args:
        config_path: Path to the TOML config.

    Returns:
        RunConfig: Validated run configuration.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a table.
    """
    path = Path(config_path)
    _load_dotenv(path)
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        with open(path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a TOML table")
    return validate_run_config(payload)


def _load_dotenv(config_path: Path) -> None:
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
