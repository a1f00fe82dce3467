"""Configuration schemas for subloom jobs and services."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import (
    ContextPreset,
    LanguageName,
    LogSinkType,
    TranslationStyle,
    coerce_enum,
)

# (context_before, context_after, batch_size)
CONTEXT_PRESETS: dict[ContextPreset, tuple[int, int, int]] = {
    ContextPreset.SMALL: (15, 15, 30),
    ContextPreset.MEDIUM: (20, 20, 50),
    ContextPreset.LARGE: (30, 30, 80),
}


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> object:
        return coerce_enum(LogSinkType, value)


class LoggingConfig(BaseSchema):
    """Logging configuration for jobs and CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        default_factory=lambda: [LogSinkConfig(type=LogSinkType.CONSOLE)],
        min_length=1,
        description="Log sinks to enable",
    )
    log_dir: str = Field(
        "logs", min_length=1, description="Directory for file log sinks"
    )
    progress_files: bool = Field(
        False, description="Also write per-job progress JSONL files to log_dir"
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self


class ModelEndpointConfig(BaseSchema):
    """Endpoint configuration for OpenAI-compatible APIs."""

    provider_name: str = Field(
        ..., min_length=1, description="User-defined endpoint label"
    )
    base_url: str = Field(..., min_length=1, description="OpenAI-compatible base URL")
    api_key_env: str = Field(
        ..., min_length=1, description="Environment variable for API key"
    )
    timeout_s: float = Field(60.0, gt=0, description="Request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Ensure base URL uses http/https with a host.

        Args:
            value: Raw base URL string.

        Returns:
            str: Validated base URL.

        Raises:
            ValueError: If the URL is missing scheme/host.
        """
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "base_url must be an http/https URL with host "
                "(for localhost include http://)"
            )
        if parsed.path in {"", "/"}:
            return f"{value.rstrip('/')}/v1"
        return value


class ModelSettings(BaseSchema):
    """Model selection for translation and verification calls."""

    model_id: str = Field(..., min_length=1, description="Model identifier")
    max_output_tokens: int | None = Field(
        None, ge=1, description="Maximum output tokens (None uses model default)"
    )


class RetryConfig(BaseSchema):
    """Retry policy for external requests."""

    max_retries: int = Field(3, ge=0, description="Maximum retry attempts")
    backoff_s: float = Field(1.0, gt=0, description="Initial backoff in seconds")
    max_backoff_s: float = Field(
        30.0, gt=0, description="Maximum backoff delay in seconds"
    )


class TranslationConfig(BaseSchema):
    """Batch translation settings."""

    target_language: LanguageName = Field(
        "Russian", description="Language to translate into"
    )
    style: TranslationStyle = Field(
        TranslationStyle.NATURAL, description="Translation style preset"
    )
    seed: int | None = Field(None, ge=0, description="Optional deterministic seed")
    context_preset: ContextPreset = Field(
        ContextPreset.MEDIUM, description="Named batch/context size preset"
    )
    batch_size: int | None = Field(
        None, ge=1, description="Blocks per window (overrides preset)"
    )
    context_before: int | None = Field(
        None, ge=0, description="Context blocks before a window (overrides preset)"
    )
    context_after: int | None = Field(
        None, ge=0, description="Context blocks after a window (overrides preset)"
    )
    pacing_delay_s: float = Field(
        1.0, ge=0, description="Delay between windows in seconds"
    )

    @field_validator("style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> object:
        return coerce_enum(TranslationStyle, value)

    @field_validator("context_preset", mode="before")
    @classmethod
    def _coerce_preset(cls, value: object) -> object:
        return coerce_enum(ContextPreset, value)

    def resolved_sizes(self) -> tuple[int, int, int]:
        """Resolve window sizes from the preset and explicit overrides.

        Returns:
            tuple[int, int, int]: (batch_size, context_before, context_after).
        """
        before, after, batch = CONTEXT_PRESETS[ContextPreset(self.context_preset)]
        return (
            self.batch_size if self.batch_size is not None else batch,
            self.context_before if self.context_before is not None else before,
            self.context_after if self.context_after is not None else after,
        )


class VerificationConfig(BaseSchema):
    """Verification and approval workflow settings."""

    enabled: bool = Field(True, description="Run verification after translation")
    window_size: int = Field(10, ge=1, description="Blocks per scan window")
    overlap: int = Field(3, ge=0, description="Blocks shared by adjacent windows")
    group_gap: int = Field(
        2, ge=1, description="Max block-number gap inside an issue group"
    )
    round_size: int = Field(
        3, ge=1, description="Issues collected before an approval round runs"
    )
    context_before: int = Field(
        2, ge=0, description="Context blocks shown before an issue"
    )
    context_after: int = Field(
        2, ge=0, description="Context blocks shown after an issue"
    )
    temperature: float = Field(0.1, ge=0, le=2, description="Analysis temperature")
    top_p: float = Field(0.9, ge=0, le=1, description="Analysis top-p")

    @model_validator(mode="after")
    def validate_overlap(self) -> VerificationConfig:
        """Ensure scan windows always advance.

        Returns:
            VerificationConfig: Validated verification configuration.

        Raises:
            ValueError: If overlap is not smaller than the window size.
        """
        if self.overlap >= self.window_size:
            raise ValueError("overlap must be smaller than window_size")
        return self

    @property
    def stride(self) -> int:
        """Return the scan window stride."""
        return self.window_size - self.overlap


class ApiConfig(BaseSchema):
    """HTTP service settings."""

    host: str = Field("127.0.0.1", min_length=1, description="Bind host")
    port: int = Field(8000, ge=1, le=65535, description="Bind port")
    retained_jobs: int = Field(
        100, ge=1, description="Finished jobs kept for status and document lookup"
    )


class RunConfig(BaseSchema):
    """Top-level subloom configuration."""

    endpoint: ModelEndpointConfig = Field(..., description="Model endpoint")
    model: ModelSettings = Field(..., description="Model settings")
    retry: RetryConfig = Field(
        default_factory=RetryConfig, description="Retry policy"
    )
    translation: TranslationConfig = Field(
        default_factory=TranslationConfig, description="Translation settings"
    )
    verification: VerificationConfig = Field(
        default_factory=VerificationConfig, description="Verification settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging settings"
    )
    api: ApiConfig = Field(default_factory=ApiConfig, description="API settings")
