"""Primitive types and enums shared across subloom schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"
JOB_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$"
SRT_TIME_MARKER = "-->"

type JobId = Annotated[str, Field(pattern=JOB_ID_PATTERN)]
type BlockNumber = Annotated[int, Field(ge=0)]
type QualityScore = Annotated[int, Field(ge=1, le=10)]
type LanguageName = Annotated[str, Field(min_length=1, max_length=64)]
type CorrelationToken = Annotated[str, Field(min_length=1)]
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]
type Percent = Annotated[float, Field(ge=0, le=100)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]


class TranslationStyle(StrEnum):
    """Translation style presets."""

    PRECISE = "precise"
    NATURAL = "natural"
    CREATIVE = "creative"


class ContextPreset(StrEnum):
    """Named batch/context size presets."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class ProblemType(StrEnum):
    """Closed taxonomy of translation defect categories."""

    MEANING_LOSS = "meaning_loss"
    GRAMMAR_ISSUES = "grammar_issues"
    CONTEXT_MISMATCH = "context_mismatch"
    TECHNICAL_ERRORS = "technical_errors"
    UNNATURAL_LANGUAGE = "unnatural_language"
    TOO_LITERAL = "too_literal"
    TOO_FREE = "too_free"
    INCONSISTENT_STYLE = "inconsistent_style"
    TOO_LONG = "too_long"


class IssueStatus(StrEnum):
    """Review status of a translation issue.

    REJECTED is part of the taxonomy but no workflow path reaches it.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MANUALLY_EDITED = "manually_edited"
    SKIPPED = "skipped"


TERMINAL_ISSUE_STATUSES = frozenset(
    {
        IssueStatus.APPROVED,
        IssueStatus.REJECTED,
        IssueStatus.MANUALLY_EDITED,
        IssueStatus.SKIPPED,
    }
)
DECIDABLE_ISSUE_STATUSES = frozenset(
    {
        IssueStatus.APPROVED,
        IssueStatus.MANUALLY_EDITED,
        IssueStatus.SKIPPED,
    }
)


class JobStatus(StrEnum):
    """Overall job status values."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobStage(StrEnum):
    """Stages a job moves through."""

    TRANSLATION = "translation"
    VERIFICATION = "verification"


class LogLevel(StrEnum):
    """Log severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"


def coerce_enum[EnumT: StrEnum](enum_type: type[EnumT], value: object) -> object:
    """Coerce a raw string into an enum member for strict validation.

    Args:
        enum_type: Target StrEnum type.
        value: Raw value supplied by the caller.

    Returns:
        object: Enum member when coercible, otherwise the untouched value.
    """
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        try:
            return enum_type(normalized)
        except ValueError:
            return value
    return value
