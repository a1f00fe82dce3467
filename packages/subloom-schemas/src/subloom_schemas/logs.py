"""JSONL log entry schema for job events."""

from __future__ import annotations

from pydantic import Field, field_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import (
    EventName,
    JobId,
    JobStage,
    JsonValue,
    LogLevel,
    Timestamp,
    coerce_enum,
)


class LogEntry(BaseSchema):
    """Single log line in JSONL format."""

    timestamp: Timestamp = Field(
        ..., description="ISO-8601 timestamp for the log entry"
    )
    level: LogLevel = Field(..., description="Log level")
    event: EventName = Field(..., description="Event name")
    job_id: JobId = Field(..., description="Job identifier")
    stage: JobStage | None = Field(None, description="Job stage if applicable")
    message: str = Field(..., min_length=1, description="Log message")
    data: dict[str, JsonValue] | None = Field(None, description="Structured event data")

    @field_validator("level", mode="before")
    @classmethod
    def _coerce_level(cls, value: object) -> object:
        return coerce_enum(LogLevel, value)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, value: object) -> object:
        return coerce_enum(JobStage, value)
