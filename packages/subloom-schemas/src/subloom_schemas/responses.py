"""API response envelope schemas for API and CLI output."""

from __future__ import annotations

from pydantic import Field, field_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import (
    JobId,
    JobStatus,
    LanguageName,
    Timestamp,
    TranslationStyle,
    coerce_enum,
)


class MetaInfo(BaseSchema):
    """Metadata for API responses."""

    timestamp: Timestamp = Field(..., description="ISO-8601 response timestamp")
    request_id: str | None = Field(None, description="Optional request identifier")


class ErrorDetails(BaseSchema):
    """Detailed error context for responses."""

    field: str | None = Field(None, description="Field name if applicable")
    provided: str | None = Field(None, description="Provided value")
    valid_options: list[str] | None = Field(
        None, description="Valid options if applicable"
    )


class ErrorResponse(BaseSchema):
    """Error information in response."""

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: ErrorDetails | None = Field(None, description="Optional error details")


class ApiResponse[ResponseData](BaseSchema):
    """Generic API response envelope."""

    data: ResponseData | None = Field(
        None, description="Success payload, null on error"
    )
    error: ErrorResponse | None = Field(
        None, description="Error information, null on success"
    )
    meta: MetaInfo = Field(..., description="Response metadata")


class JobAccepted(BaseSchema):
    """Result payload for a job start request."""

    job_id: JobId = Field(..., description="Job identifier")
    status: JobStatus = Field(..., description="Job status")
    block_count: int = Field(..., ge=0, description="Blocks parsed from the document")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(JobStatus, value)


class JobDocument(BaseSchema):
    """Serialized subtitle document of a job."""

    job_id: JobId = Field(..., description="Job identifier")
    status: JobStatus = Field(..., description="Job status")
    content: str = Field(..., description="SRT document text")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(JobStatus, value)


class JobCreateRequest(BaseSchema):
    """Request body for starting a job from an SRT document."""

    content: str = Field(..., min_length=1, description="SRT document text")
    job_id: JobId | None = Field(
        None, description="Job identifier (generated when omitted)"
    )
    target_language: LanguageName | None = Field(
        None, description="Target language override"
    )
    style: TranslationStyle | None = Field(None, description="Style override")
    seed: int | None = Field(None, ge=0, description="Seed override")
    verify: bool | None = Field(None, description="Verification toggle override")

    @field_validator("style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> object:
        return coerce_enum(TranslationStyle, value)
