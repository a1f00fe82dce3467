"""Translator client port: translation, analysis, and re-translation modes."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import BlockNumber
from subloom_schemas.responses import ErrorDetails, ErrorResponse
from subloom_schemas.translation import (
    AnalysisRequest,
    RetranslationRequest,
    TranslationRequest,
    TranslationResult,
)
from subloom_schemas.verification import DefectReport


@runtime_checkable
class TranslatorClientProtocol(Protocol):
    """Protocol for clients that talk to the translation model."""

    async def translate_batch(self, request: TranslationRequest) -> TranslationResult:
        """Translate one window of blocks.

        Implementations raise instead of returning partial results.
        """
        raise NotImplementedError

    async def analyze(self, request: AnalysisRequest) -> list[DefectReport]:
        """Report defects for a window of original/translated pairs."""
        raise NotImplementedError

    async def retranslate(self, request: RetranslationRequest) -> dict[int, str]:
        """Re-translate an issue group; an empty mapping means no usable content."""
        raise NotImplementedError


class TranslatorErrorCode(StrEnum):
    """Error codes for translator client failures."""

    UPSTREAM_FAILED = "upstream_failed"
    MALFORMED_RESPONSE = "malformed_response"
    INCOMPLETE_RESPONSE = "incomplete_response"
    MISSING_API_KEY = "missing_api_key"


class TranslatorErrorDetails(BaseSchema):
    """Detailed translator error context."""

    missing_blocks: list[BlockNumber] | None = Field(
        None, description="Requested blocks absent from the response"
    )
    attempts: int | None = Field(None, ge=1, description="Attempts made")
    reason: str | None = Field(None, description="Additional error context")


class TranslatorErrorInfo(BaseSchema):
    """Structured translator error data."""

    code: TranslatorErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: TranslatorErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert translator error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.missing_blocks:
            details = ErrorDetails(
                field="translations",
                provided=",".join(str(n) for n in self.details.missing_blocks),
                valid_options=None,
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class TranslatorError(Exception):
    """Translator client error with structured details."""

    def __init__(self, info: TranslatorErrorInfo) -> None:
        """Initialize the translator error.

        Args:
            info: Structured translator error information.
        """
        super().__init__(info.message)
        self.info = info
