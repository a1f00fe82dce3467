"""Subtitle text-format adapter port."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class SubtitleFormatProtocol(Protocol):
    """Protocol for subtitle document parsers/serializers."""

    def parse(self, content: str) -> list[SubtitleBlock]:
        """Parse document text into blocks ordered by number."""
        raise NotImplementedError

    def serialize(self, blocks: list[SubtitleBlock]) -> str:
        """Serialize blocks back into document text."""
        raise NotImplementedError


class SubtitleFormatErrorCode(StrEnum):
    """Error codes for subtitle document handling."""

    EMPTY_DOCUMENT = "empty_document"
    DUPLICATE_BLOCK = "duplicate_block"
    IO_ERROR = "io_error"


class SubtitleFormatErrorDetails(BaseSchema):
    """Detailed subtitle error context."""

    source: str | None = Field(None, description="File path or source label")
    block_number: int | None = Field(None, description="Offending block number")


class SubtitleFormatErrorInfo(BaseSchema):
    """Structured subtitle error data."""

    code: SubtitleFormatErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: SubtitleFormatErrorDetails | None = Field(
        None, description="Error details"
    )

    def to_error_response(self) -> ErrorResponse:
        """Convert subtitle error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.source is not None:
            details = ErrorDetails(
                field="source", provided=self.details.source, valid_options=None
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class SubtitleFormatError(Exception):
    """Subtitle document error with structured details."""

    def __init__(self, info: SubtitleFormatErrorInfo) -> None:
        """Initialize the subtitle format error.

        Args:
            info: Structured subtitle error information.
        """
        super().__init__(info.message)
        self.info = info
