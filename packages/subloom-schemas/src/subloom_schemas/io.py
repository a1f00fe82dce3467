"""Subtitle block schemas shared by adapters and the pipeline."""

from __future__ import annotations

from pydantic import ConfigDict, Field

from subloom_schemas.base import BaseSchema
from subloom_schemas.primitives import BlockNumber


class SubtitleBlock(BaseSchema):
    """One numbered subtitle record."""

    model_config = ConfigDict(frozen=True)

    number: BlockNumber = Field(..., description="Block number, unique per document")
    time: str = Field(..., min_length=1, description="Time range line")
    text: str = Field(..., description="Block text, lines joined with newlines")


class ContextBlock(BaseSchema):
    """Block shown alongside an issue so a reviewer sees its surroundings."""

    number: BlockNumber = Field(..., description="Block number")
    original_text: str = Field(..., description="Source text")
    translated_text: str = Field(..., description="Current translated text")
