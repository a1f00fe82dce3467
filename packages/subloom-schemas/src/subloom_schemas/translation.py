"""Translator client inputs and outputs, including structured model outputs."""

from __future__ import annotations

from pydantic import Field, field_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.primitives import (
    BlockNumber,
    LanguageName,
    TranslationStyle,
    coerce_enum,
)
from subloom_schemas.verification import TranslationIssue


class TranslationRequest(BaseSchema):
    """Translation-mode input for one window."""

    blocks: list[SubtitleBlock] = Field(
        ..., min_length=1, description="Blocks to translate"
    )
    context_before: list[SubtitleBlock] = Field(
        default_factory=list,
        description="Preceding blocks, translated text where available",
    )
    context_after: list[SubtitleBlock] = Field(
        default_factory=list, description="Following blocks in source text"
    )
    glossary: dict[str, str] = Field(
        default_factory=dict, description="Known source to target terms"
    )
    target_language: LanguageName = Field(..., description="Target language")
    style: TranslationStyle = Field(..., description="Translation style")
    seed: int | None = Field(None, ge=0, description="Optional deterministic seed")

    @field_validator("style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> object:
        return coerce_enum(TranslationStyle, value)


class TranslationResult(BaseSchema):
    """Translation-mode output for one window."""

    translations: dict[int, str] = Field(
        ..., description="Translated text keyed by block number"
    )
    terms: dict[str, str] = Field(
        default_factory=dict, description="Newly observed glossary terms"
    )


class AnalysisRequest(BaseSchema):
    """Analysis-mode input for one scan window."""

    original: list[SubtitleBlock] = Field(
        ..., min_length=1, description="Source blocks of the window"
    )
    translated: list[SubtitleBlock] = Field(
        ..., min_length=1, description="Translated blocks of the window"
    )
    target_language: LanguageName = Field(..., description="Target language")


class RetranslationRequest(BaseSchema):
    """Re-translation input for one issue group."""

    issues: list[TranslationIssue] = Field(
        ..., min_length=1, description="Issues of the group, ascending"
    )
    context_before: list[SubtitleBlock] = Field(
        default_factory=list, description="Translated blocks before the group span"
    )
    context_after: list[SubtitleBlock] = Field(
        default_factory=list, description="Translated blocks after the group span"
    )
    target_language: LanguageName = Field(..., description="Target language")
    style: TranslationStyle = Field(..., description="Translation style")
    seed: int | None = Field(None, ge=0, description="Optional deterministic seed")

    @field_validator("style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> object:
        return coerce_enum(TranslationStyle, value)

    @property
    def first_block(self) -> int:
        """Return the lowest block number in the group."""
        return min(issue.block_number for issue in self.issues)

    @property
    def last_block(self) -> int:
        """Return the highest block number in the group."""
        return max(issue.block_number for issue in self.issues)


class TranslatedBlockOutput(BaseSchema):
    """Model output for one translated block."""

    number: BlockNumber = Field(..., description="Block number being translated")
    text: str = Field(..., description="Translated text, line breaks preserved")


class GlossaryTermOutput(BaseSchema):
    """Model output for one recurring term."""

    source: str = Field(..., min_length=1, description="Term in the source language")
    target: str = Field(..., min_length=1, description="Term in the target language")


class BatchTranslationOutput(BaseSchema):
    """Structured model output for a translation window."""

    translations: list[TranslatedBlockOutput] = Field(
        ..., description="One entry per requested block"
    )
    terms: list[GlossaryTermOutput] = Field(
        default_factory=list,
        description="Names and recurring terms with their chosen translation",
    )


class RetranslatedBlockOutput(BaseSchema):
    """Model output for one re-translated block."""

    number: BlockNumber = Field(..., description="Block number")
    text: str = Field(
        ..., description="Improved translation, or UNCHANGED to keep the current one"
    )


class RetranslationOutput(BaseSchema):
    """Structured model output for a re-translation group."""

    blocks: list[RetranslatedBlockOutput] = Field(
        default_factory=list, description="Improved translations"
    )
