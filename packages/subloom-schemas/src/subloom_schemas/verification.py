"""Issue, decision, and publication schemas for the approval workflow."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.io import ContextBlock
from subloom_schemas.primitives import (
    DECIDABLE_ISSUE_STATUSES,
    BlockNumber,
    CorrelationToken,
    IssueStatus,
    ProblemType,
    QualityScore,
    coerce_enum,
)


def _coerce_problem_types(value: object) -> object:
    if isinstance(value, list):
        return [coerce_enum(ProblemType, item) for item in value]
    return value


def _dedupe[T](values: list[T]) -> list[T]:
    seen: list[T] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class DefectReport(BaseSchema):
    """Defects the analysis model reported for one block."""

    block_number: BlockNumber = Field(..., description="Reported block number")
    problem_types: list[ProblemType] = Field(
        ..., description="Defect categories from the closed taxonomy"
    )
    quality_score: QualityScore = Field(..., description="Quality score from 1 to 10")
    recommendations: str | None = Field(
        None, description="Free-text improvement recommendations"
    )

    @field_validator("problem_types", mode="before")
    @classmethod
    def _coerce_types(cls, value: object) -> object:
        return _coerce_problem_types(value)

    @field_validator("problem_types")
    @classmethod
    def _dedupe_types(cls, value: list[ProblemType]) -> list[ProblemType]:
        return _dedupe(value)


class VerificationReport(BaseSchema):
    """Structured analysis output for one scan window."""

    blocks: list[DefectReport] = Field(
        default_factory=list, description="Blocks with at least one defect"
    )


class TranslationIssue(BaseSchema):
    """A detected defect on one block and its review state."""

    block_number: BlockNumber = Field(..., description="Issue block number")
    problem_types: list[ProblemType] = Field(
        ..., min_length=1, description="Detected defect categories"
    )
    original_text: str = Field(..., description="Source block text")
    current_translation: str = Field(
        ..., description="Translation before this verification round"
    )
    improved_translation: str | None = Field(
        None, description="Re-translated text proposed for approval"
    )
    status: IssueStatus = Field(IssueStatus.PENDING, description="Review status")
    manual_translation: str | None = Field(
        None, description="Reviewer-supplied text for manual edits"
    )
    quality_score: QualityScore = Field(..., description="Quality score from 1 to 10")
    recommendations: str | None = Field(
        None, description="Free-text improvement recommendations"
    )

    @field_validator("problem_types", mode="before")
    @classmethod
    def _coerce_types(cls, value: object) -> object:
        return _coerce_problem_types(value)

    @field_validator("problem_types")
    @classmethod
    def _dedupe_types(cls, value: list[ProblemType]) -> list[ProblemType]:
        return _dedupe(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(IssueStatus, value)

    @property
    def is_decided(self) -> bool:
        """Return True once a decision moved the issue out of pending."""
        return self.status != IssueStatus.PENDING

    def final_text(self) -> str | None:
        """Resolve the text a decided issue contributes to the output.

        Returns:
            str | None: Replacement text, or None when the block stays unchanged.
        """
        if self.status == IssueStatus.APPROVED:
            return self.improved_translation or self.current_translation
        if self.status == IssueStatus.MANUALLY_EDITED:
            return self.manual_translation or self.current_translation
        if self.status == IssueStatus.SKIPPED:
            return self.current_translation
        return None


class ApprovalDecision(BaseSchema):
    """A reviewer decision for one block."""

    block_number: BlockNumber = Field(..., description="Block being decided")
    status: IssueStatus = Field(..., description="Decided status")
    text: str | None = Field(
        None,
        description="Edited text (manual edits) or approved text override",
    )
    token: CorrelationToken | None = Field(
        None, description="Publication token the reviewer is answering"
    )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(IssueStatus, value)

    @model_validator(mode="after")
    def _validate_status(self) -> ApprovalDecision:
        if self.status not in DECIDABLE_ISSUE_STATUSES:
            raise ValueError(
                "status must be one of approved, manually_edited, skipped"
            )
        if self.status == IssueStatus.MANUALLY_EDITED and not self.text:
            raise ValueError("manually_edited decisions require text")
        return self


class IssuePublication(BaseSchema):
    """An issue published for approval together with its local context."""

    token: CorrelationToken = Field(..., description="Unique publication token")
    issue: TranslationIssue = Field(..., description="Issue awaiting a decision")
    context_before: list[ContextBlock] = Field(
        default_factory=list, description="Blocks preceding the issue"
    )
    context_after: list[ContextBlock] = Field(
        default_factory=list, description="Blocks following the issue"
    )
