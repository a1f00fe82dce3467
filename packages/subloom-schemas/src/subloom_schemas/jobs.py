"""Job state, settings, and snapshot schemas."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.io import SubtitleBlock
from subloom_schemas.primitives import (
    JobId,
    JobStage,
    JobStatus,
    LanguageName,
    Percent,
    Timestamp,
    TranslationStyle,
    coerce_enum,
)
from subloom_schemas.verification import IssuePublication


class JobRunState(BaseSchema):
    """Pause/cancel flags for one job."""

    paused: bool = Field(False, description="Job is paused at its next checkpoint")
    cancelled: bool = Field(False, description="Job was cancelled (terminal)")


class JobSettings(BaseSchema):
    """Resolved per-job translation and verification parameters."""

    target_language: LanguageName = Field(..., description="Target language")
    style: TranslationStyle = Field(..., description="Translation style")
    seed: int | None = Field(None, ge=0, description="Optional deterministic seed")
    batch_size: int = Field(..., ge=1, description="Blocks per window")
    context_before: int = Field(..., ge=0, description="Context blocks before")
    context_after: int = Field(..., ge=0, description="Context blocks after")
    verify: bool = Field(True, description="Run verification after translation")

    @field_validator("style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> object:
        return coerce_enum(TranslationStyle, value)


class JobSnapshot(BaseSchema):
    """Point-in-time view of a job, kept after the job is torn down."""

    job_id: JobId = Field(..., description="Job identifier")
    status: JobStatus = Field(..., description="Job status")
    stage: JobStage | None = Field(None, description="Current or last stage")
    percent: Percent = Field(0.0, description="Progress of the current stage")
    run_state: JobRunState = Field(
        default_factory=JobRunState, description="Pause/cancel flags"
    )
    block_count: int = Field(..., ge=0, description="Blocks in the document")
    failed_batches: int = Field(0, ge=0, description="Windows that fell back")
    decisions_applied: int = Field(0, ge=0, description="Decisions reconciled")
    pending_approval: IssuePublication | None = Field(
        None, description="Issue currently awaiting a decision"
    )
    error_message: str | None = Field(None, description="Failure reason if failed")
    updated_at: Timestamp = Field(..., description="Snapshot timestamp")
    blocks: list[SubtitleBlock] | None = Field(
        None, description="Current document once a stage has finished"
    )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(JobStatus, value)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, value: object) -> object:
        return coerce_enum(JobStage, value)

    @model_validator(mode="after")
    def _validate_error(self) -> JobSnapshot:
        if self.status == JobStatus.FAILED and not self.error_message:
            raise ValueError("failed snapshots require error_message")
        return self
