"""Progress update schemas pushed to observers of a running job."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from subloom_schemas.base import BaseSchema
from subloom_schemas.events import ProgressEvent
from subloom_schemas.jobs import JobRunState
from subloom_schemas.primitives import (
    BlockNumber,
    IssueStatus,
    JobId,
    JobStage,
    Percent,
    Timestamp,
    coerce_enum,
)
from subloom_schemas.responses import ErrorResponse
from subloom_schemas.verification import IssuePublication, TranslationIssue


class BlockProgress(BaseSchema):
    """Original and translated text for one block."""

    number: BlockNumber = Field(..., description="Block number")
    original_text: str = Field(..., description="Source text")
    translated_text: str = Field(..., description="Translated text")
    fallback: bool = Field(False, description="True when source text was kept")


class VerificationStep(BaseSchema):
    """Named step of the verification workflow."""

    name: str = Field(..., min_length=1, description="Step name")
    description: str = Field(..., min_length=1, description="Step description")
    percent: Percent = Field(..., description="Step completion percentage")


class DecisionOutcome(BaseSchema):
    """Applied approval decision."""

    block_number: BlockNumber = Field(..., description="Decided block")
    status: IssueStatus = Field(..., description="Decided status")
    final_text: str | None = Field(
        None, description="Text written to the block, None when unchanged"
    )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        return coerce_enum(IssueStatus, value)


_PAYLOAD_FIELDS: dict[ProgressEvent, str] = {
    ProgressEvent.BLOCK_TRANSLATED: "block",
    ProgressEvent.TRANSLATION_PROGRESS: "percent",
    ProgressEvent.VERIFICATION_STEP: "step",
    ProgressEvent.ISSUE_DETECTED: "issue",
    ProgressEvent.APPROVAL_REQUESTED: "approval",
    ProgressEvent.DECISION_APPLIED: "decision",
    ProgressEvent.VERIFICATION_ERROR: "error",
    ProgressEvent.JOB_FAILED: "error",
    ProgressEvent.RUN_STATE_CHANGED: "run_state",
}


class ProgressUpdate(BaseSchema):
    """Incremental progress update suitable for logs or streaming."""

    job_id: JobId = Field(..., description="Job identifier")
    event: ProgressEvent = Field(..., description="Progress event name in snake_case")
    timestamp: Timestamp = Field(..., description="Update timestamp")
    stage: JobStage | None = Field(None, description="Associated stage")
    percent: Percent | None = Field(None, description="Aggregate stage progress")
    block: BlockProgress | None = Field(None, description="Per-block translation")
    step: VerificationStep | None = Field(None, description="Verification step")
    issue: TranslationIssue | None = Field(None, description="Issue found by a scan")
    approval: IssuePublication | None = Field(
        None, description="Issue ready for approval"
    )
    decision: DecisionOutcome | None = Field(None, description="Applied decision")
    run_state: JobRunState | None = Field(None, description="Run state after signal")
    error: ErrorResponse | None = Field(None, description="Error notification")
    message: str | None = Field(None, description="Optional progress message")

    @field_validator("event", mode="before")
    @classmethod
    def _coerce_event(cls, value: object) -> object:
        return coerce_enum(ProgressEvent, value)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, value: object) -> object:
        return coerce_enum(JobStage, value)

    @model_validator(mode="after")
    def _validate_payload(self) -> ProgressUpdate:
        field_name = _PAYLOAD_FIELDS.get(ProgressEvent(self.event))
        if field_name is not None and getattr(self, field_name) is None:
            raise ValueError(f"{self.event} updates require {field_name}")
        return self
