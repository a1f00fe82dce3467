"""Unit tests for subloom workflow schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from subloom_schemas.config import (
    LoggingConfig,
    LogSinkConfig,
    ModelEndpointConfig,
    TranslationConfig,
    VerificationConfig,
)
from subloom_schemas.events import ProgressEvent
from subloom_schemas.jobs import JobSnapshot
from subloom_schemas.primitives import (
    IssueStatus,
    JobStatus,
    LogSinkType,
    ProblemType,
    TranslationStyle,
)
from subloom_schemas.progress import ProgressUpdate
from subloom_schemas.responses import JobAccepted, JobCreateRequest, JobDocument
from subloom_schemas.validation import (
    validate_approval_decision,
    validate_progress_update_json,
)
from subloom_schemas.verification import ApprovalDecision, DefectReport
from tests.helpers.stubs import FIXED_TIMESTAMP, make_issue


@pytest.mark.unit
def test_decision_accepts_string_status() -> None:
    """Decisions received as JSON carry plain string statuses."""
    decision = validate_approval_decision({"block_number": 7, "status": "approved"})

    assert decision.status == IssueStatus.APPROVED
    assert decision.token is None


@pytest.mark.unit
@pytest.mark.parametrize("status", ["rejected", "pending"])
def test_decision_refuses_undecidable_status(status: str) -> None:
    """Only approved, manually_edited, and skipped are valid decisions."""
    with pytest.raises(ValidationError):
        ApprovalDecision.model_validate({"block_number": 1, "status": status})


@pytest.mark.unit
def test_manual_edit_requires_text() -> None:
    """A manual edit without text is refused."""
    with pytest.raises(ValidationError):
        ApprovalDecision(block_number=3, status=IssueStatus.MANUALLY_EDITED)


@pytest.mark.unit
def test_final_text_follows_status() -> None:
    """The decided status selects which text reaches the document."""
    issue = make_issue(4, current="old")
    assert issue.final_text() is None

    issue.improved_translation = "better"
    issue.status = IssueStatus.APPROVED
    assert issue.final_text() == "better"

    issue.status = IssueStatus.SKIPPED
    assert issue.final_text() == "old"

    issue.manual_translation = "mine"
    issue.status = IssueStatus.MANUALLY_EDITED
    assert issue.final_text() == "mine"
    assert issue.is_decided


@pytest.mark.unit
def test_defect_report_dedupes_problem_types() -> None:
    """Repeated categories collapse while keeping first-seen order."""
    report = DefectReport.model_validate({
        "block_number": 2,
        "problem_types": ["too_long", "grammar_issues", "too_long"],
        "quality_score": 5,
    })

    assert report.problem_types == [ProblemType.TOO_LONG, ProblemType.GRAMMAR_ISSUES]


@pytest.mark.unit
def test_defect_report_rejects_unknown_category() -> None:
    """Categories outside the closed taxonomy are refused."""
    with pytest.raises(ValidationError):
        DefectReport.model_validate({
            "block_number": 2,
            "problem_types": ["spelling"],
            "quality_score": 5,
        })


@pytest.mark.unit
def test_progress_update_requires_event_payload() -> None:
    """Approval requests must carry the publication."""
    with pytest.raises(ValidationError):
        ProgressUpdate(
            job_id="job-1",
            event=ProgressEvent.APPROVAL_REQUESTED,
            timestamp=FIXED_TIMESTAMP,
        )


@pytest.mark.unit
def test_progress_update_parses_streamed_json() -> None:
    """Streamed progress JSON validates back into an update."""
    update = validate_progress_update_json(
        '{"job_id": "job-1", "event": "translation_progress", '
        '"timestamp": "2026-01-01T00:00:00Z", "stage": "translation", '
        '"percent": 40.0}'
    )

    assert update.event == ProgressEvent.TRANSLATION_PROGRESS
    assert update.percent == 40.0


@pytest.mark.unit
def test_failed_snapshot_requires_error_message() -> None:
    """A failed job snapshot always explains the failure."""
    with pytest.raises(ValidationError):
        JobSnapshot(
            job_id="job-1",
            status=JobStatus.FAILED,
            block_count=1,
            updated_at=FIXED_TIMESTAMP,
        )


@pytest.mark.unit
def test_verification_overlap_must_be_smaller_than_window() -> None:
    """Scan windows must advance."""
    with pytest.raises(ValidationError):
        VerificationConfig(window_size=3, overlap=3)

    assert VerificationConfig(window_size=10, overlap=3).stride == 7


@pytest.mark.unit
def test_translation_sizes_resolve_from_preset_and_overrides() -> None:
    """Explicit sizes override the named preset."""
    assert TranslationConfig().resolved_sizes() == (50, 20, 20)

    config = TranslationConfig.model_validate({
        "context_preset": "small",
        "batch_size": 12,
        "style": "precise",
    })

    assert config.resolved_sizes() == (12, 15, 15)
    assert config.style == TranslationStyle.PRECISE


@pytest.mark.unit
def test_endpoint_base_url_gets_version_path() -> None:
    """A bare host gains the /v1 path."""
    endpoint = ModelEndpointConfig(
        provider_name="local",
        base_url="http://localhost:11434",
        api_key_env="LOCAL_KEY",
    )

    assert endpoint.base_url == "http://localhost:11434/v1"


@pytest.mark.unit
def test_endpoint_requires_http_url() -> None:
    """Non-HTTP base URLs are refused."""
    with pytest.raises(ValidationError):
        ModelEndpointConfig(
            provider_name="bad", base_url="localhost:8000", api_key_env="KEY"
        )


@pytest.mark.unit
def test_logging_sinks_must_be_unique() -> None:
    """Each log sink type may appear once."""
    with pytest.raises(ValidationError):
        LoggingConfig(
            sinks=[
                LogSinkConfig(type=LogSinkType.CONSOLE),
                LogSinkConfig(type=LogSinkType.CONSOLE),
            ]
        )


@pytest.mark.unit
def test_job_create_request_coerces_style() -> None:
    """The start request accepts a style name."""
    request = JobCreateRequest.model_validate({
        "content": "1\n00:00:01,000 --> 00:00:02,000\nHi\n",
        "style": "Creative",
    })

    assert request.style == TranslationStyle.CREATIVE
    assert request.job_id is None


@pytest.mark.unit
def test_job_payloads_accept_status_read_from_snapshot() -> None:
    """Statuses stored on snapshots as plain strings build response payloads."""
    snapshot = JobSnapshot(
        job_id="job-1",
        status=JobStatus.COMPLETED,
        block_count=1,
        updated_at=FIXED_TIMESTAMP,
    )

    document = JobDocument(job_id="job-1", status=snapshot.status, content="")
    accepted = JobAccepted(job_id="job-1", status="running", block_count=1)

    assert isinstance(snapshot.status, str)
    assert document.status == JobStatus.COMPLETED
    assert accepted.status == JobStatus.RUNNING


@pytest.mark.unit
def test_issue_detected_update_requires_issue() -> None:
    """Issue announcements carry the detected issue."""
    with pytest.raises(ValidationError):
        ProgressUpdate(
            job_id="job-1",
            event=ProgressEvent.ISSUE_DETECTED,
            timestamp=FIXED_TIMESTAMP,
        )

    update = ProgressUpdate(
        job_id="job-1",
        event=ProgressEvent.ISSUE_DETECTED,
        timestamp=FIXED_TIMESTAMP,
        issue=make_issue(4),
    )
    assert update.issue is not None
    assert update.issue.block_number == 4
