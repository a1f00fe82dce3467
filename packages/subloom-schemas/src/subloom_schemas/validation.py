"""Validation entrypoints for config and event payloads."""

from __future__ import annotations

from subloom_schemas.config import RunConfig
from subloom_schemas.primitives import JsonValue
from subloom_schemas.progress import ProgressUpdate
from subloom_schemas.verification import ApprovalDecision


def validate_run_config(payload: dict[str, JsonValue]) -> RunConfig:
    """Validate run configuration payload.

    Args:
        payload: Raw run configuration payload.

    Returns:
        RunConfig: Validated run configuration.
    """
    return RunConfig.model_validate(payload)


def validate_approval_decision(payload: dict[str, JsonValue]) -> ApprovalDecision:
    """Validate an approval decision received over a control channel.

    Args:
        payload: Raw decision payload.

    Returns:
        ApprovalDecision: Validated decision.
    """
    return ApprovalDecision.model_validate(payload)


def validate_progress_update_json(raw: str | bytes) -> ProgressUpdate:
    """Validate a JSON-encoded progress update.

    Args:
        raw: JSON text as streamed to observers.

    Returns:
        ProgressUpdate: Validated progress update.
    """
    return ProgressUpdate.model_validate_json(raw)
