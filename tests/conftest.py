"""Common pytest configuration."""

from __future__ import annotations

import pytest

from subloom_io.storage import InMemoryProgressSink
from subloom_schemas.jobs import JobSettings
from subloom_schemas.primitives import TranslationStyle
from tests.helpers.stubs import RecordingLogSink


@pytest.fixture
def job_settings() -> JobSettings:
    """Small-window job settings with verification disabled.

    Returns:
        JobSettings: Settings for unit tests.
    """
    return JobSettings(
        target_language="Russian",
        style=TranslationStyle.NATURAL,
        seed=None,
        batch_size=4,
        context_before=2,
        context_after=2,
        verify=False,
    )


@pytest.fixture
def progress_sink() -> InMemoryProgressSink:
    """Return a fresh in-memory progress sink."""
    return InMemoryProgressSink()


@pytest.fixture
def log_sink() -> RecordingLogSink:
    """Return a fresh recording log sink."""
    return RecordingLogSink()
