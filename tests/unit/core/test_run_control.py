"""Unit tests for pause/cancel run control."""

from __future__ import annotations

import asyncio

import pytest

from subloom_core.ports.orchestrator import JobCancelledError
from subloom_core.run_control import RunControl, RunControlStore
from subloom_schemas.jobs import JobRunState


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_checkpoint_passes_when_running() -> None:
    """An unpaused job passes its checkpoint immediately."""
    control = RunControl("job-1")

    await control.checkpoint()

    assert control.snapshot() == JobRunState(paused=False, cancelled=False)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pause_blocks_until_resume() -> None:
    """A paused checkpoint waits until the job is resumed."""
    control = RunControl("job-1")
    control.pause()

    waiter = asyncio.create_task(control.checkpoint())
    await _settle()
    assert not waiter.done()

    state = control.resume()
    await asyncio.wait_for(waiter, timeout=1)

    assert state.paused is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_wakes_paused_checkpoint() -> None:
    """Cancelling a paused job raises at the waiting checkpoint."""
    control = RunControl("job-1")
    control.pause()
    waiter = asyncio.create_task(control.checkpoint())
    await _settle()

    state = control.cancel()

    with pytest.raises(JobCancelledError):
        await asyncio.wait_for(waiter, timeout=1)
    assert state == JobRunState(paused=False, cancelled=True)


@pytest.mark.unit
def test_cancel_is_terminal() -> None:
    """Pausing after cancellation has no effect."""
    control = RunControl("job-1")
    control.cancel()

    state = control.pause()

    assert state == JobRunState(paused=False, cancelled=True)
    with pytest.raises(JobCancelledError):
        control.raise_if_cancelled()


@pytest.mark.unit
def test_store_defaults_unknown_jobs_to_running() -> None:
    """Unknown jobs report neither paused nor cancelled."""
    store = RunControlStore()
    control = store.create("job-1")
    control.pause()

    assert store.state("job-1").paused is True
    assert "job-1" in store

    store.discard("job-1")

    assert store.state("job-1") == JobRunState()
    assert store.get("job-1") is None
