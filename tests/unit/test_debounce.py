"""Tests for the debounce timer."""
import asyncio

import pytest

from visualizer.services.debounce import Debouncer


@pytest.mark.asyncio
async def test_only_last_value_is_delivered():
    """Rapid schedules collapse into one callback with the last value."""
    received = []
    debouncer = Debouncer(0.02, received.append)

    debouncer.schedule(1)
    debouncer.schedule(2)
    debouncer.schedule(3)
    assert debouncer.pending

    await debouncer.wait()

    assert received == [3]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_quiet_period_restarts_on_schedule():
    """A schedule inside the window postpones delivery."""
    received = []
    debouncer = Debouncer(0.05, received.append)

    debouncer.schedule("a")
    await asyncio.sleep(0.03)
    debouncer.schedule("b")
    await asyncio.sleep(0.03)
    assert received == []

    await debouncer.wait()
    assert received == ["b"]


@pytest.mark.asyncio
async def test_cancel_drops_pending_value():
    """Cancelled timers never fire."""
    received = []
    debouncer = Debouncer(0.01, received.append)

    debouncer.schedule(1)
    assert debouncer.cancel() is True
    assert debouncer.cancel() is False
    await asyncio.sleep(0.03)

    assert received == []


@pytest.mark.asyncio
async def test_flush_delivers_immediately():
    """Flush fires the pending value without waiting."""
    received = []
    debouncer = Debouncer(10, received.append)

    assert debouncer.flush() is False
    debouncer.schedule("now")
    assert debouncer.flush() is True

    assert received == ["now"]
    assert not debouncer.pending


def test_negative_delay_rejected():
    """Delays cannot be negative."""
    with pytest.raises(ValueError):
        Debouncer(-1, print)


def test_schedule_outside_event_loop_is_deferred():
    """Without a running loop the value waits for the first wait() inside one."""
    received = []
    debouncer = Debouncer(0.01, received.append)

    debouncer.schedule("first")
    debouncer.schedule("second")
    assert debouncer.pending
    assert received == []

    asyncio.run(debouncer.wait())

    assert received == ["second"]
    assert not debouncer.pending
