"""Tests for retry with exponential backoff."""
import pytest
from unittest.mock import AsyncMock, patch

from visualizer.services.retry import RetryConfig, retry_with_backoff


class TransientError(Exception):
    pass


class FatalError(Exception):
    pass


def test_retry_config_delays():
    """Delays grow exponentially up to the cap."""
    config = RetryConfig(initial_delay=1.0, max_delay=5.0, exponential_base=2.0, jitter=False)

    assert config.delay_for(0) == 1.0
    assert config.delay_for(1) == 2.0
    assert config.delay_for(2) == 4.0
    assert config.delay_for(5) == 5.0


def test_retry_config_jitter_stays_within_ten_percent():
    """Jitter moves the delay by at most 10%."""
    config = RetryConfig(initial_delay=10.0, jitter=True)

    for _ in range(20):
        assert 9.0 <= config.delay_for(0) <= 11.0


def test_retry_config_requires_an_attempt():
    """Zero attempts is invalid."""
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failure():
    """A transient failure is retried."""
    calls = []

    async def flaky(value):
        calls.append(value)
        if len(calls) == 1:
            raise TransientError("once")
        return value * 2

    with patch("visualizer.services.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        result = await retry_with_backoff(flaky, 21, config=RetryConfig(max_attempts=3, jitter=False))

    assert result == 42
    assert calls == [21, 21]
    mock_sleep.assert_awaited_once_with(1.0)


@pytest.mark.asyncio
async def test_retry_raises_after_last_attempt():
    """The last exception propagates once attempts run out."""
    attempts = 0

    async def always_fails():
        nonlocal attempts
        attempts += 1
        raise TransientError("nope")

    with patch("visualizer.services.retry.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(TransientError):
            await retry_with_backoff(always_fails, config=RetryConfig(max_attempts=2))

    assert attempts == 2


@pytest.mark.asyncio
async def test_retry_skips_non_retryable_exceptions():
    """Exceptions outside retryable_exceptions propagate immediately."""
    attempts = 0

    async def fatal():
        nonlocal attempts
        attempts += 1
        raise FatalError("stop")

    with pytest.raises(FatalError):
        await retry_with_backoff(fatal, config=RetryConfig(max_attempts=3), retryable_exceptions=(TransientError,))

    assert attempts == 1


@pytest.mark.asyncio
async def test_should_retry_can_veto():
    """The predicate stops retries for specific errors."""
    attempts = 0

    async def rejected():
        nonlocal attempts
        attempts += 1
        raise TransientError("client error")

    with pytest.raises(TransientError):
        await retry_with_backoff(
            rejected,
            config=RetryConfig(max_attempts=3),
            should_retry=lambda e: "client" not in str(e),
        )

    assert attempts == 1
