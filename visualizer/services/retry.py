"""Retry utilities with exponential backoff."""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 2,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True
    ):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Total attempts, the first call included
            initial_delay: Initial delay in seconds
            max_delay: Maximum delay in seconds
            exponential_base: Base for exponential backoff
            jitter: Whether to add random jitter to delays
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (0-based) failed attempt."""
        delay = min(self.initial_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * 0.1  # 10% jitter
            delay += random.uniform(-jitter_amount, jitter_amount)
        return max(0.0, delay)


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    config: Optional[RetryConfig] = None,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
    **kwargs
) -> T:
    """
    Await ``func`` and retry it with exponential backoff.

    Args:
        func: Coroutine function to retry
        *args: Positional arguments for function
        config: Retry configuration
        retryable_exceptions: Exception types that may be retried
        should_retry: Optional predicate to veto a retry for a caught exception
        **kwargs: Keyword arguments for function

    Returns:
        Function result

    Raises:
        The last exception once attempts are exhausted or a retry is vetoed
    """
    if config is None:
        config = RetryConfig()

    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt == config.max_attempts - 1:
                if config.max_attempts > 1:
                    logger.error(f"All {config.max_attempts} attempts failed for {func.__name__}")
                raise
            if should_retry is not None and not should_retry(e):
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{config.max_attempts} failed for {func.__name__}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without a result")
