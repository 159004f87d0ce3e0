"""Retry with exponential backoff for calls to external services.

Used by the analysis client to absorb transient backend failures
(rate limits, connection resets, 5xx) before a stage gives up and
falls back.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Initial delay between retries in seconds.
        max_delay: Maximum delay between retries in seconds.
        backoff_multiplier: Multiplier for exponential backoff.
        jitter: Random jitter as a fraction of the delay (0-1).
        retryable_exceptions: Exception types that should trigger retry.
        non_retryable_exceptions: Exception types that never retry.
        on_retry: Callback called with (attempt, exception, delay).
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1
    retryable_exceptions: ExceptionTypes = (Exception,)
    non_retryable_exceptions: ExceptionTypes = ()
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the retry following `attempt` (1-indexed)."""
        delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay

    def should_retry(self, exception: BaseException) -> bool:
        """Determine if an exception should trigger a retry."""
        if self.non_retryable_exceptions and isinstance(exception, self.non_retryable_exceptions):
            return False
        return isinstance(exception, self.retryable_exceptions)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    name: str = "operation",
) -> T:
    """Run `operation` until it succeeds or the retry budget is spent.

    Non-retryable exceptions propagate unchanged. Cancellation is never
    retried.

    Raises:
        RetryExhausted: the last attempt failed with a retryable exception.
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await operation()

        except Exception as e:
            last_exception = e

            if not config.should_retry(e):
                logger.debug(f"Non-retryable exception in {name}: {e}")
                raise

            if attempt >= config.max_attempts:
                logger.warning(f"Retry exhausted for {name} after {attempt} attempts: {e}")
                raise RetryExhausted(
                    f"Retry exhausted after {attempt} attempts",
                    attempts=attempt,
                    last_exception=e,
                ) from e

            delay = config.calculate_delay(attempt)
            logger.info(f"Retry {attempt}/{config.max_attempts} for {name} in {delay:.2f}s: {e}")

            if config.on_retry:
                config.on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

    raise RetryExhausted(
        f"Retry exhausted after {config.max_attempts} attempts",
        attempts=config.max_attempts,
        last_exception=last_exception,
    )
