"""Circuit Breaker pattern for fault tolerance.

Stops calling the analysis backend after repeated failures so that a
dead provider costs each stage one fast rejection instead of a full
timeout. The circuit has three states:
- CLOSED: Normal operation, requests pass through
- OPEN: Backend is failing, requests are rejected immediately
- HALF_OPEN: Trial requests probe whether the backend recovered

The breaker lives on one event loop and is only touched between awaits,
so it keeps no lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Type, Union

logger = logging.getLogger(__name__)

ExceptionTypes = Union[Type[Exception], Tuple[Type[Exception], ...]]


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreakerOpen(Exception):
    """Raised when circuit breaker is open."""

    def __init__(
        self,
        message: str,
        circuit_name: str,
        time_remaining: float,
    ):
        super().__init__(message)
        self.circuit_name = circuit_name
        self.time_remaining = time_remaining


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Number of consecutive failures before opening.
        success_threshold: Number of successes in half-open to close.
        timeout: Seconds to wait before trying half-open.
        failure_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that don't count as failures.
    """
    failure_threshold: int = 5
    success_threshold: int = 1
    timeout: float = 30.0
    failure_exceptions: ExceptionTypes = (Exception,)
    excluded_exceptions: ExceptionTypes = ()


class CircuitBreaker:
    """Circuit breaker guarding one external dependency.

    Usage:
        breaker = CircuitBreaker("analysis", CircuitBreakerConfig(failure_threshold=5))

        async with breaker:
            await call_backend()

    State transitions:
        CLOSED -> OPEN: failure_threshold failures reached
        OPEN -> HALF_OPEN: timeout elapsed
        HALF_OPEN -> CLOSED: success_threshold successes
        HALF_OPEN -> OPEN: any failure
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the timeout elapsed."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.timeout:
                self._transition_to_half_open()
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def _transition_to_open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        logger.warning(
            f"Circuit breaker '{self.name}' OPENED",
            extra={'extra_data': {'circuit': self.name, 'failures': self._failure_count}}
        )

    def _transition_to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        logger.info(f"Circuit breaker '{self.name}' CLOSED")

    def _transition_to_half_open(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0
        logger.info(f"Circuit breaker '{self.name}' HALF-OPEN")

    def _is_failure_exception(self, exception: BaseException) -> bool:
        if self.config.excluded_exceptions and isinstance(exception, self.config.excluded_exceptions):
            return False
        return isinstance(exception, self.config.failure_exceptions)

    def allow_request(self) -> None:
        """Check that a request may proceed.

        Raises:
            CircuitBreakerOpen: If circuit is open.
        """
        if self.state != CircuitState.OPEN:
            return

        elapsed = self._clock() - (self._opened_at or 0.0)
        raise CircuitBreakerOpen(
            f"Circuit breaker '{self.name}' is open",
            circuit_name=self.name,
            time_remaining=max(0.0, self.config.timeout - elapsed),
        )

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition_to_closed()
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self, exception: BaseException) -> None:
        if not self._is_failure_exception(exception):
            return

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to_open()
        elif self._state == CircuitState.CLOSED:
            self._failure_count += 1
            if self._failure_count >= self.config.failure_threshold:
                self._transition_to_open()

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        self._transition_to_closed()

    async def __aenter__(self) -> "CircuitBreaker":
        self.allow_request()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            self.record_success()
        elif exc_val is not None:
            self.record_failure(exc_val)
        return False
