"""Resilience patterns for calls to external services.

Provides retry logic with exponential backoff and a circuit breaker
guarding the analysis backend.
"""

from .retry import (
    retry_async,
    RetryConfig,
    RetryExhausted,
)

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitState,
)

__all__ = [
    # Retry
    "retry_async",
    "RetryConfig",
    "RetryExhausted",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitState",
]
