"""Resilience patterns that keep a provider outage from failing an aggregation."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from .fallback import with_default
from .health import HealthMonitor
from .retry import retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "CircuitBreaker",
    "CircuitState",
    "CircuitBreakerOpenError",
    "with_default",
    "HealthMonitor",
]
