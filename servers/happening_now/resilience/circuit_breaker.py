"""Per-provider circuit breaker for outbound event fetches."""

import time
from enum import Enum
from typing import Any, Callable, Coroutine, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(Enum):
    """States for the circuit breaker."""

    CLOSED = "closed"  # Provider is queried normally
    OPEN = "open"  # Provider is skipped
    HALF_OPEN = "half_open"  # Probing whether the provider recovered


class CircuitBreakerOpenError(Exception):
    """Raised when a provider's circuit is open and the fetch is skipped."""

    def __init__(self, circuit_name: str):
        super().__init__(f"Circuit breaker '{circuit_name}' is open")
        self.circuit_name = circuit_name


class CircuitBreaker:
    """Stop querying a provider after repeated failures.

    After ``recovery_timeout`` seconds the next fetch is let through
    (half-open). Two consecutive half-open successes close the circuit,
    a single half-open failure reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout: Seconds to wait before probing the provider again
            name: Provider name used in logs and errors
            clock: Monotonic clock, injectable for tests
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.clock = clock
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at: float | None = None
        self.success_count_in_half_open = 0

    async def call(self, coro: Coroutine[Any, Any, T]) -> T:
        """Await ``coro`` under circuit protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open (``coro`` is closed unawaited)
            Exception: Whatever ``coro`` raised, after recording the failure
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition_to_half_open()
            else:
                coro.close()
                raise CircuitBreakerOpenError(self.name)

        try:
            result = await coro
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if self.opened_at is None:
            return True
        return self.clock() - self.opened_at >= self.recovery_timeout

    def _transition_to_half_open(self) -> None:
        self.state = CircuitState.HALF_OPEN
        self.success_count_in_half_open = 0
        logger.info("circuit_half_open", circuit=self.name)

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count_in_half_open += 1
            if self.success_count_in_half_open >= 2:
                self._close_circuit()
        else:
            self.failure_count = 0

    def _close_circuit(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at = None
        logger.info("circuit_closed", circuit=self.name)

    def _on_failure(self, error: Exception) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._open_circuit(error)

    def _open_circuit(self, error: Exception) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self.clock()
        logger.warning(
            "circuit_opened",
            circuit=self.name,
            failure_count=self.failure_count,
            recovery_timeout=self.recovery_timeout,
            error=str(error) or type(error).__name__,
        )

    def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.opened_at = None
        self.success_count_in_half_open = 0

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
        }
