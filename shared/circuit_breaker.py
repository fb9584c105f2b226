"""
Circuit breaker for outbound calls to endpoints that may be down.

After ``failure_threshold`` consecutive failures the breaker opens and
rejects calls without attempting them. Once ``recovery_timeout`` seconds
have passed a single trial call is let through (half-open); its outcome
closes the breaker again or re-opens it for another timeout.
"""

import time
from enum import Enum
from typing import Dict, Any, Callable, Awaitable

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Exception raised when circuit breaker is open."""
    pass


class CircuitBreaker:
    """Consecutive-failure circuit breaker with a monotonic clock."""

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 60.0,
                 name: str = "default",
                 clock: Callable[[], float] = time.monotonic):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.logger = get_logger(f"catalog.circuit_breaker.{name}")
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitBreakerState:
        if self._state is CircuitBreakerState.OPEN and self._clock() - self._opened_at >= self.recovery_timeout:
            self._transition(CircuitBreakerState.HALF_OPEN)
        return self._state

    def _transition(self, new_state: CircuitBreakerState) -> None:
        if new_state is self._state:
            return
        self.logger.info(
            "Circuit breaker state change",
            from_state=self._state.value,
            to_state=new_state.value,
            consecutive_failures=self._consecutive_failures
        )
        self._state = new_state

    def _allow_call(self) -> bool:
        state = self.state
        if state is CircuitBreakerState.CLOSED:
            return True
        if state is CircuitBreakerState.HALF_OPEN and not self._trial_in_flight:
            self._trial_in_flight = True
            return True
        return False

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute ``func`` unless the breaker is open."""
        if not self._allow_call():
            raise CircuitBreakerOpenException(
                f"Circuit breaker '{self.name}' is OPEN - blocking call"
            )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        except BaseException:
            # Cancelled or interrupted: no verdict, release the trial slot.
            self._trial_in_flight = False
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        self._trial_in_flight = False
        self._consecutive_failures = 0
        self._transition(CircuitBreakerState.CLOSED)

    def record_failure(self) -> None:
        self._trial_in_flight = False
        self._consecutive_failures += 1

        if self._state is CircuitBreakerState.HALF_OPEN or self._consecutive_failures >= self.failure_threshold:
            self._opened_at = self._clock()
            if self._state is not CircuitBreakerState.OPEN:
                self.logger.warning(
                    "Circuit breaker opened",
                    consecutive_failures=self._consecutive_failures,
                    threshold=self.failure_threshold,
                    recovery_timeout=self.recovery_timeout
                )
            self._transition(CircuitBreakerState.OPEN)

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of the breaker for health reporting."""
        return {
            "name": self.name,
            "state": self.state.value,
            "consecutive_failures": self._consecutive_failures,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout
        }

    def is_open(self) -> bool:
        """Check if circuit breaker is in OPEN state."""
        return self.state is CircuitBreakerState.OPEN
