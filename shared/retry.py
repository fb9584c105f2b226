"""
Retry helpers for transient failures on outbound calls.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type

from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (``max_attempts - 1`` values)."""
        for attempt in range(1, self.max_attempts):
            yield _calculate_delay(attempt, self)


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


async def call_with_retry(func: Callable[..., Awaitable[Any]],
                          *args,
                          exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                          config: Optional[RetryConfig] = None,
                          **kwargs) -> Any:
    """Await ``func`` until it succeeds or the attempts in ``config`` run out.

    Only ``exceptions`` are retried; anything else propagates immediately.
    Exhaustion raises RetryError chained to the last failure.
    """
    config = config or RetryConfig()
    name = getattr(func, "__name__", repr(func))
    logger = get_logger(f"catalog.retry.{name}")
    delays = config.delays()

    attempt = 0
    while True:
        attempt += 1
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            delay = next(delays, None)
            if delay is None:
                logger.error(
                    "All retry attempts exhausted",
                    attempts=attempt,
                    function=name,
                    error=str(e)
                )
                raise RetryError(
                    f"{name} failed after {attempt} attempts",
                    last_exception=e,
                    attempts=attempt
                ) from e

            logger.warning(
                "Retry attempt failed, waiting before next attempt",
                attempt=attempt,
                delay=round(delay, 3),
                function=name,
                error=str(e)
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info("Retry succeeded", attempt=attempt, function=name)
        return result


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
