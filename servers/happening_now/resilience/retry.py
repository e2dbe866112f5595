"""Retry with exponential backoff for provider HTTP calls."""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = 2,
    base_delay: float = 0.25,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for async retry with exponential backoff.

    Defaults are small: every provider call also runs under a
    per-adapter timeout of a few seconds.

    Args:
        max_attempts: Total attempts including the first one
        base_delay: Initial delay between attempts in seconds
        max_delay: Maximum delay between attempts in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Randomize each delay between 50% and 150%
        retryable_exceptions: Exception types worth another attempt

    Returns:
        Decorated async function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            "retry_exhausted",
                            function=func.__qualname__,
                            max_attempts=max_attempts,
                            error=str(e) or type(e).__name__,
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    if jitter:
                        delay *= 0.5 + random.random()

                    logger.warning(
                        "retry_attempt",
                        function=func.__qualname__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=round(delay, 2),
                        error=str(e) or type(e).__name__,
                    )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper  # type: ignore

    return decorator
