"""Fail-soft wrapper for optional collaborators such as the cache store."""

from typing import Any, Callable, Coroutine, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def with_default(
    func: Callable[..., Coroutine[Any, Any, T]],
    default: T,
    *args: Any,
    **kwargs: Any,
) -> T:
    """Await ``func`` and return ``default`` if it raises.

    Args:
        func: Async function to execute
        default: Value to return if function fails
        *args: Positional arguments for function
        **kwargs: Keyword arguments for function

    Returns:
        Function result or default value
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        logger.warning(
            "using_default_value",
            function=getattr(func, "__qualname__", repr(func)),
            error=str(e) or type(e).__name__,
        )
        return default
