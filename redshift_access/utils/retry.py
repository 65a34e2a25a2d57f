"""Retry with exponential backoff for destructive operations.

Dropping a role can collide with concurrent catalog changes on Redshift;
those failures clear up on their own and are worth another attempt.
"""
import asyncio
import functools
import logging
from typing import Awaitable, Callable, TypeVar

from redshift_access.config import config
from redshift_access.utils.errors import is_retryable_pq_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_pq_errors(
    fn: Callable[..., Awaitable[T]] = None,
    *,
    attempts: int = None,
    base_delay: float = None,
    max_delay: float = None,
):
    """Decorate an async operation to retry on retryable driver errors.

    Non-retryable errors propagate on the first failure.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            max_attempts = max(1, attempts or config.retry_attempts)
            base = config.retry_base_delay if base_delay is None else base_delay
            cap = config.retry_max_delay if max_delay is None else max_delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable_pq_error(e) or attempt + 1 >= max_attempts:
                        raise
                    delay = min(base * (2**attempt), cap)
                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{max_attempts} failed "
                        f"with a retryable error. Retrying in {delay:.1f}s... ({e})"
                    )
                    await asyncio.sleep(delay)

        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator
