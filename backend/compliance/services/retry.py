"""Bounded retry with exponential backoff for provider calls."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    should_retry: Optional[Callable[[BaseException], bool]] = is_transient,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the attempt budget is spent.

    Waits ``base_delay_ms * 2 ** (attempt - 1)`` between attempts. Errors the
    ``should_retry`` predicate rejects are raised immediately.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total invocations allowed (1 = no retry)
        base_delay_ms: Delay before the second attempt
        should_retry: Predicate deciding whether an error is transient
        sleep: Awaitable sleep taking seconds

    Returns:
        The first successful result

    Raises:
        ValueError: If max_attempts < 1
        Exception: The last error once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt == max_attempts:
                logger.warning(f"Giving up after {attempt} attempt(s): {e}")
                raise

            delay_ms = base_delay_ms * 2 ** (attempt - 1)
            logger.info(f"Attempt {attempt} failed, retrying in {delay_ms}ms: {e}")
            await sleep(delay_ms / 1000)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry loop exited without a result")
