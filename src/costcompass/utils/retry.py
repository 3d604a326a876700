"""
Bounded retry helper for calls against external sources.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    timeout: Optional[float] = None,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "",
) -> T:
    """
    Awaits func() up to max_attempts times with exponential backoff.

    Each attempt is bounded by timeout seconds; a timed-out attempt counts as a
    failure like any other listed exception. Exceptions not listed in
    exceptions propagate immediately. After the last attempt the last error is
    re-raised.
    """
    name = description or getattr(func, "__name__", "call")
    delay = initial_delay
    attempts = max(1, max_attempts)
    last_exception: Optional[BaseException] = None

    for attempt in range(attempts):
        try:
            if timeout is not None:
                return await asyncio.wait_for(func(), timeout=timeout)
            return await func()
        except asyncio.TimeoutError as e:
            last_exception = TimeoutError(f"{name} timed out after {timeout}s")
            last_exception.__cause__ = e
        except exceptions as e:
            last_exception = e

        if attempt < attempts - 1:
            logger.warning(
                "Attempt %d/%d failed for %s: %s. Retrying in %.2f seconds...",
                attempt + 1,
                attempts,
                name,
                last_exception,
                delay,
            )
            await sleep(delay)
            delay = min(delay * backoff_factor, max_delay)
        else:
            logger.error("All %d attempts failed for %s: %s", attempts, name, last_exception)

    raise last_exception
