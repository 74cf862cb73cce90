"""Retry utilities with exponential backoff.

Only failures that are worth repeating should be retried: the upstream client
retries connection errors but lets timeouts and HTTP errors through, because
a scan treats those as a failed fetch and moves on.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from crossarb.utils.logging import get_logger


logger = get_logger("retry")


T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    jitter: bool = True,
    **kwargs,
) -> T:
    """Retry an async function with exponential backoff.

    Args:
        func: The async function to retry
        *args: Positional arguments to pass to func
        max_retries: Maximum number of attempts (1 means no retry)
        initial_delay: Delay in seconds before the first retry
        backoff_factor: Multiplier for delay between retries
        max_delay: Maximum delay between retries in seconds
        exceptions: Exception types that trigger a retry
        jitter: Whether to add random jitter to delays
        **kwargs: Keyword arguments to pass to func

    Returns:
        The result of calling func

    Raises:
        The last exception raised by func if all attempts fail
    """
    attempts = max(1, max_retries)
    delay = initial_delay

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except exceptions as e:
            if attempt >= attempts - 1:
                logger.warning("All %d attempts failed: %s", attempts, e)
                raise

            actual_delay = delay * (0.5 + random.random() * 0.5) if jitter else delay
            actual_delay = min(actual_delay, max_delay)
            logger.debug(
                "Retry attempt %d/%d after %.2fs: %s",
                attempt + 1,
                attempts,
                actual_delay,
                e,
            )
            await asyncio.sleep(actual_delay)
            delay *= backoff_factor

    raise RuntimeError("retries exhausted without an exception")
