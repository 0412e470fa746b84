import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay to wait after failed ``attempt`` (1-based) before the next one."""
    return base_delay * 2 ** (attempt - 1)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or ``max_attempts`` is reached.

    Failures matching ``retry_on`` are retried after an exponential delay
    (``base_delay``, ``2 * base_delay``, ``4 * base_delay``...). Anything else
    propagates at once. When the attempts run out the last exception is
    re-raised as is.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error("retries_exhausted",
                             attempts=attempt,
                             error=str(e))
                raise

            delay = backoff_delay(attempt, base_delay)
            logger.warning("retry_scheduled",
                           attempt=attempt,
                           max_attempts=max_attempts,
                           delay_seconds=delay,
                           error=str(e))
            await sleep(delay)
            attempt += 1
