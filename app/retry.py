import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn()``, retrying failures with exponential backoff.

    Waits ``initial_delay * 2**attempt`` seconds after failed attempt
    ``attempt`` (counted from 0), no jitter. After ``max_retries`` retries
    the last exception is re-raised.
    """

    def _log_retry(state: RetryCallState) -> None:
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.info(
            "Retry attempt %d/%d after %.1fs (%s)",
            state.attempt_number,
            max_retries,
            delay,
            state.outcome.exception() if state.outcome else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2, min=0),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)
