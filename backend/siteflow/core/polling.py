"""Fixed-interval polling with an attempt budget and injectable sleep."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from siteflow.core.exceptions import PollTimeout

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    *,
    interval: float,
    max_attempts: int,
    sleep: SleepFunc = asyncio.sleep,
    sleep_first: bool = False,
    ignore_errors: tuple[type[BaseException], ...] = (),
    description: str = "condition",
) -> int:
    """Call ``check`` every ``interval`` seconds until it returns True.

    Args:
        check: Coroutine function returning True once the remote condition holds.
        interval: Seconds to sleep between checks.
        max_attempts: Maximum number of checks before giving up.
        sleep: Sleep coroutine; tests pass a fake to skip wall-clock delay.
        sleep_first: Sleep before the first check as well (status endpoints
            that report stale progress right after a start call).
        ignore_errors: Exception types that count as "not yet" instead of
            propagating (e.g. connection refused while a service boots).
        description: Used in log and error messages.

    Returns:
        The number of checks performed.

    Raises:
        PollTimeout: If ``check`` never returned True within ``max_attempts``.
    """
    elapsed = 0.0
    for attempt in range(1, max_attempts + 1):
        if sleep_first or attempt > 1:
            await sleep(interval)
            elapsed += interval
        try:
            if await check():
                logger.debug(f"{description} satisfied after {attempt} attempt(s)")
                return attempt
        except ignore_errors as e:
            logger.debug(f"{description} not ready (attempt {attempt}/{max_attempts}): {e}")

    raise PollTimeout(
        f"{description} not satisfied after {max_attempts} attempts",
        attempts=max_attempts,
        elapsed=elapsed,
    )
