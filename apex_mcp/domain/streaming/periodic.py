from typing import Awaitable, Callable
import asyncio

import structlog

logger = structlog.get_logger(__name__)


async def run_periodic(
    interval: float,
    callback: Callable[[], Awaitable[None]],
    stopped: asyncio.Event,
    name: str = "periodic"
) -> None:
    """Call ``callback`` every ``interval`` seconds until ``stopped`` is set.

    The first call happens one interval after start. Calls never overlap:
    fire times that pass while a call is still running are dropped, not
    queued, and the schedule stays anchored to the start time.
    """

    loop = asyncio.get_running_loop()
    next_fire = loop.time() + interval

    while not stopped.is_set():
        delay = next_fire - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        if stopped.is_set():
            break

        await callback()

        next_fire += interval
        now = loop.time()
        if next_fire <= now:
            skipped = int((now - next_fire) // interval) + 1
            next_fire += skipped * interval
            logger.debug("Skipped overdue ticks", timer=name, skipped=skipped)
