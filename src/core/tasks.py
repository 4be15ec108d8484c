"""
Fire-and-forget background work (temp blob cleanup, alert notifications).

Tasks are scheduled on the running event loop and tracked until they finish
so they are not garbage-collected mid-flight. A failing task is logged and
never re-raised into the request that scheduled it.
"""

import asyncio
from typing import Coroutine
from loguru import logger

_pending: set[asyncio.Task] = set()


def fire_and_forget(coro: Coroutine, description: str) -> asyncio.Task | None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Called from synchronous code: nothing can run the task
        coro.close()
        logger.warning("No running event loop; background task dropped", task=description)
        return None

    task = loop.create_task(coro)
    _pending.add(task)

    def _done(t: asyncio.Task) -> None:
        _pending.discard(t)
        if t.cancelled():
            logger.warning("Background task cancelled", task=description)
            return
        exc = t.exception()
        if exc is not None:
            logger.warning("Background task failed: {}", exc, task=description)

    task.add_done_callback(_done)
    return task


async def drain_background_tasks() -> None:
    """Wait for every scheduled background task (used on shutdown and in tests)"""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
