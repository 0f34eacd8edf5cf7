"""Detached best-effort tasks (audit writes, last-used stamps).

Tasks scheduled here never report back to the request that spawned them: a
failure is logged and dropped.  Strong references are kept until completion so
the event loop does not garbage-collect a running task, and :func:`drain`
lets shutdown and tests wait for whatever is still pending.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger("tenantgate.background")

_pending: set[asyncio.Task] = set()


def fire_and_forget(coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
    """Schedule *coro* on the running loop without awaiting it.

    Raises ``RuntimeError`` when called outside a running loop; *coro* is
    closed first so it is not reported as never awaited.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        raise
    task = loop.create_task(coro, name=name)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        logger.warning("Background task %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)


def pending_count() -> int:
    return len(_pending)


async def drain(timeout: float | None = 10.0) -> None:
    """Wait for every pending background task (used at shutdown and in tests)."""
    while _pending:
        batch = list(_pending)
        done, not_done = await asyncio.wait(batch, timeout=timeout)
        if not_done:
            logger.warning("%d background task(s) still pending after %.1fs", len(not_done), timeout or 0)
            return
