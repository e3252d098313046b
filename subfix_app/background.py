"""Supervision for fire-and-forget asyncio tasks.

Pipeline runs are detached from whoever scheduled them. Tasks are kept
referenced until they finish and any exception that escapes them is logged
and handed to an optional callback instead of vanishing.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

_background_tasks: Set[asyncio.Task[Any]] = set()


def spawn(coro: Awaitable[Any], *, name: Optional[str] = None,
          on_error: Optional[Callable[[BaseException], None]] = None) -> asyncio.Task[Any]:
    """Schedule ``coro`` on the running loop and supervise it.

    Args:
        coro: Coroutine to run in the background.
        name: Task name, used in log lines.
        on_error: Called with the exception if the task raises.
    """
    task = asyncio.create_task(coro, name=name)  # type: ignore[arg-type]
    _background_tasks.add(task)

    def _finished(t: asyncio.Task[Any]) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            logger.debug("Background task %s cancelled", name or t)
            return
        exc = t.exception()
        if exc is None:
            return
        logger.error("Background task %s failed", name or t, exc_info=exc)
        if on_error:
            try:
                on_error(exc)
            except Exception:  # noqa: BLE001
                logger.exception("Error in on_error callback for task %s", name or t)

    task.add_done_callback(_finished)
    return task


def pending() -> Set[asyncio.Task[Any]]:
    """Tasks spawned here that have not finished yet."""
    return set(_background_tasks)


async def run_sync(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run blocking code in the default executor and await the result."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


__all__ = ["spawn", "pending", "run_sync"]
