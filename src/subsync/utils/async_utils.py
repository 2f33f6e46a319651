"""
Async utilities for subsync.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


def dual(func: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Make a job entry point callable from both sync and async code.

    A cron wrapper or the CLI calls ``run_pusher_sync(config)`` and blocks
    until the run ends; code already inside an event loop gets the coroutine
    back and awaits it::

        result = run_pusher_sync(config)          # blocking
        result = await run_pusher_sync(config)    # inside a running loop
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError("@dual can only be applied to async def functions")

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        coro = func(*args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        return coro

    return wrapper  # type: ignore[return-value]
