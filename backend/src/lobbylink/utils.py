"""
Deadline helpers shared by loaders and connectors.

Deadlines are absolute times on the running event loop's clock
(``loop.time()``), so they are monotonic and comparable across tasks.
"""
import asyncio
import functools
from collections.abc import Awaitable, Callable
from concurrent.futures import Executor
from typing import Any, TypeVar

T = TypeVar('T')


def deadline_after(seconds: float) -> float:
    """Absolute deadline ``seconds`` from now on the running loop's clock."""
    return asyncio.get_running_loop().time() + seconds


def remaining(deadline: float) -> float:
    """Seconds left until ``deadline``; never negative."""
    return max(0.0, deadline - asyncio.get_running_loop().time())


async def run_until(deadline: float, awaitable: Awaitable[T]) -> T:
    """Await ``awaitable``, abandoning it with TimeoutError at ``deadline``."""
    left = remaining(deadline)
    if left <= 0:
        # Still close the coroutine so it is not reported as never awaited
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise TimeoutError("Deadline already passed")
    return await asyncio.wait_for(awaitable, timeout=left)


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    executor: Executor | None = None,
    **kwargs: Any
) -> T:
    """Run a blocking callable on a worker thread."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, functools.partial(func, *args, **kwargs))
