"""Single-flight memoization for idempotent coroutine factories."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


def once_async(factory: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
    """Wrap ``factory`` so at most one invocation is in flight at a time.

    Concurrent callers share the pending task. A successful result is cached
    for good. A failure clears the cache before any waiter resumes, so every
    waiter sees the failure and the next call starts a fresh attempt.
    """
    task: asyncio.Future[T] | None = None

    def _forget_failure(done: asyncio.Future[T]) -> None:
        nonlocal task
        if done.cancelled() or done.exception() is not None:
            if task is done:
                task = None

    async def call() -> T:
        nonlocal task
        current = task
        if current is None:
            current = asyncio.ensure_future(factory())
            current.add_done_callback(_forget_failure)
            task = current
        return await asyncio.shield(current)

    return call
