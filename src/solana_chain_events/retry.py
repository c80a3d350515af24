"""Retry executor with exponential backoff and cooperative abort."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from solana_chain_events.errors import AbortedError
from solana_chain_events.models.config import RetryPolicy

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_POLICY = RetryPolicy()


def check_abort(abort: asyncio.Event | None) -> None:
    """Raise AbortedError if the abort handle has fired."""
    if abort is not None and abort.is_set():
        raise AbortedError()


async def sleep_with_abort(delay: float, abort: asyncio.Event | None = None) -> None:
    """Sleep for ``delay`` seconds, raising AbortedError as soon as ``abort`` is set."""
    if abort is None:
        await asyncio.sleep(delay)
        return
    if abort.is_set():
        raise AbortedError()
    try:
        await asyncio.wait_for(abort.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise AbortedError()


async def try_with_retries(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    is_terminal: Callable[[BaseException], bool] | None = None,
    abort: asyncio.Event | None = None,
) -> T:
    """Run ``func`` up to ``policy.max_retries`` times.

    An error for which ``is_terminal`` returns True is re-raised at once, as is
    AbortedError. Between attempts the executor sleeps ``delay * 2**attempt``
    (or a flat ``delay``); the sleep ends early with AbortedError when
    ``abort`` fires. After the last attempt the last error is re-raised.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempts = max(policy.max_retries, 1)
    last_exc: Exception | None = None

    for attempt in range(attempts):
        try:
            return await func()
        except AbortedError:
            raise
        except Exception as exc:
            if is_terminal is not None and is_terminal(exc):
                raise
            last_exc = exc
            log.warning("Attempt %d/%d failed: %s", attempt + 1, attempts, exc)

        check_abort(abort)
        if attempt != attempts - 1:
            await sleep_with_abort(policy.backoff(attempt), abort)

    assert last_exc is not None
    raise last_exc
