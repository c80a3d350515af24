"""Backward pagination over a topic's transaction-signature history."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from solana_chain_events.interfaces.rpc import LedgerRpc
from solana_chain_events.models.records import SignatureInfo
from solana_chain_events.retry import check_abort

log = logging.getLogger(__name__)

T = TypeVar("T")

LOG_FETCH_LIMIT = 500


class SignatureScanner:
    """Walks a topic's signatures newest to oldest, one page at a time.

    The scanner has no retry loop of its own: page fetch errors propagate as
    raised by the LedgerRpc, whose client retries transient failures.
    """

    def __init__(self, rpc: LedgerRpc) -> None:
        self._rpc = rpc

    async def scan_backward(
        self,
        topic: str,
        process_batch: Callable[[list[SignatureInfo]], Awaitable[T | None]],
        abort: asyncio.Event | None = None,
        batch_size: int | None = None,
        until: str | None = None,
        start_slot: int | None = None,
    ) -> T | None:
        """Feed pages of signatures to ``process_batch`` until it returns a value.

        A page shorter than ``batch_size`` (clamped to 500) ends the scan.
        ``until`` stops at a known signature (exclusive); ``start_slot`` drops
        signatures from older slots and ends the scan once one is seen.
        """
        if batch_size is None or batch_size > LOG_FETCH_LIMIT:
            batch_size = LOG_FETCH_LIMIT
        before: str | None = None

        while True:
            check_abort(abort)
            page = await self._rpc.get_signatures_for_address(
                topic, before=before, until=until, limit=batch_size,
            )
            log.debug("Fetched %d signatures for %s (before=%s)", len(page), topic, before)

            exhausted = len(page) < batch_size
            if start_slot is not None:
                end = next((i for i, info in enumerate(page) if info.slot < start_slot), None)
                if end == 0:
                    return None
                if end is not None:
                    page = page[:end]
                    exhausted = True

            check_abort(abort)
            result = await process_batch(page)
            if result is not None:
                return result
            if exhausted:
                return None
            before = page[-1].signature
