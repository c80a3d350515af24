"""Historical search over a program's decoded events."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from solana_chain_events.events.transactions import events_from_transaction
from solana_chain_events.interfaces.decoder import ProgramDecoder
from solana_chain_events.interfaces.rpc import LedgerRpc
from solana_chain_events.models.events import ProgramEvent
from solana_chain_events.models.records import SignatureInfo
from solana_chain_events.retry import check_abort
from solana_chain_events.solana.scanner import SignatureScanner

T = TypeVar("T")


class ProgramEventSearch:
    """Runs a backward search, handing every decoded event to a processor."""

    def __init__(
        self,
        rpc: LedgerRpc,
        decoder: ProgramDecoder,
        scanner: SignatureScanner | None = None,
    ) -> None:
        self._rpc = rpc
        self._decoder = decoder
        self._scanner = scanner or SignatureScanner(rpc)

    async def find_in_events(
        self,
        topic: str,
        processor: Callable[[ProgramEvent, dict], Awaitable[T | None]],
        abort: asyncio.Event | None = None,
        batch_size: int | None = None,
        start_slot: int | None = None,
    ) -> T | None:
        """Call ``processor(event, tx)`` newest event first until it returns a value.

        Reverted transactions are skipped without being fetched.
        """

        async def _process_batch(page: list[SignatureInfo]) -> T | None:
            for info in page:
                if info.err is not None:
                    continue
                tx = await self._rpc.get_transaction(info.signature, max_supported_version=0)
                if tx is None or tx.get("meta") is None:
                    continue
                events = events_from_transaction(self._decoder, tx)
                if not events:
                    continue
                for event in events:
                    check_abort(abort)
                    result = await processor(event, tx)
                    if result is not None:
                        return result
            return None

        return await self._scanner.scan_backward(
            topic, _process_batch, abort, batch_size, start_slot=start_slot,
        )
