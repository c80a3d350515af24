"""Building EventObjects from fetched transactions and loading their instructions."""

from __future__ import annotations

import asyncio
import logging

from solana_chain_events.errors import TransactionNotFoundError
from solana_chain_events.interfaces.decoder import ProgramDecoder
from solana_chain_events.interfaces.rpc import LedgerRpc
from solana_chain_events.models.config import RetryPolicy
from solana_chain_events.models.events import EventObject, InstructionList, ProgramEvent
from solana_chain_events.retry import try_with_retries

log = logging.getLogger(__name__)


def transaction_signature(tx: dict) -> str:
    return tx["transaction"]["signatures"][0]


def events_from_transaction(decoder: ProgramDecoder, tx: dict) -> list[ProgramEvent] | None:
    """Program events of a transaction, most recent first.

    Returns None when the transaction reverted or carries no logs.
    """
    meta = tx.get("meta")
    if meta is None:
        raise ValueError(f"Transaction 'meta' not found for tx: {transaction_signature(tx)}")
    if meta.get("err") is not None or meta.get("logMessages") is None:
        return None

    events = decoder.decode_logs(meta["logMessages"])
    events.reverse()
    return events


def event_object_from_transaction(decoder: ProgramDecoder, tx: dict) -> EventObject | None:
    """Parse a fetched transaction into an EventObject with decoded instructions."""
    events = events_from_transaction(decoder, tx)
    if events is None:
        return None

    return EventObject(
        events=events,
        instructions=decoder.decode_instructions(tx["transaction"]["message"]),
        block_time=int(tx.get("blockTime") or 0),
        signature=transaction_signature(tx),
    )


def _is_terminal(exc: BaseException) -> bool:
    # Transport retries happen inside the RPC client; only a missing tx is retried here
    return not isinstance(exc, TransactionNotFoundError)


class TransactionFetcher:
    """Fetches transactions with retries; a not-yet-visible transaction is retried too."""

    def __init__(
        self,
        rpc: LedgerRpc,
        decoder: ProgramDecoder,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._rpc = rpc
        self._decoder = decoder
        self._retry_policy = retry_policy

    async def fetch(self, signature: str, abort: asyncio.Event | None = None) -> dict:
        async def _fetch() -> dict:
            tx = await self._rpc.get_transaction(signature, max_supported_version=0)
            if tx is None:
                raise TransactionNotFoundError(f"Transaction {signature} not found")
            return tx

        return await try_with_retries(_fetch, self._retry_policy, _is_terminal, abort)

    async def fetch_instructions(self, signature: str) -> InstructionList | None:
        """Decoded instructions of a transaction, or None if it reverted."""
        tx = await self.fetch(signature)
        meta = tx.get("meta")
        if meta is None:
            raise ValueError(f"Transaction 'meta' not found for tx: {signature}")
        if meta.get("err") is not None:
            return None
        return self._decoder.decode_instructions(tx["transaction"]["message"])

    async def fetch_event_object(self, signature: str) -> EventObject | None:
        tx = await self.fetch(signature)
        return event_object_from_transaction(self._decoder, tx)
