"""Ledger RPC protocols - signature index, transaction fetch and log subscription."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from solana_chain_events.models.records import SignatureInfo

# (event data, slot, signature)
LogEventHandler = Callable[[dict[str, Any], int, str], None]


class LedgerRpc(Protocol):
    """Read access to the ledger's signature index and transactions."""

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None = None,
        until: str | None = None,
        limit: int = 1000,
    ) -> list[SignatureInfo]:
        """Signatures touching ``address``, newest first."""
        ...

    async def get_transaction(
        self, signature: str, max_supported_version: int = 0,
    ) -> dict | None:
        """Full transaction (jsonParsed) or None when not visible yet."""
        ...


class LogSubscriber(Protocol):
    """Push subscription to a program's decoded log events."""

    async def subscribe_logs(
        self, program_id: str, event_kind: str, handler: LogEventHandler,
    ) -> int:
        """Call ``handler`` for every ``event_kind`` event emitted by the program."""
        ...

    async def unsubscribe(self, subscription_id: int) -> None:
        ...
