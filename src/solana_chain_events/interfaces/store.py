"""CursorStore protocol - durable resume point for the polling loop."""

from __future__ import annotations

from typing import Protocol

from solana_chain_events.models.records import Cursor


class CursorStore(Protocol):
    """Persists the last processed signature for resumption across restarts."""

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def load(self) -> Cursor | None:
        """The persisted cursor, or None to scan from the present."""
        ...

    async def save(self, cursor: Cursor) -> None:
        ...

    async def clear(self) -> None:
        ...
