"""Mock implementations of the external-facing components."""

from __future__ import annotations

from solana_chain_events.models.events import EventObject, InstructionList
from solana_chain_events.models.records import Cursor, SignatureInfo


class MockRpc:
    """Implements the LedgerRpc protocol over an in-memory signature history.

    ``signatures`` is newest first, like getSignaturesForAddress.
    """

    def __init__(
        self,
        signatures: list[SignatureInfo] | None = None,
        transactions: dict[str, dict] | None = None,
    ) -> None:
        self.signatures: list[SignatureInfo] = list(signatures or [])
        self.transactions: dict[str, dict] = dict(transactions or {})
        self.page_errors: list[Exception] = []
        self.tx_errors: dict[str, Exception] = {}
        self.not_found: dict[str, int] = {}  # signature -> times to return None first
        self.signature_calls: list[dict] = []
        self.transaction_calls: list[str] = []

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None = None,
        until: str | None = None,
        limit: int = 1000,
    ) -> list[SignatureInfo]:
        self.signature_calls.append(
            {"address": address, "before": before, "until": until, "limit": limit}
        )
        if self.page_errors:
            raise self.page_errors.pop(0)

        entries = self.signatures
        if before is not None:
            index = next(i for i, info in enumerate(entries) if info.signature == before)
            entries = entries[index + 1:]
        if until is not None:
            index = next(
                (i for i, info in enumerate(entries) if info.signature == until), len(entries),
            )
            entries = entries[:index]
        return entries[:limit]

    async def get_transaction(self, signature: str, max_supported_version: int = 0) -> dict | None:
        self.transaction_calls.append(signature)
        if signature in self.tx_errors:
            raise self.tx_errors[signature]
        if self.not_found.get(signature, 0) > 0:
            self.not_found[signature] -= 1
            return None
        return self.transactions.get(signature)

    def add(self, info: SignatureInfo, tx: dict | None = None) -> None:
        """Test helper: append a new (newest) signature."""
        self.signatures.insert(0, info)
        if tx is not None:
            self.transactions[info.signature] = tx


class MockSubscriber:
    """Implements the LogSubscriber protocol. Tests push notifications with emit()."""

    def __init__(self) -> None:
        self.handlers: dict[int, tuple[str, str, object]] = {}
        self.subscribe_calls: list[tuple[str, str]] = []
        self.unsubscribe_calls: list[int] = []
        self.fail_on: str | None = None  # event kind whose subscribe raises
        self._next_id = 100

    async def subscribe_logs(self, program_id: str, event_kind: str, handler) -> int:
        if event_kind == self.fail_on:
            raise ConnectionError(f"logsSubscribe failed for {event_kind}")
        self._next_id += 1
        self.handlers[self._next_id] = (program_id, event_kind, handler)
        self.subscribe_calls.append((program_id, event_kind))
        return self._next_id

    async def unsubscribe(self, subscription_id: int) -> None:
        self.unsubscribe_calls.append(subscription_id)
        self.handlers.pop(subscription_id, None)

    def emit(self, event_kind: str, data: dict, slot: int, signature: str) -> int:
        """Deliver a decoded notification to every handler of ``event_kind``."""
        delivered = 0
        for _, kind, handler in list(self.handlers.values()):
            if kind == event_kind:
                handler(data, slot, signature)
                delivered += 1
        return delivered


class MockCursorStore:
    """Implements the CursorStore protocol in memory."""

    def __init__(self, cursor: Cursor | None = None) -> None:
        self.cursor = cursor
        self.saved: list[Cursor] = []
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def load(self) -> Cursor | None:
        return self.cursor

    async def save(self, cursor: Cursor) -> None:
        self.cursor = cursor
        self.saved.append(cursor)

    async def clear(self) -> None:
        self.cursor = None


class MockFetcher:
    """Stands in for TransactionFetcher in dispatcher tests."""

    def __init__(self, instructions: InstructionList | None = None, error: Exception | None = None) -> None:
        self.instructions = instructions
        self.error = error
        self.instruction_calls: list[str] = []

    async def fetch_instructions(self, signature: str) -> InstructionList | None:
        self.instruction_calls.append(signature)
        if self.error is not None:
            raise self.error
        return self.instructions


class FailingDispatcher:
    """Dispatcher whose process() always raises."""

    def __init__(self) -> None:
        self.processed: list[EventObject] = []

    async def process(self, event_object: EventObject):
        self.processed.append(event_object)
        raise RuntimeError("listener pipeline exploded")
