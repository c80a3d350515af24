"""Listener registry and fan-out of parsed swap events."""

from __future__ import annotations

import inspect
import logging

from solana_chain_events.events.transactions import TransactionFetcher
from solana_chain_events.interfaces.listener import EventListener
from solana_chain_events.memo import once_async
from solana_chain_events.models.events import (
    ClaimEvent,
    EventMeta,
    EventObject,
    InitializeEvent,
    InstructionList,
    ProgramEvent,
    RefundEvent,
    SwapEvent,
    SwapType,
    to_escrow_hash,
)
from solana_chain_events.models.swap import INIT_INSTRUCTIONS, SwapData

log = logging.getLogger(__name__)


def _hex(value) -> str:
    return bytes(value).hex()


class EventDispatcher:
    """Turns EventObjects into swap events and delivers them to listeners.

    Listeners run in registration order. Each receives the same immutable
    tuple of events; an exception in one listener is logged and does not stop
    delivery to the next. No deduplication is done between producers.
    """

    def __init__(
        self,
        fetcher: TransactionFetcher,
        logger: logging.Logger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._log = logger or log
        self._listeners: list[EventListener] = []

    @property
    def listeners(self) -> tuple[EventListener, ...]:
        return tuple(self._listeners)

    def register_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unregister_listener(self, listener: EventListener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    async def process(self, event_object: EventObject) -> tuple[SwapEvent, ...]:
        """Parse an EventObject and push the resulting batch to every listener."""
        meta = EventMeta(
            block_time=event_object.block_time,
            timestamp=event_object.block_time,
            tx_id=event_object.signature,
        )
        load_instructions = once_async(lambda: self._load_instructions(event_object))

        parsed: list[SwapEvent] = []
        for event in event_object.events:
            swap_event = self._parse_event(event, meta, load_instructions)
            if swap_event is not None:
                parsed.append(swap_event)
        batch = tuple(parsed)

        for listener in list(self._listeners):
            try:
                result = listener(batch)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._log.exception(
                    "Listener %r failed on events of %s", listener, event_object.signature,
                )
        return batch

    # ── Parsing ────────────────────────────────────────────

    def _parse_event(self, event: ProgramEvent, meta: EventMeta, load_instructions) -> SwapEvent | None:
        if event.name == "InitializeEvent":
            return self._parse_initialize(event.data, meta, load_instructions)
        if event.name == "ClaimEvent":
            return self._parse_claim(event.data, meta)
        if event.name == "RefundEvent":
            return self._parse_refund(event.data, meta)
        self._log.debug("Ignoring program event %s", event.name)
        return None

    def _parse_initialize(self, data: dict, meta: EventMeta, load_instructions) -> InitializeEvent:
        payment_hash = _hex(data["hash"])
        txo_hash = _hex(data["txoHash"])
        escrow_hash = to_escrow_hash(payment_hash, data["sequence"])
        self._log.debug(
            "InitializeEvent paymentHash: %s sequence: %d txoHash: %s escrowHash: %s",
            payment_hash, data["sequence"], txo_hash, escrow_hash,
        )

        async def get_swap_data() -> SwapData | None:
            instructions = await load_instructions()
            if instructions is None:
                return None
            init_ix = next(
                (ix for ix in instructions if ix is not None and ix.name in INIT_INSTRUCTIONS),
                None,
            )
            if init_ix is None:
                return None
            return SwapData.from_instruction(init_ix, txo_hash)

        return InitializeEvent(
            escrow_hash=escrow_hash,
            swap_type=SwapType.from_idl(data.get("kind")),
            get_swap_data=once_async(get_swap_data),
            meta=meta,
        )

    def _parse_claim(self, data: dict, meta: EventMeta) -> ClaimEvent:
        payment_hash = _hex(data["hash"])
        secret = _hex(data["secret"])
        escrow_hash = to_escrow_hash(payment_hash, data["sequence"])
        self._log.debug(
            "ClaimEvent paymentHash: %s sequence: %d secret: %s escrowHash: %s",
            payment_hash, data["sequence"], secret, escrow_hash,
        )
        return ClaimEvent(escrow_hash=escrow_hash, secret=secret, meta=meta)

    def _parse_refund(self, data: dict, meta: EventMeta) -> RefundEvent:
        payment_hash = _hex(data["hash"])
        escrow_hash = to_escrow_hash(payment_hash, data["sequence"])
        self._log.debug(
            "RefundEvent paymentHash: %s sequence: %d escrowHash: %s",
            payment_hash, data["sequence"], escrow_hash,
        )
        return RefundEvent(escrow_hash=escrow_hash, meta=meta)

    async def _load_instructions(self, event_object: EventObject) -> InstructionList | None:
        if event_object.instructions is None:
            instructions = await self._fetcher.fetch_instructions(event_object.signature)
            if instructions is None:
                return None
            event_object.instructions = instructions
        return event_object.instructions
