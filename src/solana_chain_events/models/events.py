"""Program events, decoded instructions and the domain events delivered to listeners."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Awaitable, Callable, Optional, Union

from solana_chain_events.models.swap import SwapData


@dataclass(frozen=True)
class ProgramEvent:
    """An event record decoded from a ``Program data:`` log line."""

    name: str
    data: dict[str, Any]


@dataclass(frozen=True)
class DecodedInstruction:
    """An instruction of the target program, decoded with its IDL layout."""

    name: str
    data: dict[str, Any]
    accounts: dict[str, str]  # IDL account name -> base58 address


InstructionList = list[Optional[DecodedInstruction]]


@dataclass
class EventObject:
    """In-flight unit of work: the program events of one transaction.

    ``instructions`` is filled on first demand and kept for the lifetime of
    the object.
    """

    events: list[ProgramEvent]
    block_time: int
    signature: str
    instructions: InstructionList | None = None


@dataclass(frozen=True)
class EventMeta:
    """Delivery metadata attached to every domain event."""

    block_time: int
    timestamp: int
    tx_id: str


class SwapType(IntEnum):
    HTLC = 0
    CHAIN = 1
    CHAIN_NONCED = 2
    CHAIN_TXID = 3

    @classmethod
    def from_idl(cls, value: Any) -> SwapType | None:
        """Map the decoded ``SwapType`` enum (variant name or {name: fields})."""
        if isinstance(value, dict):
            value = next(iter(value), None)
        return _SWAP_TYPE_NAMES.get(value)


_SWAP_TYPE_NAMES = {
    "htlc": SwapType.HTLC,
    "chain": SwapType.CHAIN,
    "chainNonced": SwapType.CHAIN_NONCED,
    "chainTxhash": SwapType.CHAIN_TXID,
}


def to_escrow_hash(payment_hash: str, sequence: int) -> str:
    """sha256(payment_hash || sequence as 8-byte big-endian), hex encoded."""
    return hashlib.sha256(
        bytes.fromhex(payment_hash) + int(sequence).to_bytes(8, "big")
    ).hexdigest()


SwapDataGetter = Callable[[], Awaitable[Optional[SwapData]]]


@dataclass(frozen=True)
class InitializeEvent:
    """An escrow was created; swap data resolves lazily from the init instruction."""

    escrow_hash: str
    swap_type: SwapType | None
    get_swap_data: SwapDataGetter = field(repr=False, compare=False)
    meta: EventMeta | None = None


@dataclass(frozen=True)
class ClaimEvent:
    """An escrow was claimed by revealing its secret."""

    escrow_hash: str
    secret: str  # hex
    meta: EventMeta | None = None


@dataclass(frozen=True)
class RefundEvent:
    """An escrow was refunded to the offerer."""

    escrow_hash: str
    meta: EventMeta | None = None


SwapEvent = Union[InitializeEvent, ClaimEvent, RefundEvent]
