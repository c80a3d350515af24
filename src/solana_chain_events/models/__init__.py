"""Data models for the solana_chain_events pipeline."""

from solana_chain_events.models.config import (
    DEFAULT_EVENT_KINDS,
    DaemonConfig,
    RetryPolicy,
    StorageBackend,
)
from solana_chain_events.models.events import (
    ClaimEvent,
    DecodedInstruction,
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
from solana_chain_events.models.records import Cursor, SignatureInfo
from solana_chain_events.models.swap import SwapData

__all__ = [
    "DEFAULT_EVENT_KINDS", "DaemonConfig", "RetryPolicy", "StorageBackend",
    "ClaimEvent", "DecodedInstruction", "EventMeta", "EventObject",
    "InitializeEvent", "InstructionList", "ProgramEvent", "RefundEvent",
    "SwapEvent", "SwapType", "to_escrow_hash",
    "Cursor", "SignatureInfo",
    "SwapData",
]
