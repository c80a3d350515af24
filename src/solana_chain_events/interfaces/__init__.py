"""Protocol interfaces for all solana_chain_events components."""

from solana_chain_events.interfaces.decoder import ProgramDecoder
from solana_chain_events.interfaces.listener import EventListener
from solana_chain_events.interfaces.rpc import LedgerRpc, LogEventHandler, LogSubscriber
from solana_chain_events.interfaces.store import CursorStore

__all__ = [
    "ProgramDecoder",
    "EventListener",
    "LedgerRpc", "LogEventHandler", "LogSubscriber",
    "CursorStore",
]
