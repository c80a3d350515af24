"""Event producers and the dispatcher they feed."""

from solana_chain_events.events.transactions import (
    TransactionFetcher,
    event_object_from_transaction,
    events_from_transaction,
)
from solana_chain_events.events.dispatcher import EventDispatcher
from solana_chain_events.events.live import LiveSubscription
from solana_chain_events.events.poller import PollingLoop

__all__ = [
    "TransactionFetcher", "event_object_from_transaction", "events_from_transaction",
    "EventDispatcher", "LiveSubscription", "PollingLoop",
]
