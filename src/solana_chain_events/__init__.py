"""solana_chain_events - reliable delivery of Anchor swap program events."""

__version__ = "0.1.0"
