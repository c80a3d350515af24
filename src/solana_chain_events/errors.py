"""Exception types shared across the event pipeline."""

from __future__ import annotations


class ChainEventsError(Exception):
    """Base class for all solana_chain_events errors."""


class AbortedError(ChainEventsError):
    """Raised when an abort handle fires during a long-running call."""

    def __init__(self, message: str = "Aborted") -> None:
        super().__init__(message)


class TransientRpcError(ChainEventsError):
    """Timeout, connection failure, HTTP 5xx or 429 - safe to retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RpcError(ChainEventsError):
    """JSON-RPC error object or unexpected HTTP status - not retried."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransactionNotFoundError(ChainEventsError):
    """getTransaction returned null (not yet visible at this commitment)."""


class DecodeError(ChainEventsError):
    """Program data did not match the IDL layout."""
