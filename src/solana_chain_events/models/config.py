"""Configuration models for the chain events daemon."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEFAULT_EVENT_KINDS = ("InitializeEvent", "ClaimEvent", "RefundEvent")


class StorageBackend(str, Enum):
    """Where the polling cursor is persisted."""

    FILE = "file"  # <directory>/blockheight.txt
    SQLITE = "sqlite"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry schedule used by try_with_retries()."""

    max_retries: int = 5
    delay: float = 0.5  # seconds
    exponential: bool = True

    def backoff(self, attempt: int) -> float:
        """Delay before the retry that follows the given 0-based attempt."""
        if self.exponential:
            return self.delay * (2 ** attempt)
        return self.delay


@dataclass
class DaemonConfig:
    """Complete daemon configuration."""

    # Daemon
    poll_interval: float = 5.0  # seconds
    polling_enabled: bool = True
    log_level: str = "info"

    # Solana
    rpc_url: str = "https://api.devnet.solana.com"
    ws_url: str = ""  # derived from rpc_url when empty
    commitment: str = "confirmed"
    request_timeout: float = 15.0  # seconds
    log_fetch_limit: int = 500

    # Program
    program_id: str = ""
    idl_path: str = ""
    event_kinds: tuple[str, ...] = DEFAULT_EVENT_KINDS

    # Storage
    backend: StorageBackend = StorageBackend.FILE
    directory: str = "~/.solana_chain_events"
    db_path: str = "~/.solana_chain_events/state.db"

    # Retry
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def websocket_url(self) -> str:
        """ws_url, or rpc_url with its http(s) scheme swapped for ws(s)."""
        if self.ws_url:
            return self.ws_url
        if self.rpc_url.startswith("https://"):
            return "wss://" + self.rpc_url[len("https://"):]
        if self.rpc_url.startswith("http://"):
            return "ws://" + self.rpc_url[len("http://"):]
        return self.rpc_url
