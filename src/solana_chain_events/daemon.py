"""Event ingestion facade - wires the live subscription and the polling fallback."""

from __future__ import annotations

import asyncio
import logging
import signal

from solana_chain_events.events.dispatcher import EventDispatcher
from solana_chain_events.events.live import LiveSubscription
from solana_chain_events.events.poller import PollingLoop
from solana_chain_events.events.transactions import TransactionFetcher
from solana_chain_events.interfaces.decoder import ProgramDecoder
from solana_chain_events.interfaces.listener import EventListener
from solana_chain_events.interfaces.rpc import LedgerRpc, LogSubscriber
from solana_chain_events.interfaces.store import CursorStore
from solana_chain_events.models.config import DaemonConfig, StorageBackend
from solana_chain_events.models.events import ClaimEvent, InitializeEvent, RefundEvent, SwapEvent
from solana_chain_events.solana.idl import IdlProgramDecoder
from solana_chain_events.solana.rpc import SolanaRpcClient
from solana_chain_events.solana.scanner import SignatureScanner
from solana_chain_events.solana.ws import SolanaLogSubscriber
from solana_chain_events.storage.cursor_file import FileCursorStore
from solana_chain_events.storage.sqlite import SQLiteCursorStore

log = logging.getLogger(__name__)


def build_decoder(cfg: DaemonConfig) -> IdlProgramDecoder:
    if not cfg.idl_path:
        raise ValueError("No IDL configured (program.idl_path)")
    return IdlProgramDecoder.from_file(cfg.idl_path, cfg.program_id or None)


def build_store(cfg: DaemonConfig, program_id: str) -> CursorStore:
    if cfg.backend == StorageBackend.SQLITE:
        return SQLiteCursorStore(cfg.db_path, program_id)
    return FileCursorStore(cfg.directory)


class SolanaChainEvents:
    """Delivers a program's swap events to registered listeners.

    Two independent producers feed one dispatcher: the websocket log
    subscription and the HTTP polling loop that resumes from the persisted
    cursor. Delivery is at-least-once; listeners must tolerate duplicates.
    Components not passed in are built from the config and owned (closed)
    by this object.
    """

    def __init__(
        self,
        cfg: DaemonConfig,
        rpc: LedgerRpc | None = None,
        subscriber: LogSubscriber | None = None,
        decoder: ProgramDecoder | None = None,
        store: CursorStore | None = None,
    ) -> None:
        self._cfg = cfg
        self.decoder = decoder or build_decoder(cfg)
        self.program_id = self.decoder.program_id

        self._owned: list = []
        if rpc is None:
            rpc = SolanaRpcClient(
                cfg.rpc_url, cfg.commitment, cfg.request_timeout, cfg.retry,
            )
            self._owned.append(rpc)
        if subscriber is None:
            subscriber = SolanaLogSubscriber(cfg.websocket_url(), self.decoder, cfg.commitment)
            self._owned.append(subscriber)

        self.rpc = rpc
        self.subscriber = subscriber
        self.store = store or build_store(cfg, self.program_id)

        self.scanner = SignatureScanner(rpc)
        self.fetcher = TransactionFetcher(rpc, self.decoder, cfg.retry)
        self.dispatcher = EventDispatcher(self.fetcher)
        self.live = LiveSubscription(subscriber, self.program_id, self.dispatcher, cfg.event_kinds)
        self.poller = PollingLoop(
            self.scanner,
            self.fetcher,
            self.dispatcher,
            self.store,
            self.program_id,
            poll_interval=cfg.poll_interval,
            log_fetch_limit=cfg.log_fetch_limit,
        )
        self._started = False
        self._closed = False

    # ── Listeners ──────────────────────────────────────────

    def register_listener(self, listener: EventListener) -> None:
        self.dispatcher.register_listener(listener)

    def unregister_listener(self, listener: EventListener) -> bool:
        return self.dispatcher.unregister_listener(listener)

    # ── Lifecycle ──────────────────────────────────────────

    async def init(self, polling: bool | None = None) -> None:
        """Subscribe to live events, then start polling unless disabled."""
        if self._started:
            return
        if polling is None:
            polling = self._cfg.polling_enabled

        log.info("Starting chain events for %s", self.program_id)
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Polling: %s", f"every {self._cfg.poll_interval:.1f}s" if polling else "disabled")

        await self.store.initialize()
        self._started = True
        await self.live.start()
        if polling:
            await self.poller.start()

    async def stop(self) -> None:
        """Stop both producers. Safe to call repeatedly and before init()."""
        if not self._started:
            return
        self._started = False
        await self.live.stop()
        await self.poller.stop()
        await self.live.drain()
        log.info("Chain events stopped for %s", self.program_id)

    async def close(self) -> None:
        """Stop, then release HTTP/websocket connections and the cursor store."""
        if self._closed:
            return
        await self.stop()
        self._closed = True
        for component in self._owned:
            await component.close()
        await self.store.close()


def log_swap_events(events: tuple[SwapEvent, ...]) -> None:
    """Listener that logs every delivered event."""
    for event in events:
        tx_id = event.meta.tx_id if event.meta else "?"
        if isinstance(event, InitializeEvent):
            kind = event.swap_type.name if event.swap_type is not None else "unknown"
            log.info("INITIALIZE escrow=%s type=%s tx=%s", event.escrow_hash, kind, tx_id)
        elif isinstance(event, ClaimEvent):
            log.info("CLAIM escrow=%s secret=%s tx=%s", event.escrow_hash, event.secret, tx_id)
        elif isinstance(event, RefundEvent):
            log.info("REFUND escrow=%s tx=%s", event.escrow_hash, tx_id)


async def run_daemon(cfg: DaemonConfig) -> None:
    """Entry point for running the daemon until SIGINT/SIGTERM."""
    events = SolanaChainEvents(cfg)
    events.register_listener(log_swap_events)
    stopped = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopped.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await events.init()
        await stopped.wait()
        log.info("Stop requested")
    finally:
        await events.close()
        log.info("Daemon shut down cleanly")
