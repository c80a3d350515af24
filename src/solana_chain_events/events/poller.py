"""HTTP polling fallback - catches up on program transactions from a durable cursor."""

from __future__ import annotations

import asyncio
import logging

from solana_chain_events.errors import AbortedError
from solana_chain_events.events.dispatcher import EventDispatcher
from solana_chain_events.events.transactions import TransactionFetcher
from solana_chain_events.interfaces.store import CursorStore
from solana_chain_events.models.records import Cursor, SignatureInfo
from solana_chain_events.retry import check_abort
from solana_chain_events.solana.scanner import LOG_FETCH_LIMIT, SignatureScanner

log = logging.getLogger(__name__)

LOG_FETCH_INTERVAL = 5.0  # seconds


class PollingLoop:
    """Polls the program's signature index and dispatches new transactions.

    Each tick processes at most one page: the oldest signatures after the
    persisted cursor, oldest first. A longer backlog is drained over
    consecutive ticks without skipping any signature. Ticks never overlap; the next one is
    scheduled ``poll_interval`` seconds after the previous one finished.
    """

    def __init__(
        self,
        scanner: SignatureScanner,
        fetcher: TransactionFetcher,
        dispatcher: EventDispatcher,
        store: CursorStore,
        program_id: str,
        poll_interval: float = LOG_FETCH_INTERVAL,
        log_fetch_limit: int = LOG_FETCH_LIMIT,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scanner = scanner
        self._fetcher = fetcher
        self._dispatcher = dispatcher
        self._store = store
        self._program_id = program_id
        self._poll_interval = poll_interval
        self._log_fetch_limit = log_fetch_limit
        self._log = logger or log

        self._running = False
        self._abort = asyncio.Event()
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run one tick now, then keep ticking every ``poll_interval`` seconds."""
        if self._running:
            return
        self._running = True
        self._abort.clear()
        self._wakeup.clear()
        self._log.info("Polling %s every %.1fs", self._program_id, self._poll_interval)

        await self._safe_tick()
        if self._running:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Stop scheduling ticks and abort an in-flight tick at its next check."""
        if not self._running and self._task is None:
            return
        self._running = False
        self._abort.set()
        self._wakeup.set()
        task, self._task = self._task, None
        if task is not None:
            await task
        self._log.info("Polling stopped for %s", self._program_id)

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            if not self._running:
                break
            await self._safe_tick()

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except AbortedError:
            self._log.debug("Poll tick aborted")
        except Exception:
            self._log.exception("Failed to fetch Solana log for %s", self._program_id)

    # ── One tick ───────────────────────────────────────────

    async def tick(self) -> Cursor | None:
        """Process the oldest page after the stored cursor; returns the new cursor if any."""
        cursor = await self._store.load()
        if cursor is None:
            self._log.info("No cursor for %s, starting from the latest signature", self._program_id)
            new_cursor = await self._scanner.scan_backward(
                self._program_id, self._process_page, abort=self._abort, batch_size=1,
            )
        else:
            new_cursor = await self._catch_up(cursor)

        if new_cursor is None or new_cursor == cursor:
            return None
        await self._store.save(new_cursor)
        self._log.debug("Cursor advanced to %s (slot %d)", new_cursor.signature, new_cursor.slot)
        return new_cursor

    async def _process_page(self, page: list[SignatureInfo]) -> Cursor | None:
        if not page:
            return None
        return await self._process_signatures(page)

    async def _catch_up(self, cursor: Cursor) -> Cursor | None:
        """Walk back to ``cursor`` and process the page right after it.

        A backlog longer than one page is drained over several ticks, each
        picking up where the previous one saved.
        """
        oldest: list[SignatureInfo] | None = None
        pages = 0

        async def _collect(page: list[SignatureInfo]) -> Cursor | None:
            nonlocal oldest, pages
            if not page:
                return None
            if oldest is None and page[0].slot < cursor.slot:
                self._log.debug(
                    "Newest signature slot %d is older than cursor slot %d, skipping page",
                    page[0].slot, cursor.slot,
                )
                return cursor
            oldest = page
            pages += 1
            return None

        stale = await self._scanner.scan_backward(
            self._program_id,
            _collect,
            abort=self._abort,
            batch_size=self._log_fetch_limit,
            until=cursor.signature,
        )
        if stale is not None or oldest is None:
            return None
        if pages > 1:
            self._log.info(
                "Backlog of %d pages for %s, processing the oldest", pages, self._program_id,
            )
        check_abort(self._abort)
        return await self._process_signatures(oldest)

    async def _process_signatures(self, page: list[SignatureInfo]) -> Cursor | None:
        """Fetch, decode and dispatch a page oldest first.

        Returns the newest successfully processed cursor. If a transaction
        fails after others succeeded, the progress so far is kept and the
        failure is logged; if the very first one fails, the error propagates.
        """
        last: Cursor | None = None
        for info in reversed(page):
            if info.err is not None:
                last = info.to_cursor()
                continue
            try:
                event_object = await self._fetcher.fetch_event_object(info.signature)
                if event_object is not None:
                    await self._dispatcher.process(event_object)
            except AbortedError:
                raise
            except Exception:
                if last is None:
                    raise
                self._log.exception("Failed processing signature %s", info.signature)
                break
            last = info.to_cursor()
        return last
