"""Live event delivery from the program's log subscription."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Sequence

from solana_chain_events.events.dispatcher import EventDispatcher
from solana_chain_events.interfaces.rpc import LogEventHandler, LogSubscriber
from solana_chain_events.models.config import DEFAULT_EVENT_KINDS
from solana_chain_events.models.events import EventObject, ProgramEvent

log = logging.getLogger(__name__)


class LiveSubscription:
    """Subscribes one handler per event kind and dispatches each notification.

    Notifications carry no ledger timestamp, so ``block_time`` is the
    wall-clock receipt time. A failing dispatch is logged; the handler stays
    subscribed.
    """

    def __init__(
        self,
        subscriber: LogSubscriber,
        program_id: str,
        dispatcher: EventDispatcher,
        event_kinds: Sequence[str] = DEFAULT_EVENT_KINDS,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._subscriber = subscriber
        self._program_id = program_id
        self._dispatcher = dispatcher
        self._event_kinds = tuple(event_kinds)
        self._clock = clock
        self._log = logger or log
        self._subscription_ids: list[int] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self._subscription_ids)

    async def start(self) -> None:
        if self._subscription_ids:
            return
        try:
            for kind in self._event_kinds:
                sub_id = await self._subscriber.subscribe_logs(
                    self._program_id, kind, self._handler(kind),
                )
                self._subscription_ids.append(sub_id)
        except Exception:
            self._log.error("Live subscription failed for %s, rolling back", self._program_id)
            await self.stop()
            raise
        self._log.info(
            "Live subscription started for %s (%s)", self._program_id, ", ".join(self._event_kinds),
        )

    async def stop(self) -> None:
        """Unsubscribe every handler. Safe to call without start() and more than once."""
        ids, self._subscription_ids = self._subscription_ids, []
        for sub_id in ids:
            await self._subscriber.unsubscribe(sub_id)
        if ids:
            self._log.info("Live subscription stopped for %s", self._program_id)

    async def drain(self) -> None:
        """Wait for dispatches already scheduled by notifications."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _handler(self, kind: str) -> LogEventHandler:
        def handle(data: dict[str, Any], slot: int, signature: str) -> None:
            self._log.debug("Live %s at slot %d: %s", kind, slot, signature)
            event_object = EventObject(
                events=[ProgramEvent(name=kind, data=data)],
                block_time=int(self._clock()),
                signature=signature,
            )
            task = asyncio.ensure_future(self._dispatch(event_object))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return handle

    async def _dispatch(self, event_object: EventObject) -> None:
        try:
            await self._dispatcher.process(event_object)
        except Exception:
            self._log.exception("Error processing live event %s", event_object.signature)
