"""Solana logsSubscribe client - pushes decoded program events to handlers."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass

import websockets
from websockets.exceptions import WebSocketException

from solana_chain_events.errors import DecodeError
from solana_chain_events.interfaces.decoder import ProgramDecoder
from solana_chain_events.interfaces.rpc import LogEventHandler

log = logging.getLogger(__name__)

PING_INTERVAL = 20
PING_TIMEOUT = 20


@dataclass(frozen=True)
class _Listener:
    program_id: str
    event_kind: str
    handler: LogEventHandler


class SolanaLogSubscriber:
    """Implements the LogSubscriber protocol over a Solana RPC websocket.

    One connection carries one ``logsSubscribe`` per program, shared by every
    event kind registered for it. A dropped connection is re-opened with
    exponential backoff and all programs are re-subscribed. Notifications of
    reverted transactions are ignored.
    """

    def __init__(
        self,
        ws_url: str,
        decoder: ProgramDecoder,
        commitment: str = "confirmed",
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ) -> None:
        self._ws_url = ws_url
        self._decoder = decoder
        self._commitment = commitment
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay

        self._listeners: dict[int, _Listener] = {}
        self._ids = itertools.count(1)
        self._request_ids = itertools.count(1)
        self._pending: dict[int, str] = {}  # request id -> program id
        self._server_subs: dict[int, str] = {}  # server subscription id -> program id
        self._requested: set[str] = set()
        self._ws = None
        self._task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def subscribe_logs(
        self, program_id: str, event_kind: str, handler: LogEventHandler,
    ) -> int:
        if program_id != self._decoder.program_id:
            raise ValueError(f"No decoder for program {program_id}")

        subscription_id = next(self._ids)
        self._listeners[subscription_id] = _Listener(program_id, event_kind, handler)

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        elif self._ws is not None and program_id not in self._requested:
            await self._send_subscribe(self._ws, program_id)

        log.debug("Listening for %s from %s (id %d)", event_kind, program_id, subscription_id)
        return subscription_id

    async def unsubscribe(self, subscription_id: int) -> None:
        listener = self._listeners.pop(subscription_id, None)
        if listener is None:
            return

        program_id = listener.program_id
        if any(other.program_id == program_id for other in self._listeners.values()):
            return

        self._requested.discard(program_id)
        for server_id, subscribed in list(self._server_subs.items()):
            if subscribed != program_id:
                continue
            del self._server_subs[server_id]
            if self._ws is not None:
                try:
                    await self._send(self._ws, "logsUnsubscribe", [server_id])
                except WebSocketException as exc:
                    log.debug("logsUnsubscribe(%d) not sent: %s", server_id, exc)

        if not self._listeners:
            await self.close()

    async def close(self) -> None:
        """Drop every listener and close the connection."""
        self._listeners.clear()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Connection loop ────────────────────────────────────

    async def _run(self) -> None:
        delay = self._reconnect_delay
        while self._listeners:
            try:
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=PING_INTERVAL,
                    ping_timeout=PING_TIMEOUT,
                ) as ws:
                    self._ws = ws
                    delay = self._reconnect_delay
                    log.info("Log subscription connected to %s", self._ws_url)

                    programs = {listener.program_id for listener in self._listeners.values()}
                    for program_id in programs:
                        if program_id not in self._requested:
                            await self._send_subscribe(ws, program_id)

                    async for message in ws:
                        self._on_message(message)

                log.warning("Log subscription closed by %s", self._ws_url)
            except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
                log.warning("Log subscription connection lost: %s", exc)
            finally:
                self._ws = None
                self._pending.clear()
                self._server_subs.clear()
                self._requested.clear()

            if not self._listeners:
                break
            log.info("Reconnecting log subscription in %.1fs", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)

    async def _send(self, ws, method: str, params: list) -> int:
        request_id = next(self._request_ids)
        await ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }))
        return request_id

    async def _send_subscribe(self, ws, program_id: str) -> None:
        self._requested.add(program_id)
        request_id = next(self._request_ids)
        self._pending[request_id] = program_id
        await ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": self._commitment}],
        }))

    # ── Message handling ───────────────────────────────────

    def _on_message(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except ValueError:
            log.warning("Ignoring non-JSON websocket message")
            return

        try:
            self._handle_message(msg)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            log.warning("Ignoring malformed websocket message (%s: %s)", type(exc).__name__, exc)

    def _handle_message(self, msg: dict) -> None:
        if "id" in msg:
            program_id = self._pending.pop(msg["id"], None)
            if program_id is None:
                return
            result = msg.get("result")
            if msg.get("error") is not None or result is None:
                log.error("logsSubscribe for %s rejected: %s", program_id, msg.get("error"))
                self._requested.discard(program_id)
                return
            self._server_subs[result] = program_id
            log.debug("logsSubscribe for %s acknowledged (sub %s)", program_id, result)
            return

        if msg.get("method") != "logsNotification":
            return

        params = msg.get("params") or {}
        program_id = self._server_subs.get(params.get("subscription"))
        if program_id is None:
            return

        result = params["result"]
        value = result["value"]
        if value.get("err") is not None:
            return

        slot = int(result["context"]["slot"])
        signature = value["signature"]
        try:
            events = self._decoder.decode_logs(value.get("logs") or [])
        except DecodeError as exc:
            log.error("Failed to decode logs of %s: %s", signature, exc)
            return

        for event in events:
            for listener in list(self._listeners.values()):
                if listener.program_id != program_id or listener.event_kind != event.name:
                    continue
                try:
                    listener.handler(event.data, slot, signature)
                except Exception:
                    log.exception("Log handler for %s failed on %s", event.name, signature)
