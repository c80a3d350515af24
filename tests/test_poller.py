"""Tests 51-60: Polling loop ticks and cursor persistence."""

from __future__ import annotations

import asyncio

import pytest

from solana_chain_events.errors import RpcError, TransientRpcError
from solana_chain_events.events.poller import PollingLoop
from solana_chain_events.models.records import Cursor
from solana_chain_events.solana.scanner import SignatureScanner

from tests.factories import (
    PROGRAM_ID,
    make_claim_transaction,
    make_signature,
    make_signature_info,
)
from tests.mocks import MockRpc


def seed(rpc: MockRpc, *numbers: int, reverted: tuple[int, ...] = ()) -> None:
    """Append signatures oldest to newest, each with a one-claim transaction."""
    for n in numbers:
        err = {"InstructionError": [0, {"Custom": 1}]} if n in reverted else None
        rpc.add(make_signature_info(n, err=err), make_claim_transaction(n))


def make_poller(rpc, fetcher, dispatcher, store, **kwargs) -> PollingLoop:
    return PollingLoop(
        SignatureScanner(rpc), fetcher, dispatcher, store, PROGRAM_ID, **kwargs,
    )


def delivered_signatures(received) -> list[str]:
    return [e.meta.tx_id for e in received.events]


# ── Test 51: No cursor scans from the present ─────────────────────


async def test_first_tick_without_cursor_takes_latest_only(
    mock_rpc, fetcher, dispatcher, file_store, received,
):
    seed(mock_rpc, 1, 2, 3)
    dispatcher.register_listener(received)
    poller = make_poller(mock_rpc, fetcher, dispatcher, file_store)

    cursor = await poller.tick()

    assert mock_rpc.signature_calls == [
        {"address": PROGRAM_ID, "before": None, "until": None, "limit": 1},
    ]
    assert delivered_signatures(received) == [make_signature(3)]
    assert cursor == Cursor(make_signature(3), 1003)
    assert file_store.path.read_text() == f"{make_signature(3)};1003"


# ── Test 52: Cursor bounds the page; oldest processed first ───────


async def test_tick_processes_new_signatures_oldest_first(
    mock_rpc, fetcher, dispatcher, file_store, received,
):
    seed(mock_rpc, 1, 2, 3, 4, 5)
    await file_store.save(Cursor(make_signature(2), 1002))
    dispatcher.register_listener(received)
    poller = make_poller(mock_rpc, fetcher, dispatcher, file_store, log_fetch_limit=50)

    cursor = await poller.tick()

    call = mock_rpc.signature_calls[0]
    assert call["until"] == make_signature(2)
    assert call["limit"] == 50
    assert delivered_signatures(received) == [make_signature(n) for n in (3, 4, 5)]
    assert cursor == Cursor(make_signature(5), 1005)
    assert await file_store.load() == cursor


async def test_bare_signature_cursor_file_is_honoured(
    mock_rpc, fetcher, dispatcher, file_store, received,
):
    seed(mock_rpc, 1, 2, 3)
    file_store.path.write_text(make_signature(2))
    dispatcher.register_listener(received)

    await make_poller(mock_rpc, fetcher, dispatcher, file_store).tick()

    assert delivered_signatures(received) == [make_signature(3)]
    assert file_store.path.read_text() == f"{make_signature(3)};1003"


# ── Test 53: Reverted transactions are skipped ────────────────────


async def test_reverted_signatures_are_not_fetched(mock_rpc, fetcher, dispatcher, mock_store, received):
    seed(mock_rpc, 1, 2, 3, 4, reverted=(3,))
    mock_store.cursor = Cursor(make_signature(1), 1001)
    dispatcher.register_listener(received)

    cursor = await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick()

    assert make_signature(3) not in mock_rpc.transaction_calls
    assert delivered_signatures(received) == [make_signature(2), make_signature(4)]
    assert cursor.signature == make_signature(4)


# ── Test 54: Partial failure keeps the progress so far ────────────


async def test_failure_mid_page_saves_last_success(mock_rpc, fetcher, dispatcher, mock_store, received):
    seed(mock_rpc, 1, 2, 3, 4)
    mock_store.cursor = Cursor(make_signature(1), 1001)
    mock_rpc.tx_errors[make_signature(3)] = RpcError("getTransaction: HTTP 400", 400)
    dispatcher.register_listener(received)

    cursor = await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick()

    assert cursor == Cursor(make_signature(2), 1002)
    assert mock_store.saved == [cursor]
    assert delivered_signatures(received) == [make_signature(2)]
    # Signature 4 is picked up by a later tick
    assert make_signature(4) not in mock_rpc.transaction_calls


async def test_failure_on_first_signature_raises(mock_rpc, fetcher, dispatcher, mock_store):
    seed(mock_rpc, 1, 2, 3)
    mock_store.cursor = Cursor(make_signature(1), 1001)
    mock_rpc.tx_errors[make_signature(2)] = RpcError("getTransaction: HTTP 400", 400)

    with pytest.raises(RpcError):
        await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick()
    assert mock_store.saved == []


async def test_not_yet_visible_transaction_is_retried(mock_rpc, fetcher, dispatcher, mock_store, received):
    seed(mock_rpc, 1, 2)
    mock_store.cursor = Cursor(make_signature(1), 1001)
    mock_rpc.not_found[make_signature(2)] = 2
    dispatcher.register_listener(received)

    await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick()

    assert mock_rpc.transaction_calls == [make_signature(2)] * 3
    assert delivered_signatures(received) == [make_signature(2)]


# ── Test 55: A cursor is never rewound ────────────────────────────


async def test_page_older_than_cursor_is_ignored(mock_rpc, fetcher, dispatcher, mock_store):
    seed(mock_rpc, 1, 2)
    mock_store.cursor = Cursor("signature-from-another-fork", 5000)

    assert await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick() is None
    assert mock_store.saved == []
    assert mock_rpc.transaction_calls == []
    assert len(mock_rpc.signature_calls) == 1


# ── Test 56: Nothing new ──────────────────────────────────────────


async def test_no_new_signatures(mock_rpc, fetcher, dispatcher, mock_store):
    seed(mock_rpc, 1, 2)
    mock_store.cursor = Cursor(make_signature(2), 1002)

    assert await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick() is None
    assert mock_store.saved == []


async def test_cursor_file_unchanged_when_nothing_is_new(mock_rpc, fetcher, dispatcher, file_store):
    seed(mock_rpc, 1, 2)
    file_store.path.write_text(f"{make_signature(2)};1002")

    assert await make_poller(mock_rpc, fetcher, dispatcher, file_store).tick() is None
    assert file_store.path.read_bytes() == f"{make_signature(2)};1002".encode()


async def test_cursor_file_overwritten_when_something_is_new(
    mock_rpc, fetcher, dispatcher, file_store,
):
    seed(mock_rpc, 1, 2, 3)
    file_store.path.write_text(f"{make_signature(2)};1002")

    await make_poller(mock_rpc, fetcher, dispatcher, file_store).tick()

    assert file_store.path.read_text() == f"{make_signature(3)};1003"


async def test_empty_history_without_cursor(mock_rpc, fetcher, dispatcher, mock_store):
    assert await make_poller(mock_rpc, fetcher, dispatcher, mock_store).tick() is None
    assert mock_store.saved == []


# ── Test 57: Consecutive ticks only deliver new transactions ──────


async def test_consecutive_ticks_follow_the_cursor(mock_rpc, fetcher, dispatcher, mock_store, received):
    seed(mock_rpc, 1)
    dispatcher.register_listener(received)
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store)

    await poller.tick()
    seed(mock_rpc, 2, 3)
    await poller.tick()
    await poller.tick()

    assert delivered_signatures(received) == [make_signature(n) for n in (1, 2, 3)]
    assert mock_store.cursor == Cursor(make_signature(3), 1003)


async def test_backlog_longer_than_a_page_is_drained_in_order(
    mock_rpc, fetcher, dispatcher, mock_store, received,
):
    seed(mock_rpc, *range(1, 11))
    mock_store.cursor = Cursor(make_signature(2), 1002)
    dispatcher.register_listener(received)
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store, log_fetch_limit=3)

    for _ in range(5):
        await poller.tick()

    assert delivered_signatures(received) == [make_signature(n) for n in range(3, 11)]
    assert mock_store.saved == [
        Cursor(make_signature(4), 1004),
        Cursor(make_signature(7), 1007),
        Cursor(make_signature(10), 1010),
    ]


async def test_backlog_tick_pages_back_to_the_cursor(mock_rpc, fetcher, dispatcher, mock_store):
    seed(mock_rpc, *range(1, 11))
    mock_store.cursor = Cursor(make_signature(2), 1002)
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store, log_fetch_limit=3)

    await poller.tick()

    assert mock_rpc.signature_calls == [
        {"address": PROGRAM_ID, "before": None, "until": make_signature(2), "limit": 3},
        {"address": PROGRAM_ID, "before": make_signature(8), "until": make_signature(2), "limit": 3},
        {"address": PROGRAM_ID, "before": make_signature(5), "until": make_signature(2), "limit": 3},
    ]
    # Only the page right after the cursor is fetched this tick
    assert mock_rpc.transaction_calls == [make_signature(3), make_signature(4)]


# ── Test 58: start() runs a tick inline, then keeps polling ───────


async def test_start_ticks_immediately_and_periodically(mock_rpc, fetcher, dispatcher, mock_store):
    seed(mock_rpc, 1)
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store, poll_interval=0.02)

    await poller.start()
    assert poller.running
    assert mock_store.cursor == Cursor(make_signature(1), 1001)

    await asyncio.sleep(0.15)
    await poller.stop()
    calls = len(mock_rpc.signature_calls)
    assert calls >= 3

    await asyncio.sleep(0.05)
    assert len(mock_rpc.signature_calls) == calls
    assert not poller.running


# ── Test 59: Failed ticks do not stop the loop ────────────────────


async def test_tick_failure_is_logged_and_loop_continues(
    mock_rpc, fetcher, dispatcher, mock_store, caplog,
):
    seed(mock_rpc, 1)
    mock_rpc.page_errors.append(TransientRpcError("getSignaturesForAddress: timed out"))
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store, poll_interval=0.02)

    await poller.start()
    assert mock_store.cursor is None
    assert "Failed to fetch Solana log" in caplog.text

    for _ in range(100):
        if mock_store.cursor is not None:
            break
        await asyncio.sleep(0.01)
    await poller.stop()

    assert mock_store.cursor == Cursor(make_signature(1), 1001)


# ── Test 60: stop() is idempotent ─────────────────────────────────


async def test_stop_is_idempotent(mock_rpc, fetcher, dispatcher, mock_store):
    poller = make_poller(mock_rpc, fetcher, dispatcher, mock_store, poll_interval=10)
    await poller.stop()

    await poller.start()
    await asyncio.wait_for(poller.stop(), timeout=1)
    await poller.stop()
    assert not poller.running


async def test_stop_aborts_an_in_flight_tick(fetcher, dispatcher, mock_store, caplog):
    class StoppingRpc(MockRpc):
        poller = None

        async def get_signatures_for_address(self, address, before=None, until=None, limit=1000):
            page = await super().get_signatures_for_address(address, before, until, limit)
            await self.poller.stop()
            return page

    rpc = StoppingRpc()
    seed(rpc, *range(1, 11))
    mock_store.cursor = Cursor(make_signature(2), 1002)
    poller = make_poller(rpc, fetcher, dispatcher, mock_store, log_fetch_limit=3)
    rpc.poller = poller

    with caplog.at_level("DEBUG", logger="solana_chain_events.events.poller"):
        await poller.start()

    assert not poller.running
    assert len(rpc.signature_calls) == 1
    assert rpc.transaction_calls == []
    assert mock_store.saved == []
    assert "Poll tick aborted" in caplog.text
