"""Shared fixtures for solana_chain_events tests."""

from __future__ import annotations

import copy
import json

import pytest
from pytest_metadata.plugin import metadata_key

from solana_chain_events.events.dispatcher import EventDispatcher
from solana_chain_events.events.transactions import TransactionFetcher
from solana_chain_events.models.config import DaemonConfig, RetryPolicy
from solana_chain_events.solana.idl import IdlProgramDecoder
from solana_chain_events.storage.cursor_file import FileCursorStore

from tests.factories import PROGRAM_ID, TEST_IDL
from tests.mocks import MockCursorStore, MockRpc, MockSubscriber

FAST_RETRY = RetryPolicy(max_retries=3, delay=0, exponential=False)


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add program info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Solana (mocked RPC)"
    meta["Swap Program"] = PROGRAM_ID


def make_test_config(**overrides) -> DaemonConfig:
    """Build a DaemonConfig suitable for testing."""
    defaults = dict(
        poll_interval=0.05,
        rpc_url="http://127.0.0.1:8899",
        ws_url="ws://127.0.0.1:8900",
        program_id=PROGRAM_ID,
        directory="/tmp/solana-chain-events-test",
        db_path=":memory:",
        retry=FAST_RETRY,
    )
    defaults.update(overrides)
    return DaemonConfig(**defaults)


@pytest.fixture
def test_config(tmp_path):
    """Default DaemonConfig for tests, storing its cursor under tmp_path."""
    return make_test_config(directory=str(tmp_path / "state"))


@pytest.fixture
def test_idl():
    return copy.deepcopy(TEST_IDL)


@pytest.fixture
def idl_file(tmp_path, test_idl):
    path = tmp_path / "swap_program.json"
    path.write_text(json.dumps(test_idl))
    return path


@pytest.fixture
def decoder(test_idl):
    return IdlProgramDecoder(test_idl)


@pytest.fixture
def mock_rpc():
    return MockRpc()


@pytest.fixture
def mock_subscriber():
    return MockSubscriber()


@pytest.fixture
def mock_store():
    return MockCursorStore()


@pytest.fixture
async def file_store(tmp_path):
    """Initialized FileCursorStore in a fresh directory."""
    s = FileCursorStore(tmp_path / "cursor")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def fetcher(mock_rpc, decoder):
    return TransactionFetcher(mock_rpc, decoder, FAST_RETRY)


@pytest.fixture
def dispatcher(fetcher):
    return EventDispatcher(fetcher)


@pytest.fixture
def received():
    """Listener that records every delivered batch."""

    class _Recorder(list):
        def __call__(self, events):
            self.append(events)

        @property
        def events(self):
            return [e for batch in self for e in batch]

    return _Recorder()
