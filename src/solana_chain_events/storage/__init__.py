"""Cursor persistence backends."""

from solana_chain_events.storage.cursor_file import CURSOR_FILENAME, FileCursorStore
from solana_chain_events.storage.sqlite import SQLiteCursorStore

__all__ = ["CURSOR_FILENAME", "FileCursorStore", "SQLiteCursorStore"]
