"""File-backed cursor store: one ``<signature>;<slot>`` line per directory."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from solana_chain_events.models.records import Cursor

log = logging.getLogger(__name__)

CURSOR_FILENAME = "blockheight.txt"


class FileCursorStore:
    """Implements CursorStore on top of a small text file.

    Writes go to a temp file in the same directory and are moved into place,
    so a crash mid-write leaves the previous cursor intact.
    """

    def __init__(self, directory: str | os.PathLike, filename: str = CURSOR_FILENAME) -> None:
        self._directory = Path(directory).expanduser()
        self._path = self._directory / filename

    @property
    def path(self) -> Path:
        return self._path

    async def initialize(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    async def close(self) -> None:
        pass

    async def load(self) -> Cursor | None:
        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        return Cursor.parse(text)

    async def save(self, cursor: Cursor) -> None:
        await asyncio.to_thread(self._write, cursor.serialize())

    async def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        log.info("Removed cursor file %s", self._path)

    def _write(self, text: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._directory, prefix=".blockheight.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self._path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
