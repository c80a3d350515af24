"""Signature index and cursor records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Cursor:
    """Durable resume point into a topic's signature index.

    ``signature`` is authoritative; ``slot`` is advisory and used for logging
    and for the never-rewind sanity check.
    """

    signature: str
    slot: int = 0

    def serialize(self) -> str:
        return f"{self.signature};{self.slot}"

    @classmethod
    def parse(cls, text: str) -> Cursor | None:
        """Parse ``"<signature>;<slot>"``. A bare signature loads with slot 0."""
        text = text.strip()
        if not text:
            return None
        signature, sep, slot = text.partition(";")
        if not sep:
            return cls(signature=signature, slot=0)
        try:
            return cls(signature=signature, slot=int(slot))
        except ValueError:
            return cls(signature=signature, slot=0)


@dataclass(frozen=True)
class SignatureInfo:
    """One entry of getSignaturesForAddress."""

    signature: str
    slot: int
    err: Any = None  # non-None when the transaction reverted
    block_time: int | None = None

    @classmethod
    def from_rpc(cls, raw: dict) -> SignatureInfo:
        return cls(
            signature=raw["signature"],
            slot=int(raw.get("slot") or 0),
            err=raw.get("err"),
            block_time=raw.get("blockTime"),
        )

    def to_cursor(self) -> Cursor:
        return Cursor(signature=self.signature, slot=self.slot)
