"""ProgramDecoder protocol - turns raw logs and instructions into typed values."""

from __future__ import annotations

from typing import Protocol

from solana_chain_events.models.events import InstructionList, ProgramEvent


class ProgramDecoder(Protocol):
    """Schema-aware decoder for one on-chain program."""

    program_id: str

    def decode_logs(self, lines: list[str]) -> list[ProgramEvent]:
        """Events emitted by the program, in log order."""
        ...

    def decode_instructions(self, message: dict) -> InstructionList:
        """One entry per message instruction; None for other programs."""
        ...
