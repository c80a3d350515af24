"""Swap escrow data recovered from an initialize instruction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from solana_chain_events.models.events import DecodedInstruction

DEFAULT_PUBKEY = "11111111111111111111111111111111"

INIT_INSTRUCTIONS = ("offererInitializePayIn", "offererInitialize")


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, list):
        return bytes(value).hex()
    return str(value)


@dataclass(frozen=True)
class SwapData:
    """Escrow parameters as submitted on-chain."""

    offerer: str
    claimer: str
    token: str
    amount: int
    payment_hash: str  # hex
    sequence: int
    expiry: int
    nonce: int
    confirmations: int
    pay_out: bool
    kind: int | None
    pay_in: bool
    offerer_ata: str
    claimer_ata: str
    security_deposit: int
    claimer_bounty: int
    txo_hash: str

    @classmethod
    def from_instruction(cls, ix: DecodedInstruction, txo_hash: str) -> SwapData:
        """Build swap data from an offererInitializePayIn / offererInitialize instruction."""
        from solana_chain_events.models.events import SwapType

        swap = ix.data["swapData"]
        pay_in = ix.name == "offererInitializePayIn"
        security_deposit = 0 if pay_in else int(ix.data.get("securityDeposit", 0))
        claimer_bounty = 0 if pay_in else int(ix.data.get("claimerBounty", 0))
        kind = SwapType.from_idl(swap.get("kind"))

        return cls(
            offerer=ix.accounts["offerer"],
            claimer=ix.accounts["claimer"],
            token=ix.accounts["mint"],
            amount=int(swap["amount"]),
            payment_hash=_hex(swap["hash"]),
            sequence=int(swap["sequence"]),
            expiry=int(swap["expiry"]),
            nonce=int(swap["nonce"]),
            confirmations=int(swap["confirmations"]),
            pay_out=bool(swap["payOut"]),
            kind=int(kind) if kind is not None else None,
            pay_in=pay_in,
            offerer_ata=ix.accounts.get("offererAta", DEFAULT_PUBKEY) if pay_in else DEFAULT_PUBKEY,
            claimer_ata=ix.accounts.get("claimerAta", DEFAULT_PUBKEY) if swap["payOut"] else DEFAULT_PUBKEY,
            security_deposit=security_deposit,
            claimer_bounty=claimer_bounty,
            txo_hash=txo_hash,
        )
