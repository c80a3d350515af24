"""Solana transport and Anchor IDL decoding."""

from solana_chain_events.solana.scanner import LOG_FETCH_LIMIT, SignatureScanner
from solana_chain_events.solana.idl import IdlProgramDecoder, load_idl
from solana_chain_events.solana.rpc import SolanaRpcClient
from solana_chain_events.solana.search import ProgramEventSearch
from solana_chain_events.solana.ws import SolanaLogSubscriber

__all__ = [
    "LOG_FETCH_LIMIT", "SignatureScanner", "IdlProgramDecoder", "load_idl",
    "SolanaRpcClient", "ProgramEventSearch", "SolanaLogSubscriber",
]
