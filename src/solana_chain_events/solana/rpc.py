"""Solana JSON-RPC client over httpx with transient-failure retries."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from solana_chain_events.errors import RpcError, TransientRpcError
from solana_chain_events.models.config import RetryPolicy
from solana_chain_events.models.records import SignatureInfo
from solana_chain_events.retry import try_with_retries

log = logging.getLogger(__name__)


def _is_terminal(exc: BaseException) -> bool:
    return not isinstance(exc, TransientRpcError)


class SolanaRpcClient:
    """Implements the LedgerRpc protocol against a Solana RPC node.

    Every request goes through try_with_retries(); only timeouts, transport
    failures, HTTP 5xx and HTTP 429 are retried. JSON-RPC error objects and
    other HTTP statuses surface immediately as RpcError.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        request_timeout: float = 15.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._retry_policy = retry_policy
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout, connect=10),
            transport=transport,
        )

    @property
    def commitment(self) -> str:
        return self._commitment

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        return await try_with_retries(
            lambda: self._post(method, params),
            self._retry_policy,
            is_terminal=_is_terminal,
        )

    async def _post(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self._client.post(self._rpc_url, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientRpcError(f"{method}: network request timed out") from exc
        except httpx.TransportError as exc:
            raise TransientRpcError(f"{method}: {exc}") from exc

        if resp.status_code >= 500:
            raise TransientRpcError(
                f"{method}: internal server error {resp.status_code}", resp.status_code,
            )
        if resp.status_code == 429:
            raise TransientRpcError(f"{method}: too many requests (429)", 429)
        if resp.status_code != 200:
            raise RpcError(f"{method}: HTTP {resp.status_code}", resp.status_code)

        body = resp.json()
        if body.get("error") is not None:
            err = body["error"]
            raise RpcError(f"{method}: {err.get('message', err)}", err.get("code"))
        return body.get("result")

    async def get_signatures_for_address(
        self,
        address: str,
        before: str | None = None,
        until: str | None = None,
        limit: int = 1000,
    ) -> list[SignatureInfo]:
        opts: dict[str, Any] = {"limit": limit, "commitment": self._commitment}
        if before is not None:
            opts["before"] = before
        if until is not None:
            opts["until"] = until
        result = await self.request("getSignaturesForAddress", [address, opts])
        return [SignatureInfo.from_rpc(raw) for raw in result or []]

    async def get_transaction(
        self, signature: str, max_supported_version: int = 0,
    ) -> dict | None:
        result = await self.request(
            "getTransaction",
            [
                signature,
                {
                    "commitment": self._commitment,
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": max_supported_version,
                },
            ],
        )
        if result is None:
            log.debug("Transaction %s not found", signature)
        return result
