"""Read-only JSON-RPC client for transaction lookups."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from agentgate.core.exceptions import ChainRPCError
from agentgate.models.payment import ChainTransaction

logger = logging.getLogger(__name__)


def _hex_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16)


class JsonRpcChainClient:
    """IChainClient over an EVM JSON-RPC endpoint (``eth_getTransactionByHash``)."""

    def __init__(self, rpc_url: str, timeout: float = 10.0,
                 client: httpx.AsyncClient | None = None) -> None:
        self._rpc_url = rpc_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = await self._client.post(self._rpc_url, json=payload)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ChainRPCError(f"RPC {method} failed: {exc}") from exc
        if not isinstance(data, dict):
            raise ChainRPCError(f"RPC {method} returned a non-object response")
        if data.get("error"):
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise ChainRPCError(f"RPC {method} error: {message}")
        return data.get("result")

    async def get_transaction(self, tx_hash: str) -> ChainTransaction | None:
        raw = await self._call("eth_getTransactionByHash", [tx_hash])
        if raw is None:
            return None
        try:
            return ChainTransaction(
                hash=raw.get("hash", tx_hash),
                to=raw.get("to"),
                value=_hex_int(raw.get("value")) or 0,
                chain_id=_hex_int(raw.get("chainId")),
                block_number=_hex_int(raw.get("blockNumber")),
            )
        except (AttributeError, ValueError) as exc:
            raise ChainRPCError(f"Malformed transaction for {tx_hash}: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()
