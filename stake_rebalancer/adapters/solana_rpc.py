"""Minimal synchronous Solana JSON-RPC client.

Only the calls a rebalance cycle needs: the current epoch and plain account
balances. Account data decoding is out of scope.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from stake_rebalancer.core.domain.errors import RebalanceError

LOGGER = logging.getLogger(__name__)


class RpcError(RebalanceError):
    """Transport or JSON-RPC level failure."""


class SolanaRpcClient:
    """JSON-RPC over HTTP using httpx.

    A custom ``transport`` can be passed for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 30.0,
        commitment: str = "confirmed",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._client = httpx.Client(
            base_url=rpc_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._next_id = 1

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SolanaRpcClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _rpc_call(self, method: str, params: list[Any] | None = None) -> Any:
        """Send a JSON-RPC request to the cluster and return ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params or [],
        }
        self._next_id += 1

        try:
            resp = self._client.post("", json=payload)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RpcError(f"Solana RPC request failed ({method}): {exc}") from exc

        if not isinstance(body, dict):
            raise RpcError(f"Solana RPC response ({method}) is not a JSON object: {body!r}")
        if "error" in body:
            raise RpcError(f"Solana RPC error ({method}): {body['error']}")
        return body.get("result")

    def get_epoch_info(self) -> dict[str, Any]:
        result = self._rpc_call("getEpochInfo", [{"commitment": self._commitment}])
        if not isinstance(result, dict) or "epoch" not in result:
            raise RpcError(f"unexpected getEpochInfo result: {result!r}")
        return result

    def current_epoch(self) -> int:
        return int(self.get_epoch_info()["epoch"])

    def get_balance(self, address: str) -> int:
        """Return the account balance in lamports."""
        result = self._rpc_call("getBalance", [address, {"commitment": self._commitment}])
        if not isinstance(result, dict):
            raise RpcError(f"unexpected getBalance result for {address}: {result!r}")
        return int(result.get("value", 0))
