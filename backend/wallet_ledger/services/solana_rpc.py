from __future__ import annotations
import logging
from functools import lru_cache
from typing import Any, Optional

import httpx

from wallet_ledger.config import get_settings

logger = logging.getLogger(__name__)


class SolanaRpcError(Exception):
    """The ledger RPC call itself failed (network, HTTP status, or JSON-RPC error)."""


class SolanaRpcClient:
    """Read-only JSON-RPC 2.0 client for a Solana cluster endpoint."""

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.timeout = timeout
        self._transport = transport

    async def _rpc(self, method: str, params: list) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.rpc_url,
                    json={
                        "jsonrpc": "2.0",
                        "id": 1,
                        "method": method,
                        "params": params,
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise SolanaRpcError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise SolanaRpcError(f"{method} returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise SolanaRpcError(f"{method} returned an unexpected payload")
        if data.get("error") is not None:
            raise SolanaRpcError(f"Solana RPC error: {data['error']}")
        return data.get("result")

    async def get_transaction(self, signature: str) -> Optional[dict]:
        """Fetch a transaction by signature. None when the cluster has no record of it."""
        result = await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        return result or None


@lru_cache()
def get_rpc_client() -> SolanaRpcClient:
    settings = get_settings()
    return SolanaRpcClient(
        rpc_url=settings.solana_rpc_url,
        commitment=settings.solana_commitment,
        timeout=settings.rpc_timeout_seconds,
    )
