"""On-chain verification of directly submitted purchases (Solana JSON-RPC getTransaction)."""

import asyncio
from enum import Enum
from typing import Any

import httpx

from app.core.logging import get_logger

log = get_logger(__name__)


class Verdict(str, Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    INDETERMINATE = "indeterminate"  # node unreachable, timed out, or answered garbage


class ChainRpcError(Exception):
    """The RPC node answered with a JSON-RPC error object."""


def _key(entry: Any) -> str:
    # "json" encoding gives plain strings; "jsonParsed" gives {"pubkey": ..., "signer": ...}
    if isinstance(entry, dict):
        return entry["pubkey"]
    if not isinstance(entry, str):
        raise TypeError(f"unexpected account key {entry!r}")
    return entry


def account_keys(tx: dict) -> list[str]:
    """Static account keys of a getTransaction result, in message order."""
    return [_key(k) for k in tx["transaction"]["message"]["accountKeys"]]


def touched_accounts(tx: dict) -> set[str]:
    """Static keys plus addresses loaded from lookup tables (v0 transactions)."""
    keys = set(account_keys(tx))
    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    for group in ("writable", "readonly"):
        keys.update(_key(k) for k in loaded.get(group) or [])
    return keys


class ChainVerifier:
    """Checks a claimed purchase against the transaction the node returns.

    Lifecycle is explicit: start() opens the HTTP client, aclose() closes it.
    An already-configured httpx.AsyncClient may be passed in instead.
    """

    def __init__(
        self,
        rpc_url: str,
        presale_wallet: str,
        commitment: str = "confirmed",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url
        self.presale_wallet = presale_wallet
        self.commitment = commitment
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_client = True

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def get_transaction(self, signature: str) -> dict | None:
        """Fetch a transaction; None when the node does not know it.

        Raises httpx.HTTPError, ValueError (bad JSON) or ChainRpcError.
        """
        if self._client is None:
            raise RuntimeError("ChainVerifier.start() was not called")
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                signature,
                {
                    "commitment": self.commitment,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        }
        resp = await self._client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("RPC response is not an object")
        if data.get("error"):
            raise ChainRpcError(str(data["error"]))
        if "result" not in data:
            raise ValueError("RPC response has no result")
        return data["result"]

    async def verify(self, transaction_id: str, claimed_wallet: str, claimed_amount: float | None) -> Verdict:
        if not transaction_id or not claimed_wallet:
            return Verdict.REJECTED
        if claimed_amount is None or claimed_amount <= 0:
            log.info("chain_verify_rejected", transaction_id=transaction_id, reason="non_positive_amount")
            return Verdict.REJECTED

        try:
            tx = await asyncio.wait_for(self.get_transaction(transaction_id), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            log.warning("chain_verify_timeout", transaction_id=transaction_id)
            return Verdict.INDETERMINATE
        except (httpx.HTTPError, ValueError, ChainRpcError) as e:
            log.warning("chain_verify_unavailable", transaction_id=transaction_id, error=str(e))
            return Verdict.INDETERMINATE

        if tx is None:
            log.info("chain_verify_rejected", transaction_id=transaction_id, reason="not_found")
            return Verdict.REJECTED

        try:
            keys = account_keys(tx)
            touched = touched_accounts(tx)
            failed = (tx.get("meta") or {}).get("err") is not None
        except (KeyError, TypeError, AttributeError) as e:
            log.warning("chain_verify_malformed", transaction_id=transaction_id, error=str(e))
            return Verdict.INDETERMINATE

        if failed:
            reason = "failed_on_chain"
        elif not keys or keys[0] != claimed_wallet:
            reason = "signer_mismatch"
        elif self.presale_wallet not in touched:
            reason = "presale_wallet_absent"
        else:
            log.info("chain_verify_confirmed", transaction_id=transaction_id, wallet=claimed_wallet)
            return Verdict.CONFIRMED
        log.info("chain_verify_rejected", transaction_id=transaction_id, reason=reason)
        return Verdict.REJECTED
