from __future__ import annotations

import itertools
from typing import Any

import requests
from loguru import logger

from burn_watch.errors import MalformedTransaction, TransactionNotFound, TransientRpcError

# Solana JSON-RPC error codes meaning the data is gone for good
SLOT_SKIPPED = -32007
LONG_TERM_STORAGE_SLOT_SKIPPED = -32009
PERMANENT_ERROR_CODES = frozenset({SLOT_SKIPPED, LONG_TERM_STORAGE_SLOT_SKIPPED})
# The request itself can never succeed for this signature
UNSUPPORTED_TRANSACTION_VERSION = -32015
INVALID_PARAMS = -32602
MALFORMED_ERROR_CODES = frozenset({UNSUPPORTED_TRANSACTION_VERSION, INVALID_PARAMS})


class SolanaRpc:
    """
    Minimal JSON-RPC 2.0 transport for a Solana HTTP endpoint.
    Every transport-level problem surfaces as TransientRpcError.
    """

    def __init__(self, url: str, timeout: float = 15.0, session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientRpcError(f"{method}: {e}") from e
        if r.status_code == 429 or r.status_code >= 500:
            raise TransientRpcError(f"{method}: HTTP {r.status_code}")
        if not r.ok:
            raise TransientRpcError(f"{method}: HTTP {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError as e:
            raise TransientRpcError(f"{method}: non-JSON response") from e
        if not isinstance(body, dict):
            raise TransientRpcError(f"{method}: unexpected response shape")
        err = body.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message", err) if isinstance(err, dict) else err
            if code in MALFORMED_ERROR_CODES:
                raise MalformedTransaction(f"{method}: {message} (code={code})")
            if code in PERMANENT_ERROR_CODES:
                raise TransactionNotFound(f"{method}: {message} (code={code})")
            raise TransientRpcError(f"{method}: {message} (code={code})")
        logger.trace("rpc {} ok", method)
        return body.get("result")

    def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = 1000,
        before: str | None = None,
        until: str | None = None,
        commitment: str = "confirmed",
    ) -> list[dict[str, Any]]:
        opts: dict[str, Any] = {"limit": limit, "commitment": commitment}
        if before is not None:
            opts["before"] = before
        if until is not None:
            opts["until"] = until
        result = self.call("getSignaturesForAddress", [address, opts])
        if not isinstance(result, list):
            raise TransientRpcError(f"getSignaturesForAddress: expected list, got {type(result).__name__}")
        return result

    def get_transaction(self, signature: str, *, commitment: str = "confirmed") -> dict[str, Any] | None:
        result = self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": commitment,
                },
            ],
        )
        return result
