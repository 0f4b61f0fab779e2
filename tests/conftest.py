from __future__ import annotations

from typing import Any

import base58
import pytest

USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
OTHER_MINT = "So11111111111111111111111111111111111111112"
SOURCE = "9xQeWvG816bUx9EPm2Tbd2Ykqg3k9uADuZbL9g1z3Q2E"
OWNER = "GxhQ5LTFc4dTxAXt7aQ4uSKvr8ev9T2QXE9zWKA3pjFP"
COMPUTE_BUDGET = "ComputeBudget111111111111111111111111111111"

# Static account keys used by every fake transaction
KEYS = [OWNER, SOURCE, USDC, TOKEN_PROGRAM, COMPUTE_BUDGET, OTHER_MINT]


def burn_data(amount: int, decimals: int | None = None) -> bytes:
    if decimals is None:
        return bytes([8]) + amount.to_bytes(8, "little")
    return bytes([15]) + amount.to_bytes(8, "little") + bytes([decimals])


def ix(program_index: int, accounts: list[int], data: bytes) -> dict[str, Any]:
    return {
        "programIdIndex": program_index,
        "accounts": accounts,
        "data": base58.b58encode(data).decode(),
    }


def burn_ix(amount: int, decimals: int | None = None, mint_index: int = 2) -> dict[str, Any]:
    return ix(3, [1, mint_index, 0], burn_data(amount, decimals))


def tx_json(
    instructions: list[dict[str, Any]],
    inner: list[dict[str, Any]] | None = None,
    err: Any = None,
    slot: int = 100,
    keys: list[str] | None = None,
    loaded: dict[str, list[str]] | None = None,
) -> dict[str, Any]:
    return {
        "slot": slot,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": err,
            "innerInstructions": inner or [],
            "loadedAddresses": loaded or {"writable": [], "readonly": []},
        },
        "transaction": {
            "signatures": ["x"],
            "message": {"accountKeys": keys or list(KEYS), "instructions": instructions},
        },
    }


class FakeClient:
    """
    Stand-in for SolanaRpc. `signatures` is newest first, like the RPC.
    `txs` maps signature -> getTransaction result or an exception to raise.
    """

    def __init__(self, signatures=None, txs=None, scan_errors=None):
        self.signatures: list[dict[str, Any]] = list(signatures or [])
        self.txs: dict[str, Any] = dict(txs or {})
        self.scan_errors: list[BaseException] = list(scan_errors or [])
        self.scan_calls: list[dict[str, Any]] = []
        self.fetch_calls: list[str] = []

    def get_signatures_for_address(
        self, address, *, limit=1000, before=None, until=None, commitment="confirmed"
    ):
        self.scan_calls.append({"address": address, "limit": limit, "before": before, "until": until})
        if self.scan_errors:
            raise self.scan_errors.pop(0)
        items = self.signatures
        if before is not None:
            idx = [s["signature"] for s in items].index(before)
            items = items[idx + 1 :]
        if until is not None:
            sigs = [s["signature"] for s in items]
            if until in sigs:
                items = items[: sigs.index(until)]
        return items[:limit]

    def get_transaction(self, signature, *, commitment="confirmed"):
        self.fetch_calls.append(signature)
        res = self.txs.get(signature)
        if isinstance(res, list) and res and isinstance(res[0], BaseException):
            exc = res.pop(0)
            if not res:
                self.txs.pop(signature)
            raise exc
        if isinstance(res, BaseException):
            raise res
        return res


def sig_items(*names: str, slot_start: int = 100) -> list[dict[str, Any]]:
    """Signature items newest first; the first name gets the highest slot."""
    n = len(names)
    return [{"signature": s, "slot": slot_start + n - i, "err": None} for i, s in enumerate(names)]


class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)


@pytest.fixture
def make_watcher():
    from burn_watch.backoff import Backoff
    from burn_watch.chains.solana import SignatureScanner, TransactionFetcher
    from burn_watch.chains.solana_watcher import BurnWatcher
    from burn_watch.config import AppSettings

    def _make(client, *, sinks=None, waits=None, settings=None, checkpoints=None, **scanner_kw):
        settings = settings or AppSettings(check_endpoint=False, dedup_capacity=100)
        recorded = waits if waits is not None else []

        def fake_wait(seconds):
            recorded.append(seconds)
            return False

        return BurnWatcher(
            settings=settings,
            scanner=SignatureScanner(client=client, **scanner_kw),
            fetcher=TransactionFetcher(client=client),
            sinks=sinks if sinks is not None else [],
            backoff=Backoff(initial_sec=1.0, multiplier=2.0, max_sec=3.0),
            checkpoints=checkpoints,
            wait=fake_wait,
        )

    return _make
