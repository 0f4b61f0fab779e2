from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import base58
from loguru import logger

from burn_watch.errors import MalformedTransaction, TransactionNotFound
from burn_watch.models import Cursor, Instruction, SignatureInfo, Transaction


class RpcClient(Protocol):
    def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = ...,
        before: str | None = ...,
        until: str | None = ...,
        commitment: str = ...,
    ) -> list[dict[str, Any]]: ...

    def get_transaction(self, signature: str, *, commitment: str = ...) -> dict[str, Any] | None: ...


@dataclass
class ScanResult:
    signatures: list[SignatureInfo]
    truncated: bool = False


@dataclass
class SignatureScanner:
    """
    Lists signatures referencing an address that are newer than the cursor,
    oldest first. getSignaturesForAddress returns newest first, so pages are
    walked backwards with `before` until one comes back short or max_pages
    is used up.
    """

    client: RpcClient
    page_limit: int = 1000
    max_pages: int = 10
    initial_lookback: int = 20
    commitment: str = "confirmed"

    def scan(self, mint_address: str, cursor: Cursor | None) -> list[SignatureInfo]:
        return self.scan_range(mint_address, cursor).signatures

    def scan_range(
        self, mint_address: str, cursor: Cursor | None, before: str | None = None
    ) -> ScanResult:
        """
        Signatures between `cursor` (exclusive) and `before` (exclusive, newest
        end when None). `truncated` means max_pages ran out before the cursor
        was reached; the older remainder starts just before signatures[0].
        """
        if cursor is None:
            # No position yet: only look at the most recent window
            items = self.client.get_signatures_for_address(
                mint_address, limit=self.initial_lookback, commitment=self.commitment
            )
            return ScanResult(signatures=self._to_infos(items)[::-1])

        collected: list[SignatureInfo] = []
        truncated = False
        for page in range(self.max_pages):
            items = self.client.get_signatures_for_address(
                mint_address,
                limit=self.page_limit,
                before=before,
                until=cursor.signature,
                commitment=self.commitment,
            )
            infos = self._to_infos(items)
            # Some providers ignore `until`; never walk past the cursor
            for i, info in enumerate(infos):
                if info.signature == cursor.signature:
                    infos = infos[:i]
                    items = []
                    break
            collected.extend(infos)
            if len(items) < self.page_limit or not infos:
                break
            before = infos[-1].signature
        else:
            truncated = True
            logger.info(
                "Scan for {} stopped after {} pages; the rest is read on the next cycle",
                mint_address,
                self.max_pages,
            )
        collected.reverse()
        return ScanResult(signatures=collected, truncated=truncated)

    @staticmethod
    def _to_infos(items: list[dict[str, Any]]) -> list[SignatureInfo]:
        out: list[SignatureInfo] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("signature"):
                logger.debug("Skip invalid signature item: {}", item)
                continue
            out.append(SignatureInfo.from_rpc_item(item))
        return out


@dataclass
class TransactionFetcher:
    client: RpcClient
    commitment: str = "confirmed"

    def fetch(self, signature: str) -> Transaction:
        res = self.client.get_transaction(signature, commitment=self.commitment)
        if not res:
            raise TransactionNotFound(f"transaction {signature} not available")
        return parse_transaction(signature, res)


def parse_transaction(signature: str, res: dict[str, Any]) -> Transaction:
    """
    Build a Transaction from a getTransaction result in `json` encoding.
    Raw (base64/base58) encodings and any structural surprise raise MalformedTransaction.
    """
    try:
        tx = res["transaction"]
        if not isinstance(tx, dict):
            raise MalformedTransaction(f"{signature}: unsupported transaction encoding")
        message = tx["message"]
        meta = res.get("meta") or {}
        keys = list(message["accountKeys"])
        loaded = meta.get("loadedAddresses") or {}
        keys.extend(loaded.get("writable") or [])
        keys.extend(loaded.get("readonly") or [])
        if not all(isinstance(k, str) for k in keys):
            raise MalformedTransaction(f"{signature}: unexpected account key format")

        inner_by_index: dict[int, list[dict[str, Any]]] = {}
        for group in meta.get("innerInstructions") or []:
            inner_by_index[int(group["index"])] = list(group.get("instructions") or [])

        instructions: list[Instruction] = []
        for i, raw in enumerate(message["instructions"]):
            instructions.append(_instruction(raw, keys, str(i)))
            for j, inner in enumerate(inner_by_index.get(i, [])):
                instructions.append(_instruction(inner, keys, f"{i}.{j}"))

        return Transaction(
            signature=signature,
            slot=int(res.get("slot") or 0),
            block_time=res.get("blockTime"),
            failed=meta.get("err") is not None,
            instructions=tuple(instructions),
        )
    except MalformedTransaction:
        raise
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise MalformedTransaction(f"{signature}: {type(e).__name__}: {e}") from e


def _instruction(raw: dict[str, Any], keys: list[str], position: str) -> Instruction:
    program_id = keys[raw["programIdIndex"]]
    accounts = tuple(keys[a] for a in raw.get("accounts") or [])
    data = base58.b58decode(raw.get("data") or "")
    return Instruction(program_id=program_id, accounts=accounts, data=data, position=position)
