from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Union


@dataclass(frozen=True)
class SignatureInfo:
    """One getSignaturesForAddress item."""

    signature: str
    slot: int
    err: Any = None  # None if the transaction succeeded
    block_time: int | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> SignatureInfo:
        return cls(
            signature=item["signature"],
            slot=int(item.get("slot") or 0),
            err=item.get("err"),
            block_time=item.get("blockTime"),
        )


@dataclass(frozen=True)
class Instruction:
    program_id: str
    accounts: tuple[str, ...]
    data: bytes
    # "3" for the fourth top-level instruction, "3.1" for its second inner instruction
    position: str = "0"


@dataclass(frozen=True)
class Transaction:
    signature: str
    slot: int
    block_time: int | None
    failed: bool
    instructions: tuple[Instruction, ...]


@dataclass(frozen=True)
class NotBurn:
    pass


@dataclass(frozen=True)
class Burn:
    amount: int
    source_account: str
    mint: str
    authority: str | None = None


@dataclass(frozen=True)
class BurnChecked:
    amount: int
    decimals: int
    source_account: str
    mint: str
    authority: str | None = None


BurnOperation = Union[NotBurn, Burn, BurnChecked]

NOT_BURN = NotBurn()


@dataclass(frozen=True)
class Cursor:
    signature: str
    slot: int = 0


@dataclass(frozen=True)
class BurnEvent:
    """
    Canonical record handed to the sinks, one per matching burn instruction.
    `amount` is the raw integer the ledger reports; no decimal scaling.
    """

    signature: str
    mint_address: str
    source_account: str
    amount: int
    kind: str = "burn"  # burn | burn_checked
    decimals: int | None = None
    authority: str | None = None
    slot: int | None = None
    block_time: int | None = None
    instruction: str = "0"

    @classmethod
    def from_operation(
        cls, tx: Transaction, ix: Instruction, op: Burn | BurnChecked
    ) -> BurnEvent:
        return cls(
            signature=tx.signature,
            mint_address=op.mint,
            source_account=op.source_account,
            amount=op.amount,
            kind="burn_checked" if isinstance(op, BurnChecked) else "burn",
            decimals=op.decimals if isinstance(op, BurnChecked) else None,
            authority=op.authority,
            slot=tx.slot,
            block_time=tx.block_time,
            instruction=ix.position,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
