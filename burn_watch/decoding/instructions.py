"""
Structural decoder for SPL Token burn instructions.

Each supported instruction is an entry in ``LAYOUTS`` keyed by its leading
discriminant byte. An entry declares the ``struct`` format of the fields that
follow the discriminant, so adding another burn form (e.g. a Token-2022
extension variant) is a table change.

Anything that does not match a layout decodes to ``NOT_BURN``; a transaction
routinely carries many unrelated instructions, so nothing here raises.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from burn_watch.config import SPL_TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID
from burn_watch.models import NOT_BURN, Burn, BurnChecked, BurnOperation

DEFAULT_TOKEN_PROGRAMS = frozenset({SPL_TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})

# Account roles shared by Burn and BurnChecked
SOURCE_INDEX = 0
MINT_INDEX = 1
AUTHORITY_INDEX = 2


@dataclass(frozen=True)
class Layout:
    name: str
    fields: tuple[str, ...]
    fmt: str  # struct format for the bytes after the discriminant
    build: Callable[..., BurnOperation]

    @property
    def size(self) -> int:
        return 1 + struct.calcsize(self.fmt)


LAYOUTS: dict[int, Layout] = {
    8: Layout(name="burn", fields=("amount",), fmt="<Q", build=Burn),
    15: Layout(
        name="burn_checked", fields=("amount", "decimals"), fmt="<QB", build=BurnChecked
    ),
}


def decode(
    program_id: str,
    accounts: Sequence[str],
    payload: bytes,
    token_programs: Iterable[str] = DEFAULT_TOKEN_PROGRAMS,
) -> BurnOperation:
    if program_id not in token_programs:
        return NOT_BURN
    if not payload:
        return NOT_BURN
    layout = LAYOUTS.get(payload[0])
    if layout is None or len(payload) < layout.size:
        return NOT_BURN
    if len(accounts) <= MINT_INDEX:
        return NOT_BURN
    values = struct.unpack_from(layout.fmt, payload, 1)
    authority = accounts[AUTHORITY_INDEX] if len(accounts) > AUTHORITY_INDEX else None
    return layout.build(
        **dict(zip(layout.fields, values)),
        source_account=accounts[SOURCE_INDEX],
        mint=accounts[MINT_INDEX],
        authority=authority,
    )


def is_burn(op: BurnOperation) -> bool:
    return isinstance(op, (Burn, BurnChecked))


def matches_mint(op: BurnOperation, mint: str) -> bool:
    return is_burn(op) and op.mint == mint  # type: ignore[union-attr]
