from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select

from burn_watch.db import BurnRecord, session_scope


@dataclass
class Summary:
    total_events: int
    total_transactions: int
    total_amount: int
    burn: int
    burn_checked: int
    last_slot: int | None


def get_summary(SessionFactory, mint_address: str | None = None) -> Summary:
    with session_scope(SessionFactory) as s:
        base = select(BurnRecord)
        if mint_address:
            base = base.where(BurnRecord.mint_address == mint_address)
        sub = base.subquery()
        total_events = s.scalar(select(func.count()).select_from(sub)) or 0
        total_txs = s.scalar(select(func.count(func.distinct(sub.c.signature)))) or 0
        burn = s.scalar(select(func.count()).select_from(sub).where(sub.c.kind == "burn")) or 0
        checked = s.scalar(select(func.count()).select_from(sub).where(sub.c.kind == "burn_checked")) or 0
        last_slot = s.scalar(select(func.max(sub.c.slot)))
        # Amounts are stored as text (u64); sum in Python to avoid overflow
        total_amount = sum(int(a) for a in s.scalars(select(sub.c.amount)))
        return Summary(
            total_events=total_events,
            total_transactions=total_txs,
            total_amount=total_amount,
            burn=burn,
            burn_checked=checked,
            last_slot=last_slot,
        )
