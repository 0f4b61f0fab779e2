from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Generator

from sqlalchemy import BigInteger, DateTime, Integer, String, UniqueConstraint, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from burn_watch.models import BurnEvent, Cursor


class Base(DeclarativeBase):
    pass


class BurnRecord(Base):
    __tablename__ = "burn_events"
    __table_args__ = (UniqueConstraint("signature", "instruction", name="uq_burn_events_sig_ix"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    signature: Mapped[str] = mapped_column(String(100), index=True)
    instruction: Mapped[str] = mapped_column(String(16), default="0")
    mint_address: Mapped[str] = mapped_column(String(64), index=True)
    source_account: Mapped[str] = mapped_column(String(64), index=True)
    authority: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # u64 does not fit a signed BIGINT; keep the raw integer as text
    amount: Mapped[str] = mapped_column(String(32))
    kind: Mapped[str] = mapped_column(String(16), default="burn")  # burn|burn_checked
    decimals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    block_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @classmethod
    def from_event(cls, e: BurnEvent) -> BurnRecord:
        return cls(
            signature=e.signature,
            instruction=e.instruction,
            mint_address=e.mint_address,
            source_account=e.source_account,
            authority=e.authority,
            amount=str(e.amount),
            kind=e.kind,
            decimals=e.decimals,
            slot=e.slot,
            block_time=e.block_time,
        )


class Checkpoint(Base):
    __tablename__ = "checkpoints"

    mint_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    signature: Mapped[str] = mapped_column(String(100))
    slot: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


def make_engine(database_url: str):
    return create_engine(database_url, pool_pre_ping=True, future=True)


def make_session_factory(database_url: str):
    engine = make_engine(database_url)
    # Migrations are managed via Alembic. We intentionally avoid create_all here.
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


@contextmanager
def session_scope(SessionFactory) -> Generator[Session, None, None]:
    session: Session = SessionFactory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class CheckpointStore:
    """Durable cursor per tracked mint."""

    def __init__(self, SessionFactory):
        self.SessionFactory = SessionFactory

    def load(self, mint_address: str) -> Cursor | None:
        with session_scope(self.SessionFactory) as s:
            row = s.get(Checkpoint, mint_address)
            if row is None:
                return None
            return Cursor(signature=row.signature, slot=row.slot)

    def save(self, mint_address: str, cursor: Cursor) -> None:
        with session_scope(self.SessionFactory) as s:
            row = s.get(Checkpoint, mint_address)
            if row is None:
                s.add(Checkpoint(mint_address=mint_address, signature=cursor.signature, slot=cursor.slot))
                return
            row.signature = cursor.signature
            row.slot = cursor.slot
            row.updated_at = datetime.utcnow()


def burn_exists(s: Session, signature: str, instruction: str) -> bool:
    return (
        s.execute(
            select(BurnRecord.id).where(
                BurnRecord.signature == signature, BurnRecord.instruction == instruction
            )
        ).first()
        is not None
    )
