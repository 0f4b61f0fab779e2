from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from sqlalchemy import select

from burn_watch.analytics.metrics import get_summary
from burn_watch.config import AppSettings
from burn_watch.db import BurnRecord, make_session_factory, session_scope

app = FastAPI(title="Burn Watch API")
settings = AppSettings()
SessionFactory = make_session_factory(settings.database_url)


class BurnOut(BaseModel):
    id: int
    signature: str
    instruction: str
    mint_address: str
    source_account: str
    authority: str | None
    amount: int
    kind: str
    decimals: int | None
    slot: int | None
    block_time: int | None

    @classmethod
    def from_model(cls, m: BurnRecord):
        return cls(
            id=m.id,
            signature=m.signature,
            instruction=m.instruction,
            mint_address=m.mint_address,
            source_account=m.source_account,
            authority=m.authority,
            amount=int(m.amount),
            kind=m.kind,
            decimals=m.decimals,
            slot=m.slot,
            block_time=m.block_time,
        )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/burns")
def list_burns(limit: int = 50, source: str | None = None):
    with session_scope(SessionFactory) as s:
        q = select(BurnRecord)
        if source:
            q = q.where(BurnRecord.source_account == source)
        rows = s.execute(q.order_by(BurnRecord.id.desc()).limit(limit)).scalars().all()
        return [BurnOut.from_model(r).model_dump() for r in rows]


@app.get("/burns/{signature}")
def get_burns_for_signature(signature: str):
    with session_scope(SessionFactory) as s:
        rows = (
            s.execute(
                select(BurnRecord)
                .where(BurnRecord.signature == signature)
                .order_by(BurnRecord.id.asc())
            )
            .scalars()
            .all()
        )
        if not rows:
            raise HTTPException(status_code=404, detail="no burns for signature")
        return [BurnOut.from_model(r).model_dump() for r in rows]


@app.get("/summary")
def summary():
    s = get_summary(SessionFactory, settings.mint_address)
    return s.__dict__
