from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "burn_events",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("signature", sa.String(100), index=True),
        sa.Column("instruction", sa.String(16)),
        sa.Column("mint_address", sa.String(64), index=True),
        sa.Column("source_account", sa.String(64), index=True),
        sa.Column("authority", sa.String(64), nullable=True),
        sa.Column("amount", sa.String(32)),
        sa.Column("kind", sa.String(16)),
        sa.Column("decimals", sa.Integer, nullable=True),
        sa.Column("slot", sa.BigInteger, nullable=True, index=True),
        sa.Column("block_time", sa.BigInteger, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.UniqueConstraint("signature", "instruction", name="uq_burn_events_sig_ix"),
    )
    op.create_table(
        "checkpoints",
        sa.Column("mint_address", sa.String(64), primary_key=True),
        sa.Column("signature", sa.String(100), nullable=False),
        sa.Column("slot", sa.BigInteger),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )


def downgrade():
    op.drop_table("checkpoints")
    op.drop_table("burn_events")
