"""initial schema

Revision ID: 5a1c0e7d2b41
Revises:
Create Date: 2026-01-12 09:14:03.412871

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5a1c0e7d2b41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _score_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet", sa.String(length=64), nullable=False),
        sa.Column("total_score", sa.BigInteger(), nullable=False),
        sa.Column("high_score", sa.BigInteger(), nullable=False),
        sa.Column("games_played", sa.Integer(), nullable=False),
        sa.Column("last_played", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet"),
    )


def upgrade() -> None:
    """Create stats, fee journal and payout clock tables."""
    _score_table("player_stats")
    _score_table("daily_player_stats")
    op.create_table(
        "entry_fees",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("amount", sa.Numeric(precision=24, scale=9), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("wallet", sa.String(length=64), nullable=True),
        sa.Column("tx_hash", sa.String(length=66), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tx_hash", name="uq_entry_fees_tx_hash"),
    )
    op.create_index("ix_entry_fees_timestamp", "entry_fees", ["timestamp"], unique=False)
    op.create_table(
        "payout_clock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("last_cycle_at", sa.BigInteger(), nullable=False),
        sa.Column("last_tx_hash", sa.Text(), nullable=True),
        sa.Column("last_tx_link", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("payout_clock")
    op.drop_index("ix_entry_fees_timestamp", table_name="entry_fees")
    op.drop_table("entry_fees")
    op.drop_table("daily_player_stats")
    op.drop_table("player_stats")
