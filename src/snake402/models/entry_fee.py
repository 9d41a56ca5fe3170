# src/snake402/models/entry_fee.py
"""Append-only journal of collected entry fees."""

from decimal import Decimal

from sqlalchemy import BigInteger, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from snake402.db.session import Base


class EntryFee(Base):
    """A single entry fee paid for one session. Rows are never updated.

    ``tx_hash`` is the payment that bought the session; a payment is redeemed
    at most once.
    """

    __tablename__ = "entry_fees"
    __table_args__ = (
        Index("ix_entry_fees_timestamp", "timestamp"),
        UniqueConstraint("tx_hash", name="uq_entry_fees_tx_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(24, 9), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    wallet: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
