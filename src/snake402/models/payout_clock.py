# src/snake402/models/payout_clock.py
"""Payout scheduler bookkeeping."""

from sqlalchemy import BigInteger, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from snake402.db.session import Base


class PayoutClock(Base):
    """Single-row record of the last completed payout cycle."""

    __tablename__ = "payout_clock"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    last_cycle_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_tx_link: Mapped[str | None] = mapped_column(Text, nullable=True)
