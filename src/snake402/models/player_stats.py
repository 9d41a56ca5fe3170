# src/snake402/models/player_stats.py
"""Lifetime and per-cycle score aggregates keyed by wallet."""

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from snake402.db.session import Base


class _ScoreColumns:
    """Columns shared by the lifetime and daily aggregate tables.

    ``id`` follows insertion order and breaks leaderboard ties.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    total_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    high_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Epoch milliseconds of the most recent game.
    last_played: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class PlayerStats(_ScoreColumns, Base):
    """Monotonic lifetime aggregate for a player."""

    __tablename__ = "player_stats"


class DailyPlayerStats(_ScoreColumns, Base):
    """Aggregate for the current payout cycle; zeroed after every cycle."""

    __tablename__ = "daily_player_stats"
