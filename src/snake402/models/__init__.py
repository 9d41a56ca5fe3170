# src/snake402/models/__init__.py
"""SQLAlchemy models for the Snake402 server."""

from .entry_fee import EntryFee
from .payout_clock import PayoutClock
from .player_stats import DailyPlayerStats, PlayerStats

__all__ = [
    "DailyPlayerStats",
    "EntryFee",
    "PayoutClock",
    "PlayerStats",
]
