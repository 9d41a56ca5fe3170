# src/snake402/schemas/stats.py
"""Player statistics and leaderboard schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PlayerStatsResponse(BaseModel):
    """Lifetime aggregate for one wallet."""

    model_config = ConfigDict(from_attributes=True)

    wallet: str
    total_score: int
    high_score: int
    games_played: int
    last_played: int


class DailyPlayerStatsResponse(BaseModel):
    """Aggregate for the current payout cycle."""

    model_config = ConfigDict(from_attributes=True)

    wallet: str
    total_score_daily: int
    high_score_daily: int
    games_played_daily: int
    last_played_daily: int


class LeaderboardEntryResponse(BaseModel):
    """One ranked leaderboard row."""

    model_config = ConfigDict(from_attributes=True)

    rank: int
    wallet: str
    score: int
    games_played: int
    last_played: int


class LeaderboardResponse(BaseModel):
    """Leaderboard page."""

    entries: list[LeaderboardEntryResponse]
    total_players: int | None = None
    last_updated: datetime
    type: str
