"""Player statistics endpoints for the Snake402 API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from snake402.schemas import DailyPlayerStatsResponse, PlayerStatsResponse
from snake402.services.stats_store import PlayerStatsSnapshot, StatsScope

from ..dependencies import ServicesDep

router = APIRouter(prefix="/player", tags=["players"])


@router.get("/daily/{wallet}", response_model=DailyPlayerStatsResponse)
async def get_daily_player_stats(wallet: str, services: ServicesDep) -> DailyPlayerStatsResponse:
    """Return a wallet's stats for the current cycle; zeroed if it has not played."""
    wallet = wallet.lower()
    stats = await services.store.get_player_stats(wallet, StatsScope.DAILY)
    if stats is None:
        stats = PlayerStatsSnapshot.empty(wallet)
    return DailyPlayerStatsResponse(
        wallet=stats.wallet,
        total_score_daily=stats.total_score,
        high_score_daily=stats.high_score,
        games_played_daily=stats.games_played,
        last_played_daily=stats.last_played,
    )


@router.get("/{wallet}", response_model=PlayerStatsResponse)
async def get_player_stats(wallet: str, services: ServicesDep) -> PlayerStatsResponse:
    """Return a wallet's lifetime stats."""
    stats = await services.store.get_player_stats(wallet.lower(), StatsScope.LIFETIME)
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Player not found")
    return PlayerStatsResponse.model_validate(stats)
