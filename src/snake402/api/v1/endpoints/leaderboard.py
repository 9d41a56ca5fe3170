"""Leaderboard endpoints for the Snake402 API."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from snake402.db.time import utcnow
from snake402.schemas import LeaderboardEntryResponse, LeaderboardResponse
from snake402.services.stats_store import LeaderboardEntry, LeaderboardKind, StatsScope

from ..dependencies import ServicesDep

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])

LimitQuery = Annotated[int, Query(ge=1, le=1000)]


def _entries(rows: list[LeaderboardEntry]) -> list[LeaderboardEntryResponse]:
    return [LeaderboardEntryResponse.model_validate(row) for row in rows]


@router.get("/daily/{kind}", response_model=LeaderboardResponse)
async def get_daily_leaderboard(
    kind: LeaderboardKind,
    services: ServicesDep,
    limit: LimitQuery = 10,
) -> LeaderboardResponse:
    """Return the current cycle's leaderboard by total or high score."""
    rows = await services.store.leaderboard(kind, StatsScope.DAILY, limit)
    return LeaderboardResponse(
        entries=_entries(rows),
        last_updated=utcnow(),
        type=f"daily_{kind.value}",
    )


@router.get("/{kind}", response_model=LeaderboardResponse)
async def get_leaderboard(
    kind: LeaderboardKind,
    services: ServicesDep,
    limit: LimitQuery = 10,
) -> LeaderboardResponse:
    """Return the lifetime leaderboard by total or high score.

    Args:
        kind: ``total`` or ``high``
        services: Shared service container
        limit: Maximum number of rows, 1 to 1000

    Returns:
        Ranked entries plus the number of wallets that ever played
    """
    rows = await services.store.leaderboard(kind, StatsScope.LIFETIME, limit)
    return LeaderboardResponse(
        entries=_entries(rows),
        total_players=await services.store.total_players(),
        last_updated=utcnow(),
        type=kind.value,
    )
