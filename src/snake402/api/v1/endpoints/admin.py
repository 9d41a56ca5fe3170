"""Administrative endpoints for pruning the leaderboards."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from snake402.schemas import RemovePlayersRequest

from ..dependencies import AdminDep, ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[AdminDep])


@router.post("/remove-players")
async def remove_players(
    payload: RemovePlayersRequest, services: ServicesDep
) -> dict[str, object]:
    """Delete the given wallets from the lifetime and daily tables."""
    removed = await services.store.remove_players(payload.normalized())
    logger.warning("Admin removed %d players", len(removed))
    return {"removed": removed, "count": len(removed)}


@router.post("/remove-top")
async def remove_top_players(
    services: ServicesDep,
    n: Annotated[int, Query(ge=1, le=1000)] = 1,
) -> dict[str, object]:
    """Delete the ``n`` best players by lifetime total score."""
    removed = await services.store.remove_top_players(n)
    logger.warning("Admin removed top %d players: %s", n, ", ".join(removed) or "none")
    return {"removed": removed, "count": len(removed)}
