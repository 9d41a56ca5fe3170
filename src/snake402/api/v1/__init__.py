# src/snake402/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    admin_router,
    leaderboard_router,
    payouts_router,
    players_router,
    sessions_router,
    system_router,
)

__all__ = [
    "sessions_router",
    "leaderboard_router",
    "players_router",
    "payouts_router",
    "admin_router",
    "system_router",
]
