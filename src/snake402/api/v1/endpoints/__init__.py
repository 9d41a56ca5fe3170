# src/snake402/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .leaderboard import router as leaderboard_router
from .payouts import router as payouts_router
from .players import router as players_router
from .sessions import router as sessions_router
from .system import router as system_router

__all__ = [
    "sessions_router",
    "leaderboard_router",
    "players_router",
    "payouts_router",
    "admin_router",
    "system_router",
]
