# src/snake402/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .payouts import PayoutRunResponse, PayoutStatusResponse, RemovePlayersRequest
from .session import (
    JoinRequest,
    JoinResponse,
    PaymentProof,
    ScoreSubmission,
    SessionResponse,
    SubmitScoreResponse,
    VerifyPaymentRequest,
)
from .stats import (
    DailyPlayerStatsResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    PlayerStatsResponse,
)

__all__ = [
    "DailyPlayerStatsResponse",
    "JoinRequest", "JoinResponse",
    "LeaderboardEntryResponse", "LeaderboardResponse",
    "PaymentProof",
    "PayoutRunResponse", "PayoutStatusResponse",
    "PlayerStatsResponse",
    "RemovePlayersRequest",
    "ScoreSubmission",
    "SessionResponse",
    "SubmitScoreResponse",
    "VerifyPaymentRequest",
]
