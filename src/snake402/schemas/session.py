# src/snake402/schemas/session.py
"""Session and payment Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .stats import PlayerStatsResponse

WALLET_PATTERN = r"^0x[0-9a-fA-F]{40}$"
TX_HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"


class PaymentProof(BaseModel):
    """Claimed proof that the entry fee was paid."""

    model_config = ConfigDict(extra="forbid")

    tx_hash: str = Field(..., pattern=TX_HASH_PATTERN, description="Payment transaction hash")
    payer: str | None = Field(None, pattern=WALLET_PATTERN, description="Paying wallet")
    payload: dict[str, Any] | None = Field(
        None, description="Opaque facilitator payload, forwarded untouched"
    )

    @field_validator("tx_hash", "payer")
    @classmethod
    def _lowercase(cls, value: str | None) -> str | None:
        return value.lower() if value is not None else None


class JoinRequest(BaseModel):
    """Body of ``POST /join``."""

    proof: PaymentProof


class VerifyPaymentRequest(BaseModel):
    """Body of ``POST /verify-payment`` for a previously created session."""

    session_id: str = Field(..., min_length=1)
    proof: PaymentProof


class JoinResponse(BaseModel):
    """Returned once a session is paid and playable."""

    session_id: str
    is_paid: bool = True
    message: str = "Payment verified, ready to play!"


class SessionResponse(BaseModel):
    """Snapshot of a live session."""

    session_id: str
    state: str
    is_paid: bool
    created_at: datetime
    paid_at: datetime | None = None


class ScoreSubmission(BaseModel):
    """Body of ``POST /submit-score``."""

    session_id: str = Field(..., min_length=1)
    wallet: str = Field(..., pattern=WALLET_PATTERN)
    score: int = Field(..., ge=0)

    @field_validator("wallet")
    @classmethod
    def _lowercase_wallet(cls, value: str) -> str:
        return value.lower()


class SubmitScoreResponse(BaseModel):
    """Result of a successful score submission."""

    success: bool = True
    message: str = "Score submitted successfully"
    player_stats: PlayerStatsResponse
    session_expired: bool = True
