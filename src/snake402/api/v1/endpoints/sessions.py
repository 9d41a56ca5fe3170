"""Pay-per-play session endpoints for the Snake402 API."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, status

from snake402.core.errors import PaymentUnverified, StoreUnavailable
from snake402.schemas import (
    JoinRequest,
    JoinResponse,
    PaymentProof,
    PlayerStatsResponse,
    ScoreSubmission,
    SessionResponse,
    SubmitScoreResponse,
    VerifyPaymentRequest,
)
from snake402.services.container import ServiceContainer
from snake402.services.sessions import GameSession

from ..dependencies import ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])


def _session_response(session: GameSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        state=session.state.value,
        is_paid=session.is_paid,
        created_at=session.created_at,
        paid_at=session.paid_at,
    )


async def _sweep(services: ServiceContainer) -> None:
    max_age = services.config.session_max_unpaid_age_seconds
    if max_age > 0:
        await services.sessions.sweep_unpaid(timedelta(seconds=max_age))


async def _verify_and_mark_paid(
    services: ServiceContainer, session_id: str, proof: PaymentProof
) -> None:
    session = await services.sessions.get(session_id)
    if session.is_paid:
        return

    verification = await services.verifier.verify(proof)
    if not verification.verified:
        logger.info(
            "Payment proof %s rejected: %s", proof.tx_hash, verification.reason or "unknown"
        )
        raise PaymentUnverified(
            f"Payment proof could not be verified: {verification.reason or 'invalid_payment'}"
        )

    # The fee row claims the payment; a second claim on the same hash fails.
    redeemed = await services.store.record_fee(
        services.config.entry_fee_amount, tx_hash=proof.tx_hash, wallet=verification.payer
    )
    if not redeemed:
        raise PaymentUnverified("Payment proof could not be verified: already_redeemed")

    if not await services.sessions.mark_paid(session_id, verification.payer):
        logger.warning(
            "Session %s was paid concurrently; fee for %s kept", session_id, proof.tx_hash
        )


@router.post("/join", response_model=JoinResponse, status_code=status.HTTP_201_CREATED)
async def join_game(payload: JoinRequest, services: ServicesDep) -> JoinResponse:
    """Verify an entry fee payment and open a paid session.

    Args:
        payload: Payment proof presented by the client
        services: Shared service container

    Returns:
        The id of a session that is ready to play

    Raises:
        PaymentUnverified: If the verifier rejects the proof or it was already redeemed
        StoreUnavailable: If the entry fee cannot be recorded
    """
    await _sweep(services)
    session_id = await services.sessions.create()
    try:
        await _verify_and_mark_paid(services, session_id, payload.proof)
    except (PaymentUnverified, StoreUnavailable):
        await services.sessions.expire(session_id)
        raise
    return JoinResponse(session_id=session_id)


@router.post("/session", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(services: ServicesDep) -> SessionResponse:
    """Open an unpaid session to be paid later through ``/verify-payment``."""
    await _sweep(services)
    session_id = await services.sessions.create()
    return _session_response(await services.sessions.get(session_id))


@router.post("/verify-payment", response_model=JoinResponse)
async def verify_payment(payload: VerifyPaymentRequest, services: ServicesDep) -> JoinResponse:
    """Attach a payment proof to an existing session.

    Verifying an already paid session succeeds again without charging twice.
    """
    await _verify_and_mark_paid(services, payload.session_id, payload.proof)
    return JoinResponse(session_id=payload.session_id)


@router.get("/session/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, services: ServicesDep) -> SessionResponse:
    """Return the state of a live session."""
    return _session_response(await services.sessions.get(session_id))


@router.post("/submit-score", response_model=SubmitScoreResponse)
async def submit_score(payload: ScoreSubmission, services: ServicesDep) -> SubmitScoreResponse:
    """Credit a finished game and expire its session.

    The client must pay again before the next game.
    """
    stats = await services.sessions.consume(payload.session_id, payload.wallet, payload.score)
    return SubmitScoreResponse(
        player_stats=PlayerStatsResponse(
            wallet=stats.wallet,
            total_score=stats.total_score,
            high_score=stats.high_score,
            games_played=stats.games_played,
            last_played=stats.last_played,
        ),
    )
