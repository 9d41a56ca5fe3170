"""In-memory registry of pay-per-play game sessions.

A session moves ``CREATED -> PAID -> EXPIRED``. ``consume`` is the only
operation that both credits a game and revokes access, which is what limits a
payment to exactly one play. All table mutations happen under a single lock;
the table itself is never exposed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from snake402.core.errors import (
    SessionNotFound,
    SessionNotPaid,
    SessionPayerMismatch,
    Snake402Error,
)
from snake402.db.time import utcnow
from snake402.services.stats_store import PlayerStatsSnapshot, StatsStore

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    """Lifecycle states of a game session."""

    CREATED = "created"
    PAID = "paid"
    # Terminal. Expired sessions are removed from the table, so this state is
    # only ever observed on snapshots returned by ``consume``/``expire``.
    EXPIRED = "expired"


@dataclass(frozen=True)
class GameSession:
    """Immutable snapshot of a session entry."""

    id: str
    state: PaymentState
    created_at: datetime
    paid_at: datetime | None = None
    wallet: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.state is PaymentState.PAID


def _same_wallet(left: str, right: str) -> bool:
    return left.lower() == right.lower()


class SessionRegistry:
    """Owns every live session and enforces one play per payment."""

    def __init__(
        self,
        stats_store: StatsStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._stats_store = stats_store
        self._clock = clock
        self._sessions: dict[str, GameSession] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> str:
        """Allocate a fresh unpaid session and return its id."""
        session_id = str(uuid.uuid4())
        async with self._lock:
            self._sessions[session_id] = GameSession(
                id=session_id,
                state=PaymentState.CREATED,
                created_at=self._clock(),
            )
        logger.info("Created session %s", session_id)
        return session_id

    async def mark_paid(self, session_id: str, payer: str | None = None) -> bool:
        """Move a session to ``PAID`` and bind the payer wallet.

        Returns True when this call performed the transition and False when
        the session was already paid.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound()
            if session.state is PaymentState.PAID:
                return False
            self._sessions[session_id] = replace(
                session,
                state=PaymentState.PAID,
                paid_at=self._clock(),
                wallet=payer,
            )
        logger.info("Session %s paid by %s", session_id, payer or "unknown payer")
        return True

    async def consume(
        self, session_id: str, wallet: str, score: int
    ) -> PlayerStatsSnapshot:
        """Credit one game to ``wallet`` and expire the session.

        The entry is taken out of the table before the stats update is
        awaited, so a concurrent ``consume`` for the same id sees
        ``SessionNotFound``. If the update fails the paid session is put back
        and the error propagates; nothing was credited.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound()
            if session.state is not PaymentState.PAID:
                raise SessionNotPaid()
            if session.wallet is not None and not _same_wallet(session.wallet, wallet):
                raise SessionPayerMismatch()
            del self._sessions[session_id]

        try:
            stats = await self._stats_store.update_player_stats(wallet, score)
        except (Snake402Error, ValueError):
            async with self._lock:
                self._sessions[session_id] = session
            logger.warning("Restored session %s after failed score submission", session_id)
            raise

        logger.info(
            "Session %s expired after scoring %d for %s - payment required for next game",
            session_id,
            score,
            wallet,
        )
        return stats

    async def get(self, session_id: str) -> GameSession:
        """Return a snapshot of a live session."""
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound()
        return session

    async def expire(self, session_id: str) -> GameSession:
        """Remove a session without crediting a game."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound()
        logger.info("Session %s expired explicitly", session_id)
        return replace(session, state=PaymentState.EXPIRED)

    async def sweep_unpaid(self, max_age: timedelta) -> list[str]:
        """Drop ``CREATED`` sessions older than ``max_age``. Paid sessions are kept."""
        cutoff = self._clock() - max_age
        async with self._lock:
            stale = [
                session_id
                for session_id, session in self._sessions.items()
                if session.state is PaymentState.CREATED and session.created_at < cutoff
            ]
            for session_id in stale:
                del self._sessions[session_id]
        if stale:
            logger.info("Swept %d abandoned unpaid sessions", len(stale))
        return stale

    def __len__(self) -> int:
        return len(self._sessions)
