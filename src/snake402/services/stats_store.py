"""Durable storage for player aggregates and the entry fee journal.

The store holds no business rules. Blocking SQLAlchemy work runs in worker
threads so the event loop keeps serving requests while the disk is busy.
Updates for a single wallet are serialized by a per-wallet lock; different
wallets proceed independently.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from snake402.core.errors import StoreUnavailable
from snake402.db.time import to_epoch_ms, utcnow
from snake402.models import DailyPlayerStats, EntryFee, PayoutClock, PlayerStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PAYOUT_CLOCK_ID = 1


class LeaderboardKind(str, Enum):
    """Score column a leaderboard is ordered by."""

    TOTAL = "total"
    HIGH = "high"


class StatsScope(str, Enum):
    """Which aggregate table a query reads."""

    LIFETIME = "lifetime"
    DAILY = "daily"


@dataclass(frozen=True)
class PlayerStatsSnapshot:
    """Detached copy of one aggregate row."""

    wallet: str
    total_score: int
    high_score: int
    games_played: int
    last_played: int

    @classmethod
    def empty(cls, wallet: str) -> PlayerStatsSnapshot:
        return cls(wallet=wallet, total_score=0, high_score=0, games_played=0, last_played=0)


@dataclass(frozen=True)
class LeaderboardEntry:
    """Ranked leaderboard row."""

    rank: int
    wallet: str
    score: int
    games_played: int
    last_played: int


@dataclass(frozen=True)
class CycleClock:
    """Persisted state of the payout scheduler."""

    last_cycle_at: int
    last_tx_hash: str | None
    last_tx_link: str | None


ScoreRow = PlayerStats | DailyPlayerStats


def _table_for(scope: StatsScope) -> type[PlayerStats] | type[DailyPlayerStats]:
    return PlayerStats if scope is StatsScope.LIFETIME else DailyPlayerStats


def _snapshot(row: ScoreRow) -> PlayerStatsSnapshot:
    return PlayerStatsSnapshot(
        wallet=row.wallet,
        total_score=int(row.total_score),
        high_score=int(row.high_score),
        games_played=int(row.games_played),
        last_played=int(row.last_played),
    )


def _apply_score(row: ScoreRow, score: int, played_at: int) -> None:
    row.total_score = int(row.total_score) + score
    row.high_score = max(int(row.high_score), score)
    row.games_played = int(row.games_played) + 1
    row.last_played = played_at


class StatsStore:
    """Lifetime/daily aggregates, the fee journal and the payout clock."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._player_locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: Counter[str] = Counter()

    @asynccontextmanager
    async def _wallet_lock(self, wallet: str) -> AsyncIterator[None]:
        # Locks live only while a caller holds or waits on them.
        lock = self._player_locks.setdefault(wallet, asyncio.Lock())
        self._lock_holders[wallet] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[wallet] -= 1
            if self._lock_holders[wallet] == 0:
                del self._lock_holders[wallet]
                del self._player_locks[wallet]

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.error("Stats store %s failed: %s", operation, exc, exc_info=True)
            raise StoreUnavailable(f"Stats store {operation} failed") from exc

    # --- Fee journal -------------------------------------------------------------

    async def record_fee(
        self,
        amount: Decimal,
        *,
        tx_hash: str,
        timestamp: datetime | None = None,
        wallet: str | None = None,
    ) -> bool:
        """Append an entry fee record for the payment ``tx_hash``.

        Returns False, writing nothing, when that payment was already
        redeemed.
        """
        moment = timestamp or self._clock()
        return await self._run(
            "record_fee", self._record_fee_sync, amount, tx_hash, to_epoch_ms(moment), wallet
        )

    def _record_fee_sync(
        self, amount: Decimal, tx_hash: str, timestamp: int, wallet: str | None
    ) -> bool:
        try:
            with self._session_factory() as db, db.begin():
                db.add(
                    EntryFee(amount=amount, tx_hash=tx_hash, timestamp=timestamp, wallet=wallet)
                )
        except IntegrityError:
            logger.warning("Payment %s was already redeemed", tx_hash)
            return False
        return True

    async def fees_since(self, cutoff: datetime, until: datetime | None = None) -> Decimal:
        """Return the sum of fee amounts in ``[cutoff, until)``.

        Without ``until`` the window is open-ended.
        """
        return await self._run(
            "fees_since",
            self._fees_since_sync,
            to_epoch_ms(cutoff),
            to_epoch_ms(until) if until is not None else None,
        )

    def _fees_since_sync(self, cutoff: int, until: int | None) -> Decimal:
        query = select(func.coalesce(func.sum(EntryFee.amount), 0)).where(
            EntryFee.timestamp >= cutoff
        )
        if until is not None:
            query = query.where(EntryFee.timestamp < until)
        with self._session_factory() as db:
            total = db.execute(query).scalar_one()
        return Decimal(str(total or 0))

    # --- Player aggregates -------------------------------------------------------

    async def update_player_stats(self, wallet: str, score: int) -> PlayerStatsSnapshot:
        """Credit one finished game to both the lifetime and daily rows.

        Both rows are written in a single transaction; on failure neither
        changes. Returns the updated lifetime row.
        """
        if score < 0:
            raise ValueError("score must be non-negative")
        played_at = to_epoch_ms(self._clock())
        async with self._wallet_lock(wallet):
            return await self._run(
                "update_player_stats", self._update_player_stats_sync, wallet, score, played_at
            )

    def _update_player_stats_sync(
        self, wallet: str, score: int, played_at: int
    ) -> PlayerStatsSnapshot:
        with self._session_factory() as db, db.begin():
            lifetime = self._get_or_create(db, PlayerStats, wallet)
            daily = self._get_or_create(db, DailyPlayerStats, wallet)
            _apply_score(lifetime, score, played_at)
            _apply_score(daily, score, played_at)
            db.flush()
            return _snapshot(lifetime)

    @staticmethod
    def _get_or_create(
        db: Session, model: type[PlayerStats] | type[DailyPlayerStats], wallet: str
    ) -> ScoreRow:
        row = db.execute(select(model).where(model.wallet == wallet)).scalar_one_or_none()
        if row is None:
            row = model(
                wallet=wallet, total_score=0, high_score=0, games_played=0, last_played=0
            )
            db.add(row)
        return row

    async def get_player_stats(
        self, wallet: str, scope: StatsScope = StatsScope.LIFETIME
    ) -> PlayerStatsSnapshot | None:
        """Return the aggregate row for ``wallet`` or None if it never played."""
        return await self._run("get_player_stats", self._get_player_stats_sync, wallet, scope)

    def _get_player_stats_sync(
        self, wallet: str, scope: StatsScope
    ) -> PlayerStatsSnapshot | None:
        model = _table_for(scope)
        with self._session_factory() as db:
            row = db.execute(select(model).where(model.wallet == wallet)).scalar_one_or_none()
            return _snapshot(row) if row is not None else None

    async def leaderboard(
        self,
        kind: LeaderboardKind,
        scope: StatsScope = StatsScope.LIFETIME,
        limit: int = 10,
    ) -> list[LeaderboardEntry]:
        """Return players with a positive score, best first, ranked from 1."""
        return await self._run("leaderboard", self._leaderboard_sync, kind, scope, limit)

    def _leaderboard_sync(
        self, kind: LeaderboardKind, scope: StatsScope, limit: int
    ) -> list[LeaderboardEntry]:
        model = _table_for(scope)
        column = model.total_score if kind is LeaderboardKind.TOTAL else model.high_score
        with self._session_factory() as db:
            rows = db.execute(
                select(model.wallet, column, model.games_played, model.last_played)
                .where(column > 0)
                .order_by(column.desc(), model.id.asc())
                .limit(limit)
            ).all()
        return [
            LeaderboardEntry(
                rank=index,
                wallet=wallet,
                score=int(score),
                games_played=int(games),
                last_played=int(last_played),
            )
            for index, (wallet, score, games, last_played) in enumerate(rows, start=1)
        ]

    async def daily_standings(self) -> list[PlayerStatsSnapshot]:
        """Return every daily row with at least one game, in insertion order."""
        return await self._run("daily_standings", self._daily_standings_sync)

    def _daily_standings_sync(self) -> list[PlayerStatsSnapshot]:
        with self._session_factory() as db:
            rows = db.execute(
                select(DailyPlayerStats)
                .where(DailyPlayerStats.games_played > 0)
                .order_by(DailyPlayerStats.id.asc())
            ).scalars()
            return [_snapshot(row) for row in rows]

    async def total_players(self) -> int:
        """Return the number of wallets with at least one lifetime game."""
        return await self._run("total_players", self._total_players_sync)

    def _total_players_sync(self) -> int:
        with self._session_factory() as db:
            return int(
                db.execute(
                    select(func.count()).select_from(PlayerStats).where(
                        PlayerStats.games_played > 0
                    )
                ).scalar_one()
            )

    async def reset_daily(self) -> None:
        """Zero every daily row in one statement; lifetime rows are untouched."""
        await self._run("reset_daily", self._reset_daily_sync)

    def _reset_daily_sync(self) -> None:
        with self._session_factory() as db, db.begin():
            db.execute(
                update(DailyPlayerStats).values(total_score=0, high_score=0, games_played=0)
            )

    # --- Administration ----------------------------------------------------------

    async def remove_players(self, wallets: Sequence[str]) -> list[str]:
        """Delete the given wallets from both aggregate tables."""
        return await self._run("remove_players", self._remove_players_sync, list(wallets))

    def _remove_players_sync(self, wallets: list[str]) -> list[str]:
        if not wallets:
            return []
        with self._session_factory() as db, db.begin():
            db.execute(delete(PlayerStats).where(PlayerStats.wallet.in_(wallets)))
            db.execute(delete(DailyPlayerStats).where(DailyPlayerStats.wallet.in_(wallets)))
        return wallets

    async def remove_top_players(self, limit: int) -> list[str]:
        """Delete the ``limit`` best players by lifetime total score."""
        return await self._run("remove_top_players", self._remove_top_players_sync, limit)

    def _remove_top_players_sync(self, limit: int) -> list[str]:
        with self._session_factory() as db:
            wallets = list(
                db.execute(
                    select(PlayerStats.wallet)
                    .where(PlayerStats.total_score > 0)
                    .order_by(PlayerStats.total_score.desc(), PlayerStats.id.asc())
                    .limit(limit)
                ).scalars()
            )
        return self._remove_players_sync(wallets)

    # --- Payout clock ------------------------------------------------------------

    async def load_cycle_clock(self) -> CycleClock | None:
        """Return the persisted payout clock, if a cycle ever completed."""
        return await self._run("load_cycle_clock", self._load_cycle_clock_sync)

    def _load_cycle_clock_sync(self) -> CycleClock | None:
        with self._session_factory() as db:
            row = db.get(PayoutClock, _PAYOUT_CLOCK_ID)
            if row is None:
                return None
            return CycleClock(
                last_cycle_at=int(row.last_cycle_at),
                last_tx_hash=row.last_tx_hash,
                last_tx_link=row.last_tx_link,
            )

    async def save_cycle_clock(self, clock: CycleClock) -> None:
        """Persist the payout clock."""
        await self._run("save_cycle_clock", self._save_cycle_clock_sync, clock)

    def _save_cycle_clock_sync(self, clock: CycleClock) -> None:
        with self._session_factory() as db, db.begin():
            row = db.get(PayoutClock, _PAYOUT_CLOCK_ID)
            if row is None:
                row = PayoutClock(id=_PAYOUT_CLOCK_ID)
                db.add(row)
            row.last_cycle_at = clock.last_cycle_at
            row.last_tx_hash = clock.last_tx_hash
            row.last_tx_link = clock.last_tx_link
