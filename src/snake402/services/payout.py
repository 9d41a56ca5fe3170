"""Reward computation for one payout cycle.

The pool collected during the cycle is split 70/25/5:

* 70% is shared by every player in proportion to their daily total score.
* 25% goes to the top three daily high scores, tiered by rank
  (100% for one qualifier, 70/30 for two, 60/25/15 for three or more).
* 5% is kept by the treasury.

``compute_allocation`` is a pure function of the pool and the daily standings.
``PayoutEngine.run_cycle`` adds the bookkeeping around it: journal first,
settle second, reset the daily table last.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Final

from snake402.services.journal import ENTRY_ALLOCATION, ENTRY_TREASURY, PayoutJournal
from snake402.services.settlement import SettlementClient, SettlementRequest, SettlementResult
from snake402.services.stats_store import PlayerStatsSnapshot, StatsStore

logger = logging.getLogger(__name__)

VOLUME_SHARE: Final[Decimal] = Decimal("0.70")
PEAK_SHARE: Final[Decimal] = Decimal("0.25")
TREASURY_SHARE: Final[Decimal] = Decimal("0.05")

PEAK_TIERS: Final[dict[int, tuple[Decimal, ...]]] = {
    1: (Decimal("1"),),
    2: (Decimal("0.70"), Decimal("0.30")),
    3: (Decimal("0.60"), Decimal("0.25"), Decimal("0.15")),
}
PEAK_WINNERS: Final[int] = 3

AUDIT_PRECISION: Final[Decimal] = Decimal("0.000001")


def to_units(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to integer ledger units, rounding half up."""
    scaled = amount * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Allocation:
    """Reward awarded to one wallet for the cycle."""

    wallet: str
    total_score: int
    high_score: int
    volume_reward: Decimal
    peak_reward: Decimal
    reward_units: int

    @property
    def reward(self) -> Decimal:
        return self.volume_reward + self.peak_reward


@dataclass(frozen=True)
class PayoutPlan:
    """Full allocation for one cycle."""

    pool: Decimal
    volume_pool: Decimal
    peak_pool: Decimal
    treasury: Decimal
    allocations: tuple[Allocation, ...]

    def reward_for(self, wallet: str) -> Decimal:
        for allocation in self.allocations:
            if allocation.wallet == wallet:
                return allocation.reward
        return Decimal(0)

    @property
    def winners(self) -> tuple[str, ...]:
        return tuple(allocation.wallet for allocation in self.allocations)

    @property
    def amounts(self) -> tuple[int, ...]:
        return tuple(allocation.reward_units for allocation in self.allocations)


def _volume_rewards(
    standings: Sequence[PlayerStatsSnapshot], volume_pool: Decimal
) -> dict[str, Decimal]:
    scoring = [row for row in standings if row.total_score > 0]
    total = sum(row.total_score for row in scoring)
    if total == 0 or volume_pool <= 0:
        return {}
    return {row.wallet: volume_pool * row.total_score / total for row in scoring}


def _peak_rewards(
    standings: Sequence[PlayerStatsSnapshot], peak_pool: Decimal
) -> dict[str, Decimal]:
    if peak_pool <= 0:
        return {}
    # sorted() is stable, so equal highs keep storage order.
    ranked = sorted(
        (row for row in standings if row.high_score > 0),
        key=lambda row: row.high_score,
        reverse=True,
    )[:PEAK_WINNERS]
    if not ranked:
        return {}
    tiers = PEAK_TIERS[len(ranked)]
    return {row.wallet: peak_pool * share for row, share in zip(ranked, tiers, strict=True)}


def compute_allocation(
    pool: Decimal,
    standings: Sequence[PlayerStatsSnapshot],
    *,
    decimals: int = 6,
) -> PayoutPlan:
    """Split ``pool`` between the daily ``standings``.

    ``standings`` must be in storage order; it breaks ties between equal
    high scores.
    """
    pool = max(pool, Decimal(0))
    volume_pool = pool * VOLUME_SHARE
    peak_pool = pool * PEAK_SHARE
    treasury = pool * TREASURY_SHARE

    volume = _volume_rewards(standings, volume_pool)
    peak = _peak_rewards(standings, peak_pool)

    allocations = []
    for row in standings:
        if row.wallet not in volume and row.wallet not in peak:
            continue
        volume_reward = volume.get(row.wallet, Decimal(0))
        peak_reward = peak.get(row.wallet, Decimal(0))
        allocations.append(
            Allocation(
                wallet=row.wallet,
                total_score=row.total_score,
                high_score=row.high_score,
                volume_reward=volume_reward,
                peak_reward=peak_reward,
                reward_units=to_units(volume_reward + peak_reward, decimals),
            )
        )

    return PayoutPlan(
        pool=pool,
        volume_pool=volume_pool,
        peak_pool=peak_pool,
        treasury=treasury,
        allocations=tuple(allocations),
    )


@dataclass(frozen=True)
class CycleReport:
    """What one completed payout cycle did."""

    cycle_id: str
    started_at: datetime
    plan: PayoutPlan
    settlement: SettlementResult


def _audit_amount(amount: Decimal) -> str:
    return str(amount.quantize(AUDIT_PRECISION, rounding=ROUND_HALF_UP))


def journal_entries(plan: PayoutPlan, cycle_id: str, timestamp: str) -> list[dict[str, Any]]:
    """Audit lines for every allocation plus the treasury share."""
    entries: list[dict[str, Any]] = [
        {
            "type": ENTRY_ALLOCATION,
            "wallet": allocation.wallet,
            "total_score": allocation.total_score,
            "high_score": allocation.high_score,
            "reward": _audit_amount(allocation.reward),
            "reward_units": allocation.reward_units,
            "cycle_id": cycle_id,
            "timestamp": timestamp,
        }
        for allocation in plan.allocations
    ]
    entries.append(
        {
            "type": ENTRY_TREASURY,
            "amount": _audit_amount(plan.treasury),
            "pool": _audit_amount(plan.pool),
            "cycle_id": cycle_id,
            "timestamp": timestamp,
        }
    )
    return entries


class PayoutEngine:
    """Compute, journal and settle one cycle against the stats store."""

    def __init__(
        self,
        store: StatsStore,
        journal: PayoutJournal,
        settlement: SettlementClient,
        *,
        decimals: int = 6,
    ) -> None:
        self.store = store
        self.journal = journal
        self.settlement = settlement
        self.decimals = decimals

    async def run_cycle(self, cycle_start: datetime, now: datetime) -> CycleReport:
        """Run the bookkeeping for the cycle that began at ``cycle_start``.

        Storage failures propagate and leave the daily table untouched.
        Settlement failures do not: they are recorded on the report.
        """
        cycle_id = now.isoformat()
        logger.info("Running payout cycle %s (fees since %s)", cycle_id, cycle_start.isoformat())

        pool = await self.store.fees_since(cycle_start, until=now)
        standings = await self.store.daily_standings()
        plan = compute_allocation(pool, standings, decimals=self.decimals)

        await self.journal.append(journal_entries(plan, cycle_id, cycle_id))

        settlement = await self.settlement.settle(
            SettlementRequest(
                cycle_id=cycle_id,
                timestamp=cycle_id,
                winners=plan.winners,
                amounts=plan.amounts,
            )
        )

        await self.store.reset_daily()
        logger.info(
            "Payout cycle %s distributed %s to %d players (settlement %s)",
            cycle_id,
            _audit_amount(plan.pool - plan.treasury),
            len(plan.allocations),
            settlement.status.value,
        )
        return CycleReport(cycle_id=cycle_id, started_at=cycle_start, plan=plan, settlement=settlement)
