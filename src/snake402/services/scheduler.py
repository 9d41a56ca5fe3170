"""Periodic payout scheduler.

Fires a payout cycle every ``interval`` and exposes the cycle clock for the
status endpoint. A single in-process flag keeps cycles from overlapping: the
timer and the admin trigger both go through ``trigger`` and a second caller is
rejected with ``CycleAlreadyRunning`` instead of being queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from snake402.core.errors import CycleAlreadyRunning, Snake402Error
from snake402.db.time import from_epoch_ms, to_epoch_ms, utcnow
from snake402.services.broadcaster import EventBroadcaster
from snake402.services.payout import CycleReport, PayoutEngine
from snake402.services.settlement import SettlementStatus
from snake402.services.stats_store import CycleClock, StatsStore

logger = logging.getLogger(__name__)


class PayoutScheduler:
    """Owns the payout timer and the cycle clock."""

    def __init__(
        self,
        engine: PayoutEngine,
        store: StatsStore,
        broadcaster: EventBroadcaster,
        *,
        interval: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("payout interval must be positive")
        self.engine = engine
        self.store = store
        self.broadcaster = broadcaster
        self.interval = interval
        self._clock = clock
        self.last_cycle_at: datetime = clock()
        self.last_tx_hash: str | None = None
        self.last_tx_link: str | None = None
        self.last_report: CycleReport | None = None
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def next_cycle_at(self) -> datetime:
        return self.last_cycle_at + self.interval

    @property
    def running(self) -> bool:
        return self._running

    async def load_state(self) -> None:
        """Resume the cycle clock from storage.

        On first start the current time becomes the start of the first cycle
        and is saved, so a restart before that cycle runs keeps its fees.
        """
        persisted = await self.store.load_cycle_clock()
        if persisted is None:
            self.last_cycle_at = self._clock()
            await self.store.save_cycle_clock(
                CycleClock(to_epoch_ms(self.last_cycle_at), None, None)
            )
            logger.info(
                "Started payout clock; first cycle at %s", self.next_cycle_at.isoformat()
            )
            return
        self.last_cycle_at = from_epoch_ms(persisted.last_cycle_at)
        self.last_tx_hash = persisted.last_tx_hash
        self.last_tx_link = persisted.last_tx_link
        logger.info("Resumed payout clock; next cycle at %s", self.next_cycle_at.isoformat())

    async def start(self) -> None:
        """Start the background timer loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())
            logger.info("Payout scheduler next run: %s", self.next_cycle_at.isoformat())

    async def stop(self) -> None:
        """Stop the timer loop; an in-flight cycle finishes first."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            delay = (self.next_cycle_at - self._clock()).total_seconds()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                    return
                except TimeoutError:
                    pass
            try:
                await self.trigger(reason="timer")
            except CycleAlreadyRunning:
                logger.warning("Timer fired while a payout cycle was running; skipped")
                await self._wait_for_idle()
            except Snake402Error as exc:
                # Clock was not advanced; back off before trying again.
                logger.error("Payout cycle failed: %s", exc, exc_info=True)
                try:
                    await asyncio.wait_for(
                        self._stopping.wait(),
                        timeout=min(self.interval.total_seconds(), 60.0),
                    )
                    return
                except TimeoutError:
                    pass

    async def _wait_for_idle(self) -> None:
        while self._running and not self._stopping.is_set():
            await asyncio.sleep(0.5)

    async def trigger(self, reason: str = "manual") -> CycleReport:
        """Run one payout cycle now.

        Raises ``CycleAlreadyRunning`` when another cycle holds the guard.
        The clock only advances once the cycle's bookkeeping completed,
        whatever the settlement outcome.
        """
        if self._running:
            logger.warning("Rejected %s payout trigger: cycle already running", reason)
            raise CycleAlreadyRunning()
        self._running = True
        try:
            now = self._clock()
            report = await self.engine.run_cycle(self.last_cycle_at, now)
            await self._advance(report, now)
        finally:
            self._running = False

        self.broadcaster.publish(
            {
                "type": "cycle",
                "cycle_id": report.cycle_id,
                "pool": str(report.plan.pool),
                "winners": len(report.plan.allocations),
                "settlement": report.settlement.status.value,
                "tx_hash": report.settlement.tx_hash,
                "tx_link": report.settlement.tx_link,
                "next_payout_at": to_epoch_ms(self.next_cycle_at),
            }
        )
        logger.info("Payout cycle completed. Next at %s", self.next_cycle_at.isoformat())
        return report

    async def _advance(self, report: CycleReport, now: datetime) -> None:
        if report.settlement.status is SettlementStatus.SETTLED:
            self.last_tx_hash = report.settlement.tx_hash
            self.last_tx_link = report.settlement.tx_link
        await self.store.save_cycle_clock(
            CycleClock(
                last_cycle_at=to_epoch_ms(now),
                last_tx_hash=self.last_tx_hash,
                last_tx_link=self.last_tx_link,
            )
        )
        self.last_cycle_at = now
        self.last_report = report

    def status(self) -> dict[str, object]:
        """Snapshot for ``GET /payouts/status``."""
        return {
            "last_payout_at": to_epoch_ms(self.last_cycle_at),
            "next_payout_at": to_epoch_ms(self.next_cycle_at),
            "last_payout_at_iso": self.last_cycle_at.isoformat(),
            "next_payout_at_iso": self.next_cycle_at.isoformat(),
            "last_tx_hash": self.last_tx_hash,
            "last_tx_link": self.last_tx_link,
            "running": self._running,
        }
