"""Wiring of the long-lived services shared by the API and the scheduler."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, sessionmaker

from snake402.core.settings import Settings
from snake402.db.time import utcnow
from snake402.services.broadcaster import EventBroadcaster
from snake402.services.journal import PayoutJournal
from snake402.services.payment import PaymentVerifier, build_payment_verifier
from snake402.services.payout import PayoutEngine
from snake402.services.scheduler import PayoutScheduler
from snake402.services.sessions import SessionRegistry
from snake402.services.settlement import LedgerGateway, SettlementClient, build_ledger
from snake402.services.stats_store import StatsStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything one server process owns."""

    config: Settings
    store: StatsStore
    sessions: SessionRegistry
    verifier: PaymentVerifier
    journal: PayoutJournal
    broadcaster: EventBroadcaster
    settlement: SettlementClient
    engine: PayoutEngine
    scheduler: PayoutScheduler

    async def start(self) -> None:
        """Resume the payout clock and, if enabled, start the timer."""
        await self.scheduler.load_state()
        if self.config.payout_scheduler_enabled:
            await self.scheduler.start()
        else:
            logger.info("Payout scheduler disabled; cycles run only when triggered")

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.verifier.close()


def build_services(
    config: Settings,
    session_factory: sessionmaker[Session] | None = None,
    *,
    ledger: LedgerGateway | None = None,
    verifier: PaymentVerifier | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContainer:
    """Assemble the service graph from configuration.

    ``ledger`` and ``verifier`` override the configured implementations.
    """
    if session_factory is None:
        from snake402.db.session import SessionLocal

        session_factory = SessionLocal

    store = StatsStore(session_factory, clock=clock)
    journal = PayoutJournal(config.payout_journal_path)
    broadcaster = EventBroadcaster(max_queue=config.event_queue_size)
    if ledger is None:
        ledger = build_ledger(config)
    if ledger is None:
        logger.info("On-chain payouts disabled; cycles are journaled only")
    settlement = SettlementClient(
        ledger,
        journal,
        broadcaster,
        mainnet=config.is_mainnet,
        timeout_seconds=config.settlement_timeout_seconds,
    )
    engine = PayoutEngine(store, journal, settlement, decimals=config.usdc_decimals)
    scheduler = PayoutScheduler(
        engine,
        store,
        broadcaster,
        interval=timedelta(seconds=config.payout_interval_seconds),
        clock=clock,
    )
    if config.sandbox_mode:
        logger.warning("SANDBOX MODE: payment proofs are not verified")
    return ServiceContainer(
        config=config,
        store=store,
        sessions=SessionRegistry(store, clock=clock),
        verifier=verifier or build_payment_verifier(config),
        journal=journal,
        broadcaster=broadcaster,
        settlement=settlement,
        engine=engine,
        scheduler=scheduler,
    )
