# tests/conftest.py
from __future__ import annotations

import itertools
import os
from collections.abc import Generator, Iterator, Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYOUT_SCHEDULER_ENABLED"] = "false"
os.environ["SANDBOX_MODE"] = "true"

from snake402.core.errors import SettlementFailed
from snake402.core.settings import Settings
from snake402.db.session import build_engine, create_tables
from snake402.db.session import get_db as app_get_session
from snake402.main import app as fastapi_app
from snake402.services.broadcaster import EventBroadcaster
from snake402.services.container import ServiceContainer, build_services
from snake402.services.journal import PayoutJournal
from snake402.services.payment import SandboxPaymentVerifier
from snake402.services.payout import PayoutEngine
from snake402.services.scheduler import PayoutScheduler
from snake402.services.sessions import SessionRegistry
from snake402.services.settlement import LedgerReceipt, SettlementClient
from snake402.services.stats_store import StatsStore

ADMIN_TOKEN = "test-admin-token"
WALLET_A = "0x" + "a" * 40
WALLET_B = "0x" + "b" * 40
WALLET_C = "0x" + "c" * 40
WALLET_D = "0x" + "d" * 40
TX_HASH = "0x" + "ab" * 32
START = datetime(2026, 1, 1, tzinfo=UTC)

_tx_counter = itertools.count(1)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeLedger:
    """Records ``endCycle`` submissions instead of sending transactions."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], list[int]]] = []
        self.error: Exception | None = None
        self.status = 1

    async def end_cycle(self, winners: Sequence[str], amounts: Sequence[int]) -> LedgerReceipt:
        self.calls.append((list(winners), list(amounts)))
        if self.error is not None:
            raise self.error
        if self.status != 1:
            raise SettlementFailed("endCycle transaction reverted")
        return LedgerReceipt(tx_hash="0x" + f"{len(self.calls):064x}", block_number=len(self.calls))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sql_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    engine = build_engine(f"sqlite:///{tmp_path / 'snake402-test.db'}")
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(sql_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=sql_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def store(session_factory: sessionmaker[Session], clock: FakeClock) -> StatsStore:
    return StatsStore(session_factory, clock=clock)


@pytest.fixture()
def registry(store: StatsStore, clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(store, clock=clock)


@pytest.fixture()
def journal(tmp_path: Path) -> PayoutJournal:
    return PayoutJournal(tmp_path / "payouts.log")


@pytest.fixture()
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(max_queue=10)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def settlement(
    ledger: FakeLedger, journal: PayoutJournal, broadcaster: EventBroadcaster
) -> SettlementClient:
    return SettlementClient(ledger, journal, broadcaster, mainnet=False, timeout_seconds=5)


@pytest.fixture()
def payout_engine(
    store: StatsStore, journal: PayoutJournal, settlement: SettlementClient
) -> PayoutEngine:
    return PayoutEngine(store, journal, settlement)


@pytest.fixture()
def scheduler(
    payout_engine: PayoutEngine,
    store: StatsStore,
    broadcaster: EventBroadcaster,
    clock: FakeClock,
) -> PayoutScheduler:
    return PayoutScheduler(
        payout_engine, store, broadcaster, interval=timedelta(hours=24), clock=clock
    )


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        ADMIN_TOKEN=ADMIN_TOKEN,
        SANDBOX_MODE=True,
        PAYOUT_SCHEDULER_ENABLED=False,
        PAYOUT_JOURNAL_PATH=str(tmp_path / "payouts.log"),
        ENTRY_FEE_USDC="1",
        SETTLEMENT_TIMEOUT_SECONDS=5,
    )


@pytest.fixture()
def services(
    test_settings: Settings,
    session_factory: sessionmaker[Session],
    ledger: FakeLedger,
    clock: FakeClock,
) -> ServiceContainer:
    return build_services(
        test_settings,
        session_factory,
        ledger=ledger,
        verifier=SandboxPaymentVerifier(),
        clock=clock,
    )


@pytest.fixture()
def app(services: ServiceContainer, session_factory: sessionmaker[Session]) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.state.services = services
    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(app_get_session, None)
        fastapi_app.state.services = None


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def next_tx_hash() -> str:
    """Return a payment hash no other test call has used."""
    return "0x" + f"{next(_tx_counter):064x}"


def payment_proof(
    payer: str | None = WALLET_A, tx_hash: str | None = None
) -> dict[str, object]:
    proof: dict[str, object] = {"tx_hash": tx_hash or next_tx_hash()}
    if payer is not None:
        proof["payer"] = payer
    return proof
