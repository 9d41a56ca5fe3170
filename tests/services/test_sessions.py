import asyncio
from datetime import timedelta

import pytest

from snake402.core.errors import (
    SessionNotFound,
    SessionNotPaid,
    SessionPayerMismatch,
    StoreUnavailable,
)
from snake402.services.sessions import PaymentState, SessionRegistry
from snake402.services.stats_store import StatsScope, StatsStore
from tests.conftest import WALLET_A, WALLET_B, FakeClock


@pytest.mark.asyncio
async def test_create_returns_unpaid_session(registry: SessionRegistry):
    session_id = await registry.create()

    session = await registry.get(session_id)
    assert session.state is PaymentState.CREATED
    assert not session.is_paid
    assert session.paid_at is None
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_create_issues_unique_ids(registry: SessionRegistry):
    ids = {await registry.create() for _ in range(50)}
    assert len(ids) == 50


@pytest.mark.asyncio
async def test_mark_paid_reports_transition_once(registry: SessionRegistry):
    session_id = await registry.create()

    assert await registry.mark_paid(session_id, WALLET_A) is True
    assert await registry.mark_paid(session_id, WALLET_A) is False

    session = await registry.get(session_id)
    assert session.is_paid
    assert session.wallet == WALLET_A
    assert session.paid_at is not None


@pytest.mark.asyncio
async def test_mark_paid_unknown_session(registry: SessionRegistry):
    with pytest.raises(SessionNotFound):
        await registry.mark_paid("missing")


@pytest.mark.asyncio
async def test_consume_credits_once_and_expires(registry: SessionRegistry, store: StatsStore):
    session_id = await registry.create()
    await registry.mark_paid(session_id, WALLET_A)

    stats = await registry.consume(session_id, WALLET_A, 42)

    assert stats.total_score == 42
    assert stats.games_played == 1
    assert len(registry) == 0
    with pytest.raises(SessionNotFound):
        await registry.consume(session_id, WALLET_A, 42)
    lifetime = await store.get_player_stats(WALLET_A)
    assert lifetime is not None and lifetime.games_played == 1


@pytest.mark.asyncio
async def test_consume_before_payment_never_touches_stats(
    registry: SessionRegistry, store: StatsStore
):
    session_id = await registry.create()

    with pytest.raises(SessionNotPaid):
        await registry.consume(session_id, WALLET_A, 10)

    assert await store.get_player_stats(WALLET_A) is None
    assert await store.get_player_stats(WALLET_A, StatsScope.DAILY) is None
    # Still waiting for payment.
    assert (await registry.get(session_id)).state is PaymentState.CREATED


@pytest.mark.asyncio
async def test_consume_unknown_session(registry: SessionRegistry):
    with pytest.raises(SessionNotFound):
        await registry.consume("does-not-exist", WALLET_A, 1)


@pytest.mark.asyncio
async def test_consume_rejects_other_wallet(registry: SessionRegistry, store: StatsStore):
    session_id = await registry.create()
    await registry.mark_paid(session_id, WALLET_A)

    with pytest.raises(SessionPayerMismatch):
        await registry.consume(session_id, WALLET_B, 10)

    assert await store.get_player_stats(WALLET_B) is None
    assert (await registry.get(session_id)).is_paid


@pytest.mark.asyncio
async def test_consume_matches_payer_case_insensitively(registry: SessionRegistry):
    session_id = await registry.create()
    await registry.mark_paid(session_id, "0x" + WALLET_A[2:].upper())

    stats = await registry.consume(session_id, WALLET_A, 5)
    assert stats.total_score == 5


@pytest.mark.asyncio
async def test_concurrent_consume_succeeds_exactly_once(
    registry: SessionRegistry, store: StatsStore
):
    session_id = await registry.create()
    await registry.mark_paid(session_id, WALLET_A)

    results = await asyncio.gather(
        *(registry.consume(session_id, WALLET_A, 7) for _ in range(10)),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    failures = [result for result in results if isinstance(result, Exception)]
    assert len(successes) == 1
    assert all(isinstance(failure, SessionNotFound) for failure in failures)
    lifetime = await store.get_player_stats(WALLET_A)
    assert lifetime is not None
    assert lifetime.games_played == 1
    assert lifetime.total_score == 7


@pytest.mark.asyncio
async def test_failed_stats_update_restores_paid_session(
    registry: SessionRegistry, store: StatsStore, mocker
):
    session_id = await registry.create()
    await registry.mark_paid(session_id, WALLET_A)
    mocker.patch.object(
        store, "update_player_stats", side_effect=StoreUnavailable("disk full")
    )

    with pytest.raises(StoreUnavailable):
        await registry.consume(session_id, WALLET_A, 10)

    session = await registry.get(session_id)
    assert session.is_paid
    assert session.wallet == WALLET_A


@pytest.mark.asyncio
async def test_expire_removes_session(registry: SessionRegistry):
    session_id = await registry.create()

    expired = await registry.expire(session_id)

    assert expired.state is PaymentState.EXPIRED
    with pytest.raises(SessionNotFound):
        await registry.get(session_id)
    with pytest.raises(SessionNotFound):
        await registry.expire(session_id)


@pytest.mark.asyncio
async def test_sweep_unpaid_keeps_paid_and_recent(registry: SessionRegistry, clock: FakeClock):
    stale = await registry.create()
    paid = await registry.create()
    await registry.mark_paid(paid, WALLET_A)
    clock.advance(minutes=20)
    fresh = await registry.create()

    swept = await registry.sweep_unpaid(timedelta(minutes=15))

    assert swept == [stale]
    assert (await registry.get(paid)).is_paid
    assert (await registry.get(fresh)).state is PaymentState.CREATED
