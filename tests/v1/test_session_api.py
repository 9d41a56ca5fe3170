from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from snake402.core.errors import StoreUnavailable
from snake402.services.container import ServiceContainer
from snake402.services.payment import PaymentVerification
from tests.conftest import WALLET_A, WALLET_B, FakeClock, next_tx_hash, payment_proof


class RejectingVerifier:
    async def verify(self, proof):
        return PaymentVerification(verified=False, reason="invalid_signature")

    async def close(self) -> None:
        return None


def _join(client: TestClient, payer: str | None = WALLET_A) -> str:
    response = client.post("/api/v1/join", json={"proof": payment_proof(payer)})
    assert response.status_code == 201, response.text
    return response.json()["session_id"]


def test_join_submit_and_replay_is_rejected(client: TestClient):
    session_id = _join(client)

    first = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": WALLET_A, "score": 15},
    )
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["session_expired"] is True
    assert body["player_stats"]["total_score"] == 15
    assert body["player_stats"]["games_played"] == 1

    replay = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": WALLET_A, "score": 15},
    )
    assert replay.status_code == 404
    assert replay.json()["error"] == "session_not_found"


@pytest.mark.asyncio
async def test_join_records_one_entry_fee(client: TestClient, services: ServiceContainer):
    _join(client)
    _join(client, payer=WALLET_B)

    assert await services.store.fees_since(services.scheduler.last_cycle_at) == Decimal(2)


def test_unpaid_session_cannot_submit(client: TestClient):
    created = client.post("/api/v1/session")
    assert created.status_code == 201
    session_id = created.json()["session_id"]
    assert created.json()["state"] == "created"

    response = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": WALLET_A, "score": 3},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "session_not_paid"
    assert client.get(f"/api/v1/player/{WALLET_A}").status_code == 404


@pytest.mark.asyncio
async def test_verify_payment_is_charged_once(client: TestClient, services: ServiceContainer):
    session_id = client.post("/api/v1/session").json()["session_id"]
    payload = {"session_id": session_id, "proof": payment_proof(WALLET_A)}

    assert client.post("/api/v1/verify-payment", json=payload).status_code == 200
    assert client.post("/api/v1/verify-payment", json=payload).status_code == 200

    snapshot = client.get(f"/api/v1/session/{session_id}").json()
    assert snapshot["is_paid"] is True
    assert snapshot["state"] == "paid"
    assert await services.store.fees_since(services.scheduler.last_cycle_at) == Decimal(1)


def test_verify_payment_unknown_session(client: TestClient):
    response = client.post(
        "/api/v1/verify-payment",
        json={"session_id": "missing", "proof": payment_proof()},
    )
    assert response.status_code == 404


def test_rejected_proof_returns_402(client: TestClient, services: ServiceContainer):
    services.verifier = RejectingVerifier()

    response = client.post("/api/v1/join", json={"proof": payment_proof()})

    assert response.status_code == 402
    body = response.json()
    assert body["error"] == "payment_unverified"
    assert "invalid_signature" in body["message"]
    assert "timestamp" in body
    assert len(services.sessions) == 0


def test_malformed_proof_is_rejected_before_the_core(client: TestClient):
    response = client.post("/api/v1/join", json={"proof": {"tx_hash": "not-a-hash"}})
    assert response.status_code == 422


def test_wrong_wallet_cannot_use_session(client: TestClient):
    session_id = _join(client, payer=WALLET_A)

    response = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": WALLET_B, "score": 3},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "session_payer_mismatch"


def test_negative_score_is_rejected(client: TestClient):
    session_id = _join(client)
    response = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": WALLET_A, "score": -5},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reused_proof_buys_one_game(client: TestClient, services: ServiceContainer):
    proof = payment_proof(WALLET_A, tx_hash=next_tx_hash())
    first = client.post("/api/v1/join", json={"proof": proof})
    assert first.status_code == 201

    again = client.post("/api/v1/join", json={"proof": proof})
    assert again.status_code == 402
    assert "already_redeemed" in again.json()["message"]

    other = client.post("/api/v1/session").json()["session_id"]
    attach = client.post("/api/v1/verify-payment", json={"session_id": other, "proof": proof})
    assert attach.status_code == 402
    assert client.get(f"/api/v1/session/{other}").json()["is_paid"] is False

    assert len(services.sessions) == 2
    assert await services.store.fees_since(services.scheduler.last_cycle_at) == Decimal(1)


def test_fee_journal_failure_rejects_join(
    client: TestClient, services: ServiceContainer, mocker
):
    mocker.patch.object(services.store, "record_fee", side_effect=StoreUnavailable("disk"))

    response = client.post("/api/v1/join", json={"proof": payment_proof()})

    assert response.status_code == 503
    assert response.json()["error"] == "store_unavailable"
    assert len(services.sessions) == 0


def test_abandoned_unpaid_sessions_are_swept(
    client: TestClient, services: ServiceContainer, clock: FakeClock
):
    stale = client.post("/api/v1/session").json()["session_id"]
    clock.advance(seconds=services.config.session_max_unpaid_age_seconds + 1)

    client.post("/api/v1/session")

    assert client.get(f"/api/v1/session/{stale}").status_code == 404
