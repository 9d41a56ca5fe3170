from fastapi.testclient import TestClient

from tests.conftest import WALLET_A, WALLET_B, WALLET_C, payment_proof


def _play(client: TestClient, wallet: str, score: int) -> None:
    session_id = client.post("/api/v1/join", json={"proof": payment_proof(wallet)}).json()[
        "session_id"
    ]
    response = client.post(
        "/api/v1/submit-score",
        json={"session_id": session_id, "wallet": wallet, "score": score},
    )
    assert response.status_code == 200, response.text


def test_total_and_high_leaderboards(client: TestClient):
    _play(client, WALLET_A, 10)
    _play(client, WALLET_A, 10)
    _play(client, WALLET_B, 15)
    _play(client, WALLET_C, 0)

    total = client.get("/api/v1/leaderboard/total").json()
    high = client.get("/api/v1/leaderboard/high").json()

    assert total["type"] == "total"
    assert total["total_players"] == 3
    assert [(e["rank"], e["wallet"], e["score"]) for e in total["entries"]] == [
        (1, WALLET_A, 20),
        (2, WALLET_B, 15),
    ]
    assert [(e["wallet"], e["score"]) for e in high["entries"]] == [
        (WALLET_B, 15),
        (WALLET_A, 10),
    ]


def test_daily_leaderboard_and_limit(client: TestClient):
    _play(client, WALLET_A, 5)
    _play(client, WALLET_B, 8)

    daily = client.get("/api/v1/leaderboard/daily/high", params={"limit": 1}).json()

    assert daily["type"] == "daily_high"
    assert [e["wallet"] for e in daily["entries"]] == [WALLET_B]
    assert daily["total_players"] is None


def test_leaderboard_rejects_unknown_kind_and_bad_limit(client: TestClient):
    assert client.get("/api/v1/leaderboard/average").status_code == 422
    assert client.get("/api/v1/leaderboard/total", params={"limit": 0}).status_code == 422
    assert client.get("/api/v1/leaderboard/total", params={"limit": 1001}).status_code == 422


def test_player_lookups(client: TestClient):
    _play(client, WALLET_A, 12)

    lifetime = client.get(f"/api/v1/player/{WALLET_A.upper().replace('0X', '0x')}")
    assert lifetime.status_code == 200
    assert lifetime.json()["high_score"] == 12

    daily = client.get(f"/api/v1/player/daily/{WALLET_A}").json()
    assert daily["total_score_daily"] == 12
    assert daily["games_played_daily"] == 1


def test_unknown_player(client: TestClient):
    assert client.get(f"/api/v1/player/{WALLET_B}").status_code == 404

    daily = client.get(f"/api/v1/player/daily/{WALLET_B}")
    assert daily.status_code == 200
    assert daily.json() == {
        "wallet": WALLET_B,
        "total_score_daily": 0,
        "high_score_daily": 0,
        "games_played_daily": 0,
        "last_played_daily": 0,
    }
