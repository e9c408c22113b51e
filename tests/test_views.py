import json
from unittest.mock import AsyncMock

import pytest

from apps.core.models import GameResult
from services.coordinator import views
from services.coordinator.puzzles import PuzzleCache, PuzzleSourceError
from services.coordinator.store import SessionStore

pytestmark = pytest.mark.django_db(transaction=True)

START = {"sessionId": "100", "guildId": "g1", "channelId": "c1", "gameDate": "2024-03-01"}
GUESSES = [
    {"words": ["APPLE", "BANANA", "GRAPE", "KIWI"], "correct": True, "difficulty": 0, "timestamp": 1},
    {"words": ["RED", "BLUE", "GREEN", "PINK"], "correct": False, "difficulty": None, "timestamp": 2},
]


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    store = SessionStore()
    monkeypatch.setattr(views, "store", store)
    return store


def post(client, path: str, body) -> dict:
    return client.post(path, data=json.dumps(body), content_type="application/json")


def start_and_join(client, user_id: str = "u1") -> dict:
    post(client, "/api/sessions/start", START)
    response = post(
        client,
        "/api/sessions/100/join",
        {"userId": user_id, "username": "alice", "avatarUrl": None, "guildId": "g1", "gameDate": "2024-03-01"},
    )
    assert response.status_code == 200
    return response.json()


def test_start_session(client):
    response = post(client, "/api/sessions/start", START)

    assert response.status_code == 200
    session = response.json()["session"]
    assert session["sessionId"] == "100"
    assert session["gameDate"] == "2024-03-01"
    assert session["players"] == {}


def test_start_session_requires_fields(client):
    response = post(client, "/api/sessions/start", {"sessionId": "100", "gameDate": "2024-03-01"})

    assert response.status_code == 400
    assert "channelId" in response.json()["error"]


def test_start_session_rejects_bad_json(client):
    response = client.post("/api/sessions/start", data="{nope", content_type="application/json")

    assert response.status_code == 400


def test_join_then_update_then_fetch(client):
    joined = start_and_join(client)
    assert joined == {"success": True, "userSessionId": "g1_u1_2024-03-01", "messageSessionId": "100"}

    response = post(client, "/api/sessions/g1_u1_2024-03-01/update", {"guessHistory": GUESSES})
    assert response.json() == {"success": True, "messageSessionId": "100", "userId": "u1"}

    session = client.get("/api/sessions/100").json()
    assert session["players"]["u1"]["username"] == "alice"
    assert [g["words"] for g in session["players"]["u1"]["guessHistory"]] == [g["words"] for g in GUESSES]


def test_join_unknown_session(client):
    response = post(client, "/api/sessions/nope/join", {"userId": "u1", "username": "alice", "gameDate": "2024-03-01"})

    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_update_unknown_user_session(client):
    response = post(client, "/api/sessions/g1_u9_2024-03-01/update", {"guessHistory": []})

    assert response.status_code == 404
    assert response.json() == {"error": "User session not found"}


def test_update_rejects_malformed_guesses(client):
    start_and_join(client)
    response = post(
        client, "/api/sessions/g1_u1_2024-03-01/update", {"guessHistory": [{"words": ["ONE"], "correct": True}]}
    )

    assert response.status_code == 400


def test_lookup(client):
    start_and_join(client)

    found = client.get("/api/sessions/lookup/c1/u1", {"date": "2024-03-01"}).json()
    missing = client.get("/api/sessions/lookup/c1/u1", {"date": "2024-03-02"}).json()

    assert found["found"] is True
    assert found["sessionId"] == "100"
    assert missing == {"found": False}


def test_lookup_requires_date(client):
    assert client.get("/api/sessions/lookup/c1/u1").status_code == 400


def test_get_and_delete_session(client):
    start_and_join(client)

    assert client.delete("/api/sessions/100").json() == {"success": True}
    assert client.delete("/api/sessions/100").json() == {"success": True}
    assert client.get("/api/sessions/100").status_code == 404


def test_store_failure_is_reported_as_unavailable(client, fresh_store, monkeypatch):
    monkeypatch.setattr(fresh_store, "get_session", AsyncMock(side_effect=RuntimeError("database is locked")))

    response = client.get("/api/sessions/100")

    assert response.status_code == 503


def test_complete_and_reset_game(client):
    start_and_join(client)
    body = {"userId": "u1", "username": "alice", "avatar": "abc", "score": 3, "mistakes": 4, "guessHistory": GUESSES}

    first = post(client, "/api/gamestate/g1/2024-03-01/complete", body).json()
    second = post(client, "/api/gamestate/g1/2024-03-01/complete", {**body, "score": 4, "mistakes": 1}).json()

    assert first["success"] is True
    assert second["gameState"]["players"]["u1"]["score"] == 4
    assert GameResult.objects.count() == 1

    state = client.get("/api/gamestate/g1/2024-03-01").json()
    assert state["date"] == "2024-03-01"
    assert state["players"]["u1"]["mistakes"] == 1

    reset = client.delete("/api/gamestate/g1/2024-03-01/u1").json()
    assert reset == {"success": True, "gameState": {"date": "2024-03-01", "players": {}}}
    assert client.get("/api/sessions/lookup/c1/u1", {"date": "2024-03-01"}).json() == {"found": False}


def test_complete_requires_integer_score(client):
    body = {"userId": "u1", "username": "alice", "score": "4", "mistakes": 0, "guessHistory": []}

    assert post(client, "/api/gamestate/g1/2024-03-01/complete", body).status_code == 400


def test_puzzle(client, monkeypatch):
    fetch = AsyncMock(return_value={"status": "OK", "categories": []})
    monkeypatch.setattr(views, "puzzles", PuzzleCache(fetch=fetch))

    assert client.get("/api/synapse/2024-03-01").json() == {"status": "OK", "categories": []}
    assert client.get("/api/synapse/2024-03-01").status_code == 200
    fetch.assert_awaited_once()


def test_puzzle_missing_or_unavailable(client, monkeypatch):
    monkeypatch.setattr(views, "puzzles", PuzzleCache(fetch=AsyncMock(return_value=None)))
    assert client.get("/api/synapse/2024-03-01").status_code == 404

    monkeypatch.setattr(views, "puzzles", PuzzleCache(fetch=AsyncMock(side_effect=PuzzleSourceError("down"))))
    assert client.get("/api/synapse/2024-03-01").status_code == 502


def test_token_exchange(client, monkeypatch):
    monkeypatch.setattr(views, "_exchange_code", AsyncMock(return_value="access"))
    assert post(client, "/api/token", {"code": "abc"}).json() == {"access_token": "access"}

    monkeypatch.setattr(views, "_exchange_code", AsyncMock(return_value=None))
    assert post(client, "/api/token", {"code": "abc"}).status_code == 502


def test_wrong_method(client):
    assert client.get("/api/sessions/start").status_code == 405
