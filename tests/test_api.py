import datetime
import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.auth.service import create_token
from janusleaf.core.database import get_db
from janusleaf.core.dependency import get_mood_queue, get_quote_regenerator
from janusleaf.inspiration.db import upsert_quote
from janusleaf.inspiration.service import QuoteRegenerator
from janusleaf import main
from janusleaf.main import app


@pytest.fixture
def regenerator(session_factory, fake_ai, clock):
    service = QuoteRegenerator(session_factory, fake_ai, clock=clock)
    yield service
    service.shutdown()


@pytest.fixture
def client(session_factory, regenerator, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    queue = MoodAnalysisQueue(session_factory, clock=clock, debounce_delay=datetime.timedelta(seconds=5))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mood_queue] = lambda: queue
    app.dependency_overrides[get_quote_regenerator] = lambda: regenerator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(client):
    response = client.post(
        "/auth/signup",
        json={"email": "reader@example.com", "name": "Reader", "password": "correct-horse"},
    )
    assert response.status_code == 200
    tokens = response.json()
    return {
        "headers": {"Authorization": f"Bearer {tokens['access_token']}"},
        "refresh_token": tokens["refresh_token"],
        "user_id": uuid.UUID(tokens["user"]["id"]),
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestAuth:
    def test_login_and_me(self, client, auth):
        response = client.post("/auth/login", json={"email": "reader@example.com", "password": "correct-horse"})
        assert response.status_code == 200

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {response.json()['access_token']}"})
        assert me.json()["email"] == "reader@example.com"

    def test_duplicate_signup(self, client, auth):
        response = client.post(
            "/auth/signup",
            json={"email": "reader@example.com", "name": "Again", "password": "correct-horse"},
        )
        assert response.status_code == 400

    def test_wrong_password(self, client, auth):
        response = client.post("/auth/login", json={"email": "reader@example.com", "password": "wrong-horse"})
        assert response.status_code == 401

    def test_refresh_issues_new_tokens(self, client, auth):
        response = client.post("/auth/refresh", json={"refresh_token": auth["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_access_token_cannot_refresh(self, client, auth):
        access = auth["headers"]["Authorization"].split(" ", 1)[1]
        assert client.post("/auth/refresh", json={"refresh_token": access}).status_code == 401

    def test_missing_and_expired_tokens(self, client, auth):
        assert client.get("/journals/all").status_code == 401
        expired = create_token(auth["user_id"], expires_delta=datetime.timedelta(seconds=-1))
        assert client.get("/journals/all", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    def test_delete_account_removes_everything(self, client, auth):
        client.post("/journals", json={"body": "An entry that will be deleted"}, headers=auth["headers"])

        assert client.delete("/auth/delete", headers=auth["headers"]).status_code == 200
        assert client.get("/auth/me", headers=auth["headers"]).status_code == 401


class TestRefreshTokens:
    def test_refresh_token_can_be_used_once(self, client, auth):
        first = client.post("/auth/refresh", json={"refresh_token": auth["refresh_token"]})
        assert first.status_code == 200

        reused = client.post("/auth/refresh", json={"refresh_token": auth["refresh_token"]})
        assert reused.status_code == 401

        rotated = client.post("/auth/refresh", json={"refresh_token": first.json()["refresh_token"]})
        assert rotated.status_code == 200

    def test_logout_revokes_refresh_token(self, client, auth):
        response = client.post("/auth/logout", json={"refresh_token": auth["refresh_token"]})
        assert response.status_code == 200
        assert client.post("/auth/refresh", json={"refresh_token": auth["refresh_token"]}).status_code == 401

    def test_logout_with_unknown_token_still_succeeds(self, client):
        assert client.post("/auth/logout", json={"refresh_token": "not-a-token"}).status_code == 200

    def test_logout_all_revokes_every_session(self, client, auth):
        other = client.post("/auth/login", json={"email": "reader@example.com", "password": "correct-horse"}).json()

        response = client.post("/auth/logout-all", headers=auth["headers"])

        assert response.status_code == 200
        assert response.json()["revoked"] == 2
        for token in (auth["refresh_token"], other["refresh_token"]):
            assert client.post("/auth/refresh", json={"refresh_token": token}).status_code == 401


class TestProfile:
    def test_update_name(self, client, auth):
        response = client.put("/auth/me", json={"name": "  New Name "}, headers=auth["headers"])
        assert response.status_code == 200
        assert response.json()["name"] == "New Name"
        assert client.get("/auth/me", headers=auth["headers"]).json()["name"] == "New Name"

    def test_name_too_short(self, client, auth):
        assert client.put("/auth/me", json={"name": "A"}, headers=auth["headers"]).status_code == 422

    def test_change_password(self, client, auth):
        wrong = client.post(
            "/auth/change-password",
            json={"current_password": "wrong-horse", "new_password": "battery-staple"},
            headers=auth["headers"],
        )
        assert wrong.status_code == 401

        changed = client.post(
            "/auth/change-password",
            json={"current_password": "correct-horse", "new_password": "battery-staple"},
            headers=auth["headers"],
        )
        assert changed.status_code == 200

        assert client.post("/auth/refresh", json={"refresh_token": auth["refresh_token"]}).status_code == 401
        login = client.post("/auth/login", json={"email": "reader@example.com", "password": "correct-horse"})
        assert login.status_code == 401
        login = client.post("/auth/login", json={"email": "reader@example.com", "password": "battery-staple"})
        assert login.status_code == 200


class TestJournals:
    def test_create_and_read(self, client, auth):
        created = client.post(
            "/journals",
            json={"title": "Morning", "body": "Coffee and a quiet street.", "entry_date": "2025-03-01"},
            headers=auth["headers"],
        )
        assert created.status_code == 201
        entry = created.json()
        assert entry["version"] == 0
        assert entry["mood_score"] is None

        fetched = client.get(f"/journals/{entry['id']}", headers=auth["headers"])
        assert fetched.json()["title"] == "Morning"

        listing = client.get("/journals/all", headers=auth["headers"]).json()
        assert [e["id"] for e in listing] == [entry["id"]]
        assert listing[0]["body_preview"] == "Coffee and a quiet street."

        pending = client.get("/analysis/pending", headers=auth["headers"]).json()
        assert pending == {"pending": 1}

    def test_version_conflict_returns_409(self, client, auth):
        entry = client.post("/journals", json={"body": "first words"}, headers=auth["headers"]).json()

        ok = client.put(
            f"/journals/{entry['id']}/body",
            json={"body": "second words", "expected_version": 0},
            headers=auth["headers"],
        )
        assert ok.status_code == 200
        assert ok.json()["version"] == 1

        stale = client.put(
            f"/journals/{entry['id']}/body",
            json={"body": "third words", "expected_version": 0},
            headers=auth["headers"],
        )
        assert stale.status_code == 409
        assert stale.json()["expected_version"] == 0
        assert stale.json()["current_version"] == 1

    def test_metadata_update(self, client, auth):
        entry = client.post("/journals", json={"body": "words"}, headers=auth["headers"]).json()
        response = client.put(
            f"/journals/{entry['id']}/metadata", json={"title": "Renamed"}, headers=auth["headers"]
        )
        assert response.json()["title"] == "Renamed"
        assert response.json()["version"] == 1

    def test_missing_entry_returns_404(self, client, auth):
        missing = "00000000-0000-0000-0000-000000000000"
        assert client.get(f"/journals/{missing}", headers=auth["headers"]).status_code == 404
        assert client.delete(f"/journals/{missing}", headers=auth["headers"]).status_code == 404

    def test_delete(self, client, auth):
        entry = client.post("/journals", json={"body": "to be removed soon"}, headers=auth["headers"]).json()

        assert client.delete(f"/journals/{entry['id']}", headers=auth["headers"]).status_code == 204
        assert client.get(f"/journals/{entry['id']}", headers=auth["headers"]).status_code == 404
        assert client.get("/analysis/pending", headers=auth["headers"]).json() == {"pending": 0}

    def test_entries_in_date_range(self, client, auth):
        for day in ("2025-01-01", "2025-01-10", "2025-01-20"):
            client.post("/journals", json={"body": f"entry on {day}", "entry_date": day}, headers=auth["headers"])

        response = client.get(
            "/journals/range",
            params={"start_date": "2025-01-05", "end_date": "2025-01-20"},
            headers=auth["headers"],
        )

        assert response.status_code == 200
        assert [e["entry_date"] for e in response.json()] == ["2025-01-20", "2025-01-10"]

    def test_inverted_date_range_is_rejected(self, client, auth):
        response = client.get(
            "/journals/range",
            params={"start_date": "2025-02-01", "end_date": "2025-01-01"},
            headers=auth["headers"],
        )
        assert response.status_code == 400


class TestInspiration:
    def test_no_quote_yet(self, client, auth):
        response = client.get("/inspiration", headers=auth["headers"])
        assert response.status_code == 404
        assert "will be created shortly" in response.json()["detail"]

    def test_returns_existing_quote(self, client, auth, db, clock):
        upsert_quote(db, auth["user_id"], "You are doing fine.", ["calm", "rest", "home", "work"], clock())

        response = client.get("/inspiration", headers=auth["headers"])

        assert response.status_code == 200
        assert response.json()["quote"] == "You are doing fine."
        assert response.json()["tags"] == ["calm", "rest", "home", "work"]


def test_shutdown_stops_quote_executor_when_jobs_are_disabled(monkeypatch):
    stopped = []
    regenerator = SimpleNamespace(shutdown=lambda wait=True: stopped.append(wait))
    monkeypatch.setattr(main, "get_quote_regenerator", lambda: regenerator)

    main.shutdown()

    assert stopped == [False]
