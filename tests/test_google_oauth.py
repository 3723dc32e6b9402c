# tests/test_google_oauth.py
from urllib.parse import parse_qs, urlparse

import pytest

from callintel.models import User
from callintel.routes import google_oauth
from callintel.routes.google_oauth import sign_state, verify_state


@pytest.fixture
def google_env(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "client-secret")


def test_state_round_trip(google_env):
    assert verify_state(sign_state(7)) == 7
    assert verify_state("uid:7") is None
    assert verify_state(sign_state(7).replace("uid:7", "uid:8")) is None
    assert verify_state("uid:x:abc") is None
    assert verify_state(None) is None


def test_state_depends_on_client_secret(google_env, monkeypatch):
    state = sign_state(7)
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "rotated")
    assert verify_state(state) is None


def test_start_returns_signed_state(client, user, google_env):
    r = client.get("/api/auth/google/start", headers={"X-User-Id": str(user.id)})
    assert r.status_code == 200
    state = parse_qs(urlparse(r.json()["url"]).query)["state"][0]
    assert verify_state(state) == user.id


def test_callback_rejects_unsigned_state(client, user, google_env, monkeypatch):
    exchanged = []
    monkeypatch.setattr(google_oauth, "exchange_code_for_tokens", lambda code: exchanged.append(code) or {})

    r = client.get("/api/auth/google/callback", params={"code": "abc", "state": f"uid:{user.id}"})
    assert r.status_code == 400
    assert exchanged == []


def test_callback_stores_tokens_for_signed_state(client, db, google_env, monkeypatch):
    member = User(email="other@scandiweb.com")
    db.add(member)
    db.commit()

    monkeypatch.setattr(google_oauth, "exchange_code_for_tokens",
                        lambda code: {"access_token": "at", "refresh_token": "rt", "expires_in": 3600})
    monkeypatch.setattr(google_oauth, "fetch_userinfo",
                        lambda token: {"email": "other@gmail.com", "name": "Other Person"})

    r = client.get(
        "/api/auth/google/callback",
        params={"code": "abc", "state": sign_state(member.id)},
        follow_redirects=False,
    )
    assert r.status_code == 307

    db.expire_all()
    stored = db.get(User, member.id)
    assert stored.google_refresh_token == "rt"
    assert stored.google_email == "other@gmail.com"
