from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from supabase import AuthApiError

from api_main import app
from conftest import TODAY
from database_supabase import User
from routers.common import get_today

EMAIL = "owner@example.com"
PASSWORD = "correct-horse"


class FakeAuthError(AuthApiError):
    def __init__(self, message, status):
        Exception.__init__(self, message)
        self.message = message
        self.status = status


class FakeAuth:
    """Stands in for supabase.auth: accounts by email, sessions by access token."""

    def __init__(self):
        self.accounts = {}
        self.tokens = {}
        self.get_user_error = None

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.accounts:
            raise FakeAuthError("User already registered", 422)
        user = SimpleNamespace(id=f"uid-{len(self.accounts) + 1}", email=email)
        self.accounts[email] = (credentials["password"], user)
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials", 400)
        user = account[1]
        token = f"token-{user.id}"
        self.tokens[token] = user
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=token, refresh_token="refresh"))

    def get_user(self, token):
        if self.get_user_error:
            raise self.get_user_error
        user = self.tokens.get(token)
        return SimpleNamespace(user=user) if user else None


@pytest.fixture
def auth(store, monkeypatch):
    fake = FakeAuth()
    monkeypatch.setattr(app.state, "supabase_client", SimpleNamespace(auth=fake))
    return fake


@pytest.fixture
def api(auth):
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def register_and_login(api):
    assert api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD}).status_code == 201
    response = api.post("/api/v1/auth/token", data={"username": EMAIL, "password": PASSWORD})
    assert response.status_code == 200
    return response.json()


def test_register_creates_local_profile(api, store):
    response = api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 201
    assert response.json() == {"email": EMAIL, "id": "uid-1", "username": "owner"}
    assert store.profiles["uid-1"].email == EMAIL


def test_registering_twice_is_a_conflict(api):
    api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD})
    response = api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered."


def test_short_password_is_rejected(api):
    assert api.post("/api/v1/auth/register", json={"email": EMAIL, "password": "short"}).status_code == 422


def test_login_returns_session_and_profile(api):
    body = register_and_login(api)
    assert body["access_token"] == "token-uid-1"
    assert body["token_type"] == "bearer"
    assert body["refresh_token"] == "refresh"
    assert body["user"]["username"] == "owner"


def test_login_with_wrong_password(api):
    api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD})
    response = api.post("/api/v1/auth/token", data={"username": EMAIL, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid login credentials."
    assert response.headers["www-authenticate"] == "Bearer"


def test_valid_token_reaches_protected_routes(api):
    token = register_and_login(api)["access_token"]
    me = api.get("/api/v1/auth/users/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["id"] == "uid-1"
    assert api.get("/api/v1/transactions/", headers=bearer(token)).json() == []


def test_unknown_token_is_unauthorized(api):
    response = api.get("/api/v1/auth/users/me", headers=bearer("forged"))
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_rejected_by_supabase_is_unauthorized(api, auth):
    auth.get_user_error = FakeAuthError("invalid JWT: token is expired", 403)
    assert api.get("/api/v1/auth/users/me", headers=bearer("stale")).status_code == 401


def test_supabase_outage_during_token_check(api, auth):
    auth.get_user_error = FakeAuthError("upstream connect error", 500)
    assert api.get("/api/v1/auth/users/me", headers=bearer("any")).status_code == 502


def test_first_request_creates_missing_profile(api, auth, store):
    auth.tokens["t-1"] = SimpleNamespace(id="uid-7", email="new@example.com")
    assert api.get("/api/v1/auth/users/me", headers=bearer("t-1")).json()["username"] == "new"
    assert "uid-7" in store.profiles


def test_changed_email_is_synced_to_profile(api, auth, store):
    store.profiles["uid-7"] = User(id="uid-7", email="old@example.com", username="shopkeeper")
    auth.tokens["t-1"] = SimpleNamespace(id="uid-7", email="new@example.com")
    body = api.get("/api/v1/auth/users/me", headers=bearer("t-1")).json()
    assert body["email"] == "new@example.com"
    assert store.profiles["uid-7"].email == "new@example.com"
    assert body["username"] == "shopkeeper"


def test_profile_sync_failure_is_a_server_error(api, auth, store):
    store.fail_profile_writes = True
    auth.tokens["t-1"] = SimpleNamespace(id="uid-7", email="new@example.com")
    response = api.get("/api/v1/auth/users/me", headers=bearer("t-1"))
    assert response.status_code == 500
    assert response.json()["detail"] == "User profile synchronization failed."
    assert api.post("/api/v1/auth/register", json={"email": EMAIL, "password": PASSWORD}).status_code == 500


def test_missing_supabase_client(store, monkeypatch):
    monkeypatch.setattr(app.state, "supabase_client", None)
    with TestClient(app) as api:
        assert api.get("/api/v1/auth/users/me", headers=bearer("any")).status_code == 503
