"""Integration tests for the login / whoami / logout HTTP flow."""

import pytest
from fastapi.testclient import TestClient

from tokenkeep import app as app_module
from tokenkeep.service.errors import StoreError
from tokenkeep.service.runtime import get_runtime, reset_runtime_for_tests
from tokenkeep.service.tokens import store_key

USER_ID = 42
PASSWORD = "p@ss"


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest.fixture
def registered_user():
    get_runtime().register_user(USER_ID, PASSWORD)
    return USER_ID


def _login(client, user_id=USER_ID, password=PASSWORD):
    return client.post("/v1/auth/login", json={"user_id": user_id, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestLogin:
    def test_login_returns_token(self, client, registered_user):
        response = _login(client)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_id"] == USER_ID
        assert data["token_type"] == "bearer"
        assert data["token"] in get_runtime().lists.snapshot(store_key(USER_ID))

    def test_wrong_password_and_unknown_user_look_identical(self, client, registered_user):
        wrong = _login(client, password="wrong")
        unknown = _login(client, user_id=999)

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["error"] == unknown.json()["error"]
        assert wrong.json()["error"]["message"] == "invalid credentials"
        assert get_runtime().lists.snapshot(store_key(USER_ID)) == []

    def test_invalid_body_is_validation_error(self, client):
        response = client.post("/v1/auth/login", json={"user_id": -5, "password": "x"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"


class TestTokenFlow:
    def test_me_then_logout(self, client, registered_user):
        token = _login(client).json()["data"]["token"]

        me = client.get("/v1/auth/me", headers=_bearer(token))
        assert me.status_code == 200
        assert me.json()["data"] == {"user_id": USER_ID}

        out = client.post("/v1/auth/logout", headers=_bearer(token))
        assert out.status_code == 200

        again = client.get("/v1/auth/me", headers=_bearer(token))
        assert again.status_code == 401
        assert again.json()["error"]["message"] == "please log in again"

        second_logout = client.post("/v1/auth/logout", headers=_bearer(token))
        assert second_logout.status_code == 401

    def test_missing_and_malformed_tokens_are_401(self, client):
        missing = client.get("/v1/auth/me")
        malformed = client.get("/v1/auth/me", headers=_bearer("not-a-token"))
        wrong_scheme = client.get("/v1/auth/me", headers={"Authorization": "Basic abc"})

        for response in (missing, malformed, wrong_scheme):
            assert response.status_code == 401
            assert response.json()["error"]["message"] == "please log in again"
            assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_fourth_login_evicts_oldest(self, client, registered_user):
        tokens = [_login(client).json()["data"]["token"] for _ in range(4)]

        assert client.get("/v1/auth/me", headers=_bearer(tokens[0])).status_code == 401
        for token in tokens[1:]:
            assert client.get("/v1/auth/me", headers=_bearer(token)).status_code == 200

    def test_store_outage_is_503_not_401(self, client, registered_user, monkeypatch):
        async def down(key):
            raise StoreError("list store length failed")

        monkeypatch.setattr(get_runtime().lists, "length", down)

        response = _login(client)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "service_unavailable"


def test_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"] == "req-123"


class TestCredentialSeeding:
    def test_fresh_runtime_seeded_from_env_can_log_in(self, client, monkeypatch):
        monkeypatch.setenv("BOOTSTRAP_USER_ID", "7")
        monkeypatch.setenv("BOOTSTRAP_PASSWORD", "seeded-pw")
        reset_runtime_for_tests()

        response = _login(client, user_id=7, password="seeded-pw")

        assert response.status_code == 200
        token = response.json()["data"]["token"]
        assert client.get("/v1/auth/me", headers=_bearer(token)).json()["data"] == {"user_id": 7}

    def test_incomplete_bootstrap_settings_seed_nothing(self, client, monkeypatch):
        monkeypatch.setenv("BOOTSTRAP_USER_ID", "7")
        reset_runtime_for_tests()

        assert get_runtime().credentials.get_credentials(7) is None
        assert _login(client, user_id=7, password="anything").status_code == 401

    def test_bootstrap_script_seeds_credentials(self, client):
        from scripts.bootstrap_user import bootstrap_user

        assert bootstrap_user(9, "first-pw", dry_run=True)["status"] == "dry_run"
        assert get_runtime().credentials.get_credentials(9) is None

        assert bootstrap_user(9, "first-pw")["status"] == "created"
        assert _login(client, user_id=9, password="first-pw").status_code == 200

        assert bootstrap_user(9, "second-pw")["status"] == "updated"
        assert _login(client, user_id=9, password="first-pw").status_code == 401
        assert _login(client, user_id=9, password="second-pw").status_code == 200
