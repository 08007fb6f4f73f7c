"""
Registration, login and bearer-token identity.
"""

import pytest
from fastapi.testclient import TestClient

from foodlink.main import app
from foodlink.routers.auth import get_user_collection
from foodlink.utils.security import create_access_token


@pytest.fixture
def client(mock_db, coordinator):
    saved = app.state.coordinator
    app.state.coordinator = coordinator
    app.dependency_overrides[get_user_collection] = lambda: mock_db["users"]
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.coordinator = saved


def _register(client, email="ngo@example.org", role="NGO"):
    return client.post(
        "/auth/register",
        json={"email": email, "password": "s3cret-pass", "name": "Helping Hands", "role": role},
    )


def test_register_hides_password(client):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "NGO"
    assert "password" not in body


def test_duplicate_email_is_rejected(client):
    _register(client)

    response = _register(client)

    assert response.status_code == 400


def test_login_returns_token_usable_for_profile(client):
    _register(client)

    login = client.post(
        "/auth/login",
        data={"username": "ngo@example.org", "password": "s3cret-pass", "role": "NGO"},
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    profile = client.get("/profile", headers={"Authorization": f"Bearer {token}"})

    assert profile.status_code == 200
    assert profile.json()["user"]["email"] == "ngo@example.org"
    assert profile.json()["donations"] == []


def test_login_rejects_wrong_password_and_role(client):
    _register(client)

    wrong_password = client.post(
        "/auth/login",
        data={"username": "ngo@example.org", "password": "nope-nope", "role": "NGO"},
    )
    wrong_role = client.post(
        "/auth/login",
        data={"username": "ngo@example.org", "password": "s3cret-pass", "role": "DELIVERY"},
    )

    assert wrong_password.status_code == 401
    assert wrong_role.status_code == 401


def test_invalid_token_is_unauthorized(client):
    response = client.get("/profile", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_token_for_unknown_user_is_not_found(client):
    token = create_access_token("65f0c0ffee0000000000abcd", "DONOR")

    response = client.get("/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 404
