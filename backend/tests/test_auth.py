"""
Tests for registration, login and bearer token authentication.

Tests cover:
- Registration validation and duplicate detection
- Login credentials and token issuance
- Single active session: a login invalidates every other token
- 401 for missing or stale tokens
"""

import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)

VALID_PASSWORD = "Str0ng!pass"


def register(client: TestClient, username: str = "alice", email: str = "alice@test.com", password: str = VALID_PASSWORD):
    return client.post(
        "/auth/register",
        json={"username": username, "email": email, "password": password},
    )


def login(client: TestClient, email: str = "alice@test.com", password: str = VALID_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


# ============== Registration ==============


def test_register_creates_user(client: TestClient, test_db: Session):
    """Registration returns 201 with the public user fields and stores a hashed password."""
    response = register(client)

    assert response.status_code == 201, response.json()
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["username"] == "alice"
    assert body["user"]["email"] == "alice@test.com"
    assert "password" not in body["user"]

    user = test_db.query(models.User).filter(models.User.id == body["user"]["id"]).one()
    assert user.password_hash != VALID_PASSWORD
    assert user.token is None
    logger.info("✓ User registered")


def test_register_duplicate_email(client: TestClient):
    assert register(client).status_code == 201

    response = register(client, username="alice2")

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already exists"


def test_register_duplicate_username(client: TestClient):
    assert register(client).status_code == 201

    response = register(client, email="other-alice@test.com")

    assert response.status_code == 400
    assert response.json()["detail"] == "Username already exists"


@pytest.mark.parametrize("password", ["Sh0rt!a", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
def test_register_rejects_weak_password(client: TestClient, password: str):
    """Passwords need 8+ chars with upper, lower, digit and special character."""
    response = register(client, password=password)

    assert response.status_code == 400, response.json()
    assert "Password must be at least 8 characters" in response.json()["detail"]


def test_register_rejects_invalid_email(client: TestClient):
    response = register(client, email="not-an-email")

    assert response.status_code == 400


def test_register_requires_all_fields(client: TestClient):
    response = client.post("/auth/register", json={"email": "alice@test.com", "password": VALID_PASSWORD})

    assert response.status_code == 400


def test_register_rejects_blank_username(client: TestClient):
    response = register(client, username="   ")

    assert response.status_code == 400
    assert "Username is required" in response.json()["detail"]


# ============== Login ==============


def test_login_returns_token(client: TestClient, test_db: Session):
    register(client)

    response = login(client)

    assert response.status_code == 200, response.json()
    body = response.json()
    assert body["message"] == "Login successful"
    assert len(body["token"]) == 48
    int(body["token"], 16)  # hex encoded
    assert body["user"]["email"] == "alice@test.com"

    user = test_db.query(models.User).filter(models.User.email == "alice@test.com").one()
    assert user.token == body["token"]
    logger.info("✓ Login issued a token")


def test_login_wrong_password(client: TestClient):
    register(client)

    response = login(client, password="Wrong!pass1")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_login_unknown_email(client: TestClient):
    response = login(client, email="nobody@test.com")

    assert response.status_code == 401


def test_login_issues_new_token_each_time(client: TestClient):
    register(client)

    first = login(client).json()["token"]
    second = login(client).json()["token"]

    assert first != second
    # The previous token of the same user is no longer accepted
    assert client.get("/articles/my", headers={"Authorization": f"Bearer {first}"}).status_code == 401
    assert client.get("/articles/my", headers={"Authorization": f"Bearer {second}"}).status_code == 200


def test_login_invalidates_other_users_tokens(client: TestClient):
    """After B logs in, A's previously valid token is rejected."""
    register(client, username="alice", email="alice@test.com")
    register(client, username="bob", email="bob@test.com")

    token_a = login(client, email="alice@test.com").json()["token"]
    headers_a = {"Authorization": f"Bearer {token_a}"}
    assert client.get("/articles/my", headers=headers_a).status_code == 200

    token_b = login(client, email="bob@test.com").json()["token"]

    assert client.get("/articles/my", headers=headers_a).status_code == 401
    assert client.get("/articles/my", headers={"Authorization": f"Bearer {token_b}"}).status_code == 200
    logger.info("✓ Login by another user invalidated the earlier session")


# ============== Authentication ==============


def test_missing_token_is_unauthorized(client: TestClient):
    response = client.post("/articles", json={})

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_unknown_token_is_unauthorized(client: TestClient):
    response = client.get("/articles/my", headers={"Authorization": "Bearer deadbeef"})

    assert response.status_code == 401


def test_non_bearer_scheme_is_unauthorized(client: TestClient, owner_user: models.User, test_db: Session):
    owner_user.token = "abc123"
    test_db.commit()

    response = client.get("/articles/my", headers={"Authorization": "Basic abc123"})

    assert response.status_code == 401
