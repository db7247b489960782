"""Tests for login, profile and bearer credential validation."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.security import (
    create_session_token,
    decode_session_token,
    hash_password,
    verify_password,
)
from app.services.seed_service import DEMO_PASSWORD


# =============================================================================
# Login
# =============================================================================

@pytest.mark.asyncio
async def test_login_returns_token_with_site_scope(client: AsyncClient):
    response = await client.post(
        "/auth/login", json={"email": "operator@demo.com", "password": DEMO_PASSWORD}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["role"] == "operator"
    assert data["user"]["site_ids"] == ["site-1001"]

    payload = decode_session_token(data["token"])
    assert payload["sub"] == "user-operator"
    assert payload["org_id"] == "org-demo"
    assert payload["site_ids"] == ["site-1001"]

    response = await client.get(
        "/sites", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert [s["id"] for s in response.json()] == ["site-1001"]


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client: AsyncClient):
    response = await client.post(
        "/auth/login", json={"email": "Manager@Demo.com", "password": DEMO_PASSWORD}
    )
    assert response.status_code == 200
    assert response.json()["user"]["id"] == "user-manager"


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(client: AsyncClient):
    wrong_password = await client.post(
        "/auth/login", json={"email": "manager@demo.com", "password": "nope"}
    )
    unknown_user = await client.post(
        "/auth/login", json={"email": "ghost@demo.com", "password": DEMO_PASSWORD}
    )
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json()


@pytest.mark.asyncio
async def test_me_returns_profile(client: AsyncClient, tech_auth):
    response = await client.get("/auth/me", headers=tech_auth.headers)
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "tech@demo.com"
    assert data["role"] == "service_tech"
    assert data["site_ids"] == ["site-1001", "site-1002"]
    assert "password_hash" not in data


# =============================================================================
# Credential validation
# =============================================================================

@pytest.mark.asyncio
async def test_tampered_token_is_rejected(client: AsyncClient, operator_auth):
    header, payload, signature = operator_auth.token.split(".")
    claims = jwt.decode(operator_auth.token, options={"verify_signature": False})
    claims["role"] = "manager"
    forged = jwt.encode(claims, "not-the-secret", algorithm="HS256")

    response = await client.get("/sites", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401

    # Same claims, original signature
    resigned_payload = forged.split(".")[1]
    spliced = f"{header}.{resigned_payload}.{signature}"
    response = await client.get("/sites", headers={"Authorization": f"Bearer {spliced}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unsigned_token_is_rejected(client: AsyncClient):
    token = jwt.encode(
        {"sub": "user-manager", "org_id": "org-demo", "role": "manager",
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        key=None,
        algorithm="none",
    )
    response = await client.get("/sites", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client: AsyncClient):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": "user-manager", "org_id": "org-demo", "role": "manager",
         "site_ids": [], "iat": past, "exp": past + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm="HS256",
    )
    response = await client.get("/sites", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_role_is_forbidden(client: AsyncClient):
    token = create_session_token("user-x", "org-demo", "superuser", [])
    response = await client.get("/sites", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_signed_token_with_malformed_claims_is_rejected(client: AsyncClient):
    expires = datetime.now(timezone.utc) + timedelta(hours=1)
    for claims in (
        {"sub": "user-manager", "role": "manager", "exp": expires},
        {"sub": "user-operator", "org_id": "org-demo", "role": "operator",
         "site_ids": "site-1002", "exp": expires},
    ):
        token = jwt.encode(claims, settings.JWT_SECRET, algorithm="HS256")
        response = await client.get("/sites", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


def test_previous_secret_still_accepted(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "old-secret")
    token = create_session_token("user-manager", "org-demo", "manager", [])

    monkeypatch.setattr(settings, "JWT_SECRET", "new-secret")
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "old-secret")
    assert decode_session_token(token)["sub"] == "user-manager"

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "")
    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)


def test_password_hash_round_trip():
    hashed = hash_password("s3cret", iterations=1000)
    assert hashed.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret", hashed)
    assert not verify_password("s3cret!", hashed)
    assert not verify_password("s3cret", "plain-text")
