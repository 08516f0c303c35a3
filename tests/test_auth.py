from datetime import timedelta

import pytest

from pantry_api.auth import create_access_token
from conftest import register


@pytest.mark.asyncio
async def test_register_returns_token_and_profile(client):
    r = await client.post(
        "/api/auth/register",
        json={"email": "Dana@Pantry.io", "password": "secret123", "name": "Dana"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0
    assert body["user"]["email"] == "dana@pantry.io"
    assert body["user"]["preferences"]["cooking_skill"] == "beginner"
    assert "password_hash" not in body["user"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client, alice):
    r = await client.post(
        "/api/auth/register",
        json={"email": "ALICE@pantry.io", "password": "secret123", "name": "Other"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_validation_errors_are_400(client):
    r = await client.post(
        "/api/auth/register",
        json={"email": "not-an-email", "password": "123", "name": ""},
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"email", "password", "name"} <= fields


@pytest.mark.asyncio
async def test_login(client, alice):
    r = await client.post("/api/auth/login", json={"email": "alice@pantry.io", "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == alice["id"]

    r = await client.post("/api/auth/login", json={"email": "alice@pantry.io", "password": "wrong"})
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"

    r = await client.post("/api/auth/login", json={"email": "nobody@pantry.io", "password": "secret123"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token(client, alice):
    r = await client.post("/api/auth/refresh", headers=alice["headers"])
    assert r.status_code == 200
    assert r.json()["access_token"]


@pytest.mark.asyncio
async def test_profile_read_and_update(client, alice):
    r = await client.get("/api/auth/profile", headers=alice["headers"])
    assert r.status_code == 200
    assert r.json()["email"] == "alice@pantry.io"

    r = await client.put(
        "/api/auth/profile",
        json={"name": "Alice B", "avatar": "https://img.example/a.png"},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Alice B"
    assert r.json()["avatar"] == "https://img.example/a.png"


@pytest.mark.asyncio
async def test_change_password(client, alice):
    r = await client.post(
        "/api/auth/change-password",
        json={"current_password": "nope", "new_password": "another1"},
        headers=alice["headers"],
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "current_password"

    r = await client.post(
        "/api/auth/change-password",
        json={"current_password": "secret123", "new_password": "another1"},
        headers=alice["headers"],
    )
    assert r.status_code == 200

    r = await client.post("/api/auth/login", json={"email": "alice@pantry.io", "password": "another1"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_deactivated_account_is_locked_out(client, alice):
    r = await client.delete("/api/auth/profile", headers=alice["headers"])
    assert r.status_code == 200

    r = await client.get("/api/auth/profile", headers=alice["headers"])
    assert r.status_code == 401

    r = await client.post("/api/auth/login", json={"email": "alice@pantry.io", "password": "secret123"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_missing_token(client):
    r = await client.get("/api/products")
    assert r.status_code == 401
    assert r.json()["detail"] == "Access denied. No token provided"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        "garbage",
        create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-5)),
        create_access_token({"sub": "999"}),
        create_access_token({"sub": "not-a-number"}),
        create_access_token({"role": "admin"}),
    ],
    ids=["malformed", "expired", "unknown-user", "bad-subject", "no-subject"],
)
async def test_rejected_tokens(client, alice, token):
    r = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_signed_with_other_secret(client, alice):
    from jose import jwt

    forged = jwt.encode({"sub": str(alice["id"])}, "other-secret", algorithm="HS256")
    r = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_second_user_gets_distinct_identity(client, alice):
    bob = await register(client, "bob@pantry.io", "Bob")
    r = await client.get("/api/auth/profile", headers=bob["headers"])
    assert r.json()["id"] == bob["id"] != alice["id"]
