"""
tests/test_auth.py
Tests for register, login, refresh token rotation, logout and the
per-client rate limiter.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Notification, NotificationType, RefreshToken, User
from config.redis_client import RedisCache
from tests.conftest import TEST_PASSWORD, auth_headers


async def _register(client: AsyncClient, email: str = "newbie@campus.edu", **overrides):
    payload = {
        "email": email,
        "password": "S3cure-pass",
        "first_name": "New",
        "last_name": "Student",
    }
    payload.update(overrides)
    return await client.post("/auth/register", json=payload)


@pytest.mark.asyncio
async def test_register_creates_user_and_tokens(client: AsyncClient, db: AsyncSession):
    response = await _register(client)
    assert response.status_code == 201
    data = response.json()
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["email"] == "newbie@campus.edu"
    assert data["user"]["role"] == "student"
    assert data["user"]["kyc_status"] == "pending"

    welcome = await db.scalar(
        select(Notification).where(Notification.type == NotificationType.ACCOUNT_CREATED)
    )
    assert welcome is not None
    assert str(welcome.user_id) == data["user"]["id"]


@pytest.mark.asyncio
async def test_register_normalises_email_and_rejects_duplicates(client: AsyncClient):
    assert (await _register(client, "Mixed@Campus.edu")).status_code == 201
    response = await _register(client, "mixed@campus.edu")
    assert response.status_code == 409
    assert response.json()["code"] == "DuplicateAccount"


@pytest.mark.asyncio
async def test_register_validates_payload(client: AsyncClient):
    assert (await _register(client, password="short")).status_code == 400
    assert (await _register(client, "not-an-email")).status_code == 400
    assert (await _register(client, role="admin")).status_code == 400


@pytest.mark.asyncio
async def test_login(client: AsyncClient, password_user: User):
    response = await client.post(
        "/auth/login", json={"email": password_user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    assert response.json()["user"]["id"] == str(password_user.id)

    me = await client.get(
        "/auth/me", headers={"Authorization": f"Bearer {response.json()['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == password_user.email


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, password_user: User):
    response = await client.post(
        "/auth/login", json={"email": password_user.email, "password": "wrong-password"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    response = await client.post("/auth/login", json={"email": "ghost@campus.edu", "password": "whatever1"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rotates_token(client: AsyncClient, password_user: User, db: AsyncSession):
    login = await client.post(
        "/auth/login", json={"email": password_user.email, "password": TEST_PASSWORD}
    )
    old_refresh = login.json()["refresh_token"]
    client.cookies.clear()

    response = await client.post("/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 200
    assert response.json()["access_token"]
    client.cookies.clear()

    # The old token was revoked by the rotation
    reused = await client.post("/auth/refresh", json={"refresh_token": old_refresh})
    assert reused.status_code == 401

    tokens = (await db.scalars(
        select(RefreshToken).where(RefreshToken.user_id == password_user.id)
    )).all()
    assert len(tokens) == 2
    assert sorted(t.is_revoked for t in tokens) == [False, True]


@pytest.mark.asyncio
async def test_refresh_requires_token(client: AsyncClient):
    response = await client.post("/auth/refresh")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_denies_access_token(client: AsyncClient, student: User, redis):
    headers = auth_headers(student)
    assert (await client.get("/auth/me", headers=headers)).status_code == 200

    response = await client.post("/auth/logout", headers=headers)
    assert response.status_code == 200
    assert await redis.keys("jwt_revoked:*")

    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rate_limit_window_is_not_extended(redis):
    cache = RedisCache(redis)
    key = "rate:unauth:10.0.0.1"

    assert await cache.check_rate_limit(key, limit=2, window_seconds=60)
    assert 0 < await redis.ttl(key) <= 60

    # Later requests keep counting against the window opened by the first
    await redis.expire(key, 5)
    assert await cache.check_rate_limit(key, limit=2, window_seconds=60)
    assert not await cache.check_rate_limit(key, limit=2, window_seconds=60)
    assert await redis.ttl(key) <= 5

    await redis.delete(key)
    assert await cache.check_rate_limit(key, limit=2, window_seconds=60)
