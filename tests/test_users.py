"""
tests/test_users.py
Tests for profiles, dashboard stats and KYC submission.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from shared.models.models import User
from tests.conftest import auth_headers

KYC_PAYLOAD = {
    "bvn": "12345678901",
    "nin": "10987654321",
    "nin_image_url": "https://files.campus.edu/nin.jpg",
    "selfie_image_url": "https://files.campus.edu/selfie.jpg",
}


@pytest.mark.asyncio
async def test_get_own_profile(client: AsyncClient, student: User):
    response = await client.get("/users/me", headers=auth_headers(student))
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(student.id)
    assert data["email"] == student.email
    assert Decimal(data["wallet_balance"]) == Decimal("0")


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, student: User):
    response = await client.patch(
        "/users/me",
        headers=auth_headers(student),
        json={"first_name": "Adaeze", "role": "provider"},
    )
    assert response.status_code == 200
    assert response.json()["first_name"] == "Adaeze"
    assert response.json()["role"] == "provider"
    assert response.json()["last_name"] == "User"


@pytest.mark.asyncio
async def test_cannot_promote_self_to_admin(client: AsyncClient, student: User):
    response = await client.patch("/users/me", headers=auth_headers(student), json={"role": "admin"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_public_profile_hides_private_fields(client: AsyncClient, provider: User):
    response = await client.get(f"/users/{provider.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == "Bola"
    assert "email" not in data
    assert "wallet_balance" not in data


@pytest.mark.asyncio
async def test_public_profile_missing_user(client: AsyncClient):
    response = await client.get(f"/users/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["code"] == "UserNotFound"


@pytest.mark.asyncio
async def test_stats_count_live_gigs_and_services(client: AsyncClient, make_user):
    user = await make_user(first_name="Busy", balance=Decimal("700"))
    headers = auth_headers(user)
    await client.post(
        "/services",
        headers=headers,
        json={"title": "Typing", "description": "Fast typing", "category": "writing", "price": "500"},
    )
    for title in ("Need a tutor", "Need a mover"):
        await client.post(
            "/gigs",
            headers=headers,
            json={
                "title": title,
                "description": "Details inside",
                "category": "misc",
                "budget": "1000",
                "deadline": "2030-06-01T09:00:00+00:00",
            },
        )

    response = await client.get("/users/me/stats", headers=headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["active_gigs"] == 2
    assert stats["active_services"] == 1
    assert stats["completed_orders"] == 0
    assert Decimal(stats["wallet_balance"]) == Decimal("700")


@pytest.mark.asyncio
async def test_submit_kyc(client: AsyncClient, student: User):
    headers = auth_headers(student)
    response = await client.post("/users/me/kyc", headers=headers, json=KYC_PAYLOAD)
    assert response.status_code == 200
    data = response.json()
    assert data["kyc_status"] == "pending"
    assert data["is_kyc_verified"] is False
    assert data["kyc_submitted_at"] is not None

    status_now = (await client.get("/users/me/kyc", headers=headers)).json()
    assert status_now["kyc_submitted_at"] is not None


@pytest.mark.asyncio
async def test_submit_kyc_validates_numbers(client: AsyncClient, student: User):
    response = await client.post(
        "/users/me/kyc", headers=auth_headers(student), json={**KYC_PAYLOAD, "bvn": "123"}
    )
    assert response.status_code == 400
