"""
tests/test_advertisements.py
Tests for the advertisement board: posting, likes, shares and comments.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from services.advertisement.service import AdvertisementService
from shared.models.models import Advertisement, AdvertisementLike, User
from tests.conftest import auth_headers, fetch


async def _post_ad(client: AsyncClient, user: User, **overrides) -> dict:
    payload = {
        "title": "Selling a mini fridge",
        "description": "Barely used, pick up from Hall B",
        "category": "electronics",
        "price": "15000",
        "location": "Hall B",
    }
    payload.update(overrides)
    response = await client.post("/advertisements", headers=auth_headers(user), json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_and_get_advertisement(client: AsyncClient, student: User):
    ad = await _post_ad(client, student)
    assert ad["user_id"] == str(student.id)
    assert Decimal(ad["price"]) == Decimal("15000")
    assert (ad["likes"], ad["shares"], ad["comments"]) == (0, 0, 0)

    response = await client.get(f"/advertisements/{ad['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Selling a mini fridge"


@pytest.mark.asyncio
async def test_free_advertisement(client: AsyncClient, student: User):
    ad = await _post_ad(client, student, price=None, title="Free textbooks")
    assert Decimal(ad["price"]) == Decimal("0")


@pytest.mark.asyncio
async def test_negative_price_is_rejected(client: AsyncClient, student: User):
    response = await client.post(
        "/advertisements",
        headers=auth_headers(student),
        json={"title": "Bad ad", "description": "x", "category": "misc", "price": "-5"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "InvalidAmount"


@pytest.mark.asyncio
async def test_posting_requires_authentication(client: AsyncClient):
    response = await client.post(
        "/advertisements", json={"title": "Anon ad", "description": "x", "category": "misc"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_advertisement(client: AsyncClient):
    response = await client.get(f"/advertisements/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["code"] == "AdvertisementNotFound"


@pytest.mark.asyncio
async def test_list_filters_by_category_and_search(client: AsyncClient, student: User, provider: User):
    await _post_ad(client, student)
    await _post_ad(client, provider, title="Calculus tutoring", description="Weekends only", category="tutoring")

    tutoring = (await client.get("/advertisements", params={"category": "tutoring"})).json()
    assert [a["title"] for a in tutoring] == ["Calculus tutoring"]

    found = (await client.get("/advertisements", params={"search": "fridge"})).json()
    assert [a["title"] for a in found] == ["Selling a mini fridge"]

    mine = (await client.get("/advertisements/mine", headers=auth_headers(provider))).json()
    assert [a["title"] for a in mine] == ["Calculus tutoring"]


@pytest.mark.asyncio
async def test_like_is_counted_once_per_user(client: AsyncClient, student: User, provider: User, db, sessions):
    ad = await _post_ad(client, student)
    url = f"/advertisements/{ad['id']}/like"

    assert (await client.post(url, headers=auth_headers(provider))).json()["message"] == "Advertisement liked"
    again = await client.post(url, headers=auth_headers(provider))
    assert again.status_code == 200
    assert again.json()["message"] == "Advertisement already liked"
    await client.post(url, headers=auth_headers(student))

    ad_id = uuid.UUID(ad["id"])
    assert (await fetch(sessions, Advertisement, ad_id)).likes == 2
    likes = await db.scalar(select(func.count()).select_from(AdvertisementLike).where(AdvertisementLike.ad_id == ad_id))
    assert likes == 2


@pytest.mark.asyncio
async def test_unlike(client: AsyncClient, student: User, provider: User, sessions):
    ad = await _post_ad(client, student)
    url = f"/advertisements/{ad['id']}/like"
    await client.post(url, headers=auth_headers(provider))

    assert (await client.delete(url, headers=auth_headers(provider))).json()["message"] == "Advertisement unliked"
    # Unliking without a like leaves the counter alone
    assert (await client.delete(url, headers=auth_headers(provider))).json()["message"] == "Advertisement was not liked"
    assert (await fetch(sessions, Advertisement, uuid.UUID(ad["id"]))).likes == 0


@pytest.mark.asyncio
async def test_concurrent_likes_from_different_users(make_user, student: User, locking_sessions, sessions, db):
    ad = await AdvertisementService(db).create_ad(
        student.id, title="Bike for sale", description="Red, 21 gears", category="transport"
    )
    fans = [await make_user(first_name=f"Fan{i}") for i in range(5)]

    async def like(user):
        async with locking_sessions() as session:
            return await AdvertisementService(session).like_ad(ad.id, user.id)

    results = await asyncio.gather(*(like(u) for u in fans))
    assert all(results)
    assert (await fetch(sessions, Advertisement, ad.id)).likes == 5


@pytest.mark.asyncio
async def test_share_increments_counter(client: AsyncClient, student: User, provider: User, sessions):
    ad = await _post_ad(client, student)
    for _ in range(3):
        response = await client.post(f"/advertisements/{ad['id']}/share", headers=auth_headers(provider))
        assert response.status_code == 200
    assert (await fetch(sessions, Advertisement, uuid.UUID(ad["id"]))).shares == 3


@pytest.mark.asyncio
async def test_comments_newest_first_and_counted(client: AsyncClient, student: User, provider: User, sessions):
    ad = await _post_ad(client, student)
    url = f"/advertisements/{ad['id']}/comments"
    for text in ("Is it still available?", "Can you deliver?"):
        response = await client.post(url, headers=auth_headers(provider), json={"content": text})
        assert response.status_code == 201
        assert response.json()["user_id"] == str(provider.id)

    comments = (await client.get(url)).json()
    assert [c["content"] for c in comments] == ["Can you deliver?", "Is it still available?"]
    assert (await fetch(sessions, Advertisement, uuid.UUID(ad["id"]))).comments == 2


@pytest.mark.asyncio
async def test_comment_on_missing_advertisement(client: AsyncClient, student: User):
    response = await client.post(
        f"/advertisements/{uuid.uuid4()}/comments", headers=auth_headers(student), json={"content": "hi"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_only_owner_deletes(client: AsyncClient, student: User, provider: User):
    ad = await _post_ad(client, student)
    await client.post(f"/advertisements/{ad['id']}/like", headers=auth_headers(provider))

    assert (await client.delete(f"/advertisements/{ad['id']}", headers=auth_headers(provider))).status_code == 403
    assert (await client.delete(f"/advertisements/{ad['id']}", headers=auth_headers(student))).status_code == 200
    assert (await client.get(f"/advertisements/{ad['id']}")).status_code == 404
