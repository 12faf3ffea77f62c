"""
tests/test_chats.py
Tests for direct messaging between users.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Notification, NotificationType, User
from tests.conftest import auth_headers


async def _start(client: AsyncClient, user: User, other: User, **context) -> dict:
    response = await client.post(
        "/chats/start",
        headers=auth_headers(user),
        json={"participant_id": str(other.id), **context},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_start_chat(client: AsyncClient, student: User, provider: User):
    chat = await _start(client, student, provider)
    assert sorted(chat["participant_ids"]) == sorted([str(student.id), str(provider.id)])
    assert chat["last_message"] is None


@pytest.mark.asyncio
async def test_start_chat_reuses_same_context(client: AsyncClient, student: User, provider: User):
    first = await _start(client, student, provider)
    # Either side starting again lands in the same conversation
    second = await _start(client, provider, student)
    assert first["id"] == second["id"]

    gig = (await client.post(
        "/gigs",
        headers=auth_headers(student),
        json={
            "title": "Fix my bike",
            "description": "Flat tyre",
            "category": "repairs",
            "budget": "1500",
            "deadline": "2030-03-01T10:00:00+00:00",
        },
    )).json()
    gig_chat = await _start(client, student, provider, gig_id=gig["id"])
    assert gig_chat["id"] != first["id"]


@pytest.mark.asyncio
async def test_cannot_chat_with_self(client: AsyncClient, student: User):
    response = await client.post(
        "/chats/start", headers=auth_headers(student), json={"participant_id": str(student.id)}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_chat_with_unknown_user(client: AsyncClient, student: User):
    response = await client.post(
        "/chats/start", headers=auth_headers(student), json={"participant_id": str(uuid.uuid4())}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_message_updates_preview_and_notifies(
    client: AsyncClient, student: User, provider: User, db: AsyncSession
):
    chat = await _start(client, student, provider)
    response = await client.post(
        f"/chats/{chat['id']}/messages", headers=auth_headers(student), json={"content": "Are you free today?"}
    )
    assert response.status_code == 201
    assert response.json()["sender_id"] == str(student.id)
    assert response.json()["is_read"] is False

    listed = (await client.get("/chats", headers=auth_headers(provider))).json()
    assert listed[0]["last_message"] == "Are you free today?"

    notification = await db.scalar(
        select(Notification).where(
            Notification.user_id == provider.id, Notification.type == NotificationType.MESSAGE
        )
    )
    assert notification.related_id == chat["id"]


@pytest.mark.asyncio
async def test_long_message_preview_is_truncated(client: AsyncClient, student: User, provider: User):
    chat = await _start(client, student, provider)
    await client.post(f"/chats/{chat['id']}/messages", headers=auth_headers(student), json={"content": "x" * 500})
    listed = (await client.get("/chats", headers=auth_headers(student))).json()
    assert len(listed[0]["last_message"]) == 120


@pytest.mark.asyncio
async def test_reading_marks_other_side_messages_read(client: AsyncClient, student: User, provider: User):
    chat = await _start(client, student, provider)
    for text in ("Hello", "Still there?"):
        await client.post(f"/chats/{chat['id']}/messages", headers=auth_headers(student), json={"content": text})

    # The sender reading does not mark their own messages
    own = (await client.get(f"/chats/{chat['id']}/messages", headers=auth_headers(student))).json()
    assert [m["is_read"] for m in own] == [False, False]

    seen = (await client.get(f"/chats/{chat['id']}/messages", headers=auth_headers(provider))).json()
    assert [m["content"] for m in seen] == ["Hello", "Still there?"]
    assert all(m["is_read"] for m in seen)


@pytest.mark.asyncio
async def test_outsider_cannot_read_or_post(client: AsyncClient, student: User, provider: User, make_user):
    chat = await _start(client, student, provider)
    outsider = await make_user(first_name="Eve")

    assert (await client.get(f"/chats/{chat['id']}/messages", headers=auth_headers(outsider))).status_code == 403
    response = await client.post(
        f"/chats/{chat['id']}/messages", headers=auth_headers(outsider), json={"content": "hi"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_chat(client: AsyncClient, student: User):
    response = await client.get(f"/chats/{uuid.uuid4()}/messages", headers=auth_headers(student))
    assert response.status_code == 404
