"""
services/chat/router.py
Direct conversations between users, optionally anchored to a gig,
service or order. Starting a chat for a context that already has one
returns the existing conversation.
"""

import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.notification.service import NotificationService
from shared.exceptions import ChatNotFound, Unauthorized, UserNotFound
from shared.middleware.auth import get_current_user
from shared.models.models import Chat, ChatParticipant, Message, NotificationType, User
from shared.schemas.schemas import (
    ChatMessageResponse,
    ChatResponse,
    ChatStartRequest,
    MessageCreateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["Chats"])

PREVIEW_LENGTH = 120


def _user_chats(user_id: UUID):
    return (
        select(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .where(ChatParticipant.user_id == user_id, Chat.is_active.is_(True))
    )


async def _chat_for_participant(db: AsyncSession, chat_id: UUID, user_id: UUID) -> Chat:
    chat = await db.get(Chat, chat_id)
    if not chat:
        raise ChatNotFound()
    if user_id not in chat.participant_ids:
        raise Unauthorized("Not a participant in this chat")
    return chat


@router.post("/start", response_model=ChatResponse)
async def start_chat(
    data: ChatStartRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a conversation with another user, reusing one for the same context."""
    if data.participant_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot chat with yourself")
    other = await db.scalar(
        select(User.id).where(User.id == data.participant_id, User.deleted_at.is_(None))
    )
    if not other:
        raise UserNotFound()

    candidates = await db.scalars(
        _user_chats(current_user.id).where(
            Chat.gig_id == data.gig_id if data.gig_id else Chat.gig_id.is_(None),
            Chat.service_id == data.service_id if data.service_id else Chat.service_id.is_(None),
            Chat.order_id == data.order_id if data.order_id else Chat.order_id.is_(None),
        )
    )
    for chat in candidates:
        if data.participant_id in chat.participant_ids:
            return ChatResponse.model_validate(chat)

    chat = Chat(
        gig_id=data.gig_id,
        service_id=data.service_id,
        order_id=data.order_id,
        participants=[
            ChatParticipant(user_id=current_user.id),
            ChatParticipant(user_id=data.participant_id),
        ],
    )
    db.add(chat)
    await db.commit()
    logger.info("Chat started", extra={"chat_id": str(chat.id)})
    return ChatResponse.model_validate(chat)


@router.get("", response_model=List[ChatResponse])
async def list_my_chats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Most recently active first."""
    chats = await db.scalars(
        _user_chats(current_user.id).order_by(
            func.coalesce(Chat.last_message_at, Chat.created_at).desc()
        )
    )
    return [ChatResponse.model_validate(c) for c in chats]


@router.get("/{chat_id}/messages", response_model=List[ChatMessageResponse])
async def get_messages(
    chat_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Oldest first. Reading marks the other participants' messages as read."""
    await _chat_for_participant(db, chat_id, current_user.id)

    await db.execute(
        update(Message)
        .where(
            Message.chat_id == chat_id,
            Message.sender_id != current_user.id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()

    messages = await db.scalars(
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc())
        .limit(limit)
    )
    return [ChatMessageResponse.model_validate(m) for m in messages]


@router.post(
    "/{chat_id}/messages",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    chat_id: UUID,
    data: MessageCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    chat = await _chat_for_participant(db, chat_id, current_user.id)

    message = Message(chat_id=chat.id, sender_id=current_user.id, content=data.content)
    db.add(message)
    chat.last_message = data.content[:PREVIEW_LENGTH]
    chat.last_message_at = datetime.now(timezone.utc)

    recipients = [uid for uid in chat.participant_ids if uid != current_user.id]
    await NotificationService(db).notify_many(
        recipients,
        f"New message from {current_user.full_name or 'a user'}",
        chat.last_message,
        NotificationType.MESSAGE,
        related_id=chat.id,
    )
    await db.commit()
    return ChatMessageResponse.model_validate(message)
