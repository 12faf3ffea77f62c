"""
services/notification/service.py
In-app notification fan-out.

notify() writes inside a SAVEPOINT of the caller's transaction, so a failed
insert rolls back only the notification and the business unit still commits.
Delivery to connected clients happens later through the outbox task
(tasks/notification_tasks.py), never while a row lock is held.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from shared.exceptions import NotificationNotFound
from shared.models.models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        type: NotificationType,
        related_id: Optional[object] = None,
    ) -> Optional[Notification]:
        """Best-effort append. Returns None when the write failed."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=str(related_id) if related_id is not None else None,
        )
        # Pending business writes belong to the caller, not the savepoint
        await self.db.flush()
        try:
            async with self.db.begin_nested():
                self.db.add(notification)
        except SQLAlchemyError as e:
            logger.warning(
                "Notification dropped",
                extra={"user_id": str(user_id), "type": type.value, "error": str(e)},
            )
            return None
        return notification

    async def notify_many(
        self,
        user_ids: Iterable[uuid.UUID],
        title: str,
        message: str,
        type: NotificationType,
        related_id: Optional[object] = None,
    ) -> int:
        """Notify each distinct user once. Returns the number written."""
        written = 0
        for user_id in dict.fromkeys(user_ids):
            if await self.notify(user_id, title, message, type, related_id):
                written += 1
        return written

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> List[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars())

    async def unread_count(self, user_id: uuid.UUID) -> int:
        count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return count or 0

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        """Idempotent: a second call keeps the original read_at."""
        async with atomic(self.db):
            notification = await self.db.scalar(
                select(Notification).where(
                    Notification.id == notification_id,
                    Notification.user_id == user_id,
                )
            )
            if not notification:
                raise NotificationNotFound()
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = datetime.now(timezone.utc)
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        async with atomic(self.db):
            result = await self.db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session="fetch")
            )
        return result.rowcount
