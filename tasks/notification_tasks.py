"""
tasks/notification_tasks.py
Outbox delivery for in-app notifications.

Services write Notification rows inside their own transaction; this beat
task publishes rows that have no delivered_at yet to the recipient's Redis
channel and stamps them. Publishing happens outside every business
transaction, so a slow or failing Redis never holds a row lock.

Delivery is at-least-once: a crash between publish and commit republishes
the batch on the next run.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis
from pybreaker import CircuitBreaker, CircuitBreakerError
from sqlalchemy import select
from sqlalchemy.orm import Session

from config.redis_client import notification_channel
from config.settings import settings
from shared.models.models import Notification
from tasks.celery_app import DatabaseTask, celery_app

logger = logging.getLogger(__name__)

# Open after 5 consecutive publish failures, retry Redis after 60 seconds
publish_breaker = CircuitBreaker(fail_max=5, reset_timeout=60, name="notification-publish")

_publisher: Optional[redis.Redis] = None


def get_publisher() -> redis.Redis:
    global _publisher
    if _publisher is None:
        _publisher = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _publisher


def serialize(notification: Notification) -> str:
    return json.dumps({
        "id": str(notification.id),
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "related_id": notification.related_id,
        "created_at": notification.created_at.isoformat(),
    })


def deliver_pending(
    db: Session,
    publisher,
    batch_size: int = settings.NOTIFICATION_OUTBOX_BATCH_SIZE,
    breaker: CircuitBreaker = publish_breaker,
) -> int:
    """
    Publish up to batch_size undelivered notifications, oldest first.
    Stops at the first publish failure; the rest stay pending for the next run.
    Returns the number delivered.
    """
    pending = db.scalars(
        select(Notification)
        .where(Notification.delivered_at.is_(None))
        .order_by(Notification.created_at)
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    ).all()

    delivered = 0
    for notification in pending:
        try:
            breaker.call(
                publisher.publish,
                notification_channel(str(notification.user_id)),
                serialize(notification),
            )
        except CircuitBreakerError:
            logger.warning("Notification publisher circuit open; deferring batch")
            break
        except redis.RedisError as e:
            logger.warning("Notification publish failed", extra={"error": str(e)})
            break
        notification.delivered_at = datetime.now(timezone.utc)
        delivered += 1

    db.commit()
    return delivered


@celery_app.task(bind=True, base=DatabaseTask)
def deliver_pending_notifications(self):
    """Beat task: drain the notification outbox."""
    db = self.get_session()
    try:
        delivered = deliver_pending(db, get_publisher())
        if delivered:
            logger.info(f"Delivered {delivered} notifications")
        return delivered
    except Exception:
        db.rollback()
        logger.exception("deliver_pending_notifications failed")
        raise
    finally:
        db.close()
