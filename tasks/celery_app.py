"""
tasks/celery_app.py
Celery application instance, shared across all task modules.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=4

Beat scheduler (periodic tasks):
    celery -A tasks.celery_app beat --loglevel=info
"""

from celery import Celery, Task
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings

celery_app = Celery(
    "campus_marketplace",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "tasks.notification_tasks",
        "tasks.ledger_tasks",
    ],
)

# ── Configuration ─────────────────────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Reliability: acknowledge task AFTER execution, not before
    # This prevents task loss if worker dies mid-execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result expiry: keep task results for 1 hour
    result_expires=3600,

    task_routes={
        "tasks.notification_tasks.*": {"queue": "notifications"},
        "tasks.ledger_tasks.*": {"queue": "default"},
    },

    # Worker prefetch: 1 task at a time for long-running tasks
    worker_prefetch_multiplier=1,
)

# ── Periodic Tasks (Beat Schedule) ────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    # Publish undelivered in-app notifications to their Redis channels
    "deliver-pending-notifications": {
        "task": "tasks.notification_tasks.deliver_pending_notifications",
        "schedule": settings.NOTIFICATION_OUTBOX_INTERVAL_SECONDS,
    },

    # Compare cached wallet balances with the transaction ledger
    "reconcile-wallets": {
        "task": "tasks.ledger_tasks.reconcile_wallets",
        "schedule": settings.LEDGER_RECONCILE_INTERVAL_MINUTES * 60,
    },
}


# ── Base Task with DB session ──────────────────────────────────────────────────

def sync_database_url(url: str) -> str:
    """Async driver URL → its synchronous counterpart (Celery runs sync)."""
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


class DatabaseTask(Task):
    """Base class that provides a synchronous DB session for tasks."""
    abstract = True
    _sessionmaker = None

    def get_session(self) -> Session:
        cls = type(self)
        if cls._sessionmaker is None:
            engine = create_engine(sync_database_url(settings.DATABASE_URL), pool_pre_ping=True)
            cls._sessionmaker = sessionmaker(bind=engine, expire_on_commit=False)
        return cls._sessionmaker()
