"""
shared/models/models.py
All SQLAlchemy ORM models for the Campus Marketplace.
Generic UUID / JSON column types so the schema runs on PostgreSQL and SQLite.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import List, Optional, Union

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


def _enum(enum_cls: type[PyEnum]) -> Enum:
    """Persist enum *values* (lowercase wire format), not member names."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=30,
    )


Money = Numeric(12, 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    STUDENT = "student"
    PROVIDER = "provider"
    ASSISTANT = "assistant"
    ADMIN = "admin"


class KycStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PriceType(str, PyEnum):
    FIXED = "fixed"
    HOURLY = "hourly"


class GigStatus(str, PyEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OrderSourceType(str, PyEnum):
    SERVICE = "service"
    GIG_BID = "gig_bid"


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class TransactionType(str, PyEnum):
    CREDIT = "credit"
    DEBIT = "debit"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, PyEnum):
    ACCOUNT_CREATED = "account_created"
    BID_RECEIVED = "bid_received"
    BID_ACCEPTED = "bid_accepted"
    BID_REJECTED = "bid_rejected"
    ORDER_CREATED = "order_created"
    ORDER_UPDATE = "order_update"
    PAYMENT = "payment"
    REVIEW_RECEIVED = "review_received"
    KYC_UPDATE = "kyc_update"
    MESSAGE = "message"


# ── Order lineage ─────────────────────────────────────────────

@dataclass(frozen=True)
class ServiceSource:
    """Order booked directly from a provider's service listing."""
    service_id: uuid.UUID


@dataclass(frozen=True)
class GigBidSource:
    """Order opened by accepting a bid on a gig."""
    gig_id: uuid.UUID
    bid_id: uuid.UUID


OrderSource = Union[ServiceSource, GigBidSource]


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )


class SoftDeleteMixin:
    """Adds soft delete capability."""
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# ── Models ────────────────────────────────────────────────────

class User(TimestampMixin, SoftDeleteMixin, Base):
    """
    Marketplace account. wallet_balance is a cached projection of the
    user's completed transactions; LedgerService keeps them in step.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        _enum(UserRole), nullable=False, default=UserRole.STUDENT
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Wallet / reputation (denormalized)
    wallet_balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)
    completed_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # KYC
    kyc_status: Mapped[KycStatus] = mapped_column(
        _enum(KycStatus), nullable=False, default=KycStatus.PENDING
    )
    is_kyc_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    kyc_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    bvn: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nin: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nin_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    selfie_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(back_populates="user")

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_non_negative"),
        Index("ix_users_role", "role"),
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class RefreshToken(Base):
    """Refresh tokens stored for rotation and revocation."""
    __tablename__ = "refresh_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    user: Mapped["User"] = relationship(back_populates="refresh_tokens")

    __table_args__ = (Index("ix_refresh_tokens_user_id", "user_id"),)


class Service(TimestampMixin, Base):
    """A provider's standing offer, bookable directly into an order."""
    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    price_type: Mapped[PriceType] = mapped_column(
        _enum(PriceType), nullable=False, default=PriceType.FIXED
    )
    rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (
        Index("ix_services_provider_id", "provider_id"),
        Index("ix_services_category", "category"),
    )


class Gig(TimestampMixin, Base):
    """
    A client's request for work, open for bids.
    Status transitions: open → in_progress → completed, open | in_progress → cancelled
    """
    __tablename__ = "gigs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    budget: Mapped[str] = mapped_column(String(100), nullable=False)  # "₦5,000 - ₦8,000"
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[GigStatus] = mapped_column(
        _enum(GigStatus), nullable=False, default=GigStatus.OPEN
    )
    bid_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Plain column: gigs <-> bids would otherwise be a foreign key cycle
    selected_bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("bid_count >= 0", name="ck_gigs_bid_count_non_negative"),
        Index("ix_gigs_client_id", "client_id"),
        Index("ix_gigs_status", "status"),
    )


class GigAuditLog(Base):
    """Immutable log of all gig status transitions."""
    __tablename__ = "gig_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gig_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class Bid(Base):
    """A provider's offer on a gig. At most one bid per gig is ever accepted."""
    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gig_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_time: Mapped[str] = mapped_column(String(100), nullable=False)  # "3 days"
    status: Mapped[BidStatus] = mapped_column(
        _enum(BidStatus), nullable=False, default=BidStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bids_amount_positive"),
        Index("ix_bids_gig_id_status", "gig_id", "status"),
        Index("ix_bids_bidder_id", "bidder_id"),
    )


class Order(TimestampMixin, Base):
    """
    Engagement between a client and a provider.
    Lineage is exactly one of ServiceSource | GigBidSource (see `source`).
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source_type: Mapped[OrderSourceType] = mapped_column(_enum(OrderSourceType), nullable=False)
    service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("services.id"), nullable=True
    )
    gig_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("gigs.id"), nullable=True
    )
    bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("bids.id"), nullable=True
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        _enum(OrderStatus), nullable=False, default=OrderStatus.PENDING
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(source_type = 'service' AND service_id IS NOT NULL"
            " AND gig_id IS NULL AND bid_id IS NULL)"
            " OR (source_type = 'gig_bid' AND gig_id IS NOT NULL"
            " AND bid_id IS NOT NULL AND service_id IS NULL)",
            name="ck_orders_single_source",
        ),
        CheckConstraint("amount > 0", name="ck_orders_amount_positive"),
        Index("ix_orders_client_id", "client_id"),
        Index("ix_orders_provider_id", "provider_id"),
        Index("ix_orders_status", "status"),
    )

    @property
    def source(self) -> OrderSource:
        if self.source_type == OrderSourceType.SERVICE:
            return ServiceSource(service_id=self.service_id)
        return GigBidSource(gig_id=self.gig_id, bid_id=self.bid_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class Transaction(Base):
    """Append-only ledger entry. Never updated once written."""
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=True
    )
    type: Mapped[TransactionType] = mapped_column(_enum(TransactionType), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        _enum(TransactionStatus), nullable=False, default=TransactionStatus.COMPLETED
    )
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_transactions_idempotency"),
        Index("ix_transactions_user_id_created", "user_id", "created_at"),
    )


class Review(TimestampMixin, Base):
    """Post-order review. One per (order, reviewer)."""
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    reviewee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        UniqueConstraint("order_id", "reviewer_id", name="uq_review_order_reviewer"),
        Index("ix_reviews_reviewee_id", "reviewee_id"),
    )


class Notification(Base):
    """
    In-app notification. delivered_at doubles as the outbox marker:
    rows with delivered_at IS NULL are published by the Celery beat task.
    """
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(_enum(NotificationType), nullable=False)
    related_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_user_id_read", "user_id", "is_read"),
        Index("ix_notifications_delivered_at", "delivered_at"),
    )


class Chat(Base):
    """Conversation, optionally anchored to a gig, service or order."""
    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gig_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("gigs.id", ondelete="SET NULL"), nullable=True
    )
    service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="SET NULL"), nullable=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=True
    )
    last_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    participants: Mapped[List["ChatParticipant"]] = relationship(
        back_populates="chat", lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def participant_ids(self) -> List[uuid.UUID]:
        return [p.user_id for p in self.participants]


class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    chat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )

    chat: Mapped["Chat"] = relationship(back_populates="participants")


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_messages_chat_id_created", "chat_id", "created_at"),)


class Advertisement(TimestampMixin, Base):
    """Community board post. Counters are only moved by store-level increments."""
    __tablename__ = "advertisements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shares: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_advertisements_price_non_negative"),
        CheckConstraint("likes >= 0", name="ck_advertisements_likes_non_negative"),
        Index("ix_advertisements_category", "category"),
        Index("ix_advertisements_user_id", "user_id"),
    )


class AdvertisementLike(Base):
    __tablename__ = "advertisement_likes"

    ad_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("advertisements.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class AdvertisementComment(Base):
    __tablename__ = "advertisement_comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ad_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("advertisements.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_advertisement_comments_ad_id", "ad_id", "created_at"),)


class AdminAuditLog(Base):
    """Immutable log of all admin actions."""
    __tablename__ = "admin_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_audit_admin_id", "admin_id"),
        Index("ix_admin_audit_created_at", "created_at"),
    )
