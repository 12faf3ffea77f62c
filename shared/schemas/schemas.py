"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
Money and rating bounds are enforced by the service layer, which raises
typed errors (InvalidAmount / InvalidRating) instead of generic 400s.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ── Auth ──────────────────────────────────────────────────────

class RegisterRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(default="student", pattern="^(student|provider|assistant)$")


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str


class RefreshRequest(BaseSchema):
    refresh_token: str


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class AuthResponse(BaseSchema):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: "UserResponse"


# ── User ──────────────────────────────────────────────────────

class PublicUserResponse(BaseSchema):
    id: uuid.UUID
    first_name: Optional[str]
    last_name: Optional[str]
    profile_image_url: Optional[str]
    role: str
    rating: Decimal
    completed_orders: int
    is_kyc_verified: bool
    created_at: datetime


class UserResponse(PublicUserResponse):
    email: EmailStr
    wallet_balance: Decimal
    total_earnings: Decimal
    kyc_status: str


class UserUpdateRequest(BaseSchema):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    profile_image_url: Optional[str] = None
    role: Optional[str] = Field(None, pattern="^(student|provider|assistant)$")


class UserStatsResponse(BaseSchema):
    completed_orders: int
    total_earnings: Decimal
    rating: Decimal
    active_gigs: int
    active_services: int
    wallet_balance: Decimal


class KycSubmitRequest(BaseSchema):
    bvn: str = Field(..., pattern=r"^\d{11}$")
    nin: str = Field(..., pattern=r"^\d{11}$")
    nin_image_url: str = Field(..., min_length=1)
    selfie_image_url: str = Field(..., min_length=1)


class KycStatusResponse(BaseSchema):
    kyc_status: str
    is_kyc_verified: bool
    kyc_submitted_at: Optional[datetime]


# ── Services ──────────────────────────────────────────────────

class ServiceCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    price: Decimal
    price_type: str = Field(default="fixed", pattern="^(fixed|hourly)$")
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ServiceUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = None
    price_type: Optional[str] = Field(None, pattern="^(fixed|hourly)$")
    image_url: Optional[str] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ServiceResponse(BaseSchema):
    id: uuid.UUID
    provider_id: uuid.UUID
    title: str
    description: str
    category: str
    price: Decimal
    price_type: str
    rating: Decimal
    review_count: int
    is_active: bool
    image_url: Optional[str]
    tags: List[str]
    created_at: datetime


# ── Gigs ──────────────────────────────────────────────────────

class GigCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    budget: str = Field(..., min_length=1, max_length=100)
    deadline: datetime
    image_url: Optional[str] = None


class GigUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    budget: Optional[str] = Field(None, max_length=100)
    deadline: Optional[datetime] = None
    image_url: Optional[str] = None


class GigCancelRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class GigResponse(BaseSchema):
    id: uuid.UUID
    client_id: uuid.UUID
    title: str
    description: str
    category: str
    budget: str
    deadline: datetime
    status: str
    bid_count: int
    selected_bid_id: Optional[uuid.UUID]
    image_url: Optional[str]
    created_at: datetime


# ── Bids ──────────────────────────────────────────────────────

class BidCreateRequest(BaseSchema):
    amount: Decimal
    message: str = Field(..., min_length=1, max_length=2000)
    delivery_time: str = Field(..., min_length=1, max_length=100)


class BidPlaceRequest(BidCreateRequest):
    gig_id: uuid.UUID


class BidUpdateRequest(BaseSchema):
    amount: Optional[Decimal] = None
    message: Optional[str] = Field(None, min_length=1, max_length=2000)
    delivery_time: Optional[str] = Field(None, min_length=1, max_length=100)


class BidResponse(BaseSchema):
    id: uuid.UUID
    gig_id: uuid.UUID
    bidder_id: uuid.UUID
    amount: Decimal
    message: str
    delivery_time: str
    status: str
    created_at: datetime


# ── Orders ────────────────────────────────────────────────────

class OrderCreateRequest(BaseSchema):
    service_id: uuid.UUID
    notes: Optional[str] = Field(None, max_length=2000)


class OrderCancelRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseSchema):
    id: uuid.UUID
    source_type: str
    service_id: Optional[uuid.UUID]
    gig_id: Optional[uuid.UUID]
    bid_id: Optional[uuid.UUID]
    client_id: uuid.UUID
    provider_id: uuid.UUID
    amount: Decimal
    status: str
    payment_status: str
    notes: Optional[str]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    created_at: datetime


# ── Wallet ────────────────────────────────────────────────────

class WalletAmountRequest(BaseSchema):
    amount: Decimal
    description: Optional[str] = Field(None, max_length=255)


class TransactionResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    order_id: Optional[uuid.UUID]
    type: str
    amount: Decimal
    description: str
    status: str
    created_at: datetime


class WalletResponse(BaseSchema):
    balance: Decimal
    currency: str
    recent_transactions: List[TransactionResponse]


class ReconciliationResponse(BaseSchema):
    user_id: uuid.UUID
    cached_balance: Decimal
    ledger_balance: Decimal
    consistent: bool


# ── Review ────────────────────────────────────────────────────

class ReviewCreateRequest(BaseSchema):
    order_id: uuid.UUID
    rating: int
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseSchema):
    id: uuid.UUID
    order_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewee_id: uuid.UUID
    rating: int
    comment: Optional[str]
    created_at: datetime


# ── Notification ──────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    id: uuid.UUID
    type: str
    title: str
    message: str
    related_id: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime


class UnreadCountResponse(BaseSchema):
    unread_count: int


# ── Chat ──────────────────────────────────────────────────────

class ChatStartRequest(BaseSchema):
    participant_id: uuid.UUID
    gig_id: Optional[uuid.UUID] = None
    service_id: Optional[uuid.UUID] = None
    order_id: Optional[uuid.UUID] = None


class ChatResponse(BaseSchema):
    id: uuid.UUID
    participant_ids: List[uuid.UUID]
    gig_id: Optional[uuid.UUID]
    service_id: Optional[uuid.UUID]
    order_id: Optional[uuid.UUID]
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime


class MessageCreateRequest(BaseSchema):
    content: str = Field(..., min_length=1, max_length=5000)


class ChatMessageResponse(BaseSchema):
    id: uuid.UUID
    chat_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    is_read: bool
    created_at: datetime


# ── Advertisements ────────────────────────────────────────────

class AdvertisementCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    price: Optional[Decimal] = None
    location: Optional[str] = Field(None, max_length=255)
    image_url: Optional[str] = None


class AdvertisementResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: str
    category: str
    price: Decimal
    location: Optional[str]
    image_url: Optional[str]
    likes: int
    shares: int
    comments: int
    created_at: datetime


class AdCommentCreateRequest(BaseSchema):
    content: str = Field(..., min_length=1, max_length=2000)


class AdCommentResponse(BaseSchema):
    id: uuid.UUID
    ad_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    created_at: datetime


# ── Admin ─────────────────────────────────────────────────────

class AdminKycRejectRequest(BaseSchema):
    reason: str = Field(..., min_length=5, max_length=500)


class AdminAnalyticsResponse(BaseSchema):
    total_users: int
    total_providers: int
    pending_kyc: int
    open_gigs: int
    total_orders: int
    completed_orders: int
    total_wallet_balance: Decimal
    avg_rating: float


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    detail: str
    code: Optional[str] = None


AuthResponse.model_rebuild()
