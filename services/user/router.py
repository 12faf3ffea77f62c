"""
services/user/router.py
User profile, dashboard stats, public profiles and KYC submission.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.notification.service import NotificationService
from shared.exceptions import UserNotFound
from shared.middleware.auth import get_current_user
from shared.models.models import (
    Gig,
    GigStatus,
    KycStatus,
    NotificationType,
    Service,
    User,
    UserRole,
)
from shared.schemas.schemas import (
    KycStatusResponse,
    KycSubmitRequest,
    PublicUserResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update profile fields (name, picture, role).
    Only non-None fields in the request body are updated.
    """
    updates = data.model_dump(exclude_none=True)
    if not updates:
        return UserResponse.model_validate(current_user)

    if "role" in updates:
        updates["role"] = UserRole(updates["role"])
    for field, value in updates.items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return UserResponse.model_validate(current_user)


@router.get("/me/stats", response_model=UserStatsResponse)
async def get_my_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard numbers: earnings, rating, live gigs and services."""
    active_gigs = await db.scalar(
        select(func.count(Gig.id)).where(
            Gig.client_id == current_user.id,
            Gig.status.in_([GigStatus.OPEN, GigStatus.IN_PROGRESS]),
        )
    )
    active_services = await db.scalar(
        select(func.count(Service.id)).where(
            Service.provider_id == current_user.id,
            Service.is_active.is_(True),
        )
    )
    return UserStatsResponse(
        completed_orders=current_user.completed_orders,
        total_earnings=current_user.total_earnings,
        rating=current_user.rating,
        active_gigs=active_gigs or 0,
        active_services=active_services or 0,
        wallet_balance=current_user.wallet_balance,
    )


# ── KYC ────────────────────────────────────────────────────────────────────────

@router.get("/me/kyc", response_model=KycStatusResponse)
async def get_my_kyc(current_user: User = Depends(get_current_user)):
    return KycStatusResponse.model_validate(current_user)


@router.post("/me/kyc", response_model=KycStatusResponse)
async def submit_kyc(
    data: KycSubmitRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit identity documents for review.
    Resubmission is allowed after a rejection; an approved user cannot resubmit.
    """
    if current_user.is_kyc_verified:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="KYC already approved")

    current_user.bvn = data.bvn
    current_user.nin = data.nin
    current_user.nin_image_url = data.nin_image_url
    current_user.selfie_image_url = data.selfie_image_url
    current_user.kyc_status = KycStatus.PENDING
    current_user.kyc_submitted_at = datetime.now(timezone.utc)

    await NotificationService(db).notify(
        current_user.id,
        "KYC submitted",
        "Your documents were received and are awaiting review.",
        NotificationType.KYC_UPDATE,
    )
    await db.commit()
    await db.refresh(current_user)
    logger.info("KYC submitted", extra={"user_id": str(current_user.id)})
    return KycStatusResponse.model_validate(current_user)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_public_profile(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Public profile: no email, wallet or KYC documents."""
    user = await db.scalar(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    if not user:
        raise UserNotFound()
    return PublicUserResponse.model_validate(user)
