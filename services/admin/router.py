"""
services/admin/router.py
Admin-only endpoints: KYC review queue, ledger reconciliation,
platform analytics, and immutable audit log.

ALL mutations are logged to AdminAuditLog before returning.
"""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.ledger.service import LedgerService
from services.notification.service import NotificationService
from shared.exceptions import UserNotFound
from shared.middleware.auth import require_admin
from shared.models.models import (
    AdminAuditLog,
    Gig,
    GigStatus,
    KycStatus,
    NotificationType,
    Order,
    OrderStatus,
    Review,
    User,
    UserRole,
)
from shared.schemas.schemas import (
    AdminAnalyticsResponse,
    AdminKycRejectRequest,
    MessageResponse,
    ReconciliationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Helpers ────────────────────────────────────────────────────────────────────

def _log(
    db: AsyncSession,
    admin: User,
    action: str,
    entity_type: str,
    entity_id: str,
    payload: Optional[dict] = None,
    request: Optional[Request] = None,
):
    """Append an immutable record to AdminAuditLog."""
    db.add(AdminAuditLog(
        admin_id=admin.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        payload=payload or {},
        ip_address=request.client.host if request and request.client else None,
    ))


async def _kyc_applicant(db: AsyncSession, user_id: UUID) -> User:
    user = await db.scalar(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not user:
        raise UserNotFound()
    if user.kyc_submitted_at is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No KYC submission to review")
    if user.kyc_status != KycStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="KYC already reviewed")
    return user


# ── KYC Review Queue ───────────────────────────────────────────────────────────

@router.get("/kyc/pending")
async def get_pending_kyc(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Submissions awaiting review, oldest first (FIFO queue)."""
    query = (
        select(User)
        .where(User.kyc_status == KycStatus.PENDING, User.kyc_submitted_at.is_not(None))
        .order_by(User.kyc_submitted_at.asc())
    )
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    users = (await db.scalars(query.offset((page - 1) * page_size).limit(page_size))).all()

    return {
        "items": [
            {
                "user_id": str(u.id),
                "name": u.full_name,
                "email": u.email,
                "role": u.role.value,
                "bvn": u.bvn,
                "nin": u.nin,
                "nin_image_url": u.nin_image_url,
                "selfie_image_url": u.selfie_image_url,
                "submitted_at": u.kyc_submitted_at.isoformat(),
            }
            for u in users
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": -(-total // page_size),  # ceiling division
    }


@router.post("/kyc/{user_id}/approve", response_model=MessageResponse)
async def approve_kyc(
    user_id: UUID,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _kyc_applicant(db, user_id)
    user.kyc_status = KycStatus.APPROVED
    user.is_kyc_verified = True

    await NotificationService(db).notify(
        user.id,
        "KYC approved",
        "Your identity has been verified.",
        NotificationType.KYC_UPDATE,
    )
    _log(db, current_user, "APPROVE_KYC", "User", str(user_id), {}, request)
    await db.commit()
    logger.info("KYC approved", extra={"user_id": str(user_id), "admin_id": str(current_user.id)})
    return MessageResponse(message="KYC approved")


@router.post("/kyc/{user_id}/reject", response_model=MessageResponse)
async def reject_kyc(
    user_id: UUID,
    data: AdminKycRejectRequest,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reject with a reason. The user can resubmit after fixing the documents."""
    user = await _kyc_applicant(db, user_id)
    user.kyc_status = KycStatus.REJECTED
    user.is_kyc_verified = False

    await NotificationService(db).notify(
        user.id,
        "KYC rejected",
        f"Your KYC submission was not approved. Reason: {data.reason}",
        NotificationType.KYC_UPDATE,
    )
    _log(db, current_user, "REJECT_KYC", "User", str(user_id), {"reason": data.reason}, request)
    await db.commit()
    logger.info("KYC rejected", extra={"user_id": str(user_id), "admin_id": str(current_user.id)})
    return MessageResponse(message="KYC rejected")


# ── Ledger ─────────────────────────────────────────────────────────────────────

@router.get("/ledger/reconcile", response_model=List[ReconciliationResponse])
async def reconcile_all_wallets(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Wallets whose cached balance disagrees with the transaction ledger. Empty when healthy."""
    mismatches = await LedgerService(db).reconcile_all()
    return [
        ReconciliationResponse(
            user_id=r.user_id,
            cached_balance=r.cached_balance,
            ledger_balance=r.ledger_balance,
            consistent=r.consistent,
        )
        for r in mismatches
    ]


# ── Analytics ─────────────────────────────────────────────────────────────────

@router.get("/analytics", response_model=AdminAnalyticsResponse)
async def get_analytics(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Platform-wide metrics dashboard."""
    total_users = await db.scalar(
        select(func.count(User.id)).where(User.deleted_at.is_(None))
    )
    total_providers = await db.scalar(
        select(func.count(User.id)).where(User.role == UserRole.PROVIDER)
    )
    pending_kyc = await db.scalar(
        select(func.count(User.id)).where(
            User.kyc_status == KycStatus.PENDING, User.kyc_submitted_at.is_not(None)
        )
    )
    open_gigs = await db.scalar(
        select(func.count(Gig.id)).where(Gig.status == GigStatus.OPEN)
    )
    total_orders = await db.scalar(select(func.count(Order.id)))
    completed_orders = await db.scalar(
        select(func.count(Order.id)).where(Order.status == OrderStatus.COMPLETED)
    )
    total_wallet_balance = await db.scalar(select(func.sum(User.wallet_balance)))
    avg_rating = await db.scalar(select(func.avg(Review.rating)))

    return AdminAnalyticsResponse(
        total_users=total_users or 0,
        total_providers=total_providers or 0,
        pending_kyc=pending_kyc or 0,
        open_gigs=open_gigs or 0,
        total_orders=total_orders or 0,
        completed_orders=completed_orders or 0,
        total_wallet_balance=Decimal(str(total_wallet_balance or 0)),
        avg_rating=float(avg_rating or 0),
    )


# ── Audit Log ─────────────────────────────────────────────────────────────────

@router.get("/audit-logs")
async def get_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action type e.g. APPROVE_KYC"),
    entity_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Immutable admin audit log. Append-only, never editable."""
    query = (
        select(AdminAuditLog, User)
        .join(User, User.id == AdminAuditLog.admin_id)
        .order_by(AdminAuditLog.created_at.desc())
    )
    if action:
        query = query.where(AdminAuditLog.action == action.upper())
    if entity_type:
        query = query.where(AdminAuditLog.entity_type == entity_type)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    rows = result.all()

    return {
        "items": [
            {
                "id": str(log.id),
                "admin_name": admin.full_name,
                "admin_email": admin.email,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "payload": log.payload,
                "ip_address": log.ip_address,
                "created_at": log.created_at.isoformat(),
            }
            for log, admin in rows
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
