"""
services/review/router.py
Reviews on completed orders.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import get_redis
from services.catalog.router import invalidate_service_cache
from services.review.service import ReviewService
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import ReviewCreateRequest, ReviewResponse

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Review the other party of a completed order.
    - One review per (order, reviewer)
    - Order must be completed
    - Recomputes the reviewee's rating (and the service's, for service orders)
    """
    review = await ReviewService(db).submit_review(
        data.order_id, current_user.id, data.rating, data.comment
    )
    # Service ratings appear in cached listings
    await invalidate_service_cache(redis)
    return ReviewResponse.model_validate(review)


@router.get("/user/{user_id}", response_model=List[ReviewResponse])
async def get_user_reviews(
    user_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Public: reviews received by a user."""
    reviews = await ReviewService(db).list_for_user(user_id, page, page_size)
    return [ReviewResponse.model_validate(r) for r in reviews]
