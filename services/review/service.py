"""
services/review/service.py
Reviews on completed orders and the derived ratings they feed.
"""

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from services.ledger.service import CENT
from services.notification.service import NotificationService
from services.order.service import OrderService
from shared.exceptions import (
    DuplicateReview,
    InvalidRating,
    OrderNotCompleted,
    Unauthorized,
)
from shared.models.models import (
    NotificationType,
    Order,
    OrderSourceType,
    OrderStatus,
    Review,
    Service,
    User,
)

logger = logging.getLogger(__name__)


def _mean(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


class ReviewService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = OrderService(db)
        self.notifications = NotificationService(db)

    async def submit_review(
        self,
        order_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        rating: int,
        comment: Optional[str] = None,
    ) -> Review:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidRating()

        try:
            async with atomic(self.db):
                order = await self.orders.get_order(order_id)
                if reviewer_id not in (order.client_id, order.provider_id):
                    raise Unauthorized("Only order participants can leave a review")
                if order.status != OrderStatus.COMPLETED:
                    raise OrderNotCompleted()

                existing = await self.db.scalar(
                    select(Review.id).where(
                        Review.order_id == order_id,
                        Review.reviewer_id == reviewer_id,
                    )
                )
                if existing:
                    raise DuplicateReview()

                reviewee_id = order.provider_id if reviewer_id == order.client_id else order.client_id
                review = Review(
                    order_id=order.id,
                    reviewer_id=reviewer_id,
                    reviewee_id=reviewee_id,
                    rating=rating,
                    comment=comment,
                )
                self.db.add(review)
                await self.db.flush()

                await self._refresh_user_rating(reviewee_id)
                if order.source_type == OrderSourceType.SERVICE and reviewee_id == order.provider_id:
                    await self._refresh_service_rating(order.service_id)

                await self.notifications.notify(
                    reviewee_id,
                    "New review",
                    f"You received a {rating}-star review.",
                    NotificationType.REVIEW_RECEIVED,
                    order.id,
                )
        except IntegrityError:
            # Concurrent duplicate caught by uq_review_order_reviewer
            raise DuplicateReview()

        await self.db.refresh(review)
        logger.info("Review submitted", extra={"order_id": str(order_id), "rating": rating})
        return review

    async def _refresh_user_rating(self, user_id: uuid.UUID) -> Decimal:
        # Lock the reviewee so concurrent reviews recompute serially
        await self.db.execute(
            select(User.id).where(User.id == user_id).with_for_update()
        )
        avg = await self.db.scalar(
            select(func.avg(Review.rating)).where(Review.reviewee_id == user_id)
        )
        rating = _mean(avg)
        await self.db.execute(update(User).where(User.id == user_id).values(rating=rating))
        return rating

    async def _refresh_service_rating(self, service_id: uuid.UUID) -> None:
        await self.db.execute(
            select(Service.id).where(Service.id == service_id).with_for_update()
        )
        avg, count = (await self.db.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .join(Order, Order.id == Review.order_id)
            .where(Order.service_id == service_id, Review.reviewee_id == Order.provider_id)
        )).one()
        await self.db.execute(
            update(Service)
            .where(Service.id == service_id)
            .values(rating=_mean(avg), review_count=count)
        )

    async def list_for_user(self, user_id: uuid.UUID, page: int = 1, page_size: int = 20) -> List[Review]:
        result = await self.db.execute(
            select(Review)
            .where(Review.reviewee_id == user_id)
            .order_by(Review.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars())

    async def list_for_service(self, service_id: uuid.UUID, page: int = 1, page_size: int = 20) -> List[Review]:
        result = await self.db.execute(
            select(Review)
            .join(Order, Order.id == Review.order_id)
            .where(Order.service_id == service_id, Review.reviewee_id == Order.provider_id)
            .order_by(Review.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars())
