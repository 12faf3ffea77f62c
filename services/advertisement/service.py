"""
services/advertisement/service.py
Community advertisement board: posts, likes, shares and comments.

likes, shares and comments on an advertisement are counters moved only by
UPDATE ... SET col = col + 1, in the same unit as the row they count.
A like is unique per (advertisement, user).
"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from services.ledger.service import to_amount
from shared.exceptions import AdvertisementNotFound, Unauthorized
from shared.models.models import Advertisement, AdvertisementComment, AdvertisementLike

logger = logging.getLogger(__name__)

AD_FIELDS = ("title", "description", "category", "location", "image_url")


class AdvertisementService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_ad(self, ad_id: uuid.UUID) -> Advertisement:
        ad = await self.db.get(Advertisement, ad_id, populate_existing=True)
        if not ad:
            raise AdvertisementNotFound()
        return ad

    async def list_ads(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> List[Advertisement]:
        query = select(Advertisement)
        if category:
            query = query.where(Advertisement.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Advertisement.title.ilike(pattern), Advertisement.description.ilike(pattern))
            )
        query = (
            query.order_by(Advertisement.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(query)
        return list(result.scalars())

    async def list_user_ads(self, user_id: uuid.UUID) -> List[Advertisement]:
        result = await self.db.execute(
            select(Advertisement)
            .where(Advertisement.user_id == user_id)
            .order_by(Advertisement.created_at.desc())
        )
        return list(result.scalars())

    async def create_ad(self, user_id: uuid.UUID, price=None, **fields) -> Advertisement:
        # Free listings are allowed; anything else is a regular money amount
        price = Decimal("0.00") if price is None or Decimal(str(price)) == 0 else to_amount(price)
        async with atomic(self.db):
            ad = Advertisement(
                user_id=user_id,
                price=price,
                **{k: v for k, v in fields.items() if k in AD_FIELDS},
            )
            self.db.add(ad)
            await self.db.flush()
        await self.db.refresh(ad)
        logger.info("Advertisement created", extra={"ad_id": str(ad.id)})
        return ad

    async def delete_ad(self, ad_id: uuid.UUID, acting_user_id: uuid.UUID) -> None:
        async with atomic(self.db):
            ad = await self.get_ad(ad_id)
            if ad.user_id != acting_user_id:
                raise Unauthorized("You can only delete your own advertisements")
            await self.db.execute(delete(AdvertisementLike).where(AdvertisementLike.ad_id == ad_id))
            await self.db.execute(delete(AdvertisementComment).where(AdvertisementComment.ad_id == ad_id))
            await self.db.delete(ad)
        logger.info("Advertisement deleted", extra={"ad_id": str(ad_id)})

    async def _bump(self, ad_id: uuid.UUID, column: str, delta: int) -> None:
        counter = getattr(Advertisement, column)
        stmt = update(Advertisement).where(Advertisement.id == ad_id).values({column: counter + delta})
        if delta < 0:
            stmt = stmt.where(counter > 0)
        await self.db.execute(stmt)

    async def like_ad(self, ad_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Returns False when the user had already liked the advertisement."""
        async with atomic(self.db):
            await self.get_ad(ad_id)
            existing = await self.db.scalar(
                select(AdvertisementLike.ad_id).where(
                    AdvertisementLike.ad_id == ad_id,
                    AdvertisementLike.user_id == user_id,
                )
            )
            if existing:
                return False
            try:
                async with self.db.begin_nested():
                    self.db.add(AdvertisementLike(ad_id=ad_id, user_id=user_id))
                    await self.db.flush()
            except IntegrityError:
                # Concurrent like from the same user
                return False
            await self._bump(ad_id, "likes", 1)
        return True

    async def unlike_ad(self, ad_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        async with atomic(self.db):
            await self.get_ad(ad_id)
            result = await self.db.execute(
                delete(AdvertisementLike).where(
                    AdvertisementLike.ad_id == ad_id,
                    AdvertisementLike.user_id == user_id,
                )
            )
            if result.rowcount != 1:
                return False
            await self._bump(ad_id, "likes", -1)
        return True

    async def share_ad(self, ad_id: uuid.UUID) -> None:
        async with atomic(self.db):
            await self.get_ad(ad_id)
            await self._bump(ad_id, "shares", 1)

    async def list_comments(self, ad_id: uuid.UUID) -> List[AdvertisementComment]:
        await self.get_ad(ad_id)
        result = await self.db.execute(
            select(AdvertisementComment)
            .where(AdvertisementComment.ad_id == ad_id)
            .order_by(AdvertisementComment.created_at.desc())
        )
        return list(result.scalars())

    async def add_comment(self, ad_id: uuid.UUID, user_id: uuid.UUID, content: str) -> AdvertisementComment:
        async with atomic(self.db):
            await self.get_ad(ad_id)
            comment = AdvertisementComment(ad_id=ad_id, user_id=user_id, content=content)
            self.db.add(comment)
            await self._bump(ad_id, "comments", 1)
            await self.db.flush()
        await self.db.refresh(comment)
        return comment
