"""
services/advertisement/router.py
Community advertisement board.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.advertisement.service import AdvertisementService
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    AdCommentCreateRequest,
    AdCommentResponse,
    AdvertisementCreateRequest,
    AdvertisementResponse,
    MessageResponse,
)

router = APIRouter(prefix="/advertisements", tags=["Advertisements"])


@router.get("", response_model=List[AdvertisementResponse])
async def list_advertisements(
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Public: newest first."""
    ads = await AdvertisementService(db).list_ads(category, search, page, page_size)
    return [AdvertisementResponse.model_validate(a) for a in ads]


@router.get("/mine", response_model=List[AdvertisementResponse])
async def list_my_advertisements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ads = await AdvertisementService(db).list_user_ads(current_user.id)
    return [AdvertisementResponse.model_validate(a) for a in ads]


@router.get("/{ad_id}", response_model=AdvertisementResponse)
async def get_advertisement(ad_id: UUID, db: AsyncSession = Depends(get_db)):
    return AdvertisementResponse.model_validate(await AdvertisementService(db).get_ad(ad_id))


@router.post("", response_model=AdvertisementResponse, status_code=status.HTTP_201_CREATED)
async def create_advertisement(
    data: AdvertisementCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ad = await AdvertisementService(db).create_ad(current_user.id, **data.model_dump())
    return AdvertisementResponse.model_validate(ad)


@router.delete("/{ad_id}", response_model=MessageResponse)
async def delete_advertisement(
    ad_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AdvertisementService(db).delete_ad(ad_id, current_user.id)
    return MessageResponse(message="Advertisement deleted")


@router.post("/{ad_id}/like", response_model=MessageResponse)
async def like_advertisement(
    ad_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Liking twice is a no-op."""
    liked = await AdvertisementService(db).like_ad(ad_id, current_user.id)
    return MessageResponse(message="Advertisement liked" if liked else "Advertisement already liked")


@router.delete("/{ad_id}/like", response_model=MessageResponse)
async def unlike_advertisement(
    ad_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    removed = await AdvertisementService(db).unlike_ad(ad_id, current_user.id)
    return MessageResponse(message="Advertisement unliked" if removed else "Advertisement was not liked")


@router.post("/{ad_id}/share", response_model=MessageResponse)
async def share_advertisement(
    ad_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AdvertisementService(db).share_ad(ad_id)
    return MessageResponse(message="Advertisement shared")


@router.get("/{ad_id}/comments", response_model=List[AdCommentResponse])
async def list_advertisement_comments(ad_id: UUID, db: AsyncSession = Depends(get_db)):
    comments = await AdvertisementService(db).list_comments(ad_id)
    return [AdCommentResponse.model_validate(c) for c in comments]


@router.post("/{ad_id}/comments", response_model=AdCommentResponse, status_code=status.HTTP_201_CREATED)
async def add_advertisement_comment(
    ad_id: UUID,
    data: AdCommentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await AdvertisementService(db).add_comment(ad_id, current_user.id, data.content)
    return AdCommentResponse.model_validate(comment)
