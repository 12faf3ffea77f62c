"""
services/catalog/router.py
Provider services and client gigs.
Public service listings are cached in Redis and invalidated on every write.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from services.catalog.service import CatalogService
from services.review.service import ReviewService
from shared.middleware.auth import get_current_user
from shared.models.models import GigStatus, User
from shared.schemas.schemas import (
    GigCancelRequest,
    GigCreateRequest,
    GigResponse,
    GigUpdateRequest,
    MessageResponse,
    ReviewResponse,
    ServiceCreateRequest,
    ServiceResponse,
    ServiceUpdateRequest,
)

services_router = APIRouter(prefix="/services", tags=["Services"])
gigs_router = APIRouter(prefix="/gigs", tags=["Gigs"])

SERVICES_CACHE_PATTERN = "services:*"


async def invalidate_service_cache(redis) -> None:
    await RedisCache(redis).delete_pattern(SERVICES_CACHE_PATTERN)


# ── Services ──────────────────────────────────────────────────

@services_router.get("", response_model=List[ServiceResponse])
async def list_services(
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Public: active services, newest first. Cached."""
    cache = RedisCache(redis)
    cache_key = f"services:list:{category or ''}:{search or ''}:{page}:{page_size}"

    cached = await cache.get(cache_key)
    if cached is not None:
        return [ServiceResponse(**s) for s in cached]

    services = await CatalogService(db).list_services(category, search, page, page_size)
    items = [ServiceResponse.model_validate(s) for s in services]
    await cache.set(cache_key, [s.model_dump() for s in items])
    return items


@services_router.get("/mine", response_model=List[ServiceResponse])
async def list_my_services(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    services = await CatalogService(db).list_provider_services(current_user.id)
    return [ServiceResponse.model_validate(s) for s in services]


@services_router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    cache = RedisCache(redis)
    cache_key = f"services:{service_id}"

    cached = await cache.get(cache_key)
    if cached:
        return ServiceResponse(**cached)

    service = ServiceResponse.model_validate(await CatalogService(db).get_service(service_id))
    await cache.set(cache_key, service.model_dump())
    return service


@services_router.get("/{service_id}/reviews", response_model=List[ReviewResponse])
async def list_service_reviews(
    service_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    await CatalogService(db).get_service(service_id)
    reviews = await ReviewService(db).list_for_service(service_id, page, page_size)
    return [ReviewResponse.model_validate(r) for r in reviews]


@services_router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    service = await CatalogService(db).create_service(current_user.id, **data.model_dump())
    await invalidate_service_cache(redis)
    return ServiceResponse.model_validate(service)


@services_router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: UUID,
    data: ServiceUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    service = await CatalogService(db).update_service(
        service_id, current_user.id, **data.model_dump(exclude_none=True)
    )
    await invalidate_service_cache(redis)
    return ServiceResponse.model_validate(service)


@services_router.delete("/{service_id}", response_model=MessageResponse)
async def delete_service(
    service_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    deleted = await CatalogService(db).delete_service(service_id, current_user.id)
    await invalidate_service_cache(redis)
    if deleted:
        return MessageResponse(message="Service deleted")
    return MessageResponse(message="Service has orders and was deactivated")


# ── Gigs ──────────────────────────────────────────────────────

@gigs_router.get("", response_model=List[GigResponse])
async def list_gigs(
    status_filter: Optional[GigStatus] = Query(GigStatus.OPEN, alias="status"),
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Public: gigs filtered by status (open by default)."""
    gigs = await CatalogService(db).list_gigs(status_filter, category, search, page, page_size)
    return [GigResponse.model_validate(g) for g in gigs]


@gigs_router.get("/mine", response_model=List[GigResponse])
async def list_my_gigs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    gigs = await CatalogService(db).list_client_gigs(current_user.id)
    return [GigResponse.model_validate(g) for g in gigs]


@gigs_router.get("/{gig_id}", response_model=GigResponse)
async def get_gig(gig_id: UUID, db: AsyncSession = Depends(get_db)):
    return GigResponse.model_validate(await CatalogService(db).get_gig(gig_id))


@gigs_router.post("", response_model=GigResponse, status_code=status.HTTP_201_CREATED)
async def create_gig(
    data: GigCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    gig = await CatalogService(db).create_gig(current_user.id, **data.model_dump())
    return GigResponse.model_validate(gig)


@gigs_router.patch("/{gig_id}", response_model=GigResponse)
async def update_gig(
    gig_id: UUID,
    data: GigUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    gig = await CatalogService(db).update_gig(
        gig_id, current_user.id, **data.model_dump(exclude_none=True)
    )
    return GigResponse.model_validate(gig)


@gigs_router.post("/{gig_id}/cancel", response_model=GigResponse)
async def cancel_gig(
    gig_id: UUID,
    data: GigCancelRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an open gig, or an in-progress gig through its order (refund if paid)."""
    gig = await CatalogService(db).cancel_gig(gig_id, current_user.id, data.reason)
    return GigResponse.model_validate(gig)


@gigs_router.delete("/{gig_id}", response_model=MessageResponse)
async def delete_gig(
    gig_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CatalogService(db).delete_gig(gig_id, current_user.id)
    return MessageResponse(message="Gig deleted")
