"""
services/bidding/router.py
Bid placement, acceptance, withdrawal and editing.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.bidding.service import BiddingService
from services.catalog.service import CatalogService
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    BidCreateRequest,
    BidPlaceRequest,
    BidResponse,
    BidUpdateRequest,
    MessageResponse,
    OrderResponse,
)

router = APIRouter(tags=["Bids"])


@router.get("/gigs/{gig_id}/bids", response_model=List[BidResponse])
async def list_gig_bids(
    gig_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Gig owner sees every bid; anyone else sees only their own."""
    gig = await CatalogService(db).get_gig(gig_id)
    bids = await BiddingService(db).list_gig_bids(gig_id)
    if gig.client_id != current_user.id:
        bids = [b for b in bids if b.bidder_id == current_user.id]
    return [BidResponse.model_validate(b) for b in bids]


@router.post("/gigs/{gig_id}/bids", response_model=BidResponse, status_code=status.HTTP_201_CREATED)
async def place_bid_on_gig(
    gig_id: UUID,
    data: BidCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BiddingService(db).place_bid(
        gig_id, current_user.id, data.amount, data.delivery_time, data.message
    )
    return BidResponse.model_validate(bid)


@router.post("/bids", response_model=BidResponse, status_code=status.HTTP_201_CREATED)
async def place_bid(
    data: BidPlaceRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BiddingService(db).place_bid(
        data.gig_id, current_user.id, data.amount, data.delivery_time, data.message
    )
    return BidResponse.model_validate(bid)


@router.get("/bids/mine", response_model=List[BidResponse])
async def list_my_bids(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bids = await BiddingService(db).list_bidder_bids(current_user.id)
    return [BidResponse.model_validate(b) for b in bids]


@router.get("/bids/{bid_id}", response_model=BidResponse)
async def get_bid(
    bid_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BiddingService(db).get_bid_for_viewer(bid_id, current_user.id)
    return BidResponse.model_validate(bid)


@router.post("/bids/{bid_id}/accept", response_model=OrderResponse)
async def accept_bid(
    bid_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Gig owner accepts a bid. Atomically rejects the other pending bids,
    moves the gig to in_progress and opens the order.
    """
    order = await BiddingService(db).accept_bid(bid_id, current_user.id)
    return OrderResponse.model_validate(order)


@router.patch("/bids/{bid_id}", response_model=BidResponse)
async def edit_bid(
    bid_id: UUID,
    data: BidUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BiddingService(db).edit_bid(
        bid_id, current_user.id, **data.model_dump(exclude_none=True)
    )
    return BidResponse.model_validate(bid)


@router.delete("/bids/{bid_id}", response_model=MessageResponse)
async def withdraw_bid(
    bid_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await BiddingService(db).withdraw_bid(bid_id, current_user.id)
    return MessageResponse(message="Bid withdrawn")
