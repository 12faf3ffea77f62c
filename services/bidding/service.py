"""
services/bidding/service.py
Bids on gigs and the acceptance that turns a bid into an order.

Exclusivity: the gig row is locked (SELECT ... FOR UPDATE) before any bid
state is inspected, and every status change is a compare-and-set UPDATE
whose rowcount is checked. Of two concurrent accepts on one gig the loser
sees BidNotPending or GigNotOpen after the winner commits.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from services.catalog.service import CatalogService
from services.ledger.service import to_amount
from services.notification.service import NotificationService
from services.order.service import OrderService
from shared.exceptions import (
    BidNotFound,
    BidNotPending,
    GigNotOpen,
    SelfBid,
    Unauthorized,
)
from shared.models.models import (
    Bid,
    BidStatus,
    Gig,
    GigBidSource,
    GigStatus,
    NotificationType,
    Order,
)

logger = logging.getLogger(__name__)

BID_FIELDS = ("amount", "message", "delivery_time")


class BiddingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)
        self.orders = OrderService(db)
        self.notifications = NotificationService(db)

    async def get_bid(self, bid_id: uuid.UUID, for_update: bool = False) -> Bid:
        query = select(Bid).where(Bid.id == bid_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        bid = await self.db.scalar(query)
        if not bid:
            raise BidNotFound()
        return bid

    async def lock_own_bid(self, bid_id: uuid.UUID, bidder_id: uuid.UUID, denied: str) -> Bid:
        """Lock the gig, then the bid: same order as accept_bid."""
        bid = await self.get_bid(bid_id)
        if bid.bidder_id != bidder_id:
            raise Unauthorized(denied)
        await self.catalog.get_gig(bid.gig_id, for_update=True)
        return await self.get_bid(bid_id, for_update=True)

    async def list_gig_bids(self, gig_id: uuid.UUID) -> List[Bid]:
        await self.catalog.get_gig(gig_id)
        result = await self.db.execute(
            select(Bid).where(Bid.gig_id == gig_id).order_by(Bid.created_at)
        )
        return list(result.scalars())

    async def list_bidder_bids(self, bidder_id: uuid.UUID) -> List[Bid]:
        result = await self.db.execute(
            select(Bid).where(Bid.bidder_id == bidder_id).order_by(Bid.created_at.desc())
        )
        return list(result.scalars())

    async def place_bid(
        self,
        gig_id: uuid.UUID,
        bidder_id: uuid.UUID,
        amount,
        delivery_time: str,
        message: str,
    ) -> Bid:
        amount = to_amount(amount)
        async with atomic(self.db):
            gig = await self.catalog.get_gig(gig_id, for_update=True)
            if gig.client_id == bidder_id:
                raise SelfBid()
            if gig.status != GigStatus.OPEN:
                raise GigNotOpen()

            bid = Bid(
                gig_id=gig.id,
                bidder_id=bidder_id,
                amount=amount,
                delivery_time=delivery_time,
                message=message,
                status=BidStatus.PENDING,
            )
            self.db.add(bid)
            # Store-level increment, never read-modify-write
            await self.db.execute(
                update(Gig).where(Gig.id == gig.id).values(bid_count=Gig.bid_count + 1)
            )
            await self.db.flush()
            await self.notifications.notify(
                gig.client_id,
                "New bid received",
                f"You received a bid of {amount} on '{gig.title}'.",
                NotificationType.BID_RECEIVED,
                gig.id,
            )
        await self.db.refresh(bid)
        logger.info("Bid placed", extra={"bid_id": str(bid.id), "gig_id": str(gig_id)})
        return bid

    async def accept_bid(self, bid_id: uuid.UUID, acting_user_id: uuid.UUID) -> Order:
        """
        One unit: bid → accepted, every other pending bid → rejected,
        gig → in_progress with selected_bid_id, order opened, bidders notified.
        """
        async with atomic(self.db):
            bid = await self.get_bid(bid_id)
            gig = await self.catalog.get_gig(bid.gig_id, for_update=True)
            if gig.client_id != acting_user_id:
                raise Unauthorized("Only the gig owner can accept bids")

            # Re-read under the gig lock
            bid = await self.get_bid(bid_id, for_update=True)
            if bid.status != BidStatus.PENDING:
                raise BidNotPending()
            if gig.status != GigStatus.OPEN:
                raise GigNotOpen()

            result = await self.db.execute(
                update(Bid)
                .where(Bid.id == bid.id, Bid.status == BidStatus.PENDING)
                .values(status=BidStatus.ACCEPTED)
            )
            if result.rowcount != 1:
                raise BidNotPending()

            await self.catalog.transition_gig(
                gig,
                GigStatus.IN_PROGRESS,
                acting_user_id,
                f"Bid {bid.id} accepted",
                selected_bid_id=bid.id,
            )

            losers = (await self.db.execute(
                select(Bid.bidder_id).where(
                    Bid.gig_id == gig.id,
                    Bid.id != bid.id,
                    Bid.status == BidStatus.PENDING,
                )
            )).scalars().all()
            await self.db.execute(
                update(Bid)
                .where(Bid.gig_id == gig.id, Bid.id != bid.id, Bid.status == BidStatus.PENDING)
                .values(status=BidStatus.REJECTED)
            )

            order = await self.orders.open_order(
                GigBidSource(gig_id=gig.id, bid_id=bid.id),
                client_id=gig.client_id,
                provider_id=bid.bidder_id,
                amount=bid.amount,
            )

            await self.notifications.notify(
                bid.bidder_id,
                "Bid accepted",
                f"Your bid on '{gig.title}' was accepted.",
                NotificationType.BID_ACCEPTED,
                order.id,
            )
            await self.notifications.notify_many(
                (uid for uid in losers if uid != bid.bidder_id),
                "Bid not selected",
                f"Another bid was selected for '{gig.title}'.",
                NotificationType.BID_REJECTED,
                gig.id,
            )
        await self.db.refresh(order)
        logger.info(
            "Bid accepted",
            extra={"bid_id": str(bid_id), "order_id": str(order.id), "rejected": len(losers)},
        )
        return order

    async def withdraw_bid(self, bid_id: uuid.UUID, acting_user_id: uuid.UUID) -> None:
        """Bidder deletes a pending bid; the gig's bid_count drops by one."""
        async with atomic(self.db):
            bid = await self.lock_own_bid(bid_id, acting_user_id, "You can only withdraw your own bids")
            if bid.status != BidStatus.PENDING:
                raise BidNotPending()
            await self.db.delete(bid)
            await self.db.execute(
                update(Gig)
                .where(Gig.id == bid.gig_id, Gig.bid_count > 0)
                .values(bid_count=Gig.bid_count - 1)
            )
        logger.info("Bid withdrawn", extra={"bid_id": str(bid_id)})

    async def edit_bid(self, bid_id: uuid.UUID, acting_user_id: uuid.UUID, **fields) -> Bid:
        if fields.get("amount") is not None:
            fields["amount"] = to_amount(fields["amount"])
        async with atomic(self.db):
            bid = await self.lock_own_bid(bid_id, acting_user_id, "You can only edit your own bids")
            if bid.status != BidStatus.PENDING:
                raise BidNotPending()
            for field, value in fields.items():
                if field in BID_FIELDS and value is not None:
                    setattr(bid, field, value)
            await self.db.flush()
        await self.db.refresh(bid)
        return bid

    async def get_bid_for_viewer(self, bid_id: uuid.UUID, viewer_id: Optional[uuid.UUID]) -> Bid:
        """Bidder or gig owner only."""
        bid = await self.get_bid(bid_id)
        if viewer_id != bid.bidder_id:
            gig = await self.catalog.get_gig(bid.gig_id)
            if viewer_id != gig.client_id:
                raise Unauthorized("You cannot view this bid")
        return bid
