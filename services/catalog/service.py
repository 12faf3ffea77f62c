"""
services/catalog/service.py
Services and gigs. Owns the gig state machine:

    open → in_progress → completed
    open → cancelled
    in_progress → cancelled

completed and cancelled are terminal. in_progress is reached only through
bid acceptance and completed only through order completion; both call
transition_gig() inside their own unit of work.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from services.ledger.service import to_amount
from shared.exceptions import (
    GigNotEditable,
    GigNotFound,
    InvalidGigTransition,
    ServiceNotFound,
    Unauthorized,
)
from shared.models.models import (
    Bid,
    Gig,
    GigAuditLog,
    GigStatus,
    Order,
    Service,
)

logger = logging.getLogger(__name__)

GIG_TRANSITIONS = {
    (GigStatus.OPEN, GigStatus.IN_PROGRESS),
    (GigStatus.IN_PROGRESS, GigStatus.COMPLETED),
    (GigStatus.OPEN, GigStatus.CANCELLED),
    (GigStatus.IN_PROGRESS, GigStatus.CANCELLED),
}

# Fields frozen once a gig leaves the open state
LOCKED_GIG_FIELDS = ("budget", "deadline", "category")

SERVICE_FIELDS = ("title", "description", "category", "price", "price_type", "image_url", "tags", "is_active")
GIG_FIELDS = ("title", "description", "category", "budget", "deadline", "image_url")


class CatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Services ──────────────────────────────────────────────

    async def get_service(self, service_id: uuid.UUID) -> Service:
        service = await self.db.get(Service, service_id)
        if not service:
            raise ServiceNotFound()
        return service

    async def list_services(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> List[Service]:
        query = select(Service).where(Service.is_active.is_(True))
        if category:
            query = query.where(Service.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Service.title.ilike(pattern), Service.description.ilike(pattern)))
        query = (
            query.order_by(Service.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(query)
        return list(result.scalars())

    async def list_provider_services(self, provider_id: uuid.UUID) -> List[Service]:
        result = await self.db.execute(
            select(Service)
            .where(Service.provider_id == provider_id)
            .order_by(Service.created_at.desc())
        )
        return list(result.scalars())

    async def create_service(self, provider_id: uuid.UUID, **fields) -> Service:
        fields["price"] = to_amount(fields["price"])
        async with atomic(self.db):
            service = Service(provider_id=provider_id, **{k: v for k, v in fields.items() if k in SERVICE_FIELDS})
            self.db.add(service)
            await self.db.flush()
        await self.db.refresh(service)
        logger.info("Service created", extra={"service_id": str(service.id)})
        return service

    async def update_service(self, service_id: uuid.UUID, acting_user_id: uuid.UUID, **fields) -> Service:
        if fields.get("price") is not None:
            fields["price"] = to_amount(fields["price"])
        async with atomic(self.db):
            service = await self.get_service(service_id)
            if service.provider_id != acting_user_id:
                raise Unauthorized("You can only edit your own services")
            for field, value in fields.items():
                if field in SERVICE_FIELDS and value is not None:
                    setattr(service, field, value)
            await self.db.flush()
        await self.db.refresh(service)
        return service

    async def delete_service(self, service_id: uuid.UUID, acting_user_id: uuid.UUID) -> bool:
        """
        Remove a service. One that already has orders is deactivated instead,
        keeping order lineage intact. Returns True if the row was deleted.
        """
        async with atomic(self.db):
            service = await self.get_service(service_id)
            if service.provider_id != acting_user_id:
                raise Unauthorized("You can only delete your own services")
            has_orders = await self.db.scalar(
                select(func.count(Order.id)).where(Order.service_id == service_id)
            )
            if has_orders:
                service.is_active = False
                deleted = False
            else:
                await self.db.delete(service)
                deleted = True
        logger.info("Service removed", extra={"service_id": str(service_id), "deleted": deleted})
        return deleted

    # ── Gigs ──────────────────────────────────────────────────

    async def get_gig(self, gig_id: uuid.UUID, for_update: bool = False) -> Gig:
        query = select(Gig).where(Gig.id == gig_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        gig = await self.db.scalar(query)
        if not gig:
            raise GigNotFound()
        return gig

    async def list_gigs(
        self,
        status: Optional[GigStatus] = GigStatus.OPEN,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> List[Gig]:
        query = select(Gig)
        if status:
            query = query.where(Gig.status == status)
        if category:
            query = query.where(Gig.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Gig.title.ilike(pattern), Gig.description.ilike(pattern)))
        query = query.order_by(Gig.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars())

    async def list_client_gigs(self, client_id: uuid.UUID) -> List[Gig]:
        result = await self.db.execute(
            select(Gig).where(Gig.client_id == client_id).order_by(Gig.created_at.desc())
        )
        return list(result.scalars())

    async def create_gig(self, client_id: uuid.UUID, **fields) -> Gig:
        async with atomic(self.db):
            gig = Gig(
                client_id=client_id,
                status=GigStatus.OPEN,
                bid_count=0,
                **{k: v for k, v in fields.items() if k in GIG_FIELDS},
            )
            self.db.add(gig)
            await self.db.flush()
            self.db.add(GigAuditLog(gig_id=gig.id, to_status=GigStatus.OPEN.value, changed_by_id=client_id))
        await self.db.refresh(gig)
        logger.info("Gig posted", extra={"gig_id": str(gig.id)})
        return gig

    async def update_gig(self, gig_id: uuid.UUID, acting_user_id: uuid.UUID, **fields) -> Gig:
        """Budget, deadline and category may only change while the gig is open."""
        async with atomic(self.db):
            gig = await self.get_gig(gig_id, for_update=True)
            if gig.client_id != acting_user_id:
                raise Unauthorized("You can only edit your own gigs")
            changes = {k: v for k, v in fields.items() if k in GIG_FIELDS and v is not None}
            if gig.status != GigStatus.OPEN and any(
                k in LOCKED_GIG_FIELDS and getattr(gig, k) != v for k, v in changes.items()
            ):
                raise GigNotEditable()
            for field, value in changes.items():
                setattr(gig, field, value)
            await self.db.flush()
        await self.db.refresh(gig)
        return gig

    async def transition_gig(
        self,
        gig: Gig,
        to_status: GigStatus,
        changed_by_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
        **values,
    ) -> Gig:
        """
        Compare-and-set status change plus audit row. Flushes only.
        A concurrent writer that already moved the gig makes this fail.
        """
        from_status = gig.status
        if (from_status, to_status) not in GIG_TRANSITIONS:
            raise InvalidGigTransition(
                f"Cannot move gig from {from_status.value} to {to_status.value}"
            )
        result = await self.db.execute(
            update(Gig)
            .where(Gig.id == gig.id, Gig.status == from_status)
            .values(status=to_status, **values)
        )
        if result.rowcount != 1:
            raise InvalidGigTransition("Gig status changed concurrently")
        self.db.add(GigAuditLog(
            gig_id=gig.id,
            from_status=from_status.value,
            to_status=to_status.value,
            changed_by_id=changed_by_id,
            reason=reason,
        ))
        await self.db.flush()
        logger.info(
            "Gig status changed",
            extra={"gig_id": str(gig.id), "from": from_status.value, "to": to_status.value},
        )
        return gig

    async def cancel_gig(self, gig_id: uuid.UUID, acting_user_id: uuid.UUID, reason: Optional[str] = None) -> Gig:
        """
        Client cancels a gig. An open gig is cancelled directly; an in-progress
        gig is cancelled through its order so a paid order is refunded.
        """
        gig = await self.get_gig(gig_id)
        if gig.client_id != acting_user_id:
            raise Unauthorized("You can only cancel your own gigs")

        if gig.status == GigStatus.IN_PROGRESS:
            from services.order.service import OrderService

            order_id = await self.db.scalar(
                select(Order.id).where(Order.gig_id == gig_id).order_by(Order.created_at.desc())
            )
            if order_id is not None:
                await OrderService(self.db).cancel_order(order_id, acting_user_id, reason)
                await self.db.refresh(gig)
                return gig

        async with atomic(self.db):
            gig = await self.get_gig(gig_id, for_update=True)
            await self.transition_gig(gig, GigStatus.CANCELLED, acting_user_id, reason)
        await self.db.refresh(gig)
        return gig

    async def delete_gig(self, gig_id: uuid.UUID, acting_user_id: uuid.UUID) -> None:
        """Bids go first, then the gig. A gig that produced an order stays."""
        async with atomic(self.db):
            gig = await self.get_gig(gig_id, for_update=True)
            if gig.client_id != acting_user_id:
                raise Unauthorized("You can only delete your own gigs")
            has_orders = await self.db.scalar(
                select(func.count(Order.id)).where(Order.gig_id == gig_id)
            )
            if has_orders:
                raise GigNotEditable("Gig has an order and cannot be deleted")
            await self.db.execute(delete(Bid).where(Bid.gig_id == gig_id))
            await self.db.execute(delete(GigAuditLog).where(GigAuditLog.gig_id == gig_id))
            await self.db.delete(gig)
        logger.info("Gig deleted", extra={"gig_id": str(gig_id)})
