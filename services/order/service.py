"""
services/order/service.py
Order lifecycle: pending → in_progress → completed | cancelled.

Payment is held in escrow: pay_order debits the client, complete_order
credits the provider, cancel_order refunds the client. Gig-sourced orders
drive their gig to completed / cancelled inside the same unit.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from services.catalog.service import CatalogService
from services.ledger.service import LedgerService
from services.notification.service import NotificationService
from shared.exceptions import (
    OrderAlreadyPaid,
    OrderClosed,
    OrderNotFound,
    SelfBooking,
    ServiceInactive,
    Unauthorized,
)
from shared.models.models import (
    GigBidSource,
    GigStatus,
    NotificationType,
    Order,
    OrderSource,
    OrderSourceType,
    OrderStatus,
    PaymentStatus,
    ServiceSource,
    TransactionType,
    User,
)

logger = logging.getLogger(__name__)

OPEN_ORDER_STATES = (OrderStatus.PENDING, OrderStatus.IN_PROGRESS)


class OrderService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)
        self.ledger = LedgerService(db)
        self.notifications = NotificationService(db)

    async def get_order(self, order_id: uuid.UUID, for_update: bool = False) -> Order:
        query = select(Order).where(Order.id == order_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        order = await self.db.scalar(query)
        if not order:
            raise OrderNotFound()
        return order

    async def get_order_for_participant(self, order_id: uuid.UUID, user_id: uuid.UUID) -> Order:
        order = await self.get_order(order_id)
        if user_id not in (order.client_id, order.provider_id):
            raise Unauthorized("You are not a participant in this order")
        return order

    async def list_orders(
        self,
        user_id: uuid.UUID,
        role: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        if role == "client":
            query = select(Order).where(Order.client_id == user_id)
        elif role == "provider":
            query = select(Order).where(Order.provider_id == user_id)
        else:
            query = select(Order).where(or_(Order.client_id == user_id, Order.provider_id == user_id))
        if status:
            query = query.where(Order.status == status)
        result = await self.db.execute(query.order_by(Order.created_at.desc()))
        return list(result.scalars())

    async def open_order(
        self,
        source: OrderSource,
        client_id: uuid.UUID,
        provider_id: uuid.UUID,
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> Order:
        """Insert a pending order for exactly one lineage. Flushes only."""
        if isinstance(source, ServiceSource):
            lineage = {"source_type": OrderSourceType.SERVICE, "service_id": source.service_id}
        elif isinstance(source, GigBidSource):
            lineage = {
                "source_type": OrderSourceType.GIG_BID,
                "gig_id": source.gig_id,
                "bid_id": source.bid_id,
            }
        else:
            raise TypeError(f"Unknown order source: {source!r}")

        order = Order(
            client_id=client_id,
            provider_id=provider_id,
            amount=amount,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            notes=notes,
            **lineage,
        )
        self.db.add(order)
        await self.db.flush()
        logger.info(
            "Order opened",
            extra={"order_id": str(order.id), "source_type": lineage["source_type"].value},
        )
        return order

    async def create_order_from_service(
        self,
        service_id: uuid.UUID,
        client_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> Order:
        async with atomic(self.db):
            service = await self.catalog.get_service(service_id)
            if service.provider_id == client_id:
                raise SelfBooking()
            if not service.is_active:
                raise ServiceInactive()
            order = await self.open_order(
                ServiceSource(service_id=service.id),
                client_id=client_id,
                provider_id=service.provider_id,
                amount=service.price,
                notes=notes,
            )
            await self.notifications.notify(
                service.provider_id,
                "New order received",
                f"You have a new order for '{service.title}'.",
                NotificationType.ORDER_CREATED,
                order.id,
            )
        await self.db.refresh(order)
        return order

    async def pay_order(self, order_id: uuid.UUID, acting_user_id: uuid.UUID) -> Order:
        """Client funds the order from their wallet; the amount is held until completion."""
        async with atomic(self.db):
            order = await self.get_order(order_id, for_update=True)
            if order.client_id != acting_user_id:
                raise Unauthorized("Only the client can pay for this order")
            if order.is_terminal:
                raise OrderClosed()
            if order.payment_status != PaymentStatus.PENDING:
                raise OrderAlreadyPaid()

            await self.ledger.lock_user(order.client_id)
            await self.ledger.apply(
                order.client_id,
                TransactionType.DEBIT,
                order.amount,
                f"Payment for order {order.id}",
                order_id=order.id,
            )
            result = await self.db.execute(
                update(Order)
                .where(
                    Order.id == order.id,
                    Order.payment_status == PaymentStatus.PENDING,
                    Order.status.in_(OPEN_ORDER_STATES),
                )
                .values(payment_status=PaymentStatus.PAID, status=OrderStatus.IN_PROGRESS)
            )
            if result.rowcount != 1:
                raise OrderAlreadyPaid()
            await self.notifications.notify(
                order.provider_id,
                "Order paid",
                f"The client has paid {order.amount} for your order. You can start work.",
                NotificationType.PAYMENT,
                order.id,
            )
        await self.db.refresh(order)
        return order

    async def complete_order(self, order_id: uuid.UUID, acting_user_id: uuid.UUID) -> Order:
        async with atomic(self.db):
            order = await self.get_order(order_id, for_update=True)
            if acting_user_id not in (order.client_id, order.provider_id):
                raise Unauthorized("You are not a participant in this order")
            if order.is_terminal:
                raise OrderClosed()

            result = await self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status.in_(OPEN_ORDER_STATES))
                .values(status=OrderStatus.COMPLETED, completed_at=datetime.now(timezone.utc))
            )
            if result.rowcount != 1:
                raise OrderClosed()

            source = order.source
            if isinstance(source, GigBidSource):
                gig = await self.catalog.get_gig(source.gig_id, for_update=True)
                if gig.status == GigStatus.IN_PROGRESS:
                    await self.catalog.transition_gig(
                        gig, GigStatus.COMPLETED, acting_user_id, f"Order {order.id} completed"
                    )

            earnings = Decimal("0.00")
            if order.payment_status == PaymentStatus.PAID:
                # Release escrow
                await self.ledger.lock_user(order.provider_id)
                await self.ledger.apply(
                    order.provider_id,
                    TransactionType.CREDIT,
                    order.amount,
                    f"Earnings for order {order.id}",
                    order_id=order.id,
                )
                earnings = order.amount
            await self.db.execute(
                update(User)
                .where(User.id == order.provider_id)
                .values(
                    completed_orders=User.completed_orders + 1,
                    total_earnings=User.total_earnings + earnings,
                )
            )

            other = order.client_id if acting_user_id == order.provider_id else order.provider_id
            await self.notifications.notify(
                other,
                "Order completed",
                "Your order has been marked as completed. You can now leave a review.",
                NotificationType.ORDER_UPDATE,
                order.id,
            )
        await self.db.refresh(order)
        logger.info("Order completed", extra={"order_id": str(order.id)})
        return order

    async def cancel_order(
        self,
        order_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Order:
        async with atomic(self.db):
            order = await self.get_order(order_id, for_update=True)
            if acting_user_id not in (order.client_id, order.provider_id):
                raise Unauthorized("You are not a participant in this order")
            if order.is_terminal:
                raise OrderClosed()

            values = {
                "status": OrderStatus.CANCELLED,
                "cancelled_at": datetime.now(timezone.utc),
                "cancellation_reason": reason,
            }
            if order.payment_status == PaymentStatus.PAID:
                await self.ledger.lock_user(order.client_id)
                await self.ledger.apply(
                    order.client_id,
                    TransactionType.CREDIT,
                    order.amount,
                    f"Refund for order {order.id}",
                    order_id=order.id,
                )
                values["payment_status"] = PaymentStatus.REFUNDED

            result = await self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status.in_(OPEN_ORDER_STATES))
                .values(**values)
            )
            if result.rowcount != 1:
                raise OrderClosed()

            source = order.source
            if isinstance(source, GigBidSource):
                gig = await self.catalog.get_gig(source.gig_id, for_update=True)
                if gig.status in (GigStatus.OPEN, GigStatus.IN_PROGRESS):
                    await self.catalog.transition_gig(
                        gig, GigStatus.CANCELLED, acting_user_id, reason or f"Order {order.id} cancelled"
                    )

            other = order.client_id if acting_user_id == order.provider_id else order.provider_id
            await self.notifications.notify(
                other,
                "Order cancelled",
                f"Your order was cancelled{': ' + reason if reason else '.'}",
                NotificationType.ORDER_UPDATE,
                order.id,
            )
        await self.db.refresh(order)
        logger.info("Order cancelled", extra={"order_id": str(order.id)})
        return order
