"""
services/order/router.py
Order booking, payment, completion and cancellation.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.order.service import OrderService
from shared.middleware.auth import get_current_user
from shared.models.models import OrderStatus, User
from shared.schemas.schemas import OrderCancelRequest, OrderCreateRequest, OrderResponse

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("", response_model=List[OrderResponse])
async def list_my_orders(
    role: Optional[str] = Query(None, pattern="^(client|provider)$"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Orders where the caller is the client, the provider, or either."""
    orders = await OrderService(db).list_orders(current_user.id, role, status_filter)
    return [OrderResponse.model_validate(o) for o in orders]


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def book_service(
    data: OrderCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).create_order_from_service(
        data.service_id, current_user.id, data.notes
    )
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).get_order_for_participant(order_id, current_user.id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/pay", response_model=OrderResponse)
async def pay_order(
    order_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Client pays from their wallet. Funds are released to the provider on completion."""
    order = await OrderService(db).pay_order(order_id, current_user.id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(
    order_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).complete_order(order_id, current_user.id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    data: OrderCancelRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).cancel_order(order_id, current_user.id, data.reason)
    return OrderResponse.model_validate(order)
