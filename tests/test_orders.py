"""
tests/test_orders.py
Tests for the order lifecycle: booking, escrow payment, completion and cancellation.
"""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import func, select

from shared.models.models import Gig, GigStatus, Transaction, TransactionType, User
from tests.conftest import auth_headers, fetch


async def _service(client: AsyncClient, provider: User, price: str = "3000") -> dict:
    response = await client.post(
        "/services",
        headers=auth_headers(provider),
        json={
            "title": "Laptop repair",
            "description": "Screen and keyboard replacement",
            "category": "repairs",
            "price": price,
        },
    )
    assert response.status_code == 201
    return response.json()


async def _book(client: AsyncClient, buyer: User, service_id: str) -> dict:
    response = await client.post(
        "/orders", headers=auth_headers(buyer), json={"service_id": service_id, "notes": "Dell XPS 13"}
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def buyer(make_user) -> User:
    return await make_user(first_name="Buyer", balance=Decimal("10000"))


@pytest.mark.asyncio
async def test_book_service_creates_pending_order(client: AsyncClient, provider: User, buyer: User):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])

    assert order["source_type"] == "service"
    assert order["service_id"] == service["id"]
    assert order["gig_id"] is None and order["bid_id"] is None
    assert order["provider_id"] == str(provider.id)
    assert Decimal(order["amount"]) == Decimal("3000")
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"


@pytest.mark.asyncio
async def test_cannot_book_own_service(client: AsyncClient, provider: User):
    service = await _service(client, provider)
    response = await client.post("/orders", headers=auth_headers(provider), json={"service_id": service["id"]})
    assert response.status_code == 403
    assert response.json()["code"] == "SelfBooking"


@pytest.mark.asyncio
async def test_cannot_book_inactive_service(client: AsyncClient, provider: User, buyer: User):
    service = await _service(client, provider)
    await client.patch(f"/services/{service['id']}", headers=auth_headers(provider), json={"is_active": False})

    response = await client.post("/orders", headers=auth_headers(buyer), json={"service_id": service["id"]})
    assert response.status_code == 409
    assert response.json()["code"] == "ServiceInactive"


@pytest.mark.asyncio
async def test_pay_order_debits_client(client: AsyncClient, provider: User, buyer: User, sessions):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])

    response = await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["status"] == "in_progress"
    assert (await fetch(sessions, User, buyer.id)).wallet_balance == Decimal("7000.00")
    assert (await fetch(sessions, User, provider.id)).wallet_balance == Decimal("0.00")


@pytest.mark.asyncio
async def test_pay_twice_is_rejected(client: AsyncClient, provider: User, buyer: User, sessions):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))

    response = await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))
    assert response.status_code == 409
    assert response.json()["code"] == "OrderAlreadyPaid"
    assert (await fetch(sessions, User, buyer.id)).wallet_balance == Decimal("7000.00")


@pytest.mark.asyncio
async def test_pay_without_funds(client: AsyncClient, provider: User, student: User):
    service = await _service(client, provider)
    order = await _book(client, student, service["id"])

    response = await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(student))
    assert response.status_code == 409
    assert response.json()["code"] == "InsufficientBalance"
    order_now = (await client.get(f"/orders/{order['id']}", headers=auth_headers(student))).json()
    assert order_now["payment_status"] == "pending"


@pytest.mark.asyncio
async def test_only_client_pays(client: AsyncClient, provider: User, buyer: User):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    response = await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(provider))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_complete_paid_order_releases_escrow(
    client: AsyncClient, provider: User, buyer: User, sessions
):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))

    response = await client.post(f"/orders/{order['id']}/complete", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["completed_at"] is not None

    provider_now = await fetch(sessions, User, provider.id)
    assert provider_now.wallet_balance == Decimal("3000.00")
    assert provider_now.total_earnings == Decimal("3000.00")
    assert provider_now.completed_orders == 1


@pytest.mark.asyncio
async def test_complete_unpaid_order_moves_no_money(client: AsyncClient, provider: User, student: User, db):
    service = await _service(client, provider)
    order = await _book(client, student, service["id"])

    response = await client.post(f"/orders/{order['id']}/complete", headers=auth_headers(provider))
    assert response.status_code == 200
    count = await db.scalar(select(func.count(Transaction.id)).where(Transaction.user_id == provider.id))
    assert count == 0


@pytest.mark.asyncio
async def test_closed_order_cannot_change(client: AsyncClient, provider: User, buyer: User):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    await client.post(f"/orders/{order['id']}/complete", headers=auth_headers(buyer))

    for action in ("complete", "cancel", "pay"):
        response = await client.post(f"/orders/{order['id']}/{action}", headers=auth_headers(buyer), json={})
        assert response.status_code == 409
        assert response.json()["code"] == "OrderClosed"


@pytest.mark.asyncio
async def test_cancel_paid_order_refunds_client(client: AsyncClient, provider: User, buyer: User, db, sessions):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))

    response = await client.post(
        f"/orders/{order['id']}/cancel", headers=auth_headers(provider), json={"reason": "Parts unavailable"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["payment_status"] == "refunded"
    assert data["cancellation_reason"] == "Parts unavailable"
    assert (await fetch(sessions, User, buyer.id)).wallet_balance == Decimal("10000.00")

    types = (await db.scalars(
        select(Transaction.type).where(Transaction.user_id == buyer.id).order_by(Transaction.created_at)
    )).all()
    assert types == [TransactionType.DEPOSIT, TransactionType.DEBIT, TransactionType.CREDIT]


@pytest.mark.asyncio
async def test_outsider_cannot_view_or_change_order(client: AsyncClient, provider: User, buyer: User, make_user):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])
    outsider = await make_user(first_name="Nosy")

    assert (await client.get(f"/orders/{order['id']}", headers=auth_headers(outsider))).status_code == 403
    response = await client.post(f"/orders/{order['id']}/cancel", headers=auth_headers(outsider), json={})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_orders_by_role(client: AsyncClient, provider: User, buyer: User):
    service = await _service(client, provider)
    order = await _book(client, buyer, service["id"])

    as_client = (await client.get("/orders", params={"role": "client"}, headers=auth_headers(buyer))).json()
    as_provider = (await client.get("/orders", params={"role": "provider"}, headers=auth_headers(buyer))).json()
    assert [o["id"] for o in as_client] == [order["id"]]
    assert as_provider == []

    mine = (await client.get("/orders", headers=auth_headers(provider))).json()
    assert [o["id"] for o in mine] == [order["id"]]


@pytest.mark.asyncio
async def test_completing_gig_order_completes_gig(
    client: AsyncClient, buyer: User, provider: User, sessions
):
    gig = (await client.post(
        "/gigs",
        headers=auth_headers(buyer),
        json={
            "title": "Move my boxes",
            "description": "Hall A to Hall C",
            "category": "errands",
            "budget": "2000",
            "deadline": "2030-01-01T12:00:00+00:00",
        },
    )).json()
    bid = (await client.post(
        f"/gigs/{gig['id']}/bids",
        headers=auth_headers(provider),
        json={"amount": "1800", "message": "I have a cart", "delivery_time": "today"},
    )).json()
    order = (await client.post(f"/bids/{bid['id']}/accept", headers=auth_headers(buyer))).json()
    await client.post(f"/orders/{order['id']}/pay", headers=auth_headers(buyer))

    response = await client.post(f"/orders/{order['id']}/complete", headers=auth_headers(provider))
    assert response.status_code == 200
    assert (await fetch(sessions, Gig, uuid.UUID(gig["id"]))).status == GigStatus.COMPLETED
    assert (await fetch(sessions, User, provider.id)).wallet_balance == Decimal("1800.00")
    assert (await fetch(sessions, User, buyer.id)).wallet_balance == Decimal("8200.00")
