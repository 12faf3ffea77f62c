"""
tests/test_admin.py
Tests for the admin surface: KYC review, wallet reconciliation,
analytics and the audit log.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import User
from tests.conftest import auth_headers

KYC_PAYLOAD = {
    "bvn": "12345678901",
    "nin": "10987654321",
    "nin_image_url": "https://files.campus.edu/nin.jpg",
    "selfie_image_url": "https://files.campus.edu/selfie.jpg",
}


async def _submit_kyc(client: AsyncClient, user: User) -> None:
    response = await client.post("/users/me/kyc", headers=auth_headers(user), json=KYC_PAYLOAD)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_non_admin_is_forbidden(client: AsyncClient, student: User):
    for path in ("/admin/kyc/pending", "/admin/analytics", "/admin/ledger/reconcile", "/admin/audit-logs"):
        response = await client.get(path, headers=auth_headers(student))
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_pending_kyc_queue(client: AsyncClient, admin: User, student: User, provider: User):
    await _submit_kyc(client, student)

    response = await client.get("/admin/kyc/pending", headers=auth_headers(admin))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["total_pages"] == 1
    assert [u["user_id"] for u in data["items"]] == [str(student.id)]


@pytest.mark.asyncio
async def test_approve_kyc(client: AsyncClient, admin: User, student: User):
    await _submit_kyc(client, student)

    response = await client.post(f"/admin/kyc/{student.id}/approve", headers=auth_headers(admin))
    assert response.status_code == 200
    kyc = (await client.get("/users/me/kyc", headers=auth_headers(student))).json()
    assert kyc["kyc_status"] == "approved"
    assert kyc["is_kyc_verified"] is True

    # Reviewed submissions leave the queue and cannot be reviewed twice
    assert (await client.get("/admin/kyc/pending", headers=auth_headers(admin))).json()["total"] == 0
    again = await client.post(f"/admin/kyc/{student.id}/approve", headers=auth_headers(admin))
    assert again.status_code == 409

    resubmit = await client.post("/users/me/kyc", headers=auth_headers(student), json=KYC_PAYLOAD)
    assert resubmit.status_code == 409


@pytest.mark.asyncio
async def test_reject_kyc_then_resubmit(client: AsyncClient, admin: User, student: User):
    await _submit_kyc(client, student)

    response = await client.post(
        f"/admin/kyc/{student.id}/reject",
        headers=auth_headers(admin),
        json={"reason": "Selfie is blurry"},
    )
    assert response.status_code == 200
    assert (await client.get("/users/me/kyc", headers=auth_headers(student))).json()["kyc_status"] == "rejected"

    await _submit_kyc(client, student)
    pending = (await client.get("/admin/kyc/pending", headers=auth_headers(admin))).json()
    assert pending["total"] == 1


@pytest.mark.asyncio
async def test_reject_requires_reason(client: AsyncClient, admin: User, student: User):
    await _submit_kyc(client, student)
    response = await client.post(
        f"/admin/kyc/{student.id}/reject", headers=auth_headers(admin), json={"reason": "no"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_review_without_submission(client: AsyncClient, admin: User, student: User):
    response = await client.post(f"/admin/kyc/{student.id}/approve", headers=auth_headers(admin))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_kyc_actions_are_audited(client: AsyncClient, admin: User, student: User, provider: User):
    await _submit_kyc(client, student)
    await _submit_kyc(client, provider)
    await client.post(f"/admin/kyc/{student.id}/approve", headers=auth_headers(admin))
    await client.post(
        f"/admin/kyc/{provider.id}/reject", headers=auth_headers(admin), json={"reason": "Expired ID card"}
    )

    response = await client.get("/admin/audit-logs", headers=auth_headers(admin))
    assert response.status_code == 200
    actions = sorted(item["action"] for item in response.json()["items"])
    assert actions == ["APPROVE_KYC", "REJECT_KYC"]

    filtered = (await client.get(
        "/admin/audit-logs", params={"action": "approve_kyc"}, headers=auth_headers(admin)
    )).json()
    assert filtered["total"] == 1


@pytest.mark.asyncio
async def test_ledger_reconcile_reports_drift(
    client: AsyncClient, admin: User, make_user, db: AsyncSession
):
    healthy = await make_user(first_name="Healthy", balance=Decimal("100"))
    drifted = await make_user(first_name="Drifted", balance=Decimal("100"))
    await db.execute(update(User).where(User.id == drifted.id).values(wallet_balance=Decimal("1")))
    await db.commit()

    response = await client.get("/admin/ledger/reconcile", headers=auth_headers(admin))
    assert response.status_code == 200
    report = response.json()
    assert [r["user_id"] for r in report] == [str(drifted.id)]
    assert Decimal(report[0]["ledger_balance"]) == Decimal("100")
    assert str(healthy.id) not in {r["user_id"] for r in report}


@pytest.mark.asyncio
async def test_analytics(client: AsyncClient, admin: User, make_user):
    await make_user(first_name="Rich", balance=Decimal("250"))
    response = await client.get("/admin/analytics", headers=auth_headers(admin))
    assert response.status_code == 200
    data = response.json()
    assert data["total_users"] == 2
    assert data["open_gigs"] == 0
    assert Decimal(data["total_wallet_balance"]) == Decimal("250")
