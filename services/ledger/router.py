"""
services/ledger/router.py
Wallet: balance, transaction history, deposits and withdrawals.
Deposits and withdrawals accept an optional Idempotency-Key header;
a retried request with the same key returns the original transaction.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.ledger.service import LedgerService
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    ReconciliationResponse,
    TransactionResponse,
    WalletAmountRequest,
    WalletResponse,
)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("", response_model=WalletResponse)
async def get_wallet(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ledger = LedgerService(db)
    return WalletResponse(
        balance=await ledger.balance(current_user.id),
        currency=settings.CURRENCY,
        recent_transactions=[
            TransactionResponse.model_validate(t) for t in await ledger.history(current_user.id)
        ],
    )


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    transactions = await LedgerService(db).history(current_user.id, limit)
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.post("/deposit", response_model=TransactionResponse)
async def deposit(
    data: WalletAmountRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    txn = await LedgerService(db).deposit(
        current_user.id, data.amount, data.description, idempotency_key
    )
    return TransactionResponse.model_validate(txn)


@router.post("/withdraw", response_model=TransactionResponse)
async def withdraw(
    data: WalletAmountRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Fails with InsufficientBalance (409) when the wallet cannot cover the amount."""
    txn = await LedgerService(db).withdraw(
        current_user.id, data.amount, data.description, idempotency_key
    )
    return TransactionResponse.model_validate(txn)


@router.get("/reconcile", response_model=ReconciliationResponse)
async def reconcile_my_wallet(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recompute the balance from the ledger and compare it to the stored balance."""
    report = await LedgerService(db).reconcile(current_user.id)
    return ReconciliationResponse(
        user_id=report.user_id,
        cached_balance=report.cached_balance,
        ledger_balance=report.ledger_balance,
        consistent=report.consistent,
    )
