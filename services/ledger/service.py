"""
services/ledger/service.py
Wallet ledger: append-only transactions plus a cached balance on the user row.

Every append adjusts users.wallet_balance in the same database transaction.
Outgoing entries (debit, withdrawal) use a guarded decrement
(WHERE wallet_balance >= amount) so the balance can never go negative even
under concurrent requests. reconcile() recomputes the balance from the
transactions and reports drift.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import atomic
from config.settings import settings
from shared.exceptions import IdempotencyKeyReused, InsufficientBalance, InvalidAmount, UserNotFound
from shared.models.models import Transaction, TransactionStatus, TransactionType, User

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

SIGNS = {
    TransactionType.CREDIT: 1,
    TransactionType.DEPOSIT: 1,
    TransactionType.DEBIT: -1,
    TransactionType.WITHDRAWAL: -1,
}


def to_amount(value) -> Decimal:
    """Parse a money amount. Raises InvalidAmount unless 0 < amount <= max."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount()
    if not amount.is_finite():
        raise InvalidAmount()
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidAmount()
    if amount > settings.MAX_TRANSACTION_AMOUNT:
        raise InvalidAmount(f"Amount may not exceed {settings.MAX_TRANSACTION_AMOUNT}")
    return amount


def signed_amount():
    """SQL expression: +amount for incoming entries, -amount for outgoing."""
    incoming = [t for t, sign in SIGNS.items() if sign > 0]
    return case(
        (Transaction.type.in_(incoming), Transaction.amount),
        else_=-Transaction.amount,
    )


def ledger_balances_query(user_id: Optional[uuid.UUID] = None):
    """
    (user_id, cached wallet_balance, ledger sum) per user.
    Shared by the async service and the synchronous reconciliation task.
    """
    totals = (
        select(
            Transaction.user_id.label("user_id"),
            func.sum(signed_amount()).label("total"),
        )
        .where(Transaction.status == TransactionStatus.COMPLETED)
        .group_by(Transaction.user_id)
        .subquery()
    )
    query = (
        select(User.id, User.wallet_balance, func.coalesce(totals.c.total, 0))
        .outerjoin(totals, totals.c.user_id == User.id)
        .order_by(User.created_at)
    )
    if user_id is not None:
        query = query.where(User.id == user_id)
    return query


@dataclass(frozen=True)
class Reconciliation:
    user_id: uuid.UUID
    cached_balance: Decimal
    ledger_balance: Decimal

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance

    @classmethod
    def from_row(cls, row) -> "Reconciliation":
        user_id, cached, total = row
        return cls(
            user_id=user_id,
            cached_balance=Decimal(str(cached or 0)).quantize(CENT),
            ledger_balance=Decimal(str(total or 0)).quantize(CENT),
        )


class LedgerService:
    """Wallet balance and transaction history, kept consistent per unit of work."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Building blocks (caller owns the transaction) ────────

    async def lock_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.scalar(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not user:
            raise UserNotFound()
        return user

    async def apply(
        self,
        user_id: uuid.UUID,
        type: TransactionType,
        amount,
        description: str,
        order_id: Optional[uuid.UUID] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        """
        Append a completed transaction and move the cached balance with it.
        Flushes only; the surrounding unit commits or rolls back both together.
        """
        amount = to_amount(amount)
        if SIGNS[type] < 0:
            stmt = (
                update(User)
                .where(User.id == user_id, User.wallet_balance >= amount)
                .values(wallet_balance=User.wallet_balance - amount)
            )
        else:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(wallet_balance=User.wallet_balance + amount)
            )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            exists = await self.db.scalar(select(User.id).where(User.id == user_id))
            if exists and SIGNS[type] < 0:
                raise InsufficientBalance()
            raise UserNotFound()

        txn = Transaction(
            user_id=user_id,
            order_id=order_id,
            type=type,
            amount=amount,
            description=description,
            status=TransactionStatus.COMPLETED,
            idempotency_key=idempotency_key,
        )
        self.db.add(txn)
        await self.db.flush()
        logger.info(
            "Ledger entry recorded",
            extra={"user_id": str(user_id), "type": type.value, "amount": str(amount)},
        )
        return txn

    async def _find_by_key(self, user_id: uuid.UUID, key: str) -> Optional[Transaction]:
        return await self.db.scalar(
            select(Transaction).where(
                Transaction.user_id == user_id,
                Transaction.idempotency_key == key,
            )
        )

    @staticmethod
    def _replay(existing: Transaction, type: TransactionType, amount: Decimal) -> Transaction:
        if existing.type != type or Decimal(str(existing.amount)) != amount:
            raise IdempotencyKeyReused()
        return existing

    # ── Operations ────────────────────────────────────────────

    async def record_transaction(
        self,
        user_id: uuid.UUID,
        type: TransactionType,
        amount,
        description: str,
        order_id: Optional[uuid.UUID] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        """
        One atomic unit: append the entry and adjust the balance.
        A repeated idempotency_key for the same user returns the original entry;
        reusing it for a different type or amount raises IdempotencyKeyReused.
        """
        # Validate before any state change
        amount = to_amount(amount)
        if idempotency_key:
            existing = await self._find_by_key(user_id, idempotency_key)
            if existing:
                logger.info("Idempotent replay", extra={"user_id": str(user_id)})
                return self._replay(existing, type, amount)
        try:
            async with atomic(self.db):
                await self.lock_user(user_id)
                txn = await self.apply(
                    user_id, type, amount, description,
                    order_id=order_id, idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race on the same idempotency key
            existing = await self._find_by_key(user_id, idempotency_key) if idempotency_key else None
            if existing is None:
                raise
            return self._replay(existing, type, amount)
        await self.db.refresh(txn)
        return txn

    async def deposit(
        self,
        user_id: uuid.UUID,
        amount,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        amount = to_amount(amount)
        return await self.record_transaction(
            user_id,
            TransactionType.DEPOSIT,
            amount,
            description or f"Wallet top-up of {settings.CURRENCY} {amount}",
            idempotency_key=idempotency_key,
        )

    async def withdraw(
        self,
        user_id: uuid.UUID,
        amount,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transaction:
        amount = to_amount(amount)
        return await self.record_transaction(
            user_id,
            TransactionType.WITHDRAWAL,
            amount,
            description or f"Withdrawal of {settings.CURRENCY} {amount}",
            idempotency_key=idempotency_key,
        )

    async def balance(self, user_id: uuid.UUID) -> Decimal:
        value = await self.db.scalar(select(User.wallet_balance).where(User.id == user_id))
        if value is None:
            raise UserNotFound()
        return Decimal(str(value)).quantize(CENT)

    async def history(self, user_id: uuid.UUID, limit: Optional[int] = None) -> List[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc())
            .limit(limit or settings.TRANSACTION_HISTORY_LIMIT)
        )
        return list(result.scalars())

    async def reconcile(self, user_id: uuid.UUID) -> Reconciliation:
        """Recompute the balance from completed transactions. Read-only and repeatable."""
        row = (await self.db.execute(ledger_balances_query(user_id))).first()
        if row is None:
            raise UserNotFound()
        report = Reconciliation.from_row(row)
        if not report.consistent:
            logger.error(
                "Wallet balance drift",
                extra={
                    "user_id": str(user_id),
                    "cached": str(report.cached_balance),
                    "ledger": str(report.ledger_balance),
                },
            )
        return report

    async def reconcile_all(self) -> List[Reconciliation]:
        """Every user whose cached balance disagrees with the ledger."""
        result = await self.db.execute(ledger_balances_query())
        mismatches = [r for r in map(Reconciliation.from_row, result.all()) if not r.consistent]
        for report in mismatches:
            logger.error(
                "Wallet balance drift",
                extra={
                    "user_id": str(report.user_id),
                    "cached": str(report.cached_balance),
                    "ledger": str(report.ledger_balance),
                },
            )
        return mismatches
