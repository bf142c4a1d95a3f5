import logging
import math
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from financeflow.core.exceptions import LedgerRejectedError
from financeflow.modules.ledger.dto import LedgerPosting
from financeflow.modules.ledger.models import Expense, Income
from financeflow.modules.transactions.models import ImportedTransaction
from financeflow.modules.transactions.types import TransactionDirection
from financeflow.utils.datetime import date_window

logger = logging.getLogger(__name__)


class LedgerService:
    """Appends imported transactions to the Expense/Income ledger.

    ``post`` never commits: it runs inside the caller's transaction so the
    disposition and the ledger row land together or not at all.
    """

    def __init__(self):
        self.logger = logger

    async def post(self, db: AsyncSession, txn: ImportedTransaction) -> LedgerPosting:
        if txn.amount_minor is None or txn.amount_minor <= 0:
            raise LedgerRejectedError(f"amount must be positive, got {txn.amount_minor}")
        if txn.transaction_date is None:
            raise LedgerRejectedError("transaction date is required")

        note = txn.email_subject[:200] if txn.email_subject else None

        if txn.direction == TransactionDirection.CREDIT.value:
            kind = "income"
            entry = Income(
                user_id=txn.user_id,
                amount_minor=txn.amount_minor,
                currency=txn.currency,
                entry_date=txn.transaction_date,
                source=txn.merchant_name,
                note=note,
                payment_mode=txn.payment_mode,
                source_transaction_id=txn.id,
            )
        else:
            kind = "expense"
            entry = Expense(
                user_id=txn.user_id,
                amount_minor=txn.amount_minor,
                currency=txn.currency,
                entry_date=txn.transaction_date,
                vendor=txn.merchant_name.lower() if txn.merchant_name else None,
                note=note,
                category=txn.category,
                payment_mode=txn.payment_mode,
                source_transaction_id=txn.id,
            )

        try:
            db.add(entry)
            await db.flush()
        except IntegrityError as e:
            self.logger.error(f"Ledger rejected transaction {txn.id}: {e}")
            raise LedgerRejectedError(f"transaction {txn.id} is already posted") from e

        self.logger.info(f"Posted transaction {txn.id} to ledger as {kind} {entry.id}")
        return LedgerPosting(kind=kind, entry_id=entry.id, source_transaction_id=txn.id)

    async def count_entries_for_source(self, db: AsyncSession, transaction_id: int) -> int:
        expenses = await db.scalar(
            select(func.count()).select_from(Expense).where(
                Expense.source_transaction_id == transaction_id
            )
        )
        incomes = await db.scalar(
            select(func.count()).select_from(Income).where(
                Income.source_transaction_id == transaction_id
            )
        )
        return (expenses or 0) + (incomes or 0)

    async def add_manual_expense(
        self,
        db: AsyncSession,
        user_id: int,
        amount_minor: int,
        entry_date: date,
        vendor: Optional[str] = None,
        category: str = "Other",
        payment_mode: str = "Other",
        note: Optional[str] = None,
    ) -> Expense:
        """Record an expense the owner entered by hand."""
        if amount_minor <= 0:
            raise LedgerRejectedError(f"amount must be positive, got {amount_minor}")

        expense = Expense(
            user_id=user_id,
            amount_minor=amount_minor,
            entry_date=entry_date,
            vendor=vendor.lower() if vendor else None,
            note=note,
            category=category,
            payment_mode=payment_mode,
        )
        db.add(expense)
        await db.commit()
        await db.refresh(expense)

        self.logger.info(f"Added manual expense {expense.id} for user {user_id}")
        return expense

    async def manual_expenses_near(
        self,
        db: AsyncSession,
        user_id: int,
        amount_minor: int,
        entry_date: date,
        amount_tolerance: float,
        date_tolerance_days: int,
    ) -> List[Expense]:
        """Hand-entered expenses close to an amount and date."""
        start, end = date_window(entry_date, date_tolerance_days)
        result = await db.execute(
            select(Expense).where(
                Expense.user_id == user_id,
                Expense.live(),
                Expense.source_transaction_id.is_(None),
                Expense.entry_date.between(start, end),
                Expense.amount_minor.between(
                    math.floor(amount_minor * (1 - amount_tolerance)),
                    math.ceil(amount_minor * (1 + amount_tolerance)),
                ),
            )
        )
        return list(result.scalars().all())
