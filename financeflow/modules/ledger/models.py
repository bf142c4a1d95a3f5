from datetime import date
from typing import Optional
from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from financeflow.core.db.base import BaseModel


class Expense(BaseModel):
    __tablename__ = "expenses"
    __table_args__ = (
        Index("idx_expenses_user_date", "user_id", "entry_date"),
        Index("idx_expenses_vendor", "vendor"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    vendor: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Other")
    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False)

    # One ledger entry per imported transaction; empty for expenses entered by hand
    source_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("imported_transactions.id"), nullable=True, unique=True
    )

    @property
    def is_auto_generated(self) -> bool:
        return self.source_transaction_id is not None

    def __repr__(self) -> str:
        return f"<Expense(amount_minor={self.amount_minor}, user_id='{self.user_id}')>"


class Income(BaseModel):
    __tablename__ = "incomes"
    __table_args__ = (Index("idx_incomes_user_date", "user_id", "entry_date"),)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    source: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, comment="Payer or counterparty"
    )
    note: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False)

    source_transaction_id: Mapped[int] = mapped_column(
        ForeignKey("imported_transactions.id"), nullable=False, unique=True
    )

    def __repr__(self) -> str:
        return f"<Income(amount_minor={self.amount_minor}, user_id='{self.user_id}')>"
