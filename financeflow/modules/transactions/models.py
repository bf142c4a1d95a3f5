"""Models for imported transactions."""

from datetime import date
from typing import Any, Dict, Optional
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from financeflow.core.db.base import BaseModel


class ImportedTransaction(BaseModel):
    """One accepted or queued transaction extracted from a notification email."""

    __tablename__ = "imported_transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "message_id", name="uq_imported_transactions_user_message"),
        Index("idx_imported_transactions_user_date", "user_id", "transaction_date"),
        Index("idx_imported_transactions_review", "user_id", "needs_review", "is_processed"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    message_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Gmail message ID",
    )
    thread_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    merchant_name: Mapped[Optional[str]] = mapped_column(
        String(200), nullable=True, comment="Normalized merchant/counterparty name"
    )

    amount_minor: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Positive amount in minor units"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    payment_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="UPI, Card, BankTransfer or Other"
    )
    direction: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="debit or credit"
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Other")

    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_processed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True once approved, rejected or auto-posted",
    )

    reference_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, index=True, comment="UPI ref / RRN / bank reference"
    )
    account_mask: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    dedupe_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    source_platform: Mapped[str] = mapped_column(String(100), nullable=False, default="Email")
    email_subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    raw_extracted_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    ledger_entry_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, comment="Expense or Income ID once posted"
    )
    duplicate_of_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, comment="Hand-entered Expense this message duplicates"
    )

    def __repr__(self) -> str:
        return (
            f"<ImportedTransaction(id={self.id}, amount_minor={self.amount_minor}, "
            f"merchant='{self.merchant_name}', processed={self.is_processed})>"
        )
