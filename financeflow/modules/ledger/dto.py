from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field

from financeflow.modules.transactions.types import PaymentMode

LedgerKind = Literal["expense", "income"]


class LedgerPosting(BaseModel):
    """Result of appending one imported transaction to the ledger."""

    kind: LedgerKind = Field(..., description="expense for debits, income for credits")
    entry_id: int = Field(..., description="ID of the created Expense or Income")
    source_transaction_id: int


class ManualExpenseCreate(BaseModel):
    """An expense the owner records by hand."""

    amount_minor: int = Field(..., gt=0, description="Amount in minor units (paise)")
    entry_date: date
    vendor: Optional[str] = Field(None, max_length=200)
    category: str = Field(default="Other", max_length=50)
    payment_mode: PaymentMode = Field(default=PaymentMode.OTHER)
    note: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: int
    user_id: int
    amount_minor: int
    currency: str
    entry_date: date
    vendor: Optional[str] = None
    category: str
    payment_mode: str
    note: Optional[str] = None
    source_transaction_id: Optional[int] = None

    class Config:
        from_attributes = True
