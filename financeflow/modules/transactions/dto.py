"""DTOs for the transaction ingestion pipeline."""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from financeflow.modules.transactions.types import (
    Channel,
    PaymentMode,
    TransactionDirection,
)


class CandidateTransaction(BaseModel):
    """Unpersisted transaction extracted from a single message."""

    message_id: str = Field(..., description="Provider-assigned message ID")
    thread_id: Optional[str] = Field(None, description="Provider thread ID")
    subject: str = Field(default="", description="Original message subject")
    sender: str = Field(default="", description="Sender email address")
    source_platform: str = Field(default="Email", description="Bank/app/card issuer guess")
    channel: Optional[Channel] = Field(None, description="Channel hint: BANK, APP or CARD")
    received_at: Optional[datetime] = Field(None, description="When the message was received")

    raw_amount: Optional[str] = Field(None, description="Amount as written in the message")
    amount_minor: Optional[int] = Field(None, description="Amount in minor units (paise)")
    currency: str = Field(default="INR", description="ISO currency code")

    raw_date: Optional[str] = Field(None, description="Date as written in the message")
    transaction_date: Optional[date] = Field(None, description="Canonical transaction date")
    date_from_body: bool = Field(
        default=False, description="False when the date fell back to the received date"
    )

    merchant: Optional[str] = Field(None, description="Merchant or counterparty name")
    reference_id: Optional[str] = Field(None, description="UPI ref / RRN / bank reference")
    account_mask: Optional[str] = Field(None, description="Last digits of account or card")
    direction: TransactionDirection = Field(default=TransactionDirection.DEBIT)
    payment_mode: Union[PaymentMode, str] = Field(default=PaymentMode.OTHER)

    issues: List[str] = Field(default_factory=list, description="Validation issues")
    raw_text: Optional[str] = Field(None, description="First 500 chars of text, for debugging")

    @property
    def has_valid_amount(self) -> bool:
        return self.amount_minor is not None and self.amount_minor > 0

    def extracted_fields(self) -> Dict[str, Any]:
        """Opaque audit blob stored alongside the imported transaction."""
        return {
            "sender": self.sender,
            "channel": self.channel.value if self.channel else None,
            "raw_amount": self.raw_amount,
            "raw_date": self.raw_date,
            "date_from_body": self.date_from_body,
            "reference_id": self.reference_id,
            "account_mask": self.account_mask,
            "direction": self.direction.value,
            "issues": list(self.issues),
            "raw_text": self.raw_text,
        }


class ExtractionFailure(BaseModel):
    """A message that could not be turned into a candidate transaction."""

    message_id: str
    reason: str


class ScoreResult(BaseModel):
    """Outcome of confidence scoring and categorization."""

    confidence: float = Field(..., ge=0.0, le=1.0)
    category: str = Field(default="Other")
    review_reason: Optional[str] = None
    needs_review: bool = False


class ImportedTransactionResponse(BaseModel):
    id: int
    user_id: int
    message_id: str
    merchant_name: Optional[str] = None
    amount_minor: int
    currency: str
    transaction_date: date
    payment_mode: str
    direction: str
    category: str
    confidence_score: float
    needs_review: bool
    review_reason: Optional[str] = None
    is_duplicate: bool
    is_processed: bool
    reference_id: Optional[str] = None
    account_mask: Optional[str] = None
    source_platform: str
    email_subject: Optional[str] = None
    ledger_entry_id: Optional[int] = None
    duplicate_of_id: Optional[int] = None
    created_at: datetime

    @property
    def amount(self) -> float:
        return self.amount_minor / 100

    class Config:
        from_attributes = True


class ReviewQueueResponse(BaseModel):
    items: List[ImportedTransactionResponse]
    pending_count: int


class DispositionResponse(BaseModel):
    transaction_id: int
    action: Literal["approved", "rejected"]
    ledger_entry_id: Optional[int] = Field(None, description="Expense/Income ID when approved")
    ledger_kind: Optional[Literal["expense", "income"]] = None
