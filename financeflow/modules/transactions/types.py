from enum import Enum


class PaymentMode(str, Enum):
    """Closed set of payment modes an imported transaction can carry."""

    UPI = "UPI"
    CARD = "Card"
    BANK_TRANSFER = "BankTransfer"
    OTHER = "Other"


class TransactionDirection(str, Enum):
    """Money leaving (debit) or entering (credit) the owner's account."""

    DEBIT = "debit"
    CREDIT = "credit"


class Channel(str, Enum):
    """Where the alert came from."""

    BANK = "BANK"  # Bank alert (HDFC, ICICI, SBI, ...)
    APP = "APP"  # UPI / wallet app (GPay, PhonePe, Paytm, ...)
    CARD = "CARD"  # Card network or card issuer alert


class ReviewReason(str, Enum):
    """Human-readable names for the weakest extraction signal."""

    MISSING_REFERENCE_ID = "missing reference id"
    MISSING_ACCOUNT_MASK = "missing account mask"
    MISSING_DATE = "missing transaction date"
    AMBIGUOUS_MERCHANT = "ambiguous merchant"
    POSTING_FAILED = "ledger posting failed"
