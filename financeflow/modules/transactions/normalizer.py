"""Canonicalization of candidate transaction fields.

``normalize`` is a pure, total function: it never raises and running it twice
gives the same result as running it once.
"""

import logging
import re
import string
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

import dateparser

from financeflow.modules.transactions.dto import CandidateTransaction
from financeflow.modules.transactions.types import PaymentMode

logger = logging.getLogger(__name__)

ISSUE_NON_POSITIVE_AMOUNT = "non-positive amount"
ISSUE_UNPARSABLE_AMOUNT = "unparsable amount"
ISSUE_MISSING_DATE = "missing date"

# Formats seen in Indian bank alerts, tried before falling back to dateparser
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d-%m-%y",
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d.%m.%Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
)

_DATEPARSER_SETTINGS = {
    "DATE_ORDER": "DMY",
    "PREFER_DATES_FROM": "past",
    "RETURN_AS_TIMEZONE_AWARE": False,
}


def amount_to_minor_units(raw: Union[str, int, float, Decimal]) -> Optional[int]:
    """Convert a major-unit amount ("1,499.50", "Rs. 499") to minor units.

    Returns None when the text is not a number.
    """
    if isinstance(raw, Decimal):
        value = raw
    else:
        cleaned = re.sub(r"(?i)(?:rs\.?|inr|₹)", "", str(raw))
        cleaned = cleaned.replace(",", "").strip()
        if not cleaned:
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    minor = (value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def parse_date(raw: str) -> Optional[date]:
    """Parse a date string, day-first, returning None when unparsable."""
    text = re.sub(r"\s+", " ", raw.strip().rstrip("."))
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    parsed = dateparser.parse(text, settings=_DATEPARSER_SETTINGS)
    return parsed.date() if parsed else None


def normalize_merchant(name: Optional[str]) -> Optional[str]:
    """Trim, collapse whitespace and capitalise each word."""
    if not name:
        return None
    cleaned = re.sub(r"\s+", " ", name).strip(" .,:;-*_/")
    if not cleaned or cleaned.isdigit():
        return None
    return string.capwords(cleaned)


def to_payment_mode(value: Union[PaymentMode, str, None]) -> PaymentMode:
    """Map any payment mode label onto the closed enumeration."""
    if isinstance(value, PaymentMode):
        return value
    if not value:
        return PaymentMode.OTHER

    lowered = value.strip().lower()
    for mode in PaymentMode:
        if lowered == mode.value.lower():
            return mode
    if "upi" in lowered:
        return PaymentMode.UPI
    if "card" in lowered:
        return PaymentMode.CARD
    if any(k in lowered for k in ("bank", "transfer", "netbanking", "neft", "imps", "rtgs")):
        return PaymentMode.BANK_TRANSFER
    return PaymentMode.OTHER


def normalize_account_mask(mask: Optional[str]) -> Optional[str]:
    """Keep the last four digits of an account or card number."""
    if not mask:
        return None
    digits = re.sub(r"\D", "", mask)
    return digits[-4:] if digits else None


def _with_issue(issues: list[str], issue: str) -> list[str]:
    return issues if issue in issues else [*issues, issue]


def normalize(candidate: CandidateTransaction) -> CandidateTransaction:
    """Return a canonical copy of the candidate."""
    issues = list(candidate.issues)

    # Amount
    amount_minor = candidate.amount_minor
    if amount_minor is None and candidate.raw_amount:
        amount_minor = amount_to_minor_units(candidate.raw_amount)
        if amount_minor is None:
            issues = _with_issue(issues, ISSUE_UNPARSABLE_AMOUNT)
    if amount_minor is not None and amount_minor <= 0:
        issues = _with_issue(issues, ISSUE_NON_POSITIVE_AMOUNT)
        amount_minor = None

    # Date
    transaction_date = candidate.transaction_date
    date_from_body = candidate.date_from_body
    if transaction_date is None:
        if candidate.raw_date:
            transaction_date = parse_date(candidate.raw_date)
            date_from_body = transaction_date is not None
        if transaction_date is None and candidate.received_at is not None:
            transaction_date = candidate.received_at.date()
        if transaction_date is None:
            issues = _with_issue(issues, ISSUE_MISSING_DATE)

    reference_id = candidate.reference_id.strip() if candidate.reference_id else None

    return candidate.model_copy(
        update={
            "amount_minor": amount_minor,
            "currency": (candidate.currency or "INR").strip().upper(),
            "transaction_date": transaction_date,
            "date_from_body": date_from_body,
            "merchant": normalize_merchant(candidate.merchant),
            "payment_mode": to_payment_mode(candidate.payment_mode),
            "reference_id": reference_id or None,
            "account_mask": normalize_account_mask(candidate.account_mask),
            "issues": issues,
        }
    )
