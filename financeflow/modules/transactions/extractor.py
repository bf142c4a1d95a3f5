"""Extraction of candidate transactions from bank, UPI and card alert emails."""

import re
import logging
from typing import Optional, Tuple, Union
from bs4 import BeautifulSoup

from financeflow.integrations.gmail.dto import EmailDTO
from financeflow.modules.transactions.constants import (
    BANK_NAME_PATTERN,
    BANK_SENDERS,
    BANK_TRANSFER_PATTERN,
    CARD_PATTERN,
    CARD_SENDERS,
    CREDIT_PATTERN,
    DEBIT_PATTERN,
    MERCHANT_RULES,
    TRANSACTION_KEYWORDS,
    UPI_APP_SENDERS,
    UPI_PATTERN,
)
from financeflow.modules.transactions.dto import CandidateTransaction, ExtractionFailure
from financeflow.modules.transactions.types import (
    Channel,
    PaymentMode,
    TransactionDirection,
)

logger = logging.getLogger(__name__)

AMOUNT_PATTERN = re.compile(
    r"(?:₹|\brs\.?|\binr)\s*(-?\d[\d,]*(?:\.\d{1,2})?)", re.IGNORECASE
)

_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*"
DATE_PATTERNS = [
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(r"\b(\d{1,2}[-/.]\d{1,2}[-/.]\d{2,4})\b"),
    re.compile(rf"\b(\d{{1,2}}[- ]{_MONTHS}[- ,]+\d{{2,4}})\b", re.IGNORECASE),
    re.compile(rf"\b({_MONTHS}\s+\d{{1,2}},?\s+\d{{4}})\b", re.IGNORECASE),
]

REFERENCE_PATTERN = re.compile(
    r"(?:upi\s*ref(?:erence)?(?:\s*(?:no|number|id))?|\brrn|\butr|txn\s*id|"
    r"transaction\s*id|ref(?:erence)?\s*(?:no|number|id)|\bref)\b"
    r"\.?\s*(?:is|:|-|#)?\s*(?=[A-Za-z0-9]*\d)([A-Za-z0-9]{6,})",
    re.IGNORECASE,
)

ACCOUNT_MASK_PATTERN = re.compile(
    r"(?:a/c|acct|account|card)\s*(?:no\.?|number|ending(?:\s*(?:with|in))?)?\s*[:\-]?\s*"
    r"(?:[x*]+\s*)?(\d{4})\b",
    re.IGNORECASE,
)

_MERCHANT_END = r"(?=\s+(?:on|ref|via|using|for|dated|avl|from|upi)\b|[.,;]|$)"
MERCHANT_PATTERNS = [
    # VPA beneficiary: "to VPA name@bank NAME on ..."
    re.compile(r"\bto\s+VPA\s+[\w.\-]+@[\w.\-]+\s+([A-Za-z][A-Za-z .&'-]*?)" + _MERCHANT_END),
    re.compile(r"\bat\s+([A-Za-z][A-Za-z0-9 .&'*-]*?)" + _MERCHANT_END, re.IGNORECASE),
    re.compile(r"\bInfo\b:?\s*([A-Za-z0-9][A-Za-z0-9 .&'*-]*?)" + _MERCHANT_END, re.IGNORECASE),
    re.compile(r"\bto\s+([A-Za-z][A-Za-z0-9 .&'*-]*?)" + _MERCHANT_END, re.IGNORECASE),
    re.compile(r"\bfrom\s+([A-Za-z][A-Za-z0-9 .&'*-]*?)" + _MERCHANT_END, re.IGNORECASE),
]

# Words that follow "to"/"from"/"at" in alerts without naming a merchant
_NON_MERCHANT_PREFIXES = (
    "vpa",
    "your",
    "a/c",
    "account",
    "acct",
    "card",
    "the ",
    "bank",
    "be ",
    "avoid",
)


def _message_text(email: EmailDTO) -> str:
    html_content = email.html_body or email.body or ""
    soup = BeautifulSoup(html_content, "html.parser")
    return soup.get_text(" ", strip=True)


def _detect_source(sender: str, text: str) -> Tuple[Optional[Channel], str]:
    """Guess the channel and display name from sender domain, then body keywords."""
    sender = sender.lower()
    for table, channel in (
        (CARD_SENDERS, Channel.CARD),
        (UPI_APP_SENDERS, Channel.APP),
        (BANK_SENDERS, Channel.BANK),
    ):
        for fragment, name in table.items():
            if fragment in sender:
                return channel, name

    bank_match = re.search(BANK_NAME_PATTERN, text, re.IGNORECASE)
    if bank_match:
        return Channel.BANK, f"{bank_match.group(1).upper()} Bank"
    if re.search(UPI_PATTERN, text, re.IGNORECASE):
        return Channel.APP, "UPI"
    if re.search(CARD_PATTERN, text, re.IGNORECASE):
        return Channel.CARD, "Card"
    return None, "Email"


def _detect_direction(text: str) -> TransactionDirection:
    debit = re.search(DEBIT_PATTERN, text, re.IGNORECASE)
    credit = re.search(CREDIT_PATTERN, text, re.IGNORECASE)
    if credit and (not debit or credit.start() < debit.start()):
        return TransactionDirection.CREDIT
    return TransactionDirection.DEBIT


def _detect_payment_mode(text: str, channel: Optional[Channel] = None) -> PaymentMode:
    if re.search(UPI_PATTERN, text, re.IGNORECASE):
        return PaymentMode.UPI
    if re.search(CARD_PATTERN, text, re.IGNORECASE):
        return PaymentMode.CARD
    if re.search(BANK_TRANSFER_PATTERN, text, re.IGNORECASE):
        return PaymentMode.BANK_TRANSFER
    # A bank debit/credit alert with no UPI or card wording
    if channel == Channel.BANK or re.search(BANK_NAME_PATTERN, text, re.IGNORECASE):
        return PaymentMode.BANK_TRANSFER
    return PaymentMode.OTHER


def _known_merchant(text: str) -> Optional[str]:
    for pattern, (name, _category) in MERCHANT_RULES.items():
        if re.search(pattern, text, re.IGNORECASE):
            return name
    return None


def _extract_merchant(text: str) -> Optional[str]:
    for pattern in MERCHANT_PATTERNS:
        for match in pattern.finditer(text):
            merchant = match.group(1).strip(" .-*")
            lowered = merchant.lower()
            if not merchant or lowered.startswith(_NON_MERCHANT_PREFIXES):
                continue
            # Prefer the canonical display name when the merchant is well known
            return _known_merchant(merchant) or merchant[:100]
    return _known_merchant(text)


def _extract_date(text: str) -> Optional[str]:
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _is_transaction_alert(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in TRANSACTION_KEYWORDS)


def extract(email: EmailDTO) -> Union[CandidateTransaction, ExtractionFailure]:
    """
    Parse a notification email into a candidate transaction.

    Example pattern:
    Rs.150.00 has been debited from account 1771 to VPA merchant@oksbi
    SHOP NAME on 28-02-26. Your UPI transaction reference number is 605965098644.

    Never raises: anything that is not a transaction alert, or has no amount,
    comes back as an ExtractionFailure.
    """
    try:
        body_text = _message_text(email)
        text = f"{email.subject} {body_text}".strip()

        if not _is_transaction_alert(text):
            logger.debug(f"Email {email.id} is not a transaction alert")
            return ExtractionFailure(message_id=email.id, reason="not a transaction alert")

        amount_match = AMOUNT_PATTERN.search(body_text) or AMOUNT_PATTERN.search(email.subject)
        if not amount_match:
            logger.debug(f"No amount found in email {email.id}")
            return ExtractionFailure(message_id=email.id, reason="no amount found")

        channel, source_platform = _detect_source(email.from_email, text)

        ref_match = REFERENCE_PATTERN.search(body_text)
        mask_match = ACCOUNT_MASK_PATTERN.search(body_text)

        return CandidateTransaction(
            message_id=email.id,
            thread_id=email.thread_id,
            subject=email.subject,
            sender=email.from_email,
            source_platform=source_platform,
            channel=channel,
            received_at=email.date,
            raw_amount=amount_match.group(1),
            raw_date=_extract_date(body_text),
            merchant=_extract_merchant(body_text),
            reference_id=ref_match.group(1) if ref_match else None,
            account_mask=mask_match.group(1) if mask_match else None,
            direction=_detect_direction(text),
            payment_mode=_detect_payment_mode(text, channel),
            raw_text=body_text[:500],  # Store first 500 chars for debugging
        )

    except Exception as e:
        logger.error(f"Error extracting transaction from email {email.id}: {e}")
        return ExtractionFailure(message_id=email.id, reason=f"extraction error: {e}")
