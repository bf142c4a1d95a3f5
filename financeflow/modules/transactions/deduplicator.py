"""Duplicate detection for candidate transactions."""

import hashlib
import logging
from dataclasses import dataclass
from datetime import date
from difflib import SequenceMatcher
from typing import Iterable, Optional, Union

from financeflow.core.config import config
from financeflow.modules.ledger.models import Expense
from financeflow.modules.transactions.dto import CandidateTransaction
from financeflow.modules.transactions.models import ImportedTransaction
from financeflow.modules.transactions.normalizer import to_payment_mode
from financeflow.modules.transactions.types import TransactionDirection

logger = logging.getLogger(__name__)

RULE_MESSAGE_ID = "message_id"
RULE_REFERENCE_ID = "reference_id"
RULE_FUZZY = "amount_date_mode_merchant"
RULE_MANUAL_ENTRY = "manual_expense"


@dataclass(frozen=True)
class DuplicateMatch:
    existing: Union[ImportedTransaction, Expense]
    rule: str

    @property
    def is_manual_entry(self) -> bool:
        return self.rule == RULE_MANUAL_ENTRY


def compute_dedupe_hash(
    amount_minor: int,
    transaction_date: date,
    merchant: Optional[str],
    reference_id: Optional[str] = None,
) -> str:
    """Stable fingerprint of a transaction's identifying fields."""
    key = (
        f"{amount_minor / 100:.2f}|{transaction_date.isoformat()}|"
        f"{(merchant or '').lower().strip()}|{reference_id or ''}"
    )
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def merchant_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Case-insensitive similarity ratio between two merchant names."""
    if not a or not b:
        return 1.0 if not a and not b else 0.0
    return SequenceMatcher(None, a.lower().strip(), b.lower().strip()).ratio()


def _within_tolerance(candidate_date: date, other: date, tolerance_days: int) -> bool:
    return abs((candidate_date - other).days) <= tolerance_days


def find_manual_entry(
    candidate: CandidateTransaction,
    expenses: Iterable[Expense],
    amount_tolerance: Optional[float] = None,
    date_tolerance_days: Optional[int] = None,
) -> Optional[Expense]:
    """
    Closest hand-entered expense for a debit candidate.

    Matches within +/- amount_tolerance (a fraction of the amount) and
    +/- date_tolerance_days. Expenses posted from imports are ignored.
    """
    if amount_tolerance is None:
        amount_tolerance = config.dedup_manual_amount_tolerance
    if date_tolerance_days is None:
        date_tolerance_days = config.dedup_manual_date_tolerance_days

    if (
        candidate.direction != TransactionDirection.DEBIT
        or not candidate.has_valid_amount
        or candidate.transaction_date is None
    ):
        return None

    max_difference = candidate.amount_minor * amount_tolerance
    matches = [
        expense
        for expense in expenses
        if not expense.is_auto_generated
        and abs(expense.amount_minor - candidate.amount_minor) <= max_difference
        and _within_tolerance(candidate.transaction_date, expense.entry_date, date_tolerance_days)
    ]
    if not matches:
        return None
    return min(
        matches,
        key=lambda e: (
            abs(e.amount_minor - candidate.amount_minor),
            abs((e.entry_date - candidate.transaction_date).days),
            e.id,
        ),
    )


def find_duplicate(
    candidate: CandidateTransaction,
    existing_window: Iterable[ImportedTransaction],
    similarity_threshold: Optional[float] = None,
    date_tolerance_days: Optional[int] = None,
    manual_entries: Iterable[Expense] = (),
) -> Optional[DuplicateMatch]:
    """
    Find the stored transaction this candidate duplicates, if any.

    Rules are evaluated in order and the first match wins:
    the same provider message id (against every row, rejected ones included),
    then the same reference id, then same amount, date and payment mode with
    a similar merchant name, then an expense the owner entered by hand.
    Differing reference ids never match another imported row.
    """
    if similarity_threshold is None:
        similarity_threshold = config.dedup_merchant_similarity
    if date_tolerance_days is None:
        date_tolerance_days = config.dedup_date_tolerance_days

    rows = list(existing_window)

    for row in rows:
        if row.message_id == candidate.message_id:
            return DuplicateMatch(existing=row, rule=RULE_MESSAGE_ID)

    if candidate.transaction_date is None:
        return None

    # Rejected rows only block re-import of the same message
    live = [
        row
        for row in rows
        if not row.is_duplicate
        and _within_tolerance(candidate.transaction_date, row.transaction_date, date_tolerance_days)
    ]

    if candidate.reference_id:
        for row in live:
            if row.reference_id and row.reference_id == candidate.reference_id:
                return DuplicateMatch(existing=row, rule=RULE_REFERENCE_ID)

    candidate_mode = to_payment_mode(candidate.payment_mode).value
    for row in live:
        if candidate.reference_id and row.reference_id and row.reference_id != candidate.reference_id:
            continue
        if (
            row.amount_minor == candidate.amount_minor
            and row.transaction_date == candidate.transaction_date
            and row.payment_mode == candidate_mode
            and merchant_similarity(row.merchant_name, candidate.merchant) >= similarity_threshold
        ):
            return DuplicateMatch(existing=row, rule=RULE_FUZZY)

    manual = find_manual_entry(candidate, manual_entries)
    if manual is not None:
        return DuplicateMatch(existing=manual, rule=RULE_MANUAL_ENTRY)

    return None


def is_duplicate(
    candidate: CandidateTransaction,
    existing_window: Iterable[ImportedTransaction],
    manual_entries: Iterable[Expense] = (),
) -> bool:
    match = find_duplicate(candidate, existing_window, manual_entries=manual_entries)
    if match:
        logger.debug(
            f"Message {candidate.message_id} duplicates transaction {match.existing.id} "
            f"({match.rule})"
        )
    return match is not None
