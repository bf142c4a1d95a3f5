from datetime import date

from financeflow.modules.ledger.models import Expense
from financeflow.modules.transactions.deduplicator import (
    RULE_FUZZY,
    RULE_MANUAL_ENTRY,
    RULE_MESSAGE_ID,
    RULE_REFERENCE_ID,
    compute_dedupe_hash,
    find_duplicate,
    find_manual_entry,
    is_duplicate,
    merchant_similarity,
)
from financeflow.modules.transactions.dto import CandidateTransaction
from financeflow.modules.transactions.models import ImportedTransaction
from financeflow.modules.transactions.types import PaymentMode, TransactionDirection


def stored(**overrides) -> ImportedTransaction:
    fields = {
        "id": 1,
        "user_id": 1,
        "message_id": "stored-1",
        "merchant_name": "Swiggy",
        "amount_minor": 49900,
        "transaction_date": date(2025, 1, 10),
        "payment_mode": "UPI",
        "reference_id": "REF123",
        "is_duplicate": False,
        "is_processed": True,
    }
    fields.update(overrides)
    return ImportedTransaction(**fields)


def candidate(**overrides) -> CandidateTransaction:
    fields = {
        "message_id": "new-1",
        "merchant": "Swiggy",
        "amount_minor": 49900,
        "transaction_date": date(2025, 1, 10),
        "payment_mode": PaymentMode.UPI,
        "reference_id": "REF123",
    }
    fields.update(overrides)
    return CandidateTransaction(**fields)


class TestFindDuplicate:
    def test_same_message_id(self):
        match = find_duplicate(candidate(message_id="stored-1"), [stored()])
        assert match.rule == RULE_MESSAGE_ID

    def test_same_message_id_matches_rejected_rows(self):
        match = find_duplicate(
            candidate(message_id="stored-1"), [stored(is_duplicate=True)]
        )
        assert match is not None

    def test_same_reference_id_within_tolerance(self):
        match = find_duplicate(
            candidate(transaction_date=date(2025, 1, 12), amount_minor=1), [stored()]
        )
        assert match.rule == RULE_REFERENCE_ID

    def test_reference_outside_tolerance_is_not_a_match(self):
        assert find_duplicate(candidate(transaction_date=date(2025, 1, 13)), [stored()]) is None

    def test_differing_reference_ids_never_match(self):
        assert find_duplicate(candidate(reference_id="REF999"), [stored()]) is None

    def test_fuzzy_match_without_reference(self):
        match = find_duplicate(
            candidate(reference_id=None, merchant="Swiggy Ltd"),
            [stored(reference_id=None, merchant_name="Swiggy Ltd.")],
        )
        assert match.rule == RULE_FUZZY

    def test_fuzzy_requires_same_amount_date_and_mode(self):
        row = stored(reference_id=None)
        assert find_duplicate(candidate(reference_id=None, amount_minor=50000), [row]) is None
        assert (
            find_duplicate(candidate(reference_id=None, transaction_date=date(2025, 1, 11)), [row])
            is None
        )
        assert (
            find_duplicate(candidate(reference_id=None, payment_mode=PaymentMode.CARD), [row])
            is None
        )

    def test_dissimilar_merchant_is_not_a_match(self):
        row = stored(reference_id=None)
        assert find_duplicate(candidate(reference_id=None, merchant="Zomato"), [row]) is None

    def test_rejected_rows_do_not_block_content_matches(self):
        assert not is_duplicate(candidate(), [stored(is_duplicate=True)])

    def test_empty_window(self):
        assert not is_duplicate(candidate(), [])


def test_merchant_similarity():
    assert merchant_similarity("Swiggy", "swiggy") == 1.0
    assert merchant_similarity("Swiggy", "Zomato") < 0.5
    assert merchant_similarity(None, None) == 1.0
    assert merchant_similarity("Swiggy", None) == 0.0


def test_dedupe_hash_is_stable_and_case_insensitive():
    first = compute_dedupe_hash(49900, date(2025, 1, 10), "Swiggy", "REF123")
    second = compute_dedupe_hash(49900, date(2025, 1, 10), " swiggy ", "REF123")
    other = compute_dedupe_hash(49900, date(2025, 1, 10), "Swiggy", None)

    assert first == second
    assert first != other
    assert len(first) == 64


def manual(**overrides) -> Expense:
    fields = {
        "id": 7,
        "user_id": 1,
        "amount_minor": 49500,
        "entry_date": date(2025, 1, 11),
        "vendor": "dinner",
        "category": "Food & Dining",
        "payment_mode": "Other",
        "source_transaction_id": None,
    }
    fields.update(overrides)
    return Expense(**fields)


class TestManualEntries:
    def test_hand_entered_expense_within_tolerance(self):
        match = find_duplicate(candidate(), [], manual_entries=[manual()])

        assert match.rule == RULE_MANUAL_ENTRY
        assert match.is_manual_entry
        assert match.existing.id == 7

    def test_amount_outside_two_percent(self):
        assert find_manual_entry(candidate(), [manual(amount_minor=48800)]) is None

    def test_date_outside_one_day(self):
        assert find_manual_entry(candidate(), [manual(entry_date=date(2025, 1, 12))]) is None

    def test_posted_imports_are_not_manual(self):
        assert find_manual_entry(candidate(), [manual(source_transaction_id=3)]) is None

    def test_credits_never_match_expenses(self):
        credit = candidate(direction=TransactionDirection.CREDIT)
        assert find_manual_entry(credit, [manual()]) is None

    def test_closest_amount_wins(self):
        entries = [manual(id=8, amount_minor=50500), manual(id=9, amount_minor=49900)]
        assert find_manual_entry(candidate(), entries).id == 9

    def test_imported_rows_are_checked_first(self):
        match = find_duplicate(candidate(), [stored()], manual_entries=[manual()])
        assert match.rule == RULE_REFERENCE_ID

    def test_is_duplicate_considers_manual_entries(self):
        assert is_duplicate(candidate(), [], manual_entries=[manual()]) is True
        assert is_duplicate(candidate(), []) is False
