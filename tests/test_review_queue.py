import pytest

from financeflow.core.exceptions import (
    AlreadyProcessedError,
    PostingFailure,
    TransactionNotFoundError,
)
from financeflow.modules.transactions.extractor import extract
from financeflow.modules.transactions.normalizer import normalize
from financeflow.modules.transactions.scorer import ConfidenceScorer, ScoringWeights
from financeflow.modules.transactions.service import ImportedTransactionService
from tests.factories import (
    CLEAN_ALERT,
    CREDIT_ALERT,
    LOW_CONFIDENCE_ALERT,
    FailingLedger,
    make_email,
)


async def store(db, user, message_id, body, service=None):
    service = service or ImportedTransactionService()
    candidate = normalize(extract(make_email(message_id, body)))
    score = ConfidenceScorer(ScoringWeights()).score(candidate)
    return await service.create_from_candidate(db, user.id, candidate, score)


class TestReviewQueue:
    async def test_low_confidence_rows_are_queued(self, db, user):
        queued = await store(db, user, "m-low", LOW_CONFIDENCE_ALERT)
        await store(db, user, "m-clean", CLEAN_ALERT)

        queue = await ImportedTransactionService().review_queue(db, user.id)

        assert queue.pending_count == 1
        assert [item.id for item in queue.items] == [queued.id]
        assert queue.items[0].review_reason == "missing reference id"

    async def test_queue_is_scoped_to_owner(self, db, user):
        await store(db, user, "m-low", LOW_CONFIDENCE_ALERT)

        queue = await ImportedTransactionService().review_queue(db, user.id + 1)

        assert queue.pending_count == 0
        assert queue.items == []


class TestApprove:
    async def test_approve_posts_expense_once(self, db, user):
        service = ImportedTransactionService()
        txn = await store(db, user, "m-low", LOW_CONFIDENCE_ALERT, service)

        result = await service.approve(db, txn.id)

        assert result.action == "approved"
        assert result.ledger_kind == "expense"
        assert result.ledger_entry_id is not None

        with pytest.raises(AlreadyProcessedError):
            await service.approve(db, txn.id)

        assert await service.ledger_service.count_entries_for_source(db, txn.id) == 1
        stored = await service.get_by_id(db, txn.id)
        assert stored.is_processed is True
        assert stored.needs_review is False
        assert stored.ledger_entry_id == result.ledger_entry_id
        assert (await service.review_queue(db, user.id)).pending_count == 0

    async def test_credit_posts_income(self, db, user):
        service = ImportedTransactionService()
        txn = await store(db, user, "m-credit", CREDIT_ALERT, service)

        result = await service.approve(db, txn.id)

        assert result.ledger_kind == "income"

    async def test_unknown_transaction(self, db, user):
        with pytest.raises(TransactionNotFoundError):
            await ImportedTransactionService().approve(db, 9999)

    async def test_posting_failure_leaves_row_pending(self, db, user):
        failing = ImportedTransactionService(ledger_service=FailingLedger())
        txn = await store(db, user, "m-low", LOW_CONFIDENCE_ALERT, failing)

        with pytest.raises(PostingFailure) as exc_info:
            await failing.approve(db, txn.id)
        assert "ledger is closed" in exc_info.value.reason

        stored = await failing.get_by_id(db, txn.id)
        assert stored.is_processed is False
        assert stored.needs_review is True
        assert await failing.ledger_service.count_entries_for_source(db, txn.id) == 0

        # A later approval with a working ledger still succeeds
        result = await ImportedTransactionService().approve(db, txn.id)
        assert result.action == "approved"


class TestReject:
    async def test_reject_marks_duplicate_without_posting(self, db, user):
        service = ImportedTransactionService()
        txn = await store(db, user, "m-low", LOW_CONFIDENCE_ALERT, service)

        result = await service.reject(db, txn.id)

        assert result.action == "rejected"
        assert result.ledger_entry_id is None
        stored = await service.get_by_id(db, txn.id)
        assert stored.is_duplicate is True
        assert stored.is_processed is True
        assert await service.ledger_service.count_entries_for_source(db, txn.id) == 0

    async def test_cannot_approve_after_reject(self, db, user):
        service = ImportedTransactionService()
        txn = await store(db, user, "m-low", LOW_CONFIDENCE_ALERT, service)
        await service.reject(db, txn.id)

        with pytest.raises(AlreadyProcessedError):
            await service.approve(db, txn.id)

    async def test_reject_unknown_transaction(self, db, user):
        with pytest.raises(TransactionNotFoundError):
            await ImportedTransactionService().reject(db, 9999)
