"""Service for imported transactions: storage, review queue and disposition."""

import logging
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from financeflow.core.config import config
from financeflow.core.exceptions import (
    AlreadyProcessedError,
    DatabaseError,
    LedgerRejectedError,
    PostingFailure,
    TransactionNotFoundError,
)
from financeflow.modules.ledger.models import Expense
from financeflow.modules.ledger.service import LedgerService
from financeflow.modules.transactions.deduplicator import (
    DuplicateMatch,
    compute_dedupe_hash,
    find_duplicate,
)
from financeflow.modules.transactions.dto import (
    CandidateTransaction,
    DispositionResponse,
    ImportedTransactionResponse,
    ReviewQueueResponse,
    ScoreResult,
)
from financeflow.modules.transactions.models import ImportedTransaction
from financeflow.modules.transactions.normalizer import to_payment_mode
from financeflow.modules.transactions.types import ReviewReason, TransactionDirection
from financeflow.utils.datetime import date_window

logger = logging.getLogger(__name__)


class ImportedTransactionService:
    """Persists imported transactions and performs approve/reject exactly once."""

    def __init__(self, ledger_service: Optional[LedgerService] = None):
        self.logger = logger
        self.ledger_service = ledger_service or LedgerService()

    async def get_by_id(
        self, db: AsyncSession, transaction_id: int
    ) -> Optional[ImportedTransaction]:
        return await db.get(ImportedTransaction, transaction_id, populate_existing=True)

    async def load_window(
        self, db: AsyncSession, user_id: int, candidate: CandidateTransaction
    ) -> List[ImportedTransaction]:
        """Stored rows a candidate could duplicate.

        Rows within the date tolerance of the candidate, plus any row that
        came from the same provider message regardless of its date.
        """
        conditions = [ImportedTransaction.message_id == candidate.message_id]
        if candidate.transaction_date is not None:
            start, end = date_window(
                candidate.transaction_date, config.dedup_date_tolerance_days
            )
            conditions.append(ImportedTransaction.transaction_date.between(start, end))

        result = await db.execute(
            select(ImportedTransaction).where(
                ImportedTransaction.user_id == user_id,
                ImportedTransaction.live(),
                or_(*conditions),
            )
        )
        return list(result.scalars().all())

    async def load_manual_window(
        self, db: AsyncSession, user_id: int, candidate: CandidateTransaction
    ) -> List[Expense]:
        """Hand-entered expenses a debit candidate could duplicate."""
        if (
            candidate.direction != TransactionDirection.DEBIT
            or not candidate.has_valid_amount
            or candidate.transaction_date is None
        ):
            return []
        return await self.ledger_service.manual_expenses_near(
            db,
            user_id,
            candidate.amount_minor,
            candidate.transaction_date,
            amount_tolerance=config.dedup_manual_amount_tolerance,
            date_tolerance_days=config.dedup_manual_date_tolerance_days,
        )

    async def find_duplicate(
        self, db: AsyncSession, user_id: int, candidate: CandidateTransaction
    ) -> Optional[DuplicateMatch]:
        window = await self.load_window(db, user_id, candidate)
        manual_entries = await self.load_manual_window(db, user_id, candidate)
        return find_duplicate(candidate, window, manual_entries=manual_entries)

    async def create_from_candidate(
        self,
        db: AsyncSession,
        user_id: int,
        candidate: CandidateTransaction,
        score: ScoreResult,
        duplicate_of_id: Optional[int] = None,
    ) -> ImportedTransaction:
        """Store a normalized, scored candidate and commit.

        With ``duplicate_of_id`` the row is stored already processed as a
        duplicate of that hand-entered expense, so it is never posted or queued.
        """
        is_duplicate = duplicate_of_id is not None
        txn = ImportedTransaction(
            user_id=user_id,
            message_id=candidate.message_id,
            thread_id=candidate.thread_id,
            merchant_name=candidate.merchant,
            amount_minor=candidate.amount_minor,
            currency=candidate.currency,
            transaction_date=candidate.transaction_date,
            payment_mode=to_payment_mode(candidate.payment_mode).value,
            direction=candidate.direction.value,
            category=score.category,
            confidence_score=score.confidence,
            needs_review=score.needs_review and not is_duplicate,
            review_reason=None if is_duplicate else score.review_reason,
            is_duplicate=is_duplicate,
            is_processed=is_duplicate,
            duplicate_of_id=duplicate_of_id,
            reference_id=candidate.reference_id,
            account_mask=candidate.account_mask,
            dedupe_hash=compute_dedupe_hash(
                candidate.amount_minor,
                candidate.transaction_date,
                candidate.merchant,
                candidate.reference_id,
            ),
            source_platform=candidate.source_platform,
            email_subject=candidate.subject[:500] if candidate.subject else None,
            raw_extracted_data=candidate.extracted_fields(),
        )

        try:
            db.add(txn)
            await db.commit()
            await db.refresh(txn)
        except SQLAlchemyError as e:
            await db.rollback()
            self.logger.error(f"Database error storing message {candidate.message_id}: {e}")
            raise DatabaseError(f"store imported transaction: {str(e)}")

        self.logger.info(
            f"Stored transaction {txn.id} for user {user_id} "
            f"(needs_review={txn.needs_review}, confidence={txn.confidence_score})"
        )
        return txn

    async def review_queue(
        self, db: AsyncSession, user_id: int, limit: int = 50
    ) -> ReviewQueueResponse:
        """Pending rows awaiting a human decision, newest first."""
        pending = (
            ImportedTransaction.user_id == user_id,
            ImportedTransaction.needs_review.is_(True),
            ImportedTransaction.is_processed.is_(False),
            ImportedTransaction.live(),
        )
        result = await db.execute(
            select(ImportedTransaction)
            .where(*pending)
            .order_by(ImportedTransaction.created_at.desc(), ImportedTransaction.id.desc())
            .limit(limit)
        )
        items = result.scalars().all()
        pending_count = await db.scalar(
            select(func.count()).select_from(ImportedTransaction).where(*pending)
        )
        return ReviewQueueResponse(
            items=[ImportedTransactionResponse.model_validate(item) for item in items],
            pending_count=pending_count or 0,
        )

    async def _claim(self, db: AsyncSession, transaction_id: int, **values) -> None:
        """Compare-and-set ``is_processed`` from false to true.

        Raises TransactionNotFoundError or AlreadyProcessedError when the
        row cannot be claimed; the session transaction is rolled back then.
        """
        result = await db.execute(
            update(ImportedTransaction)
            .where(
                ImportedTransaction.id == transaction_id,
                ImportedTransaction.is_processed.is_(False),
            )
            .values(is_processed=True, needs_review=False, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        await db.rollback()
        existing = await db.scalar(
            select(ImportedTransaction.id).where(ImportedTransaction.id == transaction_id)
        )
        if existing is None:
            raise TransactionNotFoundError(transaction_id)
        self.logger.warning(f"Transaction {transaction_id} was already processed")
        raise AlreadyProcessedError(transaction_id)

    async def approve(self, db: AsyncSession, transaction_id: int) -> DispositionResponse:
        """Mark a transaction processed and post it to the ledger in one commit."""
        self.logger.info(f"Approving transaction {transaction_id}")

        await self._claim(db, transaction_id)
        try:
            txn = await self.get_by_id(db, transaction_id)
            posting = await self.ledger_service.post(db, txn)
            txn.ledger_entry_id = posting.entry_id
            await db.commit()
        except (LedgerRejectedError, SQLAlchemyError) as e:
            await db.rollback()
            self.logger.error(f"Ledger posting failed for transaction {transaction_id}: {e}")
            raise PostingFailure(transaction_id, str(e))

        return DispositionResponse(
            transaction_id=transaction_id,
            action="approved",
            ledger_entry_id=posting.entry_id,
            ledger_kind=posting.kind,
        )

    async def reject(self, db: AsyncSession, transaction_id: int) -> DispositionResponse:
        """Mark a transaction processed as a duplicate; nothing is posted."""
        self.logger.info(f"Rejecting transaction {transaction_id}")

        await self._claim(db, transaction_id, is_duplicate=True)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            self.logger.error(f"Database error rejecting transaction {transaction_id}: {e}")
            raise DatabaseError(f"reject transaction: {str(e)}")

        return DispositionResponse(transaction_id=transaction_id, action="rejected")

    async def mark_posting_failed(self, db: AsyncSession, transaction_id: int) -> None:
        """Route an unposted transaction to the review queue."""
        await db.execute(
            update(ImportedTransaction)
            .where(
                ImportedTransaction.id == transaction_id,
                ImportedTransaction.is_processed.is_(False),
            )
            .values(needs_review=True, review_reason=ReviewReason.POSTING_FAILED.value)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        self.logger.warning(f"Transaction {transaction_id} moved to review queue after posting failure")
