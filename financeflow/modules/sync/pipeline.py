"""One end-to-end sync run for one owner."""

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from financeflow.core.config import config
from financeflow.core.db.engine import AsyncSessionLocal
from financeflow.core.exceptions import FetchError, PostingFailure
from financeflow.integrations.gmail.dto import EmailDTO, FetchWindow
from financeflow.modules.sync.dto import RunSummary
from financeflow.modules.sync.history import SyncHistoryRecorder
from financeflow.modules.sync.settings_service import SyncSettingsService, selected_folders
from financeflow.modules.sync.types import RunStatus, ScanMode, SyncMode
from financeflow.modules.transactions.dto import ExtractionFailure
from financeflow.modules.transactions.extractor import extract
from financeflow.modules.transactions.normalizer import normalize
from financeflow.modules.transactions.scorer import ConfidenceScorer
from financeflow.modules.transactions.service import ImportedTransactionService

logger = logging.getLogger(__name__)


class MessageFetcher(Protocol):
    """Anything that can list an owner's candidate messages. Called off the event loop."""

    def fetch_messages(self, owner_id: int, window: FetchWindow) -> list[EmailDTO]: ...


class SyncPipeline:
    """Fetch, extract, normalize, deduplicate, score, store and record one run.

    Messages are processed one at a time and each is committed on its own,
    so a run stopped by the time budget keeps the work it finished.
    """

    def __init__(
        self,
        fetcher: MessageFetcher,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        transaction_service: Optional[ImportedTransactionService] = None,
        settings_service: Optional[SyncSettingsService] = None,
        history_recorder: Optional[SyncHistoryRecorder] = None,
        scorer: Optional[ConfidenceScorer] = None,
        run_timeout_seconds: Optional[float] = None,
        auto_post: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.session_factory = session_factory
        self.transaction_service = transaction_service or ImportedTransactionService()
        self.settings_service = settings_service or SyncSettingsService()
        self.history_recorder = history_recorder or SyncHistoryRecorder()
        self.scorer = scorer or ConfidenceScorer()
        self.run_timeout_seconds = (
            run_timeout_seconds
            if run_timeout_seconds is not None
            else config.sync_run_timeout_seconds
        )
        self.auto_post = (
            auto_post if auto_post is not None else config.auto_post_confident_transactions
        )
        self._clock = clock

    async def _fetch(
        self, owner_id: int, window: FetchWindow, deadline: float
    ) -> list[EmailDTO]:
        remaining = max(0.0, deadline - self._clock())
        return await asyncio.wait_for(
            asyncio.to_thread(self.fetcher.fetch_messages, owner_id, window),
            timeout=remaining,
        )

    async def _process_message(
        self, db: AsyncSession, owner_id: int, email: EmailDTO, summary: RunSummary
    ) -> None:
        result = extract(email)
        if isinstance(result, ExtractionFailure):
            logger.debug(f"Skipping message {email.id}: {result.reason}")
            return

        candidate = normalize(result)
        if not candidate.has_valid_amount or candidate.transaction_date is None:
            logger.debug(f"Skipping message {email.id}: {', '.join(candidate.issues)}")
            return
        summary.transactions_found += 1

        match = await self.transaction_service.find_duplicate(db, owner_id, candidate)
        if match and match.is_manual_entry:
            summary.duplicates_detected += 1
            logger.info(f"Message {email.id} duplicates manual expense {match.existing.id}")
            # Kept so the message is recognised on later runs; never posted
            await self.transaction_service.create_from_candidate(
                db,
                owner_id,
                candidate,
                self.scorer.score(candidate),
                duplicate_of_id=match.existing.id,
            )
            return
        if match:
            summary.duplicates_detected += 1
            logger.info(
                f"Message {email.id} duplicates transaction {match.existing.id} ({match.rule})"
            )
            return

        score = self.scorer.score(candidate)
        txn = await self.transaction_service.create_from_candidate(db, owner_id, candidate, score)
        summary.imported_count += 1

        if score.needs_review:
            summary.queued_for_review += 1
            return

        if self.auto_post:
            try:
                await self.transaction_service.approve(db, txn.id)
            except PostingFailure as e:
                logger.warning(f"Auto-posting transaction {txn.id} failed: {e.reason}")
                await self.transaction_service.mark_posting_failed(db, txn.id)
                summary.queued_for_review += 1

    async def run(self, owner_id: int, mode: SyncMode = SyncMode.MANUAL) -> RunSummary:
        """Run one sync. Always records exactly one history entry."""
        started = self._clock()
        deadline = started + self.run_timeout_seconds
        summary = RunSummary(owner_id=owner_id, sync_type=mode)
        auth_failed = False

        logger.info(f"Starting {mode.value} sync for user {owner_id}")

        async with self.session_factory() as db:
            try:
                settings = await self.settings_service.mark_syncing(db, owner_id)
                window = FetchWindow(
                    folders=selected_folders(settings),
                    scan_days=settings.scan_days,
                    scan_mode=ScanMode(settings.scan_mode),
                    max_results=config.gmail_max_results,
                )

                if window.folders:
                    emails = await self._fetch(owner_id, window, deadline)
                else:
                    logger.info(f"Sync for user {owner_id}: no mail folders selected")
                    emails = []
                summary.emails_scanned = len(emails)

                failed_messages = 0
                for index, email in enumerate(emails):
                    if self._clock() >= deadline:
                        summary.status = RunStatus.PARTIAL
                        summary.error_message = (
                            f"Run time budget exceeded after {index} of {len(emails)} messages"
                        )
                        logger.warning(f"Sync for user {owner_id}: {summary.error_message}")
                        break
                    try:
                        await self._process_message(db, owner_id, email, summary)
                    except Exception as e:
                        # Discard this message's uncommitted writes and move on
                        await db.rollback()
                        failed_messages += 1
                        logger.error(
                            f"Sync for user {owner_id}: message {email.id} failed: {e}",
                            exc_info=True,
                        )

                if failed_messages:
                    skipped = f"{failed_messages} of {len(emails)} messages could not be processed"
                    summary.error_message = (
                        f"{summary.error_message}; {skipped}" if summary.error_message else skipped
                    )
                    summary.status = RunStatus.PARTIAL

            except asyncio.TimeoutError:
                summary.status = RunStatus.PARTIAL
                summary.error_message = "Run time budget exceeded while fetching messages"
                logger.warning(f"Sync for user {owner_id}: {summary.error_message}")
            except FetchError as e:
                summary.status = RunStatus.FAILED
                summary.error_message = f"{e.code}: {e.message}"
                auth_failed = e.is_auth_error
                logger.error(f"Sync for user {owner_id} failed to fetch messages: {summary.error_message}")
            except Exception as e:
                summary.status = RunStatus.FAILED
                summary.error_message = str(e) or e.__class__.__name__
                logger.error(f"Sync for user {owner_id} failed: {e}", exc_info=True)

            summary.sync_duration_ms = int((self._clock() - started) * 1000)

            await db.rollback()
            try:
                await self.settings_service.record_run_outcome(
                    db, owner_id, summary, auth_failed=auth_failed
                )
            except Exception as e:
                await db.rollback()
                logger.error(f"Could not update sync settings for user {owner_id}: {e}")

            await self.history_recorder.record(db, owner_id, summary)

        logger.info(
            f"Finished {mode.value} sync for user {owner_id}: status={summary.status.value}, "
            f"scanned={summary.emails_scanned}, found={summary.transactions_found}, "
            f"duplicates={summary.duplicates_detected}, imported={summary.imported_count}, "
            f"queued={summary.queued_for_review}"
        )
        return summary
