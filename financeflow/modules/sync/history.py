import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from financeflow.core.exceptions import DatabaseError
from financeflow.modules.sync.dto import RunSummary
from financeflow.modules.sync.models import SyncHistory

logger = logging.getLogger(__name__)


class SyncHistoryRecorder:
    """Writes one immutable history record per sync run. No update or delete."""

    def __init__(self):
        self.logger = logger

    async def record(self, db: AsyncSession, owner_id: int, summary: RunSummary) -> SyncHistory:
        entry = SyncHistory(
            user_id=owner_id,
            sync_type=summary.sync_type.value,
            status=summary.status.value,
            emails_scanned=summary.emails_scanned,
            transactions_found=summary.transactions_found,
            duplicates_detected=summary.duplicates_detected,
            imported_count=summary.imported_count,
            queued_for_review=summary.queued_for_review,
            sync_duration_ms=summary.sync_duration_ms,
            error_message=summary.error_message,
        )
        try:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
        except SQLAlchemyError as e:
            await db.rollback()
            self.logger.error(f"Failed to record sync history for user {owner_id}: {e}")
            raise DatabaseError(f"record sync history: {str(e)}")

        self.logger.info(
            f"Recorded {summary.sync_type.value} sync for user {owner_id}: "
            f"status={summary.status.value}, scanned={summary.emails_scanned}, "
            f"imported={summary.imported_count}, duplicates={summary.duplicates_detected}"
        )
        return entry

    async def latest(self, db: AsyncSession, owner_id: int, limit: int = 20) -> List[SyncHistory]:
        result = await db.execute(
            select(SyncHistory)
            .where(SyncHistory.user_id == owner_id)
            .order_by(SyncHistory.created_at.desc(), SyncHistory.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
