from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from financeflow.core.db.base import BaseModel


class SyncSettings(BaseModel):
    """Per-owner mail sync configuration and status."""

    __tablename__ = "sync_settings"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True
    )

    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_sync_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    linked_account: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Connected mailbox address"
    )

    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Last successful run"
    )
    last_auto_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    sync_status: Mapped[str] = mapped_column(String(20), nullable=False, default="idle")
    total_synced_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Folder toggles
    scan_inbox: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    scan_promotions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scan_updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    scan_social: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scan_spam: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scan_trash: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sync_frequency_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    scan_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    scan_mode: Mapped[str] = mapped_column(String(10), nullable=False, default="limited")

    # Incremented on every write
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<SyncSettings(user_id={self.user_id}, enabled={self.is_enabled}, "
            f"version={self.version})>"
        )


class SyncHistory(BaseModel):
    """Append-only audit record of one sync run."""

    __tablename__ = "sync_history"
    __table_args__ = (Index("idx_sync_history_user_created", "user_id", "created_at"),)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    sync_type: Mapped[str] = mapped_column(String(10), nullable=False, comment="manual or auto")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="completed, partial or failed"
    )

    emails_scanned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transactions_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duplicates_detected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    queued_for_review: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    sync_duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SyncHistory(user_id={self.user_id}, status='{self.status}', "
            f"imported={self.imported_count})>"
        )
