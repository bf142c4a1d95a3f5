from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from financeflow.modules.sync.types import (
    RunStatus,
    ScanMode,
    SchedulerState,
    SyncMode,
)


class RunSummary(BaseModel):
    """Counters and outcome of one sync run."""

    owner_id: int
    sync_type: SyncMode
    status: RunStatus = RunStatus.COMPLETED
    emails_scanned: int = Field(default=0, description="Messages returned by the fetcher")
    transactions_found: int = Field(default=0, description="Messages that yielded a valid candidate")
    duplicates_detected: int = 0
    imported_count: int = Field(default=0, description="Rows persisted, posted or queued")
    queued_for_review: int = 0
    sync_duration_ms: int = 0
    error_message: Optional[str] = None


class SettingsPatch(BaseModel):
    """Partial update of an owner's sync settings."""

    is_enabled: Optional[bool] = None
    auto_sync_enabled: Optional[bool] = None
    linked_account: Optional[str] = None
    scan_inbox: Optional[bool] = None
    scan_promotions: Optional[bool] = None
    scan_updates: Optional[bool] = None
    scan_social: Optional[bool] = None
    scan_spam: Optional[bool] = None
    scan_trash: Optional[bool] = None
    sync_frequency_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)
    scan_days: Optional[int] = Field(None, ge=1, le=365)
    scan_mode: Optional[ScanMode] = None
    expected_version: Optional[int] = Field(
        None, description="Reject the write if settings changed since this version"
    )


class SettingsResponse(BaseModel):
    user_id: int
    is_enabled: bool
    auto_sync_enabled: bool
    linked_account: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    last_auto_sync_at: Optional[datetime] = None
    sync_status: str
    total_synced_count: int
    scan_inbox: bool
    scan_promotions: bool
    scan_updates: bool
    scan_social: bool
    scan_spam: bool
    scan_trash: bool
    sync_frequency_minutes: int
    scan_days: int
    scan_mode: str
    version: int

    class Config:
        from_attributes = True


class HistoryRecordResponse(BaseModel):
    id: int
    sync_type: str
    status: str
    emails_scanned: int
    transactions_found: int
    duplicates_detected: int
    imported_count: int
    queued_for_review: int
    sync_duration_ms: int
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    items: List[HistoryRecordResponse]


class CountdownResponse(BaseModel):
    seconds: int = Field(..., ge=0, description="Seconds until the next automatic sync")
    state: SchedulerState
