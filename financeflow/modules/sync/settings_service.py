"""Versioned per-owner sync settings.

Every write goes through ``_write``, which bumps ``version`` with a
compare-and-set ``UPDATE ... WHERE version = :read_version``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from financeflow.core.config import config
from financeflow.core.exceptions import SettingsVersionConflict
from financeflow.modules.sync.dto import RunSummary, SettingsPatch
from financeflow.modules.sync.models import SyncSettings
from financeflow.modules.sync.types import (
    FOLDER_FIELDS,
    SCAN_MODE_PRESETS,
    MailFolder,
    RunStatus,
    ScanMode,
    SyncMode,
    SyncStatus,
)
from financeflow.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SettingsValues = Union[Dict[str, Any], Callable[[SyncSettings], Dict[str, Any]]]

# Settings columns a patch may set back to NULL
CLEARABLE_FIELDS = {"linked_account"}


def selected_folders(settings: SyncSettings) -> List[MailFolder]:
    """Folders enabled by the settings' toggles, in a stable order."""
    return [folder for field, folder in FOLDER_FIELDS.items() if getattr(settings, field)]


class SyncSettingsService:
    def __init__(self):
        self.logger = logger

    async def get_settings(self, db: AsyncSession, user_id: int) -> Optional[SyncSettings]:
        result = await db.execute(
            select(SyncSettings)
            .where(SyncSettings.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, db: AsyncSession, user_id: int) -> SyncSettings:
        """Get the owner's settings, creating defaults on first access."""
        settings = await self.get_settings(db, user_id)
        if settings:
            return settings

        self.logger.info(f"Creating default sync settings for user {user_id}")
        preset = SCAN_MODE_PRESETS[ScanMode.LIMITED]
        settings = SyncSettings(
            user_id=user_id,
            is_enabled=False,
            auto_sync_enabled=True,
            sync_status=SyncStatus.IDLE.value,
            total_synced_count=0,
            sync_frequency_minutes=config.default_sync_frequency_minutes,
            scan_days=config.default_scan_days,
            scan_mode=ScanMode.LIMITED.value,
            version=1,
            **{field: folder in preset for field, folder in FOLDER_FIELDS.items()},
        )
        try:
            db.add(settings)
            await db.commit()
        except IntegrityError:
            # Created concurrently by another request
            await db.rollback()
            return await self.get_settings(db, user_id)

        await db.refresh(settings)
        return settings

    async def list_enabled(self, db: AsyncSession) -> List[SyncSettings]:
        result = await db.execute(
            select(SyncSettings).where(
                SyncSettings.is_enabled.is_(True),
                SyncSettings.live(),
            )
        )
        return list(result.scalars().all())

    async def _write(
        self,
        db: AsyncSession,
        user_id: int,
        values: SettingsValues,
        expected_version: Optional[int] = None,
    ) -> SyncSettings:
        """Apply values with a version compare-and-set, retrying once on a lost race."""
        current = None
        for attempt in range(2):
            current = await self.get_or_create(db, user_id)
            if expected_version is not None and current.version != expected_version:
                raise SettingsVersionConflict(expected_version, current.version)

            resolved = values(current) if callable(values) else values
            result = await db.execute(
                update(SyncSettings)
                .where(
                    SyncSettings.user_id == user_id,
                    SyncSettings.version == current.version,
                )
                .values(**resolved, version=current.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await db.commit()
                return await self.get_settings(db, user_id)

            await db.rollback()
            self.logger.warning(
                f"Lost settings write race for user {user_id} "
                f"(version {current.version}, attempt {attempt + 1})"
            )

        actual = await self.get_settings(db, user_id)
        raise SettingsVersionConflict(current.version, actual.version if actual else None)

    async def update_settings(
        self, db: AsyncSession, user_id: int, patch: SettingsPatch
    ) -> SyncSettings:
        """The single writer path for user-facing settings changes.

        Changing ``scan_mode`` applies its folder preset unless the same
        patch sets folder toggles explicitly.
        """
        values = patch.model_dump(exclude_unset=True, exclude={"expected_version"})
        # Only nullable columns may be cleared with an explicit null
        values = {
            key: value
            for key, value in values.items()
            if value is not None or key in CLEARABLE_FIELDS
        }

        if "scan_mode" in values:
            mode = ScanMode(values["scan_mode"])
            values["scan_mode"] = mode.value
            if not any(field in values for field in FOLDER_FIELDS):
                preset = SCAN_MODE_PRESETS[mode]
                values.update({field: folder in preset for field, folder in FOLDER_FIELDS.items()})

        if values.get("is_enabled"):
            # Re-enabling clears a previous token or error state
            values.setdefault("sync_status", SyncStatus.IDLE.value)

        self.logger.info(f"Updating sync settings for user {user_id}: {values}")
        return await self._write(db, user_id, values, expected_version=patch.expected_version)

    async def mark_syncing(self, db: AsyncSession, user_id: int) -> SyncSettings:
        return await self._write(db, user_id, {"sync_status": SyncStatus.SYNCING.value})

    async def record_run_outcome(
        self, db: AsyncSession, user_id: int, summary: RunSummary, auth_failed: bool = False
    ) -> SyncSettings:
        """Fold a finished run into the settings status and counters."""
        now = utc_now()

        def outcome(current: SyncSettings) -> Dict[str, Any]:
            values: Dict[str, Any] = {}
            if summary.status == RunStatus.FAILED:
                values["sync_status"] = (
                    SyncStatus.TOKEN_EXPIRED.value if auth_failed else SyncStatus.ERROR.value
                )
                if auth_failed:
                    values["is_enabled"] = False
            else:
                values["sync_status"] = SyncStatus.IDLE.value
                values["last_sync_at"] = now
                values["total_synced_count"] = current.total_synced_count + summary.imported_count
            if summary.sync_type == SyncMode.AUTO:
                values["last_auto_sync_at"] = now
            return values

        return await self._write(db, user_id, outcome)
