"""Controller for sync trigger, countdown, settings, history and disconnect endpoints."""

import asyncio

from fastapi import APIRouter, Query

from financeflow.core.dependencies import (
    DatabaseDep,
    GmailServiceDep,
    HistoryRecorderDep,
    SettingsServiceDep,
    SyncRegistryDep,
    UserServiceDep,
)
from financeflow.modules.sync.dto import (
    CountdownResponse,
    HistoryRecordResponse,
    HistoryResponse,
    RunSummary,
    SettingsPatch,
    SettingsResponse,
)
from financeflow.modules.sync.types import SyncMode

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/{owner_id}/trigger", response_model=RunSummary)
async def trigger_sync(
    owner_id: int, db: DatabaseDep, users: UserServiceDep, registry: SyncRegistryDep
) -> RunSummary:
    """
    Run a manual sync now and return its summary.
    Returns 409 while a sync is already running for this owner.
    """
    await users.require_user(db, owner_id)
    return await registry.trigger(owner_id, SyncMode.MANUAL)


@router.get("/{owner_id}/countdown", response_model=CountdownResponse)
async def get_countdown(
    owner_id: int, db: DatabaseDep, users: UserServiceDep, registry: SyncRegistryDep
) -> CountdownResponse:
    await users.require_user(db, owner_id)
    return await registry.countdown(owner_id)


@router.get("/{owner_id}/settings", response_model=SettingsResponse)
async def get_settings(
    owner_id: int, db: DatabaseDep, users: UserServiceDep, service: SettingsServiceDep
) -> SettingsResponse:
    await users.require_user(db, owner_id)
    settings = await service.get_or_create(db, owner_id)
    return SettingsResponse.model_validate(settings)


@router.patch("/{owner_id}/settings", response_model=SettingsResponse)
async def update_settings(
    owner_id: int,
    patch: SettingsPatch,
    db: DatabaseDep,
    users: UserServiceDep,
    service: SettingsServiceDep,
    registry: SyncRegistryDep,
) -> SettingsResponse:
    """Update sync settings. Send expected_version to reject stale writes with 409."""
    await users.require_user(db, owner_id)
    settings = await service.update_settings(db, owner_id, patch)
    registry.apply_settings(settings)
    return SettingsResponse.model_validate(settings)


@router.get("/{owner_id}/history", response_model=HistoryResponse)
async def get_history(
    owner_id: int,
    db: DatabaseDep,
    users: UserServiceDep,
    recorder: HistoryRecorderDep,
    limit: int = Query(20, ge=1, le=100),
) -> HistoryResponse:
    await users.require_user(db, owner_id)
    records = await recorder.latest(db, owner_id, limit=limit)
    return HistoryResponse(items=[HistoryRecordResponse.model_validate(r) for r in records])


@router.post("/{owner_id}/disconnect", response_model=SettingsResponse)
async def disconnect_gmail(
    owner_id: int,
    db: DatabaseDep,
    users: UserServiceDep,
    gmail: GmailServiceDep,
    service: SettingsServiceDep,
    registry: SyncRegistryDep,
) -> SettingsResponse:
    """
    Revoke the Gmail grant and switch sync off.
    Imported transactions and sync history are kept.
    """
    await users.require_user(db, owner_id)
    await asyncio.to_thread(gmail.disconnect, owner_id)
    settings = await service.update_settings(
        db, owner_id, SettingsPatch(is_enabled=False, linked_account=None)
    )
    registry.apply_settings(settings)
    return SettingsResponse.model_validate(settings)
