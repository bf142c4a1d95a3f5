"""
Centralized dependency management
Singletons for stateless services, per-request for DB sessions
"""

from functools import lru_cache
from typing import AsyncGenerator, Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Depends

from financeflow.core.config import config
from financeflow.core.db.engine import get_db_util
from financeflow.core.scheduler.service import SchedulerService
from financeflow.integrations.gmail.service import GmailService
from financeflow.modules.ledger.service import LedgerService
from financeflow.modules.sync.history import SyncHistoryRecorder
from financeflow.modules.sync.pipeline import SyncPipeline
from financeflow.modules.sync.scheduler import SyncSchedulerRegistry
from financeflow.modules.sync.settings_service import SyncSettingsService
from financeflow.modules.transactions.scorer import ConfidenceScorer
from financeflow.modules.transactions.service import ImportedTransactionService
from financeflow.modules.users.service import UsersService


# ============================================================================
# PER-REQUEST DEPENDENCIES (New instance per request)
# ============================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session - NEW per request
    Automatically commits/rollbacks and closes
    """
    async for session in get_db_util():
        yield session


# ============================================================================
# SINGLETON DEPENDENCIES (One instance for entire app lifetime)
# ============================================================================


@lru_cache()
def get_gmail_service():
    """Gmail client - SINGLETON"""
    return GmailService(
        credentials_path=config.gmail_credentials_path,
        tokens_dir=config.gmail_tokens_dir,
    )


@lru_cache()
def get_scheduler_service():
    """APScheduler wrapper - SINGLETON"""
    return SchedulerService()


# ============================================================================
# SERVICE LAYER (Singletons that accept DB session)
# ============================================================================


@lru_cache()
def get_user_service():
    """User service - SINGLETON"""
    return UsersService()


@lru_cache()
def get_ledger_service():
    """Ledger service - SINGLETON"""
    return LedgerService()


@lru_cache()
def get_transaction_service():
    """
    Imported transaction service - SINGLETON
    Takes DB session as method parameter, not in constructor
    """
    return ImportedTransactionService(ledger_service=get_ledger_service())


@lru_cache()
def get_settings_service():
    """Sync settings service - SINGLETON"""
    return SyncSettingsService()


@lru_cache()
def get_history_recorder():
    """Sync history recorder - SINGLETON"""
    return SyncHistoryRecorder()


# ============================================================================
# SYNC PIPELINE (Singletons that use all dependencies)
# ============================================================================


@lru_cache()
def get_sync_pipeline():
    """Sync pipeline - SINGLETON"""
    return SyncPipeline(
        fetcher=get_gmail_service(),
        transaction_service=get_transaction_service(),
        settings_service=get_settings_service(),
        history_recorder=get_history_recorder(),
        scorer=ConfidenceScorer(),
    )


@lru_cache()
def get_sync_registry():
    """
    Per-owner sync schedulers - SINGLETON
    Holds the Running state, so there must be exactly one per process
    """
    return SyncSchedulerRegistry(
        pipeline=get_sync_pipeline(),
        scheduler_service=get_scheduler_service(),
        settings_service=get_settings_service(),
    )


# ============================================================================
# FASTAPI DEPENDENCY TYPE ALIASES
# ============================================================================

# Database dependencies
DatabaseDep = Annotated[AsyncSession, Depends(get_db)]

# Service dependencies
UserServiceDep = Annotated[UsersService, Depends(get_user_service)]
TransactionServiceDep = Annotated[ImportedTransactionService, Depends(get_transaction_service)]
SettingsServiceDep = Annotated[SyncSettingsService, Depends(get_settings_service)]
HistoryRecorderDep = Annotated[SyncHistoryRecorder, Depends(get_history_recorder)]
SyncRegistryDep = Annotated[SyncSchedulerRegistry, Depends(get_sync_registry)]
LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
GmailServiceDep = Annotated[GmailService, Depends(get_gmail_service)]
