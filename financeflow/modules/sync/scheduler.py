"""Per-owner sync scheduling.

Each owner gets a ``SyncScheduler``: a small state machine

    IDLE --trigger--> RUNNING --completion/failure--> COOLDOWN
    COOLDOWN --timer expiry or manual trigger--> IDLE

The RUNNING check-and-set in ``trigger`` has no ``await`` between the check
and the set, so on one event loop it is the single guard against concurrent
runs. The countdown is derived from a monotonic clock and is informational.
"""

import logging
import math
import time
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from financeflow.core.config import config
from financeflow.core.db.engine import AsyncSessionLocal
from financeflow.core.exceptions import ConcurrentRunRejected, SyncDisabledError
from financeflow.core.scheduler.service import SchedulerService
from financeflow.modules.sync.dto import CountdownResponse, RunSummary
from financeflow.modules.sync.models import SyncSettings
from financeflow.modules.sync.pipeline import SyncPipeline
from financeflow.modules.sync.settings_service import SyncSettingsService
from financeflow.modules.sync.types import SchedulerState, SyncMode
from financeflow.utils.datetime import ensure_aware, utc_now

logger = logging.getLogger(__name__)

RunCallable = Callable[[int, SyncMode], Awaitable[RunSummary]]


class SyncScheduler:
    def __init__(
        self,
        owner_id: int,
        run: RunCallable,
        frequency_minutes: int = 30,
        enabled: bool = False,
        auto_sync_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        seconds_since_last_run: Optional[float] = None,
    ):
        self.owner_id = owner_id
        self._run = run
        self._clock = clock
        self.frequency_minutes = frequency_minutes
        self.enabled = enabled
        self.auto_sync_enabled = auto_sync_enabled
        self._state = SchedulerState.IDLE
        # Resume the countdown from the last recorded run, if any
        self._last_attempt = clock() - max(0.0, seconds_since_last_run or 0.0)

    def configure(
        self,
        frequency_minutes: Optional[int] = None,
        enabled: Optional[bool] = None,
        auto_sync_enabled: Optional[bool] = None,
    ) -> None:
        """Apply new settings. Never interrupts a run in flight."""
        if frequency_minutes is not None:
            self.frequency_minutes = frequency_minutes
        if enabled is not None:
            self.enabled = enabled
        if auto_sync_enabled is not None:
            self.auto_sync_enabled = auto_sync_enabled

    @property
    def frequency_seconds(self) -> int:
        return self.frequency_minutes * 60

    @property
    def next_due(self) -> float:
        return self._last_attempt + self.frequency_seconds

    @property
    def state(self) -> SchedulerState:
        if self._state == SchedulerState.COOLDOWN and self._clock() >= self.next_due:
            self._state = SchedulerState.IDLE
        return self._state

    def countdown_seconds(self) -> int:
        """Seconds until the next automatic run, never negative."""
        return max(0, math.ceil(self.next_due - self._clock()))

    async def trigger(self, mode: SyncMode = SyncMode.MANUAL) -> RunSummary:
        if self.state == SchedulerState.RUNNING:
            logger.info(f"Rejected {mode.value} sync for user {self.owner_id}: already running")
            raise ConcurrentRunRejected(self.owner_id)
        self._state = SchedulerState.RUNNING
        self._last_attempt = self._clock()

        try:
            return await self._run(self.owner_id, mode)
        finally:
            self._state = SchedulerState.COOLDOWN
            self._last_attempt = self._clock()

    async def tick(self) -> Optional[RunSummary]:
        """Start an automatic run when one is due and allowed."""
        if not (self.enabled and self.auto_sync_enabled):
            return None
        if self.state == SchedulerState.RUNNING or self.countdown_seconds() > 0:
            return None
        return await self.trigger(SyncMode.AUTO)


class SyncSchedulerRegistry:
    """Owns one SyncScheduler per owner and their APScheduler tick jobs."""

    def __init__(
        self,
        pipeline: SyncPipeline,
        scheduler_service: Optional[SchedulerService] = None,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        settings_service: Optional[SyncSettingsService] = None,
        tick_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.pipeline = pipeline
        self.scheduler_service = scheduler_service
        self.session_factory = session_factory
        self.settings_service = settings_service or SyncSettingsService()
        self.tick_seconds = tick_seconds or config.scheduler_tick_seconds
        self._clock = clock
        self._schedulers: Dict[int, SyncScheduler] = {}

    @staticmethod
    def job_id(owner_id: int) -> str:
        return f"sync_tick:{owner_id}"

    def get(self, owner_id: int) -> Optional[SyncScheduler]:
        return self._schedulers.get(owner_id)

    @staticmethod
    def _seconds_since_last_run(settings: SyncSettings) -> Optional[float]:
        recorded = [
            ensure_aware(ts)
            for ts in (settings.last_sync_at, settings.last_auto_sync_at)
            if ts is not None
        ]
        if not recorded:
            return None
        return (utc_now() - max(recorded)).total_seconds()

    def apply_settings(self, settings: SyncSettings) -> SyncScheduler:
        """Create or reconfigure the owner's scheduler and its tick job."""
        owner_id = settings.user_id
        scheduler = self._schedulers.get(owner_id)
        if scheduler is None:
            scheduler = SyncScheduler(
                owner_id,
                run=self._run,
                frequency_minutes=settings.sync_frequency_minutes,
                enabled=settings.is_enabled,
                auto_sync_enabled=settings.auto_sync_enabled,
                clock=self._clock,
                seconds_since_last_run=self._seconds_since_last_run(settings),
            )
            self._schedulers[owner_id] = scheduler
        else:
            scheduler.configure(
                frequency_minutes=settings.sync_frequency_minutes,
                enabled=settings.is_enabled,
                auto_sync_enabled=settings.auto_sync_enabled,
            )

        if self.scheduler_service is not None:
            job_id = self.job_id(owner_id)
            if settings.is_enabled and settings.auto_sync_enabled:
                if not self.scheduler_service.has_job(job_id):
                    self.scheduler_service.add_interval_job(
                        self.tick, job_id=job_id, seconds=self.tick_seconds, args=[owner_id]
                    )
            elif self.scheduler_service.has_job(job_id):
                self.scheduler_service.remove_job(job_id)

        return scheduler

    async def load_all(self) -> int:
        """Register schedulers for every owner with sync enabled."""
        async with self.session_factory() as db:
            enabled = await self.settings_service.list_enabled(db)
        for settings in enabled:
            self.apply_settings(settings)
        logger.info(f"Registered sync schedulers for {len(enabled)} user(s)")
        return len(enabled)

    async def _scheduler_for(self, owner_id: int) -> tuple[SyncScheduler, SyncSettings]:
        async with self.session_factory() as db:
            settings = await self.settings_service.get_or_create(db, owner_id)
        return self.apply_settings(settings), settings

    async def _run(self, owner_id: int, mode: SyncMode) -> RunSummary:
        summary = await self.pipeline.run(owner_id, mode)
        # A run can change settings (e.g. disable sync after token expiry)
        async with self.session_factory() as db:
            settings = await self.settings_service.get_settings(db, owner_id)
        if settings is not None:
            self.apply_settings(settings)
        return summary

    async def trigger(self, owner_id: int, mode: SyncMode = SyncMode.MANUAL) -> RunSummary:
        """Manual (or forced) run. Raises ConcurrentRunRejected while one is running."""
        scheduler, settings = await self._scheduler_for(owner_id)
        if not settings.is_enabled:
            raise SyncDisabledError(owner_id)
        return await scheduler.trigger(mode)

    async def tick(self, owner_id: int) -> Optional[RunSummary]:
        """APScheduler job body: start an automatic run when due."""
        scheduler = self._schedulers.get(owner_id)
        if scheduler is None:
            return None
        try:
            return await scheduler.tick()
        except ConcurrentRunRejected:
            logger.info(f"Automatic sync for user {owner_id} skipped: already running")
            return None
        except Exception as e:
            logger.error(f"Error in sync tick for user {owner_id}: {e}", exc_info=True)
            return None

    async def countdown(self, owner_id: int) -> CountdownResponse:
        scheduler = self._schedulers.get(owner_id)
        if scheduler is None:
            scheduler, _ = await self._scheduler_for(owner_id)
        return CountdownResponse(seconds=scheduler.countdown_seconds(), state=scheduler.state)
