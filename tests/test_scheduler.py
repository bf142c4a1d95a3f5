import asyncio
import threading
import time
from datetime import timedelta

import pytest
from sqlalchemy import update

from financeflow.core.exceptions import ConcurrentRunRejected, FetchError, SyncDisabledError
from financeflow.core.scheduler.service import SchedulerService
from financeflow.modules.sync.dto import RunSummary, SettingsPatch
from financeflow.modules.sync.history import SyncHistoryRecorder
from financeflow.modules.sync.models import SyncSettings
from financeflow.modules.sync.pipeline import SyncPipeline
from financeflow.modules.sync.scheduler import SyncScheduler, SyncSchedulerRegistry
from financeflow.modules.sync.settings_service import SyncSettingsService
from financeflow.modules.sync.types import RunStatus, SchedulerState, SyncMode
from financeflow.modules.transactions.scorer import ConfidenceScorer, ScoringWeights
from financeflow.utils.datetime import utc_now
from tests.factories import CLEAN_ALERT, FakeClock, FakeFetcher, make_email


class RecordingRun:
    """Run callable that records calls and can be held open."""

    def __init__(self, error=None):
        self.calls = []
        self.release = asyncio.Event()
        self.release.set()
        self.error = error

    async def __call__(self, owner_id, mode):
        self.calls.append((owner_id, mode))
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return RunSummary(owner_id=owner_id, sync_type=mode)


def make_scheduler(run, clock, **kwargs) -> SyncScheduler:
    kwargs.setdefault("frequency_minutes", 30)
    kwargs.setdefault("enabled", True)
    kwargs.setdefault("auto_sync_enabled", True)
    return SyncScheduler(1, run=run, clock=clock, **kwargs)


class TestSyncScheduler:
    def test_countdown_starts_at_full_frequency(self):
        clock = FakeClock()
        scheduler = make_scheduler(RecordingRun(), clock)

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.countdown_seconds() == 1800

        clock.advance(600.5)
        assert scheduler.countdown_seconds() == 1200

        clock.advance(5000)
        assert scheduler.countdown_seconds() == 0

    async def test_tick_waits_until_due(self):
        clock = FakeClock()
        run = RecordingRun()
        scheduler = make_scheduler(run, clock)

        assert await scheduler.tick() is None
        clock.advance(1800)
        summary = await scheduler.tick()

        assert summary.sync_type == SyncMode.AUTO
        assert run.calls == [(1, SyncMode.AUTO)]
        assert scheduler.state == SchedulerState.COOLDOWN
        assert scheduler.countdown_seconds() == 1800

    async def test_cooldown_expires_to_idle(self):
        clock = FakeClock()
        scheduler = make_scheduler(RecordingRun(), clock)
        await scheduler.trigger()

        assert scheduler.state == SchedulerState.COOLDOWN
        clock.advance(1800)
        assert scheduler.state == SchedulerState.IDLE

    async def test_manual_trigger_during_cooldown_runs(self):
        clock = FakeClock()
        run = RecordingRun()
        scheduler = make_scheduler(run, clock)
        await scheduler.trigger()
        clock.advance(60)

        await scheduler.trigger(SyncMode.MANUAL)

        assert run.calls == [(1, SyncMode.MANUAL), (1, SyncMode.MANUAL)]
        assert scheduler.countdown_seconds() == 1800

    @pytest.mark.parametrize(
        "enabled, auto_sync_enabled", [(False, True), (True, False), (False, False)]
    )
    async def test_tick_does_nothing_when_auto_sync_is_off(self, enabled, auto_sync_enabled):
        clock = FakeClock()
        run = RecordingRun()
        scheduler = make_scheduler(
            run, clock, enabled=enabled, auto_sync_enabled=auto_sync_enabled
        )
        clock.advance(3600)

        assert await scheduler.tick() is None
        assert run.calls == []

    async def test_second_trigger_while_running_is_rejected(self):
        clock = FakeClock()
        run = RecordingRun()
        run.release.clear()
        scheduler = make_scheduler(run, clock)

        first = asyncio.create_task(scheduler.trigger())
        await asyncio.sleep(0)
        assert scheduler.state == SchedulerState.RUNNING

        with pytest.raises(ConcurrentRunRejected):
            await scheduler.trigger()
        clock.advance(3600)
        assert await scheduler.tick() is None

        run.release.set()
        await first
        assert len(run.calls) == 1
        assert scheduler.state == SchedulerState.COOLDOWN

    async def test_failed_run_still_enters_cooldown(self):
        clock = FakeClock()
        scheduler = make_scheduler(RecordingRun(error=RuntimeError("boom")), clock)

        with pytest.raises(RuntimeError):
            await scheduler.trigger()

        assert scheduler.state == SchedulerState.COOLDOWN
        assert scheduler.countdown_seconds() == 1800

    def test_configure_changes_next_due(self):
        clock = FakeClock()
        scheduler = make_scheduler(RecordingRun(), clock)

        scheduler.configure(frequency_minutes=5)

        assert scheduler.countdown_seconds() == 300


def make_registry(
    session_factory, fetcher, scheduler_service=None, clock=time.monotonic
) -> SyncSchedulerRegistry:
    pipeline = SyncPipeline(
        fetcher,
        session_factory=session_factory,
        scorer=ConfidenceScorer(ScoringWeights()),
        run_timeout_seconds=30,
        auto_post=True,
    )
    return SyncSchedulerRegistry(
        pipeline,
        scheduler_service=scheduler_service,
        session_factory=session_factory,
        tick_seconds=15,
        clock=clock,
    )


async def history_count(session_factory, user_id) -> int:
    async with session_factory() as session:
        return len(await SyncHistoryRecorder().latest(session, user_id))


class TestSyncSchedulerRegistry:
    async def test_trigger_disabled_owner_is_refused(self, session_factory, user):
        fetcher = FakeFetcher([make_email("m-1", CLEAN_ALERT)])
        registry = make_registry(session_factory, fetcher)

        with pytest.raises(SyncDisabledError):
            await registry.trigger(user.id)

        assert fetcher.calls == []
        assert await history_count(session_factory, user.id) == 0

    async def test_trigger_runs_pipeline(self, session_factory, enabled_user):
        registry = make_registry(session_factory, FakeFetcher([make_email("m-1", CLEAN_ALERT)]))

        summary = await registry.trigger(enabled_user.id)

        assert summary.imported_count == 1
        assert await history_count(session_factory, enabled_user.id) == 1
        countdown = await registry.countdown(enabled_user.id)
        assert countdown.state == SchedulerState.COOLDOWN
        assert countdown.seconds > 0

    async def test_concurrent_triggers_produce_one_run(self, session_factory, enabled_user):
        gate = threading.Event()
        fetcher = FakeFetcher([make_email("m-1", CLEAN_ALERT)], gate=gate)
        registry = make_registry(session_factory, fetcher)

        first = asyncio.create_task(registry.trigger(enabled_user.id))
        while not fetcher.calls:
            await asyncio.sleep(0.01)

        with pytest.raises(ConcurrentRunRejected):
            await registry.trigger(enabled_user.id)
        assert await registry.tick(enabled_user.id) is None

        gate.set()
        summary = await first

        assert summary.imported_count == 1
        assert len(fetcher.calls) == 1
        assert await history_count(session_factory, enabled_user.id) == 1

    async def test_apply_settings_manages_tick_job(self, session_factory, db, enabled_user):
        scheduler_service = SchedulerService()
        registry = make_registry(session_factory, FakeFetcher(), scheduler_service)
        settings_service = SyncSettingsService()
        job_id = SyncSchedulerRegistry.job_id(enabled_user.id)

        settings = await settings_service.get_settings(db, enabled_user.id)
        registry.apply_settings(settings)
        assert scheduler_service.has_job(job_id)

        settings = await settings_service.update_settings(
            db, enabled_user.id, SettingsPatch(auto_sync_enabled=False)
        )
        registry.apply_settings(settings)
        assert not scheduler_service.has_job(job_id)
        assert registry.get(enabled_user.id).auto_sync_enabled is False

    async def test_load_all_registers_enabled_owners(self, session_factory, enabled_user):
        registry = make_registry(session_factory, FakeFetcher())

        assert await registry.load_all() == 1
        assert registry.get(enabled_user.id) is not None

    async def test_auth_failure_disables_scheduler(self, session_factory, enabled_user):
        fetcher = FakeFetcher(error=FetchError("expired", code="TOKEN_EXPIRED"))
        registry = make_registry(session_factory, fetcher)

        await registry.trigger(enabled_user.id)

        assert registry.get(enabled_user.id).enabled is False
        with pytest.raises(SyncDisabledError):
            await registry.trigger(enabled_user.id)

    async def test_tick_for_unknown_owner_is_a_no_op(self, session_factory):
        registry = make_registry(session_factory, FakeFetcher())
        assert await registry.tick(12345) is None

    async def test_disable_during_run_lets_it_finish(self, session_factory, db, enabled_user):
        gate = threading.Event()
        clock = FakeClock()
        scheduler_service = SchedulerService()
        fetcher = FakeFetcher([make_email("m-1", CLEAN_ALERT)], gate=gate)
        registry = make_registry(session_factory, fetcher, scheduler_service, clock=clock)
        job_id = SyncSchedulerRegistry.job_id(enabled_user.id)

        running = asyncio.create_task(registry.trigger(enabled_user.id, SyncMode.AUTO))
        while not fetcher.calls:
            await asyncio.sleep(0.01)
        assert scheduler_service.has_job(job_id)

        settings = await SyncSettingsService().update_settings(
            db, enabled_user.id, SettingsPatch(is_enabled=False)
        )
        registry.apply_settings(settings)
        assert not scheduler_service.has_job(job_id)
        assert registry.get(enabled_user.id).state == SchedulerState.RUNNING

        gate.set()
        summary = await running

        assert summary.status == RunStatus.COMPLETED
        assert summary.imported_count == 1
        assert await history_count(session_factory, enabled_user.id) == 1

        clock.advance(3600)
        assert registry.get(enabled_user.id).enabled is False
        assert await registry.tick(enabled_user.id) is None
        assert len(fetcher.calls) == 1


class TestCountdownAfterRestart:
    async def set_last_sync(self, db, user_id, minutes_ago):
        await db.execute(
            update(SyncSettings)
            .where(SyncSettings.user_id == user_id)
            .values(last_sync_at=utc_now() - timedelta(minutes=minutes_ago))
        )
        await db.commit()

    async def test_overdue_owner_runs_on_first_tick(self, session_factory, db, enabled_user):
        await self.set_last_sync(db, enabled_user.id, minutes_ago=40)
        fetcher = FakeFetcher([make_email("m-1", CLEAN_ALERT)])
        registry = make_registry(session_factory, fetcher, clock=FakeClock())

        await registry.load_all()

        assert registry.get(enabled_user.id).countdown_seconds() == 0
        summary = await registry.tick(enabled_user.id)
        assert summary is not None
        assert summary.sync_type == SyncMode.AUTO
        assert len(fetcher.calls) == 1

    async def test_countdown_continues_from_last_sync(self, session_factory, db, enabled_user):
        await self.set_last_sync(db, enabled_user.id, minutes_ago=10)
        registry = make_registry(session_factory, FakeFetcher(), clock=FakeClock())

        await registry.load_all()

        assert 1190 <= registry.get(enabled_user.id).countdown_seconds() <= 1200

    async def test_never_synced_owner_waits_full_frequency(self, session_factory, enabled_user):
        registry = make_registry(session_factory, FakeFetcher(), clock=FakeClock())

        await registry.load_all()

        assert registry.get(enabled_user.id).countdown_seconds() == 1800
