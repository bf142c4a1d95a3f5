from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from financeflow.core.db import Base, import_models
from financeflow.modules.sync.dto import SettingsPatch
from financeflow.modules.sync.settings_service import SyncSettingsService
from financeflow.modules.users.models import User
from financeflow.modules.users.service import UsersService
from tests.factories import RecordingTransport


@pytest.fixture
async def engine():
    import_models()
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(db: AsyncSession) -> User:
    return await UsersService().find_or_create(db, email="owner@example.com", name="Owner")


@pytest.fixture
async def enabled_user(db: AsyncSession, user: User) -> User:
    await SyncSettingsService().update_settings(db, user.id, SettingsPatch(is_enabled=True))
    return user


@pytest.fixture
def google_transport(monkeypatch) -> RecordingTransport:
    transport = RecordingTransport()
    monkeypatch.setattr("financeflow.integrations.gmail.service.Request", transport)
    return transport
