"""Shared fixtures for notify-dispatch tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notify_dispatch import NotificationChannel, NotificationEngine
from notify_dispatch.adapters.sqlalchemy import Base
from notify_dispatch.config import DispatchConfig
from notify_dispatch.domain import (
    NotificationContent,
    NotificationTemplate,
    NotificationType,
    TemplateText,
)
from notify_dispatch.gateways import ChannelGatewayRegistry, InMemoryGateway

pytest_plugins = ["pytest_asyncio"]

START = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def gateways(gateway: InMemoryGateway) -> ChannelGatewayRegistry:
    registry = ChannelGatewayRegistry()
    registry.register_many(gateway, *NotificationChannel)
    return registry


@pytest.fixture
def config() -> DispatchConfig:
    return DispatchConfig(gateway_timeout=0.5)


@pytest.fixture
def engine(
    gateways: ChannelGatewayRegistry, config: DispatchConfig, clock: FakeClock
) -> NotificationEngine:
    return NotificationEngine.build(
        gateways=gateways, config=config, clock=clock, worker_id="worker-1"
    )


@pytest.fixture
def content() -> NotificationContent:
    return NotificationContent(title="Machine offline", body="VM-17 stopped responding")


@pytest.fixture
def task_template() -> NotificationTemplate:
    return NotificationTemplate(
        name="Task assigned",
        code="task_assigned",
        type=NotificationType.TASK_ASSIGNED,
        translations={
            "ru": TemplateText(
                title="Задача {{task_name}}",
                body="Вам назначена задача {{task_name}}",
            ),
            "en": TemplateText(
                title="Task {{task_name}}",
                body="You were assigned {{task_name}}",
            ),
        },
        default_channels=[NotificationChannel.IN_APP],
    )


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    db = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with db.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(db, expire_on_commit=False)
    yield factory
    await db.dispose()
