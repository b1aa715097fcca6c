"""Tests for the DispatchWorker loop."""

from __future__ import annotations

import asyncio

import pytest

from notify_dispatch import CreateNotification, NotificationChannel, NotificationEngine
from notify_dispatch.domain import NotificationContent, NotificationStatus
from notify_dispatch.gateways import InMemoryGateway
from notify_dispatch.ports import IBackgroundWorker


def command() -> CreateNotification:
    return CreateNotification(
        organization_id="org-1",
        user_id="user-1",
        content=NotificationContent(title="Hello", body="World"),
        channels=[NotificationChannel.IN_APP],
    )


async def wait_until_sent(engine: NotificationEngine, notification_id: str) -> None:
    for _ in range(100):
        notification = await engine.notifications.get(notification_id)
        if notification.status == NotificationStatus.SENT:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("notification was not sent")


class TestDispatchWorker:
    def test_implements_background_worker(self, engine: NotificationEngine) -> None:
        assert isinstance(engine.worker, IBackgroundWorker)

    @pytest.mark.asyncio
    async def test_run_once(
        self, engine: NotificationEngine, gateway: InMemoryGateway
    ) -> None:
        await engine.notifications.create(command())

        report = await engine.worker.run_once()

        assert report.sent == 1
        assert len(gateway.sent_messages) == 1

    @pytest.mark.asyncio
    async def test_create_wakes_a_running_worker(
        self, engine: NotificationEngine, gateway: InMemoryGateway
    ) -> None:
        await engine.worker.start()
        try:
            assert engine.worker.running
            created = await engine.notifications.create(command())
            await wait_until_sent(engine, created.id)
        finally:
            await engine.worker.stop()

        assert not engine.worker.running
        gateway.assert_sent("user-1", NotificationChannel.IN_APP)

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine: NotificationEngine) -> None:
        await engine.worker.start()
        await engine.worker.start()
        await engine.worker.stop()

        assert not engine.worker.running
