"""Tests for NotificationService."""

from __future__ import annotations

from datetime import timedelta

import pytest

from notify_dispatch import (
    CreateNotification,
    InvalidStateError,
    NotFoundError,
    NotificationChannel,
    NotificationEngine,
    NotificationQuery,
    NotificationStatus,
    NotificationType,
    ValidationError,
)
from notify_dispatch.adapters.memory import InMemoryDeliveryQueue
from notify_dispatch.domain import (
    ChannelStats,
    NotificationContent,
    NotificationPriority,
    NotificationStats,
    QueueItemStatus,
)

from .conftest import FakeClock


def command(content: NotificationContent, **kwargs: object) -> CreateNotification:
    data: dict[str, object] = {
        "organization_id": "org-1",
        "user_id": "user-1",
        "content": content,
        "channels": [NotificationChannel.IN_APP, NotificationChannel.EMAIL],
    }
    data.update(kwargs)
    return CreateNotification.model_validate(data)


def queue_of(engine: NotificationEngine) -> InMemoryDeliveryQueue:
    queue = engine.dispatcher._queue
    assert isinstance(queue, InMemoryDeliveryQueue)
    return queue


class TestCreate:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_content_and_channels(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))

        loaded = await engine.notifications.get(created.id)

        assert loaded.content == content
        assert loaded.channels == [
            NotificationChannel.IN_APP,
            NotificationChannel.EMAIL,
        ]
        assert loaded.status == NotificationStatus.QUEUED
        assert loaded.notification_id.startswith("NTF-")

    @pytest.mark.asyncio
    async def test_one_queue_item_per_distinct_channel(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(
            command(
                content,
                channels=[
                    NotificationChannel.EMAIL,
                    NotificationChannel.EMAIL,
                    NotificationChannel.SMS,
                ],
            )
        )

        items = await queue_of(engine).list_for_notification(created.id)

        assert sorted(i.channel.value for i in items) == ["email", "sms"]
        assert all(i.status == QueueItemStatus.QUEUED for i in items)
        assert all(i.max_retries == engine.config.max_retries for i in items)

    @pytest.mark.asyncio
    async def test_scheduled_notification_is_pending(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        when = clock.now + timedelta(hours=2)

        created = await engine.notifications.create(command(content, scheduled_at=when))

        assert created.status == NotificationStatus.PENDING
        items = await queue_of(engine).list_for_notification(created.id)
        assert {i.scheduled_at for i in items} == {when}

    @pytest.mark.asyncio
    async def test_validation(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await engine.notifications.create(command(content, channels=[]))

        assert "channels" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_expiry_must_follow_schedule(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await engine.notifications.create(
                command(
                    content,
                    scheduled_at=clock.now + timedelta(hours=2),
                    expires_at=clock.now + timedelta(hours=1),
                )
            )

        assert "expires_at" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_dispatch_trigger_is_called(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        calls: list[int] = []
        engine.notifications.set_dispatch_trigger(lambda: calls.append(1))

        await engine.notifications.create(command(content))

        assert calls == [1]


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_as_read_is_idempotent(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        created = await engine.notifications.create(command(content))

        first = await engine.notifications.mark_as_read(created.id)
        clock.advance(minutes=5)
        second = await engine.notifications.mark_as_read(created.id)

        assert first.read_at == second.read_at

    @pytest.mark.asyncio
    async def test_mark_all_and_bulk(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        a = await engine.notifications.create(command(content))
        b = await engine.notifications.create(command(content))
        c = await engine.notifications.create(command(content, user_id="user-2"))

        assert await engine.notifications.bulk_mark_as_read([a.id]) == 1
        assert await engine.notifications.mark_all_as_read("user-1") == 1
        assert (await engine.notifications.get(b.id)).is_read
        assert not (await engine.notifications.get(c.id)).is_read

    @pytest.mark.asyncio
    async def test_read_receipt_survives_stale_save(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        created = await engine.notifications.create(command(content))
        store = engine.dispatcher._notifications
        stale = await store.get(created.id)
        assert stale is not None

        read = await engine.notifications.mark_as_read(created.id)
        stale.mark_sent(clock.advance(seconds=1))
        await store.save(stale)

        loaded = await engine.notifications.get(created.id)
        assert loaded.read_at == read.read_at
        assert loaded.status == NotificationStatus.READ
        assert loaded.sent_at == clock.now

    @pytest.mark.asyncio
    async def test_unread_count_counts_delivered_messages(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        await engine.notifications.create(command(content))
        assert await engine.notifications.get_unread_count("user-1") == 0

        await engine.worker.run_once()

        assert await engine.notifications.get_unread_count("user-1") == 1


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_removes_queued_items(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))

        cancelled = await engine.notifications.cancel(created.id)

        assert cancelled.status == NotificationStatus.CANCELLED
        assert await queue_of(engine).list_for_notification(created.id) == []

    @pytest.mark.asyncio
    async def test_cancel_after_send_is_rejected(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))
        await engine.worker.run_once()

        with pytest.raises(InvalidStateError):
            await engine.notifications.cancel(created.id)

    @pytest.mark.asyncio
    async def test_cancellation_survives_stale_save(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        created = await engine.notifications.create(command(content))
        store = engine.dispatcher._notifications
        stale = await store.get(created.id)
        assert stale is not None

        await engine.notifications.cancel(created.id)
        stale.mark_sending(clock.advance(seconds=1))
        await store.save(stale)

        loaded = await engine.notifications.get(created.id)
        assert loaded.status == NotificationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, engine: NotificationEngine) -> None:
        with pytest.raises(NotFoundError):
            await engine.notifications.cancel("missing")


class TestResendAndDelete:
    @pytest.mark.asyncio
    async def test_resend_creates_linked_copy(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        original = await engine.notifications.create(command(content))

        copy = await engine.notifications.resend(original.id)

        assert copy.id != original.id
        assert copy.metadata["retry_of"] == original.id
        assert copy.channels == original.channels

    @pytest.mark.asyncio
    async def test_delete(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))

        await engine.notifications.delete(created.id)

        with pytest.raises(NotFoundError):
            await engine.notifications.get(created.id)
        with pytest.raises(NotFoundError):
            await engine.notifications.delete(created.id)

    @pytest.mark.asyncio
    async def test_delete_old_keeps_active_notifications(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        sent = await engine.notifications.create(command(content))
        await engine.worker.run_once()
        queued = await engine.notifications.create(command(content))

        clock.advance(days=91)
        deleted = await engine.notifications.delete_old()

        assert deleted == 1
        with pytest.raises(NotFoundError):
            await engine.notifications.get(sent.id)
        assert (await engine.notifications.get(queued.id)).id == queued.id


class TestQuery:
    @pytest.mark.asyncio
    async def test_paging_newest_first(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        ids = []
        for _ in range(5):
            ids.append((await engine.notifications.create(command(content))).id)
            clock.advance(minutes=1)

        page = await engine.notifications.query(
            NotificationQuery(user_id="user-1", page=1, limit=2)
        )

        assert [n.id for n in page.items] == [ids[4], ids[3]]
        assert page.total == 5
        assert page.total_pages == 3
        assert page.unread_count == 0

    @pytest.mark.asyncio
    async def test_filters_and_expiry(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        await engine.notifications.create(
            command(content, type=NotificationType.TASK_ASSIGNED)
        )
        await engine.notifications.create(
            command(content, expires_at=clock.now + timedelta(minutes=1))
        )
        clock.advance(minutes=2)

        page = await engine.notifications.query(
            NotificationQuery(organization_id="org-1")
        )
        tasks = await engine.notifications.query(
            NotificationQuery(types=[NotificationType.TASK_ASSIGNED])
        )

        assert page.total == 1
        assert tasks.total == 1
        assert page.unread_count is None

    @pytest.mark.asyncio
    async def test_invalid_page(self, engine: NotificationEngine) -> None:
        with pytest.raises(ValidationError):
            await engine.notifications.query(NotificationQuery(page=0))

    @pytest.mark.asyncio
    async def test_lookup_by_external_id(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))

        found = await engine.notifications.get_by_notification_id(
            created.notification_id
        )

        assert found.id == created.id


class TestUpdate:
    @pytest.mark.asyncio
    async def test_merges_content_and_metadata(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(
            command(content, metadata={"machine": "VM-17"})
        )

        updated = await engine.notifications.update(
            created.id,
            {
                "content": {"title": "Machine back online"},
                "priority": "high",
                "metadata": {"acknowledged": True},
            },
        )

        loaded = await engine.notifications.get(created.id)
        assert loaded == updated
        assert loaded.content.title == "Machine back online"
        assert loaded.content.body == content.body
        assert loaded.priority == NotificationPriority.HIGH
        assert loaded.metadata == {"machine": "VM-17", "acknowledged": True}
        assert loaded.status == NotificationStatus.QUEUED

    @pytest.mark.asyncio
    async def test_lifecycle_fields_are_read_only(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        created = await engine.notifications.create(command(content))

        with pytest.raises(ValidationError) as exc_info:
            await engine.notifications.update(
                created.id, {"status": "sent", "channels": []}
            )

        assert exc_info.value.errors == {
            "channels": ["Field is read-only"],
            "status": ["Field is read-only"],
        }

    @pytest.mark.asyncio
    async def test_invalid_values(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        created = await engine.notifications.create(
            command(content, scheduled_at=clock.now + timedelta(hours=1))
        )

        with pytest.raises(ValidationError) as bad_priority:
            await engine.notifications.update(created.id, {"priority": "whenever"})
        with pytest.raises(ValidationError) as bad_expiry:
            await engine.notifications.update(created.id, {"expires_at": clock.now})

        assert set(bad_priority.value.errors) == {"priority"}
        assert set(bad_expiry.value.errors) == {"expires_at"}
        with pytest.raises(NotFoundError):
            await engine.notifications.update("missing", {"tags": ["x"]})


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_by_status_type_and_channel(
        self, engine: NotificationEngine, content: NotificationContent
    ) -> None:
        await engine.notifications.create(command(content))
        await engine.notifications.create(
            command(content, type=NotificationType.TASK_ASSIGNED)
        )
        await engine.notifications.create(command(content, organization_id="org-2"))
        await engine.worker.run_once()
        queued = await engine.notifications.create(command(content))
        await engine.notifications.cancel(queued.id)

        stats = await engine.notifications.get_stats("org-1")

        assert stats.total == 3
        assert stats.by_status == {
            NotificationStatus.SENT: 2,
            NotificationStatus.CANCELLED: 1,
        }
        assert stats.by_type == {
            NotificationType.CUSTOM: 2,
            NotificationType.TASK_ASSIGNED: 1,
        }
        assert stats.by_channel == {
            NotificationChannel.IN_APP: ChannelStats(attempts=2, sent=2),
            NotificationChannel.EMAIL: ChannelStats(attempts=2, failed=2),
        }

    @pytest.mark.asyncio
    async def test_date_range(
        self,
        engine: NotificationEngine,
        content: NotificationContent,
        clock: FakeClock,
    ) -> None:
        await engine.notifications.create(command(content))
        await engine.worker.run_once()
        clock.advance(days=1)
        await engine.notifications.create(command(content))

        recent = await engine.notifications.get_stats(
            "org-1", date_from=clock.now - timedelta(hours=1)
        )
        empty = await engine.notifications.get_stats(
            "org-1", date_to=clock.now - timedelta(days=2)
        )

        assert recent.total == 1
        assert recent.by_status == {NotificationStatus.QUEUED: 1}
        assert recent.by_channel == {}
        assert empty.total == 0
        assert empty == NotificationStats(total=0)
