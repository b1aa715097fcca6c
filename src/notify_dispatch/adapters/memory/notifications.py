"""Dict-backed notification, queue and delivery-log stores."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from ...domain.commands import ChannelStats
from ...domain.enums import NotificationStatus, NotificationType, QueueItemStatus
from ...ports.storage import IDeliveryLog, IDeliveryQueue, INotificationRepository

if TYPE_CHECKING:
    from ...delivery import NotificationChannel
    from ...domain.commands import NotificationQuery
    from ...domain.notification import Notification
    from ...domain.queue import DeliveryLogEntry, DeliveryQueueItem

_UNREAD_VISIBLE = (NotificationStatus.SENT, NotificationStatus.DELIVERED)
_GROUP_OPEN = (NotificationStatus.PENDING, NotificationStatus.QUEUED)


def _within(
    created_at: datetime, date_from: datetime | None, date_to: datetime | None
) -> bool:
    if date_from and created_at < date_from:
        return False
    return not (date_to and created_at > date_to)


def _matches(
    notification: Notification, query: NotificationQuery, now: datetime
) -> bool:
    if (
        notification.is_expired(now)
        or notification.status == NotificationStatus.EXPIRED
    ):
        return False
    if query.organization_id and notification.organization_id != query.organization_id:
        return False
    if query.user_id and notification.user_id != query.user_id:
        return False
    if query.types and notification.type not in query.types:
        return False
    if query.statuses and notification.status not in query.statuses:
        return False
    if query.is_read is not None and notification.is_read != query.is_read:
        return False
    return _within(notification.created_at, query.date_from, query.date_to)


class InMemoryNotificationRepository(INotificationRepository):
    """Stores copies so callers cannot mutate persisted state by accident."""

    def __init__(self) -> None:
        self._store: dict[str, Notification] = {}

    async def add(self, notification: Notification) -> None:
        self._store[notification.id] = notification.model_copy(deep=True)

    async def save(self, notification: Notification) -> None:
        updated = notification.model_copy(deep=True)
        stored = self._store.get(notification.id)
        if stored is not None:
            updated.carry_over(stored)
        self._store[notification.id] = updated

    async def get(self, notification_id: str) -> Notification | None:
        found = self._store.get(notification_id)
        return found.model_copy(deep=True) if found else None

    async def get_by_notification_id(self, external_id: str) -> Notification | None:
        for notification in self._store.values():
            if notification.notification_id == external_id:
                return notification.model_copy(deep=True)
        return None

    async def get_many(self, ids: Sequence[str]) -> list[Notification]:
        return [self._store[i].model_copy(deep=True) for i in ids if i in self._store]

    async def query(
        self, query: NotificationQuery, now: datetime, limit: int
    ) -> tuple[list[Notification], int]:
        matched = sorted(
            (n for n in self._store.values() if _matches(n, query, now)),
            key=lambda n: n.created_at,
            reverse=True,
        )
        offset = (query.page - 1) * limit
        page = matched[offset : offset + limit]
        return [n.model_copy(deep=True) for n in page], len(matched)

    async def count_unread(self, user_id: str) -> int:
        return sum(
            1
            for n in self._store.values()
            if n.user_id == user_id
            and n.read_at is None
            and n.status in _UNREAD_VISIBLE
        )

    async def count_created_since(
        self,
        organization_id: str,
        notification_type: NotificationType,
        since: datetime,
    ) -> int:
        return sum(
            1
            for n in self._store.values()
            if n.organization_id == organization_id
            and n.type == notification_type
            and n.created_at >= since
        )

    async def find_open_group(
        self, group_key: str, since: datetime
    ) -> Notification | None:
        candidates = [
            n
            for n in self._store.values()
            if n.group_key == group_key
            and n.status in _GROUP_OPEN
            and n.created_at >= since
        ]
        if not candidates:
            return None
        newest = max(candidates, key=lambda n: n.created_at)
        return newest.model_copy(deep=True)

    async def count_by_status(self, campaign_id: str) -> dict[NotificationStatus, int]:
        return dict(
            Counter(
                n.status
                for n in self._store.values()
                if n.metadata.get("campaign_id") == campaign_id
            )
        )

    async def count_grouped(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[dict[NotificationStatus, int], dict[NotificationType, int]]:
        matched = [
            n
            for n in self._store.values()
            if n.organization_id == organization_id
            and _within(n.created_at, date_from, date_to)
        ]
        return (
            dict(Counter(n.status for n in matched)),
            dict(Counter(n.type for n in matched)),
        )

    async def mark_all_read(self, user_id: str, now: datetime) -> int:
        count = 0
        for notification in self._store.values():
            if notification.user_id == user_id and notification.mark_read(now):
                count += 1
        return count

    async def delete(self, notification_id: str) -> bool:
        return self._store.pop(notification_id, None) is not None

    async def delete_many(self, ids: Sequence[str]) -> int:
        return sum(1 for i in ids if self._store.pop(i, None) is not None)

    async def delete_older_than(
        self, cutoff: datetime, statuses: Sequence[NotificationStatus]
    ) -> int:
        doomed = [
            n.id
            for n in self._store.values()
            if n.created_at < cutoff and n.status in statuses
        ]
        for notification_id in doomed:
            del self._store[notification_id]
        return len(doomed)


class InMemoryDeliveryQueue(IDeliveryQueue):
    """Queue whose claim is a lock-guarded compare-and-set."""

    def __init__(self) -> None:
        self._items: dict[str, DeliveryQueueItem] = {}
        self._lock = asyncio.Lock()

    @property
    def items(self) -> list[DeliveryQueueItem]:
        return [i.model_copy(deep=True) for i in self._items.values()]

    async def enqueue(self, items: Sequence[DeliveryQueueItem]) -> None:
        async with self._lock:
            for item in items:
                self._items[item.id] = item.model_copy(deep=True)

    async def fetch_due(self, now: datetime, limit: int) -> list[DeliveryQueueItem]:
        due = sorted(
            (i for i in self._items.values() if i.is_due(now)),
            key=lambda i: i.created_at,
        )
        return [i.model_copy(deep=True) for i in due[:limit]]

    async def claim(self, item_id: str, worker_id: str | None, now: datetime) -> bool:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or item.status != QueueItemStatus.QUEUED:
                return False
            item.claim(worker_id, now)
            return True

    async def release_stale(self, claimed_before: datetime, now: datetime) -> int:
        async with self._lock:
            stale = [
                i
                for i in self._items.values()
                if i.status == QueueItemStatus.SENDING and i.updated_at < claimed_before
            ]
            for item in stale:
                item.release(now)
            return len(stale)

    async def save(self, item: DeliveryQueueItem) -> None:
        async with self._lock:
            if item.id in self._items:
                self._items[item.id] = item.model_copy(deep=True)

    async def get(self, item_id: str) -> DeliveryQueueItem | None:
        found = self._items.get(item_id)
        return found.model_copy(deep=True) if found else None

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryQueueItem]:
        return [
            i.model_copy(deep=True)
            for i in self._items.values()
            if i.notification_id == notification_id
        ]

    async def remove_queued(self, notification_id: str) -> int:
        async with self._lock:
            doomed = [
                i.id
                for i in self._items.values()
                if i.notification_id == notification_id
                and i.status == QueueItemStatus.QUEUED
            ]
            for item_id in doomed:
                del self._items[item_id]
            return len(doomed)


class InMemoryDeliveryLog(IDeliveryLog):
    def __init__(self) -> None:
        self.entries: list[DeliveryLogEntry] = []

    async def append(self, entry: DeliveryLogEntry) -> None:
        self.entries.append(entry)

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryLogEntry]:
        return [e for e in self.entries if e.notification_id == notification_id]

    async def count_by_channel(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict[NotificationChannel, ChannelStats]:
        stats: dict[NotificationChannel, ChannelStats] = {}
        for entry in self.entries:
            if entry.organization_id != organization_id or not _within(
                entry.created_at, date_from, date_to
            ):
                continue
            channel = stats.setdefault(entry.channel, ChannelStats())
            channel.attempts += 1
            if entry.status == QueueItemStatus.SENT:
                channel.sent += 1
            elif entry.status == QueueItemStatus.FAILED:
                channel.failed += 1
        return stats
