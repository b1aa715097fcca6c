"""NotificationService: create, query and manage notifications."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from ..clock import utc_now
from ..config import DispatchConfig
from ..domain.commands import (
    CreateNotification,
    NotificationPage,
    NotificationQuery,
    NotificationStats,
    revalidate,
    validate_create_notification,
    validate_query,
)
from ..domain.enums import NotificationStatus
from ..domain.notification import Notification, NotificationRecipient
from ..domain.queue import DeliveryQueueItem
from ..exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ..clock import Clock
    from ..ports.storage import IDeliveryLog, IDeliveryQueue, INotificationRepository

logger = logging.getLogger("notify_dispatch.notifications")

RETENTION_STATUSES = (
    NotificationStatus.SENT,
    NotificationStatus.DELIVERED,
    NotificationStatus.READ,
    NotificationStatus.FAILED,
    NotificationStatus.CANCELLED,
    NotificationStatus.EXPIRED,
)

_EDITABLE = frozenset({"content", "priority", "metadata", "tags", "expires_at"})


class NotificationService:
    """Owns the notification lifecycle outside of dispatch.

    ``create`` writes the notification and one delivery queue item per
    channel. Optional ``dispatch_trigger`` (e.g. ``DispatchWorker.trigger``)
    is called after items are enqueued.
    """

    def __init__(
        self,
        notifications: INotificationRepository,
        queue: IDeliveryQueue,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
        dispatch_trigger: Callable[[], None] | None = None,
        delivery_log: IDeliveryLog | None = None,
    ) -> None:
        self._notifications = notifications
        self._queue = queue
        self._delivery_log = delivery_log
        self._config = config or DispatchConfig()
        self._clock = clock
        self._dispatch_trigger = dispatch_trigger

    def set_dispatch_trigger(self, callback: Callable[[], None] | None) -> None:
        self._dispatch_trigger = callback

    # -- commands ---------------------------------------------------------

    async def create(
        self,
        command: CreateNotification,
        *,
        failure_reason: str | None = None,
    ) -> Notification:
        """Persist a notification and queue it on every channel.

        Scheduled notifications start ``pending`` and their queue items
        inherit ``scheduled_at``; the worker ignores them until due.
        ``failure_reason`` records a notification that must not be
        delivered at all (e.g. every channel disabled by the recipient); it
        is stored ``failed`` with no queue items.
        """
        if failure_reason is None:
            validate_create_notification(command)

        now = self._clock()
        channels = list(dict.fromkeys(command.channels))
        recipient = command.recipient or NotificationRecipient(user_id=command.user_id)
        notification = Notification(
            organization_id=command.organization_id,
            user_id=command.user_id or recipient.user_id,
            type=command.type,
            priority=command.priority,
            status=(
                NotificationStatus.PENDING
                if command.scheduled_at
                else NotificationStatus.QUEUED
            ),
            content=command.content,
            recipient=recipient,
            is_broadcast=command.is_broadcast,
            channels=channels,
            scheduled_at=command.scheduled_at,
            expires_at=command.expires_at,
            event_category=command.event_category,
            related_entity_type=command.related_entity_type,
            related_entity_id=command.related_entity_id,
            template_code=command.template_code,
            variables=command.variables,
            metadata=command.metadata,
            group_key=command.group_key,
            tags=command.tags,
            created_at=now,
            updated_at=now,
        )

        if failure_reason is not None:
            notification.mark_failed(failure_reason, now)
            await self._notifications.add(notification)
            logger.info(
                "Notification %s stored without delivery: %s",
                notification.notification_id,
                failure_reason,
            )
            return notification

        await self._notifications.add(notification)
        items = [
            DeliveryQueueItem(
                organization_id=notification.organization_id,
                notification_id=notification.id,
                channel=channel,
                user_id=notification.user_id,
                scheduled_at=notification.scheduled_at or now,
                max_retries=self._config.max_retries,
                created_at=now,
                updated_at=now,
            )
            for channel in channels
        ]
        await self._queue.enqueue(items)
        logger.debug(
            "Notification %s queued on %d channel(s)",
            notification.notification_id,
            len(items),
        )
        if self._dispatch_trigger is not None and notification.scheduled_at is None:
            try:
                self._dispatch_trigger()
            except Exception:  # noqa: BLE001
                logger.debug("Dispatch trigger failed", exc_info=True)
        return notification

    async def update(
        self, notification_id: str, changes: dict[str, Any]
    ) -> Notification:
        """Edit content, priority, metadata, tags or expiry.

        ``content`` and ``metadata`` given as dicts are merged into the
        current values. Status, channels, recipient and schedule are owned by
        the lifecycle operations and are rejected here.
        """
        locked = sorted(changes.keys() - _EDITABLE)
        if locked:
            raise ValidationError({name: ["Field is read-only"] for name in locked})

        base = (await self.get(notification_id)).model_dump()
        merged = base | changes | {"updated_at": self._clock()}
        for key in ("content", "metadata"):
            if isinstance(changes.get(key), dict):
                merged[key] = base[key] | changes[key]
        updated = revalidate(Notification, merged)
        if (
            updated.scheduled_at is not None
            and updated.expires_at is not None
            and updated.expires_at <= updated.scheduled_at
        ):
            raise ValidationError(
                {"expires_at": ["Expiry must be later than the scheduled time"]}
            )
        await self._notifications.save(updated)
        return updated

    async def mark_as_read(self, notification_id: str) -> Notification:
        notification = await self.get(notification_id)
        if notification.mark_read(self._clock()):
            await self._notifications.save(notification)
        return notification

    async def mark_all_as_read(self, user_id: str) -> int:
        return await self._notifications.mark_all_read(user_id, self._clock())

    async def bulk_mark_as_read(self, notification_ids: Sequence[str]) -> int:
        now = self._clock()
        count = 0
        for notification in await self._notifications.get_many(notification_ids):
            if notification.mark_read(now):
                await self._notifications.save(notification)
                count += 1
        return count

    async def cancel(self, notification_id: str) -> Notification:
        """PENDING | QUEUED → CANCELLED; still-queued items are removed."""
        notification = await self.get(notification_id)
        notification.cancel(self._clock())
        await self._notifications.save(notification)
        removed = await self._queue.remove_queued(notification.id)
        logger.info(
            "Notification %s cancelled, %d queue item(s) removed",
            notification.notification_id,
            removed,
        )
        return notification

    async def resend(self, notification_id: str) -> Notification:
        """Create a fresh copy; the original and its history stay untouched."""
        original = await self.get(notification_id)
        command = CreateNotification(
            organization_id=original.organization_id,
            user_id=original.user_id,
            type=original.type,
            priority=original.priority,
            content=original.content,
            recipient=original.recipient,
            channels=original.channels,
            is_broadcast=original.is_broadcast,
            event_category=original.event_category,
            related_entity_type=original.related_entity_type,
            related_entity_id=original.related_entity_id,
            template_code=original.template_code,
            variables=original.variables,
            metadata={**original.metadata, "retry_of": original.id},
            tags=original.tags,
        )
        return await self.create(command)

    async def delete(self, notification_id: str) -> None:
        if not await self._notifications.delete(notification_id):
            raise NotFoundError("Notification", notification_id)
        await self._queue.remove_queued(notification_id)

    async def bulk_delete(self, notification_ids: Sequence[str]) -> int:
        for notification_id in notification_ids:
            await self._queue.remove_queued(notification_id)
        return await self._notifications.delete_many(notification_ids)

    async def delete_old(self, days: int = 90) -> int:
        """Retention sweep of finished notifications older than ``days``."""
        cutoff = self._clock() - timedelta(days=days)
        deleted = await self._notifications.delete_older_than(
            cutoff, RETENTION_STATUSES
        )
        if deleted:
            logger.info("Deleted %d notification(s) older than %d days", deleted, days)
        return deleted

    # -- queries ----------------------------------------------------------

    async def get(self, notification_id: str) -> Notification:
        notification = await self._notifications.get(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def get_by_notification_id(self, external_id: str) -> Notification:
        notification = await self._notifications.get_by_notification_id(external_id)
        if notification is None:
            raise NotFoundError("Notification", external_id)
        return notification

    async def query(self, query: NotificationQuery) -> NotificationPage:
        """Newest first; expired notifications never appear."""
        validate_query(query)
        limit = query.limit or self._config.default_page_size
        items, total = await self._notifications.query(query, self._clock(), limit)
        unread = (
            await self._notifications.count_unread(query.user_id)
            if query.user_id
            else None
        )
        return NotificationPage(
            items=items,
            total=total,
            page=query.page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
            unread_count=unread,
        )

    async def get_unread_count(self, user_id: str) -> int:
        return await self._notifications.count_unread(user_id)

    async def get_stats(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> NotificationStats:
        """Counts by status, type and channel for one organization.

        The range bounds notification creation time and, for the channel
        breakdown, the time of each delivery attempt.
        """
        by_status, by_type = await self._notifications.count_grouped(
            organization_id, date_from, date_to
        )
        by_channel = (
            await self._delivery_log.count_by_channel(
                organization_id, date_from, date_to
            )
            if self._delivery_log is not None
            else {}
        )
        return NotificationStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type=by_type,
            by_channel=by_channel,
        )
