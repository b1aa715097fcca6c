"""
SQLAlchemy implementations of the notification, queue, log and campaign stores.

Each operation runs in its own transaction from the session factory.
``SQLAlchemyDeliveryQueue.claim`` is a conditional ``UPDATE`` so that
several dispatch processes can share one queue table.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, delete, func, or_, select, update

from ...delivery import NotificationChannel
from ...domain.campaign import NotificationCampaign
from ...domain.commands import ChannelStats
from ...domain.enums import NotificationStatus, NotificationType, QueueItemStatus
from ...domain.notification import Notification
from ...domain.queue import DeliveryLogEntry, DeliveryQueueItem
from ...ports.storage import (
    ICampaignRepository,
    IDeliveryLog,
    IDeliveryQueue,
    INotificationRepository,
)
from .models import (
    CampaignModel,
    DeliveryLogModel,
    DeliveryQueueItemModel,
    NotificationModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from ...domain.commands import NotificationQuery

_UNREAD_VISIBLE = (NotificationStatus.SENT.value, NotificationStatus.DELIVERED.value)
_GROUP_OPEN = (NotificationStatus.PENDING.value, NotificationStatus.QUEUED.value)


class SQLAlchemyNotificationRepository(INotificationRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _apply(model: NotificationModel, notification: Notification) -> None:
        model.user_id = notification.user_id
        model.type = notification.type.value
        model.priority = notification.priority.value
        model.status = notification.status.value
        model.campaign_id = notification.metadata.get("campaign_id")
        model.group_key = notification.group_key
        model.read_at = notification.read_at
        model.expires_at = notification.expires_at
        model.updated_at = notification.updated_at
        model.document = notification.model_dump(mode="json")

    def to_model(self, notification: Notification) -> NotificationModel:
        model = NotificationModel(
            id=notification.id,
            notification_id=notification.notification_id,
            organization_id=notification.organization_id,
            created_at=notification.created_at,
        )
        self._apply(model, notification)
        return model

    @staticmethod
    def from_model(model: NotificationModel) -> Notification:
        return Notification.model_validate(model.document)

    async def add(self, notification: Notification) -> None:
        async with self._session_factory.begin() as session:
            session.add(self.to_model(notification))

    async def save(self, notification: Notification) -> None:
        async with self._session_factory.begin() as session:
            model = await session.get(
                NotificationModel, notification.id, with_for_update=True
            )
            if model is None:
                session.add(self.to_model(notification))
            else:
                updated = notification.model_copy(deep=True)
                updated.carry_over(self.from_model(model))
                self._apply(model, updated)

    async def get(self, notification_id: str) -> Notification | None:
        async with self._session_factory() as session:
            model = await session.get(NotificationModel, notification_id)
            return self.from_model(model) if model else None

    async def get_by_notification_id(self, external_id: str) -> Notification | None:
        async with self._session_factory() as session:
            model = await session.scalar(
                select(NotificationModel).where(
                    NotificationModel.notification_id == external_id
                )
            )
            return self.from_model(model) if model else None

    async def get_many(self, ids: Sequence[str]) -> list[Notification]:
        if not ids:
            return []
        async with self._session_factory() as session:
            result = await session.scalars(
                select(NotificationModel).where(NotificationModel.id.in_(list(ids)))
            )
            return [self.from_model(m) for m in result.all()]

    async def query(
        self, query: NotificationQuery, now: datetime, limit: int
    ) -> tuple[list[Notification], int]:
        conditions = [
            or_(
                NotificationModel.expires_at.is_(None),
                NotificationModel.expires_at > now,
            ),
            NotificationModel.status != NotificationStatus.EXPIRED.value,
        ]
        if query.organization_id:
            conditions.append(
                NotificationModel.organization_id == query.organization_id
            )
        if query.user_id:
            conditions.append(NotificationModel.user_id == query.user_id)
        if query.types:
            conditions.append(
                NotificationModel.type.in_([t.value for t in query.types])
            )
        if query.statuses:
            conditions.append(
                NotificationModel.status.in_([s.value for s in query.statuses])
            )
        if query.is_read is True:
            conditions.append(NotificationModel.read_at.is_not(None))
        elif query.is_read is False:
            conditions.append(NotificationModel.read_at.is_(None))
        if query.date_from:
            conditions.append(NotificationModel.created_at >= query.date_from)
        if query.date_to:
            conditions.append(NotificationModel.created_at <= query.date_to)

        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(NotificationModel).where(*conditions)
            )
            result = await session.scalars(
                select(NotificationModel)
                .where(*conditions)
                .order_by(NotificationModel.created_at.desc())
                .limit(limit)
                .offset((query.page - 1) * limit)
            )
            return [self.from_model(m) for m in result.all()], int(total or 0)

    async def count_unread(self, user_id: str) -> int:
        async with self._session_factory() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(NotificationModel)
                .where(
                    NotificationModel.user_id == user_id,
                    NotificationModel.read_at.is_(None),
                    NotificationModel.status.in_(_UNREAD_VISIBLE),
                )
            )
            return int(count or 0)

    async def count_created_since(
        self,
        organization_id: str,
        notification_type: NotificationType,
        since: datetime,
    ) -> int:
        async with self._session_factory() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(NotificationModel)
                .where(
                    NotificationModel.organization_id == organization_id,
                    NotificationModel.type == notification_type.value,
                    NotificationModel.created_at >= since,
                )
            )
            return int(count or 0)

    async def find_open_group(
        self, group_key: str, since: datetime
    ) -> Notification | None:
        async with self._session_factory() as session:
            model = await session.scalar(
                select(NotificationModel)
                .where(
                    NotificationModel.group_key == group_key,
                    NotificationModel.status.in_(_GROUP_OPEN),
                    NotificationModel.created_at >= since,
                )
                .order_by(NotificationModel.created_at.desc())
                .limit(1)
            )
            return self.from_model(model) if model else None

    async def count_by_status(self, campaign_id: str) -> dict[NotificationStatus, int]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(NotificationModel.status, func.count())
                .where(NotificationModel.campaign_id == campaign_id)
                .group_by(NotificationModel.status)
            )
            return {NotificationStatus(status): count for status, count in rows.all()}

    async def count_grouped(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[dict[NotificationStatus, int], dict[NotificationType, int]]:
        conditions = [NotificationModel.organization_id == organization_id]
        if date_from:
            conditions.append(NotificationModel.created_at >= date_from)
        if date_to:
            conditions.append(NotificationModel.created_at <= date_to)
        async with self._session_factory() as session:
            by_status = await session.execute(
                select(NotificationModel.status, func.count())
                .where(*conditions)
                .group_by(NotificationModel.status)
            )
            by_type = await session.execute(
                select(NotificationModel.type, func.count())
                .where(*conditions)
                .group_by(NotificationModel.type)
            )
            return (
                {NotificationStatus(s): count for s, count in by_status.all()},
                {NotificationType(t): count for t, count in by_type.all()},
            )

    async def mark_all_read(self, user_id: str, now: datetime) -> int:
        async with self._session_factory.begin() as session:
            result = await session.scalars(
                select(NotificationModel).where(
                    NotificationModel.user_id == user_id,
                    NotificationModel.read_at.is_(None),
                )
            )
            count = 0
            for model in result.all():
                notification = self.from_model(model)
                if notification.mark_read(now):
                    self._apply(model, notification)
                    count += 1
            return count

    async def delete(self, notification_id: str) -> bool:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                delete(NotificationModel).where(NotificationModel.id == notification_id)
            )
            return bool(result.rowcount)

    async def delete_many(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        async with self._session_factory.begin() as session:
            result = await session.execute(
                delete(NotificationModel).where(NotificationModel.id.in_(list(ids)))
            )
            return int(result.rowcount or 0)

    async def delete_older_than(
        self, cutoff: datetime, statuses: Sequence[NotificationStatus]
    ) -> int:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                delete(NotificationModel).where(
                    NotificationModel.created_at < cutoff,
                    NotificationModel.status.in_([s.value for s in statuses]),
                )
            )
            return int(result.rowcount or 0)


def _queue_item_from_model(model: DeliveryQueueItemModel) -> DeliveryQueueItem:
    return DeliveryQueueItem(
        id=model.id,
        organization_id=model.organization_id,
        notification_id=model.notification_id,
        channel=model.channel,
        user_id=model.user_id,
        status=model.status,
        scheduled_at=model.scheduled_at,
        processed_at=model.processed_at,
        retry_count=model.retry_count,
        max_retries=model.max_retries,
        next_retry_at=model.next_retry_at,
        last_error=model.last_error,
        external_id=model.external_id,
        response=model.response or {},
        claimed_by=model.claimed_by,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SQLAlchemyDeliveryQueue(IDeliveryQueue):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def enqueue(self, items: Sequence[DeliveryQueueItem]) -> None:
        async with self._session_factory.begin() as session:
            session.add_all(
                DeliveryQueueItemModel(
                    id=item.id,
                    organization_id=item.organization_id,
                    notification_id=item.notification_id,
                    channel=item.channel.value,
                    user_id=item.user_id,
                    status=item.status.value,
                    scheduled_at=item.scheduled_at,
                    retry_count=item.retry_count,
                    max_retries=item.max_retries,
                    next_retry_at=item.next_retry_at,
                    response=item.response,
                    created_at=item.created_at,
                    updated_at=item.updated_at,
                )
                for item in items
            )

    async def fetch_due(self, now: datetime, limit: int) -> list[DeliveryQueueItem]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DeliveryQueueItemModel)
                .where(
                    DeliveryQueueItemModel.status == QueueItemStatus.QUEUED.value,
                    DeliveryQueueItemModel.scheduled_at <= now,
                    or_(
                        DeliveryQueueItemModel.next_retry_at.is_(None),
                        DeliveryQueueItemModel.next_retry_at <= now,
                    ),
                )
                .order_by(DeliveryQueueItemModel.created_at)
                .limit(limit)
            )
            return [_queue_item_from_model(m) for m in result.all()]

    async def claim(self, item_id: str, worker_id: str | None, now: datetime) -> bool:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                update(DeliveryQueueItemModel)
                .where(
                    DeliveryQueueItemModel.id == item_id,
                    DeliveryQueueItemModel.status == QueueItemStatus.QUEUED.value,
                )
                .values(
                    status=QueueItemStatus.SENDING.value,
                    claimed_by=worker_id,
                    updated_at=now,
                )
            )
            return result.rowcount == 1

    async def release_stale(self, claimed_before: datetime, now: datetime) -> int:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                update(DeliveryQueueItemModel)
                .where(
                    DeliveryQueueItemModel.status == QueueItemStatus.SENDING.value,
                    DeliveryQueueItemModel.updated_at < claimed_before,
                )
                .values(
                    status=QueueItemStatus.QUEUED.value,
                    last_error="Claim expired",
                    claimed_by=None,
                    updated_at=now,
                )
            )
            return int(result.rowcount or 0)

    async def save(self, item: DeliveryQueueItem) -> None:
        async with self._session_factory.begin() as session:
            await session.execute(
                update(DeliveryQueueItemModel)
                .where(DeliveryQueueItemModel.id == item.id)
                .values(
                    status=item.status.value,
                    scheduled_at=item.scheduled_at,
                    processed_at=item.processed_at,
                    retry_count=item.retry_count,
                    next_retry_at=item.next_retry_at,
                    last_error=item.last_error,
                    external_id=item.external_id,
                    response=item.response,
                    claimed_by=item.claimed_by,
                    updated_at=item.updated_at,
                )
            )

    async def get(self, item_id: str) -> DeliveryQueueItem | None:
        async with self._session_factory() as session:
            model = await session.get(DeliveryQueueItemModel, item_id)
            return _queue_item_from_model(model) if model else None

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryQueueItem]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DeliveryQueueItemModel)
                .where(DeliveryQueueItemModel.notification_id == notification_id)
                .order_by(DeliveryQueueItemModel.created_at)
            )
            return [_queue_item_from_model(m) for m in result.all()]

    async def remove_queued(self, notification_id: str) -> int:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                delete(DeliveryQueueItemModel).where(
                    DeliveryQueueItemModel.notification_id == notification_id,
                    DeliveryQueueItemModel.status == QueueItemStatus.QUEUED.value,
                )
            )
            return int(result.rowcount or 0)


class SQLAlchemyDeliveryLog(IDeliveryLog):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, entry: DeliveryLogEntry) -> None:
        async with self._session_factory.begin() as session:
            session.add(
                DeliveryLogModel(
                    id=entry.id,
                    organization_id=entry.organization_id,
                    notification_id=entry.notification_id,
                    queue_item_id=entry.queue_item_id,
                    channel=entry.channel.value,
                    status=entry.status.value,
                    user_id=entry.user_id,
                    recipient=entry.recipient,
                    external_id=entry.external_id,
                    error_message=entry.error_message,
                    provider_response=entry.provider_response,
                    duration_ms=entry.duration_ms,
                    attempt=entry.attempt,
                    created_at=entry.created_at,
                )
            )

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryLogEntry]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DeliveryLogModel)
                .where(DeliveryLogModel.notification_id == notification_id)
                .order_by(DeliveryLogModel.created_at)
            )
            return [
                DeliveryLogEntry(
                    id=m.id,
                    organization_id=m.organization_id,
                    notification_id=m.notification_id,
                    queue_item_id=m.queue_item_id,
                    channel=m.channel,
                    status=m.status,
                    user_id=m.user_id,
                    recipient=m.recipient,
                    external_id=m.external_id,
                    error_message=m.error_message,
                    provider_response=m.provider_response or {},
                    duration_ms=m.duration_ms,
                    attempt=m.attempt,
                    created_at=m.created_at,
                )
                for m in result.all()
            ]

    async def count_by_channel(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict[NotificationChannel, ChannelStats]:
        conditions = [DeliveryLogModel.organization_id == organization_id]
        if date_from:
            conditions.append(DeliveryLogModel.created_at >= date_from)
        if date_to:
            conditions.append(DeliveryLogModel.created_at <= date_to)
        is_sent = case(
            (DeliveryLogModel.status == QueueItemStatus.SENT.value, 1), else_=0
        )
        is_failed = case(
            (DeliveryLogModel.status == QueueItemStatus.FAILED.value, 1), else_=0
        )
        async with self._session_factory() as session:
            rows = await session.execute(
                select(
                    DeliveryLogModel.channel,
                    func.count(),
                    func.sum(is_sent),
                    func.sum(is_failed),
                )
                .where(*conditions)
                .group_by(DeliveryLogModel.channel)
            )
            return {
                NotificationChannel(channel): ChannelStats(
                    attempts=attempts, sent=int(sent or 0), failed=int(failed or 0)
                )
                for channel, attempts, sent, failed in rows.all()
            }


class SQLAlchemyCampaignRepository(ICampaignRepository):
    """Counters live in their own columns and change only through ``increment``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def from_model(model: CampaignModel) -> NotificationCampaign:
        campaign = NotificationCampaign.model_validate(model.document)
        campaign.total_sent = model.total_sent
        campaign.total_errored = model.total_errored
        return campaign

    async def add(self, campaign: NotificationCampaign) -> None:
        async with self._session_factory.begin() as session:
            session.add(
                CampaignModel(
                    id=campaign.id,
                    organization_id=campaign.organization_id,
                    status=campaign.status.value,
                    total_sent=campaign.total_sent,
                    total_errored=campaign.total_errored,
                    created_at=campaign.created_at,
                    document=campaign.model_dump(mode="json"),
                )
            )

    async def save(self, campaign: NotificationCampaign) -> None:
        async with self._session_factory.begin() as session:
            await session.execute(
                update(CampaignModel)
                .where(CampaignModel.id == campaign.id)
                .values(
                    status=campaign.status.value,
                    document=campaign.model_dump(mode="json"),
                )
            )

    async def get(self, campaign_id: str) -> NotificationCampaign | None:
        async with self._session_factory() as session:
            model = await session.get(CampaignModel, campaign_id)
            return self.from_model(model) if model else None

    async def list_for_organization(
        self, organization_id: str
    ) -> list[NotificationCampaign]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(CampaignModel)
                .where(CampaignModel.organization_id == organization_id)
                .order_by(CampaignModel.created_at.desc())
            )
            return [self.from_model(m) for m in result.all()]

    async def increment(self, campaign_id: str, **counters: int) -> None:
        values = {
            name: getattr(CampaignModel, name) + delta
            for name, delta in counters.items()
            if delta
        }
        if not values:
            return
        async with self._session_factory.begin() as session:
            await session.execute(
                update(CampaignModel)
                .where(CampaignModel.id == campaign_id)
                .values(**values)
            )
