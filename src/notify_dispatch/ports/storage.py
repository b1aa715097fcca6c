"""Persistence ports.

Every queue mutation is single-row. ``claim`` is the only operation that
must be atomic across processes: it flips one item from ``queued`` to
``sending`` and reports whether this caller won.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..delivery import NotificationChannel
    from ..domain.campaign import NotificationCampaign
    from ..domain.commands import ChannelStats, NotificationQuery
    from ..domain.devices import FcmToken, PushSubscription
    from ..domain.enums import NotificationStatus, NotificationType
    from ..domain.notification import Notification
    from ..domain.queue import DeliveryLogEntry, DeliveryQueueItem
    from ..domain.rule import NotificationRule
    from ..domain.settings import UserNotificationSettings
    from ..domain.template import NotificationTemplate


@runtime_checkable
class INotificationRepository(Protocol):
    async def add(self, notification: Notification) -> None: ...

    async def save(self, notification: Notification) -> None: ...

    async def get(self, notification_id: str) -> Notification | None: ...

    async def get_by_notification_id(self, external_id: str) -> Notification | None: ...

    async def get_many(self, ids: Sequence[str]) -> list[Notification]: ...

    async def query(
        self, query: NotificationQuery, now: datetime, limit: int
    ) -> tuple[list[Notification], int]:
        """Return one page (newest first) and the total match count."""
        ...

    async def count_unread(self, user_id: str) -> int: ...

    async def count_created_since(
        self,
        organization_id: str,
        notification_type: NotificationType,
        since: datetime,
    ) -> int: ...

    async def find_open_group(
        self, group_key: str, since: datetime
    ) -> Notification | None:
        """Newest pending or queued notification in ``group_key`` since ``since``."""
        ...

    async def count_by_status(
        self, campaign_id: str
    ) -> dict[NotificationStatus, int]: ...

    async def count_grouped(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[dict[NotificationStatus, int], dict[NotificationType, int]]:
        """Counts per status and per type, bounded by creation time."""
        ...

    async def mark_all_read(self, user_id: str, now: datetime) -> int: ...

    async def delete(self, notification_id: str) -> bool: ...

    async def delete_many(self, ids: Sequence[str]) -> int: ...

    async def delete_older_than(
        self, cutoff: datetime, statuses: Sequence[NotificationStatus]
    ) -> int: ...


@runtime_checkable
class IDeliveryQueue(Protocol):
    async def enqueue(self, items: Sequence[DeliveryQueueItem]) -> None: ...

    async def fetch_due(self, now: datetime, limit: int) -> list[DeliveryQueueItem]:
        """Due ``queued`` items ordered by creation time."""
        ...

    async def claim(self, item_id: str, worker_id: str | None, now: datetime) -> bool:
        """Atomically move one item ``queued → sending``."""
        ...

    async def release_stale(self, claimed_before: datetime, now: datetime) -> int:
        """Put ``sending`` items last touched before ``claimed_before`` back to
        ``queued`` and return how many were released."""
        ...

    async def save(self, item: DeliveryQueueItem) -> None: ...

    async def get(self, item_id: str) -> DeliveryQueueItem | None: ...

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryQueueItem]: ...

    async def remove_queued(self, notification_id: str) -> int:
        """Delete items of a notification that are still ``queued``."""
        ...


@runtime_checkable
class IDeliveryLog(Protocol):
    async def append(self, entry: DeliveryLogEntry) -> None: ...

    async def list_for_notification(
        self, notification_id: str
    ) -> list[DeliveryLogEntry]: ...

    async def count_by_channel(
        self,
        organization_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict[NotificationChannel, ChannelStats]: ...


@runtime_checkable
class ITemplateRepository(Protocol):
    async def add(self, template: NotificationTemplate) -> None: ...

    async def save(self, template: NotificationTemplate) -> None: ...

    async def get(self, template_id: str) -> NotificationTemplate | None: ...

    async def get_active_by_code(
        self, code: str, organization_id: str | None
    ) -> NotificationTemplate | None:
        """Organization template first, then the system template."""
        ...

    async def exists(self, code: str, organization_id: str | None) -> bool: ...

    async def list_available(
        self, organization_id: str
    ) -> list[NotificationTemplate]: ...


@runtime_checkable
class IRuleRepository(Protocol):
    async def add(self, rule: NotificationRule) -> None: ...

    async def save(self, rule: NotificationRule) -> None: ...

    async def get(self, rule_id: str) -> NotificationRule | None: ...

    async def list_active(
        self, organization_id: str, event_type: str
    ) -> list[NotificationRule]:
        """Active rules ordered by ``sort_order``."""
        ...

    async def list_for_organization(
        self, organization_id: str
    ) -> list[NotificationRule]: ...


@runtime_checkable
class ISettingsRepository(Protocol):
    async def get(self, user_id: str) -> UserNotificationSettings | None: ...

    async def save(self, settings: UserNotificationSettings) -> None: ...


@runtime_checkable
class ICampaignRepository(Protocol):
    async def add(self, campaign: NotificationCampaign) -> None: ...

    async def save(self, campaign: NotificationCampaign) -> None: ...

    async def get(self, campaign_id: str) -> NotificationCampaign | None: ...

    async def list_for_organization(
        self, organization_id: str
    ) -> list[NotificationCampaign]: ...

    async def increment(self, campaign_id: str, **counters: int) -> None:
        """Atomically add to ``total_*`` counters."""
        ...


@runtime_checkable
class IDeviceRepository(Protocol):
    async def get_push_subscription(self, endpoint: str) -> PushSubscription | None: ...

    async def save_push_subscription(self, subscription: PushSubscription) -> None: ...

    async def get_fcm_token(self, token: str) -> FcmToken | None: ...

    async def save_fcm_token(self, token: FcmToken) -> None: ...

    async def list_active_fcm_tokens(self, user_id: str) -> list[FcmToken]: ...
