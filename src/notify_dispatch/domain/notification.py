"""Notification aggregate."""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..clock import utc_now
from ..delivery import NotificationChannel
from ..exceptions import InvalidStateError
from .enums import (
    EventCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)

_BASE36 = string.digits + string.ascii_uppercase

_FORWARD_RANK = {
    NotificationStatus.PENDING: 0,
    NotificationStatus.QUEUED: 1,
    NotificationStatus.SENDING: 2,
    NotificationStatus.SENT: 3,
    NotificationStatus.DELIVERED: 4,
    NotificationStatus.READ: 5,
}

TERMINAL_STATUSES = frozenset(
    {
        NotificationStatus.FAILED,
        NotificationStatus.CANCELLED,
        NotificationStatus.EXPIRED,
    }
)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_notification_id(now: datetime | None = None) -> str:
    """External id: ``NTF-<base36 epoch millis>-<4 random chars>``."""
    moment = now or utc_now()
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"NTF-{_to_base36(millis)}-{suffix}"


class LocalizedText(BaseModel):
    title: str
    body: str


class NotificationContent(BaseModel):
    title: str
    body: str
    short_body: str | None = None
    html_body: str | None = None
    action_url: str | None = None
    action_text: str | None = None
    image_url: str | None = None
    translations: dict[str, LocalizedText] = Field(default_factory=dict)


class NotificationRecipient(BaseModel):
    """Contact bundle for the person a notification is addressed to."""

    user_id: str | None = None
    user_name: str | None = None
    email: str | None = None
    phone: str | None = None
    telegram_id: str | None = None
    device_tokens: list[str] = Field(default_factory=list)
    webhook_url: str | None = None
    locale: str | None = None


class Notification(BaseModel):
    """One message addressed to one recipient, or to everyone when broadcast.

    Status only moves forward along
    ``pending → queued → sending → sent → delivered → read``. ``cancel`` is
    the only explicit exit from the early states; FAILED, CANCELLED
    and EXPIRED end dispatch. Reading is allowed in any state.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    notification_id: str = Field(default_factory=generate_notification_id)
    organization_id: str
    user_id: str | None = None
    type: NotificationType = NotificationType.CUSTOM
    priority: NotificationPriority = NotificationPriority.NORMAL
    status: NotificationStatus = NotificationStatus.QUEUED
    content: NotificationContent
    recipient: NotificationRecipient = Field(default_factory=NotificationRecipient)
    is_broadcast: bool = False
    channels: list[NotificationChannel] = Field(default_factory=list)
    scheduled_at: datetime | None = None
    expires_at: datetime | None = None
    event_category: EventCategory | None = None
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    template_code: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    group_key: str | None = None
    tags: list[str] = Field(default_factory=list)
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    failed_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # -- queries ----------------------------------------------------------

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def is_dispatchable(self) -> bool:
        return self.status in (
            NotificationStatus.PENDING,
            NotificationStatus.QUEUED,
            NotificationStatus.SENDING,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    # -- transitions ------------------------------------------------------

    def _advance(self, target: NotificationStatus, now: datetime) -> bool:
        if self.status in TERMINAL_STATUSES:
            return False
        if _FORWARD_RANK[target] <= _FORWARD_RANK[self.status]:
            return False
        self.status = target
        self.updated_at = now
        return True

    def mark_sending(self, now: datetime) -> None:
        self._advance(NotificationStatus.SENDING, now)

    def mark_sent(self, now: datetime) -> None:
        if self._advance(NotificationStatus.SENT, now) and self.sent_at is None:
            self.sent_at = now

    def mark_delivered(self, now: datetime) -> None:
        if self._advance(NotificationStatus.DELIVERED, now):
            self.delivered_at = now

    def mark_read(self, now: datetime) -> bool:
        """Record the first read. Returns ``False`` when already read."""
        if self.read_at is not None:
            return False
        self.read_at = now
        self._advance(NotificationStatus.READ, now)
        self.updated_at = now
        return True

    def mark_failed(self, error: str, now: datetime) -> None:
        """Fail a notification that never reached any recipient."""
        if not self.is_dispatchable:
            return
        self.status = NotificationStatus.FAILED
        self.failed_at = now
        self.error_message = error
        self.updated_at = now

    def expire(self, now: datetime) -> None:
        if not self.is_dispatchable:
            return
        self.status = NotificationStatus.EXPIRED
        self.updated_at = now

    def carry_over(self, stored: Notification) -> None:
        """Keep a cancellation or read receipt that another writer recorded on
        ``stored`` after this copy was loaded."""
        if stored.status == NotificationStatus.CANCELLED:
            self.status = NotificationStatus.CANCELLED
        if self.read_at is None and stored.read_at is not None:
            self.read_at = stored.read_at
            self._advance(
                NotificationStatus.READ, max(self.updated_at, stored.updated_at)
            )

    def cancel(self, now: datetime) -> None:
        """PENDING | QUEUED → CANCELLED."""
        if self.status not in (NotificationStatus.PENDING, NotificationStatus.QUEUED):
            raise InvalidStateError(
                f"Cannot cancel notification in {self.status.value} state"
            )
        self.status = NotificationStatus.CANCELLED
        self.updated_at = now
