"""Mass notification campaigns."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..clock import utc_now
from ..delivery import NotificationChannel
from ..exceptions import InvalidStateError
from .enums import AudienceType, CampaignStatus, NotificationPriority, NotificationType
from .notification import NotificationContent

_TERMINAL = frozenset(
    {CampaignStatus.COMPLETED, CampaignStatus.PAUSED, CampaignStatus.CANCELLED}
)


class AudienceSelector(BaseModel):
    type: AudienceType = AudienceType.USERS
    roles: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    filter: dict[str, Any] = Field(default_factory=dict)


class CampaignRecipient(BaseModel):
    """One resolved audience member."""

    user_id: str
    email: str | None = None
    phone: str | None = None
    telegram_id: str | None = None
    locale: str | None = None


class NotificationCampaign(BaseModel):
    """Campaign aggregate.

    Status transitions::

        DRAFT | SCHEDULED → IN_PROGRESS (start)
        IN_PROGRESS       → COMPLETED   (complete)
        any non-terminal  → PAUSED | CANCELLED
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    name: str
    description: str | None = None
    type: NotificationType = NotificationType.ANNOUNCEMENT
    priority: NotificationPriority = NotificationPriority.NORMAL
    content: NotificationContent
    channels: list[NotificationChannel] = Field(default_factory=list)
    audience: AudienceSelector = Field(default_factory=AudienceSelector)
    scheduled_at: datetime | None = None
    status: CampaignStatus = CampaignStatus.DRAFT
    estimated_recipients: int = 0
    total_sent: int = 0
    total_delivered: int = 0
    total_read: int = 0
    total_errored: int = 0
    total_undelivered: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    @property
    def total_failed(self) -> int:
        """Recipients who got nothing: notifications that could not be created
        plus notifications that ended ``failed`` or ``expired``."""
        return self.total_errored + self.total_undelivered

    @property
    def delivery_rate(self) -> float:
        if not self.total_sent:
            return 0.0
        return round(self.total_delivered / self.total_sent * 100, 2)

    @property
    def read_rate(self) -> float:
        if not self.total_delivered:
            return 0.0
        return round(self.total_read / self.total_delivered * 100, 2)

    def start(self, now: datetime) -> None:
        if self.status not in (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED):
            raise InvalidStateError(
                f"Cannot start campaign in {self.status.value} state"
            )
        self.status = CampaignStatus.IN_PROGRESS
        self.started_at = now
        self.updated_at = now

    def complete(self, now: datetime) -> None:
        if self.status != CampaignStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Cannot complete campaign in {self.status.value} state"
            )
        self.status = CampaignStatus.COMPLETED
        self.completed_at = now
        self.updated_at = now

    def pause(self, now: datetime) -> None:
        if self.is_terminal:
            raise InvalidStateError(
                f"Cannot pause campaign in {self.status.value} state"
            )
        self.status = CampaignStatus.PAUSED
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        if self.is_terminal:
            raise InvalidStateError(
                f"Cannot cancel campaign in {self.status.value} state"
            )
        self.status = CampaignStatus.CANCELLED
        self.updated_at = now
