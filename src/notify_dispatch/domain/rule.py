"""Event-triggered notification rules."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..clock import utc_now
from ..delivery import NotificationChannel
from .enums import (
    ConditionOperator,
    EventCategory,
    NotificationPriority,
    NotificationType,
    RecipientType,
)


class RuleCondition(BaseModel):
    """``field`` may be a dotted path into a nested event payload."""

    field: str
    operator: ConditionOperator
    value: Any = None


class NotificationRule(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    name: str
    description: str | None = None
    event_category: EventCategory = EventCategory.SYSTEM
    event_type: str
    conditions: list[RuleCondition] = Field(default_factory=list)
    all_conditions_must_match: bool = True
    template_code: str
    notification_type: NotificationType = NotificationType.CUSTOM
    channels: list[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.IN_APP]
    )
    priority: NotificationPriority = NotificationPriority.NORMAL
    recipient_type: RecipientType = RecipientType.SPECIFIC_USERS
    specific_user_ids: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    delay_minutes: int = 0
    cooldown_minutes: int = 0
    group_similar: bool = False
    group_window_minutes: int = 0
    is_active: bool = True
    sort_order: int = 0
    trigger_count: int = 0
    last_triggered_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def record_trigger(self, now: datetime) -> None:
        self.trigger_count += 1
        self.last_triggered_at = now
        self.updated_at = now
