"""Notification templates."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from ..clock import utc_now
from ..delivery import NotificationChannel
from .enums import NotificationPriority, NotificationType


class TemplateText(BaseModel):
    title: str
    body: str
    short_body: str | None = None
    html_body: str | None = None


class TemplateVariable(BaseModel):
    """Documents a placeholder; not enforced at render time."""

    name: str
    description: str = ""
    required: bool = False
    default_value: str | None = None


class NotificationTemplate(BaseModel):
    """Named, versioned, per-locale message template.

    ``organization_id`` is ``None`` for system templates shared by every
    organization.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str | None = None
    name: str
    code: str
    description: str | None = None
    type: NotificationType = NotificationType.CUSTOM
    translations: dict[str, TemplateText] = Field(default_factory=dict)
    base_locale: str = "ru"
    default_channels: list[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.IN_APP]
    )
    default_priority: NotificationPriority = NotificationPriority.NORMAL
    available_variables: list[TemplateVariable] = Field(default_factory=list)
    action_url: str | None = None
    is_active: bool = True
    is_system: bool = False
    version: int = 1
    usage_count: int = 0
    last_used_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def text_for(self, *locales: str | None) -> tuple[str, TemplateText] | None:
        """Return the first available ``(locale, text)`` in the given order.

        Falls back to the base locale, then to any translation.
        """
        for locale in (*locales, self.base_locale):
            if locale and locale in self.translations:
                return locale, self.translations[locale]
        for locale, text in self.translations.items():
            return locale, text
        return None

    def record_usage(self, now: datetime) -> None:
        self.usage_count += 1
        self.last_used_at = now
