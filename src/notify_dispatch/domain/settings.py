"""Per-user notification preferences."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from ..clock import utc_now
from ..delivery import NotificationChannel
from .enums import NotificationPriority, NotificationType


class TypePreference(BaseModel):
    enabled: bool = True
    channels: list[NotificationChannel] | None = None
    min_priority: NotificationPriority | None = None


class UserNotificationSettings(BaseModel):
    user_id: str
    organization_id: str
    enabled: bool = True
    locale: str = "ru"
    timezone: str = "Asia/Tashkent"
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None

    push_enabled: bool = True
    email_enabled: bool = True
    sms_enabled: bool = False
    telegram_enabled: bool = True
    in_app_enabled: bool = True
    whatsapp_enabled: bool = True
    slack_enabled: bool = True
    webhook_enabled: bool = True

    email: str | None = None
    phone: str | None = None
    telegram_id: str | None = None

    type_settings: dict[NotificationType, TypePreference] = Field(default_factory=dict)

    digest_enabled: bool = False
    digest_frequency: str = "none"
    digest_time: str | None = None
    digest_channels: list[NotificationChannel] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("quiet_hours_start", "quiet_hours_end", "digest_time")
    @classmethod
    def validate_time_of_day(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            time.fromisoformat(v)
        except ValueError:
            raise ValueError(f"Expected a time of day as HH:MM, got {v!r}") from None
        return v

    def channel_enabled(self, channel: NotificationChannel) -> bool:
        return bool(getattr(self, f"{channel.value}_enabled", True))

    def filter_channels(
        self,
        notification_type: NotificationType,
        priority: NotificationPriority,
        channels: list[NotificationChannel],
    ) -> list[NotificationChannel]:
        """Drop every channel the user has switched off for this type."""
        if not self.enabled:
            return []
        preference = self.type_settings.get(notification_type)
        if preference is not None:
            if not preference.enabled:
                return []
            if (
                preference.min_priority is not None
                and priority.weight < preference.min_priority.weight
            ):
                return []
        allowed = [c for c in channels if self.channel_enabled(c)]
        if preference is not None and preference.channels:
            allowed = [c for c in allowed if c in preference.channels]
        return allowed

    def _zone(self) -> timezone | ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return timezone.utc

    def quiet_hours_end_after(self, now: datetime) -> datetime | None:
        """End of the quiet window containing ``now``, or ``None`` outside it."""
        if not self.quiet_hours_start or not self.quiet_hours_end:
            return None
        start = time.fromisoformat(self.quiet_hours_start)
        end = time.fromisoformat(self.quiet_hours_end)
        if start == end:
            return None
        local = now.astimezone(self._zone())
        current = local.time().replace(tzinfo=None)
        if start < end:
            inside = start <= current < end
        else:
            inside = current >= start or current < end
        if not inside:
            return None
        end_local = local.replace(
            hour=end.hour, minute=end.minute, second=0, microsecond=0
        )
        if end_local <= local:
            end_local += timedelta(days=1)
        return end_local.astimezone(timezone.utc)
