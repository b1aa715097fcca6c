"""Input models for the public operations and their validation functions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..delivery import NotificationChannel
from ..exceptions import ValidationError
from .campaign import AudienceSelector
from .enums import (
    AudienceType,
    EventCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RecipientType,
)
from .notification import Notification, NotificationContent, NotificationRecipient
from .rule import NotificationRule
from .template import NotificationTemplate


class CreateNotification(BaseModel):
    organization_id: str
    user_id: str | None = None
    type: NotificationType = NotificationType.CUSTOM
    priority: NotificationPriority = NotificationPriority.NORMAL
    content: NotificationContent
    recipient: NotificationRecipient | None = None
    channels: list[NotificationChannel] = Field(default_factory=list)
    is_broadcast: bool = False
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


class SendTemplated(BaseModel):
    template_code: str
    organization_id: str
    recipient: NotificationRecipient = Field(default_factory=NotificationRecipient)
    variables: dict[str, Any] = Field(default_factory=dict)
    channels: list[NotificationChannel] | None = None
    priority: NotificationPriority | None = None
    locale: str | None = None
    scheduled_at: datetime | None = None
    notification_type: NotificationType | None = None
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    group_key: str | None = None


class NotificationQuery(BaseModel):
    organization_id: str | None = None
    user_id: str | None = None
    types: list[NotificationType] | None = None
    statuses: list[NotificationStatus] | None = None
    is_read: bool | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    page: int = 1
    limit: int | None = None


class NotificationPage(BaseModel):
    items: list[Notification]
    total: int
    page: int
    limit: int
    total_pages: int
    unread_count: int | None = None


class ChannelStats(BaseModel):
    """Delivery attempts on one channel, from the delivery log."""

    attempts: int = 0
    sent: int = 0
    failed: int = 0


class NotificationStats(BaseModel):
    total: int
    by_status: dict[NotificationStatus, int] = Field(default_factory=dict)
    by_type: dict[NotificationType, int] = Field(default_factory=dict)
    by_channel: dict[NotificationChannel, ChannelStats] = Field(default_factory=dict)


class CreateCampaign(BaseModel):
    organization_id: str
    name: str
    description: str | None = None
    content: NotificationContent
    channels: list[NotificationChannel] = Field(default_factory=list)
    type: NotificationType = NotificationType.ANNOUNCEMENT
    priority: NotificationPriority = NotificationPriority.NORMAL
    audience: AudienceSelector = Field(default_factory=AudienceSelector)
    scheduled_at: datetime | None = None
    created_by: str | None = None


M = TypeVar("M", bound=BaseModel)


def revalidate(model: type[M], data: dict[str, Any]) -> M:
    """Build ``model`` from ``data``, reporting problems as ``ValidationError``."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            loc = ".".join(str(p) for p in error.get("loc", ("__root__",)))
            errors.setdefault(loc, []).append(error.get("msg", "validation error"))
        raise ValidationError(errors) from exc


def _raise_if(errors: dict[str, list[str]]) -> None:
    if errors:
        raise ValidationError(errors)


def validate_create_notification(command: CreateNotification) -> None:
    errors: dict[str, list[str]] = {}
    if not command.channels:
        errors.setdefault("channels", []).append("At least one channel is required")
    if not command.content.title.strip():
        errors.setdefault("content.title", []).append("Title must not be empty")
    if (
        command.scheduled_at is not None
        and command.expires_at is not None
        and command.expires_at <= command.scheduled_at
    ):
        errors.setdefault("expires_at", []).append(
            "Expiry must be later than the scheduled time"
        )
    _raise_if(errors)


def validate_query(query: NotificationQuery) -> None:
    errors: dict[str, list[str]] = {}
    if query.page < 1:
        errors["page"] = ["Page numbers start at 1"]
    if query.limit is not None and query.limit < 1:
        errors["limit"] = ["Limit must be positive"]
    if query.date_from and query.date_to and query.date_from > query.date_to:
        errors["date_from"] = ["Range start is after range end"]
    _raise_if(errors)


def validate_template(template: NotificationTemplate) -> None:
    errors: dict[str, list[str]] = {}
    if not template.code.strip():
        errors["code"] = ["Template code must not be empty"]
    if template.base_locale not in template.translations:
        errors["translations"] = [
            f"Missing text for base locale {template.base_locale!r}"
        ]
    if not template.default_channels:
        errors["default_channels"] = ["At least one default channel is required"]
    _raise_if(errors)


def validate_rule(rule: NotificationRule) -> None:
    errors: dict[str, list[str]] = {}
    if not rule.event_type.strip():
        errors["event_type"] = ["Event type must not be empty"]
    if not rule.template_code.strip():
        errors["template_code"] = ["Template code must not be empty"]
    if not rule.channels:
        errors["channels"] = ["At least one channel is required"]
    if (
        rule.recipient_type == RecipientType.SPECIFIC_USERS
        and not rule.specific_user_ids
    ):
        errors["specific_user_ids"] = ["Specific-user rules need at least one user id"]
    for name in ("delay_minutes", "cooldown_minutes", "group_window_minutes"):
        if getattr(rule, name) < 0:
            errors[name] = ["Must not be negative"]
    _raise_if(errors)


def validate_campaign(command: CreateCampaign) -> None:
    errors: dict[str, list[str]] = {}
    if not command.name.strip():
        errors["name"] = ["Campaign name must not be empty"]
    if not command.content.title.strip():
        errors["content.title"] = ["Title must not be empty"]
    if not command.channels:
        errors["channels"] = ["At least one channel is required"]
    audience = command.audience
    if audience.type == AudienceType.ROLES and not audience.roles:
        errors["audience.roles"] = ["Role audiences need at least one role"]
    if audience.type == AudienceType.USERS and not audience.user_ids:
        errors["audience.user_ids"] = ["User audiences need at least one user id"]
    _raise_if(errors)
