"""TemplateService: templated sends and template management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..clock import utc_now
from ..config import DispatchConfig
from ..domain.commands import (
    CreateNotification,
    SendTemplated,
    revalidate,
    validate_template,
)
from ..domain.enums import NotificationPriority
from ..domain.notification import NotificationContent
from ..domain.template import NotificationTemplate
from ..exceptions import NotFoundError, TemplateNotFoundError, ValidationError
from ..sanitization import PayloadSanitizer, default_sanitizer
from ..template.renderer import TemplateRenderer, default_renderer

if TYPE_CHECKING:
    from ..clock import Clock
    from ..domain.notification import Notification, NotificationRecipient
    from ..domain.settings import UserNotificationSettings
    from ..ports.storage import ISettingsRepository, ITemplateRepository
    from .notifications import NotificationService

logger = logging.getLogger("notify_dispatch.templates")

_IMMUTABLE = frozenset({"id", "code", "organization_id", "created_at", "version"})


class TemplateService:
    def __init__(
        self,
        templates: ITemplateRepository,
        settings: ISettingsRepository,
        notifications: NotificationService,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
        renderer: TemplateRenderer = default_renderer,
        sanitizer: PayloadSanitizer = default_sanitizer,
    ) -> None:
        self._templates = templates
        self._settings = settings
        self._notifications = notifications
        self._config = config or DispatchConfig()
        self._clock = clock
        self._renderer = renderer
        self._sanitizer = sanitizer

    # -- templated send ---------------------------------------------------

    async def resolve_template(
        self, code: str, organization_id: str | None
    ) -> NotificationTemplate:
        template = await self._templates.get_active_by_code(code, organization_id)
        if template is None:
            raise TemplateNotFoundError(code, organization_id)
        return template

    async def send_templated(self, command: SendTemplated) -> Notification:
        """Render a template for one recipient and create the notification.

        Channels the recipient disabled are dropped silently. When none
        remain the notification is still stored, as ``failed``, so the
        decision is visible.
        """
        template = await self.resolve_template(
            command.template_code, command.organization_id
        )
        recipient = command.recipient
        settings = (
            await self._settings.get(recipient.user_id) if recipient.user_id else None
        )

        notification_type = command.notification_type or template.type
        priority = command.priority or template.default_priority
        requested = list(command.channels or template.default_channels)
        channels = (
            settings.filter_channels(notification_type, priority, requested)
            if settings
            else requested
        )
        if len(channels) != len(requested):
            logger.debug(
                "Recipient %s disabled channel(s): %s",
                recipient.user_id,
                ", ".join(c.value for c in requested if c not in channels),
            )

        now = self._clock()
        locale = (
            command.locale
            or recipient.locale
            or (settings.locale if settings else None)
        )
        fallback = (
            self._config.organization_locale(command.organization_id)
            or self._config.primary_locale
        )
        rendered = self._renderer.render(template, locale, command.variables, fallback)

        scheduled_at = command.scheduled_at
        if settings and priority != NotificationPriority.URGENT:
            quiet_end = settings.quiet_hours_end_after(scheduled_at or now)
            if quiet_end is not None:
                logger.debug(
                    "Deferring notification for %s until quiet hours end at %s",
                    recipient.user_id,
                    quiet_end.isoformat(),
                )
                scheduled_at = quiet_end

        create = CreateNotification(
            organization_id=command.organization_id,
            user_id=recipient.user_id,
            type=notification_type,
            priority=priority,
            content=NotificationContent(
                title=rendered.title,
                body=rendered.body,
                short_body=rendered.short_body,
                html_body=rendered.html_body,
                action_url=rendered.action_url,
            ),
            recipient=self._complete_recipient(recipient, settings, rendered.locale),
            channels=channels,
            scheduled_at=scheduled_at,
            related_entity_type=command.related_entity_type,
            related_entity_id=command.related_entity_id,
            template_code=template.code,
            variables=self._sanitizer.sanitize(command.variables),
            metadata=command.metadata,
            group_key=command.group_key,
        )
        failure = None if channels else "All channels disabled by recipient settings"
        notification = await self._notifications.create(create, failure_reason=failure)

        template.record_usage(now)
        await self._templates.save(template)
        return notification

    @staticmethod
    def _complete_recipient(
        recipient: NotificationRecipient,
        settings: UserNotificationSettings | None,
        locale: str | None,
    ) -> NotificationRecipient:
        updates: dict[str, Any] = {}
        if settings is not None:
            for name in ("email", "phone", "telegram_id"):
                if getattr(recipient, name) is None and getattr(settings, name):
                    updates[name] = getattr(settings, name)
        if recipient.locale is None and locale:
            updates["locale"] = locale
        return recipient.model_copy(update=updates) if updates else recipient

    # -- management -------------------------------------------------------

    async def get_templates(self, organization_id: str) -> list[NotificationTemplate]:
        """Active organization templates plus active system templates."""
        return await self._templates.list_available(organization_id)

    async def get_template(self, template_id: str) -> NotificationTemplate:
        template = await self._templates.get(template_id)
        if template is None:
            raise NotFoundError("NotificationTemplate", template_id)
        return template

    async def create_template(
        self, template: NotificationTemplate
    ) -> NotificationTemplate:
        validate_template(template)
        if await self._templates.exists(template.code, template.organization_id):
            raise ValidationError(
                {"code": [f"Template {template.code!r} already exists"]}
            )
        now = self._clock()
        created = template.model_copy(
            update={
                "is_active": True,
                "is_system": template.organization_id is None,
                "version": 1,
                "created_at": now,
                "updated_at": now,
            }
        )
        await self._templates.add(created)
        logger.info(
            "Template %s created (org=%s)", created.code, created.organization_id
        )
        return created

    async def update_template(
        self, template_id: str, changes: dict[str, Any]
    ) -> NotificationTemplate:
        """Apply ``changes`` and bump the template version."""
        protected = sorted(_IMMUTABLE & changes.keys())
        if protected:
            raise ValidationError({name: ["Field is read-only"] for name in protected})
        current = await self.get_template(template_id)
        merged = current.model_dump() | changes
        merged["version"] = current.version + 1
        merged["updated_at"] = self._clock()
        updated = revalidate(NotificationTemplate, merged)
        validate_template(updated)
        await self._templates.save(updated)
        return updated

    async def deactivate_template(self, template_id: str) -> NotificationTemplate:
        return await self.update_template(template_id, {"is_active": False})
