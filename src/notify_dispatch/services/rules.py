"""RuleEngine: turns business events into notifications."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..clock import utc_now
from ..conditions.evaluator import evaluate_conditions
from ..correlation import correlation_scope
from ..domain.commands import SendTemplated, revalidate, validate_rule
from ..domain.enums import RecipientType
from ..domain.notification import NotificationRecipient
from ..domain.rule import NotificationRule
from ..exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from ..clock import Clock
    from ..conditions.evaluator import ConditionOperatorRegistry
    from ..domain.notification import Notification
    from ..ports.storage import INotificationRepository, IRuleRepository
    from .templates import TemplateService

logger = logging.getLogger("notify_dispatch.rules")

_EVENT_RECIPIENT_KEYS = {
    RecipientType.ASSIGNEE: ("assigneeId", "assignee_id"),
    RecipientType.MANAGER: ("managerId", "manager_id"),
}
_IMMUTABLE = frozenset({"id", "organization_id", "created_at", "trigger_count"})


def resolve_recipient(
    rule: NotificationRule, event_data: Mapping[str, Any]
) -> str | None:
    """User id a single-recipient rule addresses, or ``None``.

    ``role`` and ``all`` rules fan out to many users and are not resolved
    here; use a campaign for them.
    """
    if rule.recipient_type == RecipientType.SPECIFIC_USERS:
        return rule.specific_user_ids[0] if rule.specific_user_ids else None
    for key in _EVENT_RECIPIENT_KEYS.get(rule.recipient_type, ()):
        value = event_data.get(key)
        if value:
            return str(value)
    return None


class RuleEngine:
    """Evaluates active rules for an event.

    Rules run in ``sort_order``. Each rule is isolated: an exception while
    evaluating or sending aborts that rule only.
    """

    def __init__(
        self,
        rules: IRuleRepository,
        notifications: INotificationRepository,
        templates: TemplateService,
        clock: Clock = utc_now,
        operators: ConditionOperatorRegistry | None = None,
    ) -> None:
        self._rules = rules
        self._notifications = notifications
        self._templates = templates
        self._clock = clock
        self._operators = operators

    async def trigger_by_event(
        self,
        organization_id: str,
        event_type: str,
        event_data: Mapping[str, Any],
    ) -> list[Notification]:
        """Fire every matching rule.

        Returns the notifications created or grouped into.
        """
        with correlation_scope() as correlation_id:
            rules = await self._rules.list_active(organization_id, event_type)
            if not rules:
                logger.debug(
                    "No active rules for %s in %s", event_type, organization_id
                )
                return []

            results: list[Notification] = []
            for rule in rules:
                try:
                    notification = await self._apply(rule, event_data, correlation_id)
                except Exception:
                    logger.exception(
                        "Rule %s (%s) failed for event %s",
                        rule.id,
                        rule.name,
                        event_type,
                    )
                    continue
                if notification is not None:
                    results.append(notification)
            return results

    async def _apply(
        self,
        rule: NotificationRule,
        event_data: Mapping[str, Any],
        correlation_id: str,
    ) -> Notification | None:
        if not evaluate_conditions(
            rule.conditions,
            event_data,
            match_all=rule.all_conditions_must_match,
            registry=self._operators,
        ):
            return None

        now = self._clock()
        if rule.cooldown_minutes > 0:
            since = now - timedelta(minutes=rule.cooldown_minutes)
            recent = await self._notifications.count_created_since(
                rule.organization_id, rule.notification_type, since
            )
            if recent:
                logger.debug("Rule %s is cooling down (%d recent)", rule.id, recent)
                return None

        user_id = resolve_recipient(rule, event_data)
        if user_id is None:
            logger.info(
                "Rule %s: no recipient for recipient_type=%s",
                rule.id,
                rule.recipient_type.value,
            )
            return None

        group_key = None
        if rule.group_similar and rule.group_window_minutes > 0:
            group_key = f"{rule.id}:{user_id}"
            since = now - timedelta(minutes=rule.group_window_minutes)
            existing = await self._notifications.find_open_group(group_key, since)
            if existing is not None:
                count = existing.metadata.get("group_count", 1)
                existing.metadata["group_count"] = count + 1
                existing.updated_at = now
                await self._notifications.save(existing)
                await self._record_trigger(rule, now)
                return existing

        notification = await self._templates.send_templated(
            SendTemplated(
                template_code=rule.template_code,
                organization_id=rule.organization_id,
                recipient=NotificationRecipient(user_id=user_id),
                variables=dict(event_data),
                channels=rule.channels,
                priority=rule.priority,
                notification_type=rule.notification_type,
                scheduled_at=(
                    now + timedelta(minutes=rule.delay_minutes)
                    if rule.delay_minutes > 0
                    else None
                ),
                metadata={
                    "source": "rule",
                    "rule_id": rule.id,
                    "event_type": rule.event_type,
                    "correlation_id": correlation_id,
                },
                group_key=group_key,
            )
        )
        await self._record_trigger(rule, now)
        return notification

    async def _record_trigger(self, rule: NotificationRule, now: datetime) -> None:
        rule.record_trigger(now)
        await self._rules.save(rule)

    # -- management -------------------------------------------------------

    async def create_rule(self, rule: NotificationRule) -> NotificationRule:
        validate_rule(rule)
        await self._rules.add(rule)
        logger.info("Rule %s created for event %s", rule.name, rule.event_type)
        return rule

    async def get_rule(self, rule_id: str) -> NotificationRule:
        rule = await self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError("NotificationRule", rule_id)
        return rule

    async def get_rules(self, organization_id: str) -> list[NotificationRule]:
        return await self._rules.list_for_organization(organization_id)

    async def update_rule(
        self, rule_id: str, changes: dict[str, Any]
    ) -> NotificationRule:
        protected = sorted(_IMMUTABLE & changes.keys())
        if protected:
            raise ValidationError({name: ["Field is read-only"] for name in protected})
        current = await self.get_rule(rule_id)
        merged = current.model_dump() | changes | {"updated_at": self._clock()}
        updated = revalidate(NotificationRule, merged)
        validate_rule(updated)
        await self._rules.save(updated)
        return updated

    async def set_rule_active(self, rule_id: str, active: bool) -> NotificationRule:
        return await self.update_rule(rule_id, {"is_active": active})
