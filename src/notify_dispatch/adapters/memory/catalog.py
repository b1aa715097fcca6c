"""Dict-backed template, rule, settings, campaign and device stores."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ...ports.storage import (
    ICampaignRepository,
    IDeviceRepository,
    IRuleRepository,
    ISettingsRepository,
    ITemplateRepository,
)

if TYPE_CHECKING:
    from ...domain.campaign import NotificationCampaign
    from ...domain.devices import FcmToken, PushSubscription
    from ...domain.rule import NotificationRule
    from ...domain.settings import UserNotificationSettings
    from ...domain.template import NotificationTemplate


class InMemoryTemplateRepository(ITemplateRepository):
    def __init__(self) -> None:
        self._store: dict[str, NotificationTemplate] = {}

    async def add(self, template: NotificationTemplate) -> None:
        self._store[template.id] = template.model_copy(deep=True)

    async def save(self, template: NotificationTemplate) -> None:
        self._store[template.id] = template.model_copy(deep=True)

    async def get(self, template_id: str) -> NotificationTemplate | None:
        found = self._store.get(template_id)
        return found.model_copy(deep=True) if found else None

    async def get_active_by_code(
        self, code: str, organization_id: str | None
    ) -> NotificationTemplate | None:
        system = None
        for template in self._store.values():
            if template.code != code or not template.is_active:
                continue
            if organization_id and template.organization_id == organization_id:
                return template.model_copy(deep=True)
            if template.organization_id is None:
                system = template
        return system.model_copy(deep=True) if system else None

    async def exists(self, code: str, organization_id: str | None) -> bool:
        return any(
            t.code == code and t.organization_id == organization_id
            for t in self._store.values()
        )

    async def list_available(self, organization_id: str) -> list[NotificationTemplate]:
        return sorted(
            (
                t.model_copy(deep=True)
                for t in self._store.values()
                if t.is_active and t.organization_id in (organization_id, None)
            ),
            key=lambda t: (t.type.value, t.name),
        )


class InMemoryRuleRepository(IRuleRepository):
    def __init__(self) -> None:
        self._store: dict[str, NotificationRule] = {}

    async def add(self, rule: NotificationRule) -> None:
        self._store[rule.id] = rule.model_copy(deep=True)

    async def save(self, rule: NotificationRule) -> None:
        self._store[rule.id] = rule.model_copy(deep=True)

    async def get(self, rule_id: str) -> NotificationRule | None:
        found = self._store.get(rule_id)
        return found.model_copy(deep=True) if found else None

    async def list_active(
        self, organization_id: str, event_type: str
    ) -> list[NotificationRule]:
        return sorted(
            (
                r.model_copy(deep=True)
                for r in self._store.values()
                if r.is_active
                and r.organization_id == organization_id
                and r.event_type == event_type
            ),
            key=lambda r: r.sort_order,
        )

    async def list_for_organization(
        self, organization_id: str
    ) -> list[NotificationRule]:
        return sorted(
            (
                r.model_copy(deep=True)
                for r in self._store.values()
                if r.organization_id == organization_id
            ),
            key=lambda r: r.sort_order,
        )


class InMemorySettingsRepository(ISettingsRepository):
    def __init__(self) -> None:
        self._store: dict[str, UserNotificationSettings] = {}

    async def get(self, user_id: str) -> UserNotificationSettings | None:
        found = self._store.get(user_id)
        return found.model_copy(deep=True) if found else None

    async def save(self, settings: UserNotificationSettings) -> None:
        self._store[settings.user_id] = settings.model_copy(deep=True)


class InMemoryCampaignRepository(ICampaignRepository):
    def __init__(self) -> None:
        self._store: dict[str, NotificationCampaign] = {}
        self._lock = asyncio.Lock()

    async def add(self, campaign: NotificationCampaign) -> None:
        self._store[campaign.id] = campaign.model_copy(deep=True)

    async def save(self, campaign: NotificationCampaign) -> None:
        # Counters are owned by ``increment``; a stale copy must not roll them back.
        async with self._lock:
            current = self._store.get(campaign.id)
            updated = campaign.model_copy(deep=True)
            if current is not None:
                updated.total_sent = current.total_sent
                updated.total_errored = current.total_errored
            self._store[campaign.id] = updated

    async def get(self, campaign_id: str) -> NotificationCampaign | None:
        found = self._store.get(campaign_id)
        return found.model_copy(deep=True) if found else None

    async def list_for_organization(
        self, organization_id: str
    ) -> list[NotificationCampaign]:
        return sorted(
            (
                c.model_copy(deep=True)
                for c in self._store.values()
                if c.organization_id == organization_id
            ),
            key=lambda c: c.created_at,
            reverse=True,
        )

    async def increment(self, campaign_id: str, **counters: int) -> None:
        async with self._lock:
            campaign = self._store.get(campaign_id)
            if campaign is None:
                return
            for name, delta in counters.items():
                setattr(campaign, name, getattr(campaign, name) + delta)


class InMemoryDeviceRepository(IDeviceRepository):
    def __init__(self) -> None:
        self._push: dict[str, PushSubscription] = {}
        self._fcm: dict[str, FcmToken] = {}

    async def get_push_subscription(self, endpoint: str) -> PushSubscription | None:
        found = self._push.get(endpoint)
        return found.model_copy(deep=True) if found else None

    async def save_push_subscription(self, subscription: PushSubscription) -> None:
        self._push[subscription.endpoint] = subscription.model_copy(deep=True)

    async def get_fcm_token(self, token: str) -> FcmToken | None:
        found = self._fcm.get(token)
        return found.model_copy(deep=True) if found else None

    async def save_fcm_token(self, token: FcmToken) -> None:
        self._fcm[token.token] = token.model_copy(deep=True)

    async def list_active_fcm_tokens(self, user_id: str) -> list[FcmToken]:
        return [
            t.model_copy(deep=True)
            for t in self._fcm.values()
            if t.user_id == user_id and t.is_active
        ]
