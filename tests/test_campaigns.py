"""Tests for campaign fan-out."""

from __future__ import annotations

from typing import Any

import pytest

from notify_dispatch import (
    ConfigurationError,
    CreateCampaign,
    InvalidStateError,
    NotificationChannel,
    NotificationContent,
    NotificationEngine,
    NotificationQuery,
    ValidationError,
)
from notify_dispatch.adapters.memory import (
    InMemoryCampaignRepository,
    StaticAudienceResolver,
)
from notify_dispatch.config import DispatchConfig
from notify_dispatch.domain import (
    AudienceSelector,
    AudienceType,
    CampaignRecipient,
    CampaignStatus,
)
from notify_dispatch.gateways import ChannelGatewayRegistry, InMemoryGateway

from .conftest import FakeClock


def campaign(**kwargs: Any) -> CreateCampaign:
    data: dict[str, Any] = {
        "organization_id": "org-1",
        "name": "Maintenance window",
        "content": NotificationContent(
            title="Planned maintenance", body="Line 3 stops at 22:00"
        ),
        "channels": [NotificationChannel.IN_APP],
        "audience": AudienceSelector(
            type=AudienceType.USERS, user_ids=["u1", "u2", "u3", "u2"]
        ),
    }
    data.update(kwargs)
    return CreateCampaign.model_validate(data)


class PausingCampaignRepository(InMemoryCampaignRepository):
    """Pauses the campaign as soon as the first batch is counted."""

    async def increment(self, campaign_id: str, **counters: int) -> None:
        await super().increment(campaign_id, **counters)
        current = await self.get(campaign_id)
        if current is not None and current.status == CampaignStatus.IN_PROGRESS:
            current.status = CampaignStatus.PAUSED
            await self.save(current)


class TestCreateCampaign:
    @pytest.mark.asyncio
    async def test_draft_with_estimate(self, engine: NotificationEngine) -> None:
        created = await engine.campaigns.create_campaign(campaign())

        assert created.status == CampaignStatus.DRAFT
        assert created.estimated_recipients == 3
        assert [c.id for c in await engine.campaigns.get_campaigns("org-1")] == [
            created.id
        ]

    @pytest.mark.asyncio
    async def test_scheduled(
        self, engine: NotificationEngine, clock: FakeClock
    ) -> None:
        created = await engine.campaigns.create_campaign(
            campaign(scheduled_at=clock.now)
        )

        assert created.status == CampaignStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_validation(self, engine: NotificationEngine) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await engine.campaigns.create_campaign(
                campaign(
                    channels=[], audience=AudienceSelector(type=AudienceType.ROLES)
                )
            )

        assert set(exc_info.value.errors) == {"channels", "audience.roles"}


class TestStartCampaign:
    @pytest.mark.asyncio
    async def test_fans_out_one_notification_per_user(
        self, engine: NotificationEngine
    ) -> None:
        created = await engine.campaigns.create_campaign(campaign())

        started = await engine.campaigns.start_campaign(created.id)

        assert started.status == CampaignStatus.COMPLETED
        assert started.total_sent == 3
        assert started.total_failed == 0
        assert started.started_at is not None
        assert started.completed_at is not None
        page = await engine.notifications.query(
            NotificationQuery(organization_id="org-1")
        )
        assert sorted(n.user_id for n in page.items) == ["u1", "u2", "u3"]
        assert {n.metadata["campaign_id"] for n in page.items} == {created.id}

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, engine: NotificationEngine) -> None:
        created = await engine.campaigns.create_campaign(campaign())
        await engine.campaigns.start_campaign(created.id)

        with pytest.raises(InvalidStateError, match="completed"):
            await engine.campaigns.start_campaign(created.id)

    @pytest.mark.asyncio
    async def test_role_audience_needs_resolver(
        self, engine: NotificationEngine
    ) -> None:
        created = await engine.campaigns.create_campaign(
            campaign(audience=AudienceSelector(type=AudienceType.ROLES, roles=["ops"]))
        )

        with pytest.raises(ConfigurationError):
            await engine.campaigns.start_campaign(created.id)

    @pytest.mark.asyncio
    async def test_role_audience_with_resolver(
        self, gateways: ChannelGatewayRegistry, clock: FakeClock
    ) -> None:
        audience = StaticAudienceResolver()
        audience.add_member("org-1", CampaignRecipient(user_id="op-1"), "operator")
        audience.add_member("org-1", CampaignRecipient(user_id="mgr-1"), "manager")
        audience.add_member("org-2", CampaignRecipient(user_id="op-2"), "operator")
        engine = NotificationEngine.build(
            gateways=gateways, clock=clock, audience=audience
        )
        created = await engine.campaigns.create_campaign(
            campaign(
                audience=AudienceSelector(type=AudienceType.ROLES, roles=["operator"])
            )
        )

        started = await engine.campaigns.start_campaign(created.id)

        assert created.estimated_recipients == 1
        assert started.total_sent == 1
        page = await engine.notifications.query(NotificationQuery(user_id="op-1"))
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_empty_audience(
        self, gateways: ChannelGatewayRegistry, clock: FakeClock
    ) -> None:
        engine = NotificationEngine.build(
            gateways=gateways, clock=clock, audience=StaticAudienceResolver()
        )
        created = await engine.campaigns.create_campaign(
            campaign(audience=AudienceSelector(type=AudienceType.ALL))
        )

        with pytest.raises(ConfigurationError, match="no resolvable audience"):
            await engine.campaigns.start_campaign(created.id)

    @pytest.mark.asyncio
    async def test_pause_stops_remaining_batches(
        self, gateways: ChannelGatewayRegistry, clock: FakeClock
    ) -> None:
        engine = NotificationEngine.build(
            gateways=gateways,
            clock=clock,
            config=DispatchConfig(campaign_batch_size=2),
            campaign_store=PausingCampaignRepository(),
        )
        created = await engine.campaigns.create_campaign(campaign())

        stopped = await engine.campaigns.start_campaign(created.id)

        assert stopped.status == CampaignStatus.PAUSED
        assert stopped.total_sent == 2
        assert stopped.completed_at is None


class TestCampaignLifecycle:
    @pytest.mark.asyncio
    async def test_paused_campaign_is_terminal(
        self, engine: NotificationEngine
    ) -> None:
        created = await engine.campaigns.create_campaign(campaign())

        paused = await engine.campaigns.pause_campaign(created.id)

        assert paused.status == CampaignStatus.PAUSED
        with pytest.raises(InvalidStateError):
            await engine.campaigns.start_campaign(created.id)
        with pytest.raises(InvalidStateError):
            await engine.campaigns.cancel_campaign(created.id)

    @pytest.mark.asyncio
    async def test_cancel_draft(self, engine: NotificationEngine) -> None:
        created = await engine.campaigns.create_campaign(campaign())

        cancelled = await engine.campaigns.cancel_campaign(created.id)

        assert cancelled.status == CampaignStatus.CANCELLED
        assert cancelled.is_terminal

    @pytest.mark.asyncio
    async def test_refresh_stats_counts_delivery_and_reads(
        self, engine: NotificationEngine
    ) -> None:
        created = await engine.campaigns.create_campaign(campaign())
        await engine.campaigns.start_campaign(created.id)
        await engine.worker.run_once()
        page = await engine.notifications.query(NotificationQuery(user_id="u1"))
        await engine.notifications.mark_as_read(page.items[0].id)

        stats = await engine.campaigns.refresh_campaign_stats(created.id)

        assert stats.total_sent == 3
        assert stats.total_delivered == 3
        assert stats.total_read == 1
        assert stats.delivery_rate == 100.0
        assert stats.read_rate == 33.33

    @pytest.mark.asyncio
    async def test_refresh_stats_counts_undelivered(self, clock: FakeClock) -> None:
        registry = ChannelGatewayRegistry()
        registry.register(
            NotificationChannel.IN_APP,
            InMemoryGateway(failing_channels=[NotificationChannel.IN_APP]),
        )
        engine = NotificationEngine.build(
            gateways=registry, clock=clock, config=DispatchConfig(max_retries=1)
        )
        created = await engine.campaigns.create_campaign(campaign())
        await engine.campaigns.start_campaign(created.id)
        await engine.worker.run_once()

        stats = await engine.campaigns.refresh_campaign_stats(created.id)

        assert stats.total_sent == 3
        assert stats.total_delivered == 0
        assert (stats.total_errored, stats.total_undelivered) == (0, 3)
        assert stats.total_failed == 3
        assert stats.delivery_rate == 0.0
