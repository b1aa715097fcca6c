"""CampaignService: mass fan-out of one message to a resolved audience."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..clock import utc_now
from ..config import DispatchConfig
from ..domain.campaign import CampaignRecipient, NotificationCampaign
from ..domain.commands import CreateCampaign, CreateNotification, validate_campaign
from ..domain.enums import AudienceType, CampaignStatus, NotificationStatus
from ..domain.notification import NotificationRecipient
from ..exceptions import ConfigurationError, InvalidStateError, NotFoundError

if TYPE_CHECKING:
    from ..clock import Clock
    from ..ports.audience import IAudienceResolver
    from ..ports.storage import ICampaignRepository, INotificationRepository
    from .notifications import NotificationService

logger = logging.getLogger("notify_dispatch.campaigns")

_DELIVERED = (
    NotificationStatus.SENT,
    NotificationStatus.DELIVERED,
    NotificationStatus.READ,
)
_UNDELIVERED = (NotificationStatus.FAILED, NotificationStatus.EXPIRED)


class CampaignService:
    """Creates campaigns and fans them out one notification per recipient.

    ``start_campaign`` runs the fan-out in batches of
    ``campaign_batch_size``; the campaign status is re-read before every
    batch so a pause or cancel stops it. Recipients are isolated from each
    other: a failed ``create`` is counted in ``total_errored`` and the batch
    continues.
    """

    def __init__(
        self,
        campaigns: ICampaignRepository,
        notification_service: NotificationService,
        notifications: INotificationRepository,
        audience: IAudienceResolver | None = None,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._campaigns = campaigns
        self._notification_service = notification_service
        self._notifications = notifications
        self._audience = audience
        self._config = config or DispatchConfig()
        self._clock = clock

    async def create_campaign(self, command: CreateCampaign) -> NotificationCampaign:
        validate_campaign(command)
        audience = command.audience
        if audience.type == AudienceType.USERS:
            estimated = len(dict.fromkeys(audience.user_ids))
        elif self._audience is not None:
            estimated = await self._audience.estimate(command.organization_id, audience)
        else:
            estimated = 0

        now = self._clock()
        campaign = NotificationCampaign(
            organization_id=command.organization_id,
            name=command.name,
            description=command.description,
            type=command.type,
            priority=command.priority,
            content=command.content,
            channels=list(dict.fromkeys(command.channels)),
            audience=audience,
            scheduled_at=command.scheduled_at,
            status=(
                CampaignStatus.SCHEDULED
                if command.scheduled_at
                else CampaignStatus.DRAFT
            ),
            estimated_recipients=estimated,
            created_by=command.created_by,
            created_at=now,
            updated_at=now,
        )
        await self._campaigns.add(campaign)
        logger.info(
            "Campaign %s created (%s, ~%d recipients)",
            campaign.id,
            campaign.status.value,
            estimated,
        )
        return campaign

    async def start_campaign(self, campaign_id: str) -> NotificationCampaign:
        campaign = await self.get_campaign(campaign_id)
        if campaign.status not in (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED):
            raise InvalidStateError(
                f"Cannot start campaign in {campaign.status.value} state"
            )
        recipients = await self._resolve_audience(campaign)
        if not recipients:
            raise ConfigurationError(
                f"Campaign {campaign_id} has no resolvable audience"
            )

        campaign.start(self._clock())
        await self._campaigns.save(campaign)
        logger.info(
            "Campaign %s started for %d recipients", campaign.id, len(recipients)
        )

        await self._fan_out(campaign, recipients)
        return await self.get_campaign(campaign_id)

    async def _resolve_audience(
        self, campaign: NotificationCampaign
    ) -> list[CampaignRecipient]:
        audience = campaign.audience
        if self._audience is None:
            if audience.type != AudienceType.USERS:
                raise ConfigurationError(
                    "No audience resolver configured for "
                    f"{audience.type.value} audiences"
                )
            return [
                CampaignRecipient(user_id=user_id)
                for user_id in dict.fromkeys(audience.user_ids)
            ]
        return await self._audience.resolve(campaign.organization_id, audience)

    async def _fan_out(
        self, campaign: NotificationCampaign, recipients: list[CampaignRecipient]
    ) -> None:
        batch_size = max(self._config.campaign_batch_size, 1)
        for offset in range(0, len(recipients), batch_size):
            current = await self._campaigns.get(campaign.id)
            if current is None or current.status != CampaignStatus.IN_PROGRESS:
                logger.info(
                    "Campaign %s stopped after %d/%d recipients",
                    campaign.id,
                    offset,
                    len(recipients),
                )
                return
            sent = failed = 0
            for recipient in recipients[offset : offset + batch_size]:
                try:
                    await self._notification_service.create(
                        self._notification_for(campaign, recipient)
                    )
                    sent += 1
                except Exception:
                    logger.exception(
                        "Campaign %s: notification for %s failed",
                        campaign.id,
                        recipient.user_id,
                    )
                    failed += 1
            await self._campaigns.increment(
                campaign.id, total_sent=sent, total_errored=failed
            )

        current = await self.get_campaign(campaign.id)
        if current.status == CampaignStatus.IN_PROGRESS:
            current.complete(self._clock())
            await self._campaigns.save(current)
            logger.info(
                "Campaign %s completed: %d sent, %d failed",
                campaign.id,
                current.total_sent,
                current.total_failed,
            )

    @staticmethod
    def _notification_for(
        campaign: NotificationCampaign, recipient: CampaignRecipient
    ) -> CreateNotification:
        return CreateNotification(
            organization_id=campaign.organization_id,
            user_id=recipient.user_id,
            type=campaign.type,
            priority=campaign.priority,
            content=campaign.content,
            recipient=NotificationRecipient(
                user_id=recipient.user_id,
                email=recipient.email,
                phone=recipient.phone,
                telegram_id=recipient.telegram_id,
                locale=recipient.locale,
            ),
            channels=campaign.channels,
            metadata={"source": "campaign", "campaign_id": campaign.id},
        )

    async def pause_campaign(self, campaign_id: str) -> NotificationCampaign:
        campaign = await self.get_campaign(campaign_id)
        campaign.pause(self._clock())
        await self._campaigns.save(campaign)
        return campaign

    async def cancel_campaign(self, campaign_id: str) -> NotificationCampaign:
        campaign = await self.get_campaign(campaign_id)
        campaign.cancel(self._clock())
        await self._campaigns.save(campaign)
        return campaign

    async def refresh_campaign_stats(self, campaign_id: str) -> NotificationCampaign:
        """Recount delivered, read and undelivered notifications of the campaign.

        ``total_failed`` then covers both creation errors and notifications
        that ended ``failed`` or ``expired``.
        """
        campaign = await self.get_campaign(campaign_id)
        counts = await self._notifications.count_by_status(campaign_id)
        campaign.total_delivered = sum(counts.get(s, 0) for s in _DELIVERED)
        campaign.total_read = counts.get(NotificationStatus.READ, 0)
        campaign.total_undelivered = sum(counts.get(s, 0) for s in _UNDELIVERED)
        campaign.updated_at = self._clock()
        await self._campaigns.save(campaign)
        return campaign

    async def get_campaign(self, campaign_id: str) -> NotificationCampaign:
        campaign = await self._campaigns.get(campaign_id)
        if campaign is None:
            raise NotFoundError("NotificationCampaign", campaign_id)
        return campaign

    async def get_campaigns(self, organization_id: str) -> list[NotificationCampaign]:
        return await self._campaigns.list_for_organization(organization_id)
