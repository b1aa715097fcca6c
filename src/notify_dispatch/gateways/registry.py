"""Channel → gateway routing."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..exceptions import GatewayNotRegisteredError
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class ChannelGatewayRegistry:
    """Registry of gateways keyed by channel.

    Usage::

        registry = ChannelGatewayRegistry()
        registry.register(NotificationChannel.WEBHOOK, WebhookGateway(secret="s"))
        outcome = await registry.send(NotificationChannel.WEBHOOK, url, content)
    """

    def __init__(
        self, gateways: Mapping[NotificationChannel, IChannelGateway] | None = None
    ) -> None:
        self._gateways: dict[NotificationChannel, IChannelGateway] = dict(
            gateways or {}
        )

    def register(self, channel: NotificationChannel, gateway: IChannelGateway) -> None:
        if channel in self._gateways:
            logger.warning("Replacing gateway for channel %s", channel.value)
        self._gateways[channel] = gateway

    def register_many(
        self, gateway: IChannelGateway, *channels: NotificationChannel
    ) -> None:
        for channel in channels:
            self.register(channel, gateway)

    def get(self, channel: NotificationChannel) -> IChannelGateway:
        """
        Raises:
            GatewayNotRegisteredError: If nothing handles ``channel``.
        """
        gateway = self._gateways.get(channel)
        if gateway is None:
            raise GatewayNotRegisteredError(channel.value)
        return gateway

    def has(self, channel: NotificationChannel) -> bool:
        return channel in self._gateways

    @property
    def channels(self) -> set[NotificationChannel]:
        return set(self._gateways)

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        return await self.get(channel).send(channel, address, content)
