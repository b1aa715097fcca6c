"""Slack incoming-webhook gateway."""

from __future__ import annotations

import logging

import httpx

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class SlackGateway(IChannelGateway):
    """Posts to a Slack incoming-webhook URL (the address)."""

    def __init__(
        self,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.SLACK:
            raise ValueError(f"SlackGateway does not support {channel}")

        text = f"*{content.title}*\n{content.body}"
        if content.action_url:
            text += f"\n<{content.action_url}>"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(address, json={"text": text})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to post Slack message: {e}")
            return DeliveryOutcome.failed(str(e) or e.__class__.__name__)
        return DeliveryOutcome.sent(response={"status_code": response.status_code})
