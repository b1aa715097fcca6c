"""In-app channel: the stored notification is the delivery."""

from __future__ import annotations

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway


class InAppGateway(IChannelGateway):
    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,  # noqa: ARG002
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.IN_APP:
            raise ValueError(f"InAppGateway does not support {channel}")
        return DeliveryOutcome.sent(external_id=address)
