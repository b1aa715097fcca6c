"""Channel gateway port."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent


@runtime_checkable
class IChannelGateway(Protocol):
    """Hands a rendered message to one provider.

    Provider errors are reported as a failed ``DeliveryOutcome``; raising
    ``DeliveryFailure`` is accepted as well.
    """

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        """Send ``content`` to ``address`` over ``channel``."""
        ...
