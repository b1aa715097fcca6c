"""HTTP SMS gateway."""

from __future__ import annotations

import logging
import time

import httpx

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class HttpSmsGateway(IChannelGateway):
    """
    Generic JSON SMS provider client using httpx.

    Posts ``{"id", "from", "to", "text"}`` with a bearer token and reads the
    provider message id from ``message_id`` (or ``id``) in the response.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.SMS:
            raise ValueError(f"HttpSmsGateway does not support {channel}")

        payload = {
            "id": time.time_ns() // 1_000_000,
            "from": self.sender,
            "to": address.lstrip("+"),
            "text": content.short_body or content.body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.api_url, json=payload, headers=headers
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"SMS provider HTTP error: {e.response.status_code}")
            return DeliveryOutcome.failed(f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to send SMS to {address}: {e}")
            return DeliveryOutcome.failed(str(e) or e.__class__.__name__)

        message_id = data.get("message_id") or data.get("id")
        logger.info(f"SMS sent to {address}")
        return DeliveryOutcome.sent(
            external_id=str(message_id) if message_id is not None else None,
            response=data,
        )
