"""Firebase Cloud Messaging (HTTP v1) push gateway."""

from __future__ import annotations

import logging

import httpx

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class FcmPushGateway(IChannelGateway):
    """Sends to one registration token per call.

    ``access_token`` is an OAuth2 bearer token for the service account;
    refreshing it is the caller's job.
    """

    def __init__(
        self,
        project_id: str,
        access_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = f"https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def build_message(token: str, content: RenderedContent) -> dict[str, object]:
        notification = {
            "title": content.title,
            "body": content.short_body or content.body,
        }
        if content.image_url:
            notification["image"] = content.image_url
        data = {k: str(v) for k, v in content.data.items()}
        if content.action_url:
            data["action_url"] = content.action_url
        return {"message": {"token": token, "notification": notification, "data": data}}

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.PUSH:
            raise ValueError(f"FcmPushGateway does not support {channel}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url,
                    json=self.build_message(address, content),
                    headers={"Authorization": f"Bearer {self.access_token}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"FCM HTTP error: {e.response.status_code} - {e.response.text}"
            )
            return DeliveryOutcome.failed(f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to send push notification: {e}")
            return DeliveryOutcome.failed(str(e) or e.__class__.__name__)

        return DeliveryOutcome.sent(external_id=data.get("name"), response=data)
