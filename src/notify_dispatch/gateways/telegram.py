"""Telegram Bot API gateway."""

from __future__ import annotations

import html
import logging

import httpx

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


class TelegramGateway(IChannelGateway):
    """Sends ``sendMessage`` calls; the address is the chat id."""

    def __init__(
        self,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def format_message(content: RenderedContent) -> str:
        text = f"<b>{html.escape(content.title)}</b>\n\n{html.escape(content.body)}"
        if content.action_url:
            text += f'\n\n<a href="{html.escape(content.action_url)}">Open</a>'
        return text

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.TELEGRAM:
            raise ValueError(f"TelegramGateway does not support {channel}")

        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": address,
            "text": self.format_message(content),
            "parse_mode": "HTML",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to send Telegram message to {address}: {e}")
            return DeliveryOutcome.failed(str(e) or e.__class__.__name__)

        if not data.get("ok"):
            return DeliveryOutcome.failed(
                data.get("description", "Telegram API error"), response=data
            )
        message_id = data.get("result", {}).get("message_id")
        return DeliveryOutcome.sent(
            external_id=str(message_id) if message_id is not None else None,
            response=data,
        )
