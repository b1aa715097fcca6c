"""Webhook gateway with HMAC-SHA256 request signing."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..correlation import get_causation_id, get_correlation_id
from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """
    Verify a received webhook body against its signature header.

    Uses constant-time comparison.
    """
    return hmac.compare_digest(sign_payload(body, secret), signature)


def encode_payload(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(
        payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str
    ).encode("utf-8")


class WebhookGateway(IChannelGateway):
    """
    HTTP POST gateway. The address is the endpoint URL.

    The body is serialized once and the signature is computed over those
    bytes, so receivers can verify the raw request body. Endpoints listed in
    ``endpoint_secrets`` use their own secret; others use ``secret``.
    """

    def __init__(
        self,
        secret: str | None = None,
        endpoint_secrets: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        user_agent: str = "notify-dispatch/0.1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret = secret
        self.endpoint_secrets = dict(endpoint_secrets or {})
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    def secret_for(self, url: str) -> str | None:
        return self.endpoint_secrets.get(url, self.secret)

    @staticmethod
    def build_payload(content: RenderedContent) -> dict[str, Any]:
        return {
            "title": content.title,
            "body": content.body,
            "action_url": content.action_url,
            "image_url": content.image_url,
            "locale": content.locale,
            "data": content.data,
        }

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if channel != NotificationChannel.WEBHOOK:
            raise ValueError(f"WebhookGateway does not support {channel}")

        body = encode_payload(self.build_payload(content))
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Correlation-ID": get_correlation_id() or "",
            "X-Causation-ID": get_causation_id() or "",
        }
        secret = self.secret_for(address)
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, secret)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(address, content=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Webhook HTTP error: {e.response.status_code} - {e.response.text}"
            )
            return DeliveryOutcome.failed(
                f"HTTP {e.response.status_code}",
                response={"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook to {address}: {e}")
            return DeliveryOutcome.failed(str(e) or e.__class__.__name__)

        logger.info(f"Webhook sent successfully to {address}")
        return DeliveryOutcome.sent(
            external_id=response.headers.get("X-Request-ID"),
            response={"status_code": response.status_code},
        )
