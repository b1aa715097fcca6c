"""Channel enum and the value objects exchanged with channel gateways."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NotificationChannel(str, Enum):
    """Supported delivery channels."""

    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"
    IN_APP = "in_app"
    WEBHOOK = "webhook"
    SLACK = "slack"


@dataclass(frozen=True)
class RenderedContent:
    """Immutable content handed to a gateway."""

    title: str
    body: str
    short_body: str | None = None
    html_body: str | None = None
    action_url: str | None = None
    image_url: str | None = None
    locale: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Immutable result of one gateway call."""

    success: bool
    external_id: str | None = None
    error: str | None = None
    response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def sent(
        cls,
        external_id: str | None = None,
        response: dict[str, Any] | None = None,
    ) -> DeliveryOutcome:
        """Create a successful outcome."""
        return cls(success=True, external_id=external_id, response=response or {})

    @classmethod
    def failed(
        cls,
        error: str,
        response: dict[str, Any] | None = None,
    ) -> DeliveryOutcome:
        """Create a failed outcome."""
        return cls(success=False, error=error, response=response or {})
