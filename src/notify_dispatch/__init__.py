"""notify-dispatch: multi-channel notification dispatch engine."""

from __future__ import annotations

from .config import DispatchConfig
from .delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from .domain import (
    CreateCampaign,
    CreateNotification,
    Notification,
    NotificationCampaign,
    NotificationContent,
    NotificationPriority,
    NotificationQuery,
    NotificationRecipient,
    NotificationRule,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    SendTemplated,
)
from .engine import NotificationEngine
from .exceptions import (
    ConfigurationError,
    DeliveryFailure,
    GatewayNotRegisteredError,
    InvalidStateError,
    NotFoundError,
    NotificationError,
    TemplateNotFoundError,
    ValidationError,
)
from .gateways import ChannelGatewayRegistry
from .services import (
    CampaignService,
    DeviceService,
    DispatchReport,
    DispatchService,
    DispatchWorker,
    NotificationService,
    RuleEngine,
    SettingsService,
    TemplateService,
)

__version__ = "0.1.0"

__all__ = [
    "CampaignService",
    "ChannelGatewayRegistry",
    "ConfigurationError",
    "CreateCampaign",
    "CreateNotification",
    "DeliveryFailure",
    "DeliveryOutcome",
    "DeviceService",
    "DispatchConfig",
    "DispatchReport",
    "DispatchService",
    "DispatchWorker",
    "GatewayNotRegisteredError",
    "InvalidStateError",
    "NotFoundError",
    "Notification",
    "NotificationCampaign",
    "NotificationChannel",
    "NotificationContent",
    "NotificationEngine",
    "NotificationError",
    "NotificationPriority",
    "NotificationQuery",
    "NotificationRecipient",
    "NotificationRule",
    "NotificationService",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationType",
    "RenderedContent",
    "RuleEngine",
    "SendTemplated",
    "SettingsService",
    "TemplateNotFoundError",
    "TemplateService",
    "ValidationError",
]
