from .audience import IAudienceResolver
from .gateway import IChannelGateway
from .storage import (
    ICampaignRepository,
    IDeliveryLog,
    IDeliveryQueue,
    IDeviceRepository,
    INotificationRepository,
    IRuleRepository,
    ISettingsRepository,
    ITemplateRepository,
)
from .worker import IBackgroundWorker

__all__ = [
    "IAudienceResolver",
    "IBackgroundWorker",
    "IChannelGateway",
    "ICampaignRepository",
    "IDeliveryLog",
    "IDeliveryQueue",
    "IDeviceRepository",
    "INotificationRepository",
    "IRuleRepository",
    "ISettingsRepository",
    "ITemplateRepository",
]
