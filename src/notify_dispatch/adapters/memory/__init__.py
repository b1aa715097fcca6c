"""In-memory adapters."""

from .audience import StaticAudienceResolver
from .catalog import (
    InMemoryCampaignRepository,
    InMemoryDeviceRepository,
    InMemoryRuleRepository,
    InMemorySettingsRepository,
    InMemoryTemplateRepository,
)
from .notifications import (
    InMemoryDeliveryLog,
    InMemoryDeliveryQueue,
    InMemoryNotificationRepository,
)

__all__ = [
    "InMemoryCampaignRepository",
    "InMemoryDeliveryLog",
    "InMemoryDeliveryQueue",
    "InMemoryDeviceRepository",
    "InMemoryNotificationRepository",
    "InMemoryRuleRepository",
    "InMemorySettingsRepository",
    "InMemoryTemplateRepository",
    "StaticAudienceResolver",
]
