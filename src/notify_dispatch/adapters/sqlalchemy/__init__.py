"""SQLAlchemy (async) adapters."""

from .models import (
    Base,
    CampaignModel,
    DeliveryLogModel,
    DeliveryQueueItemModel,
    NotificationModel,
)
from .stores import (
    SQLAlchemyCampaignRepository,
    SQLAlchemyDeliveryLog,
    SQLAlchemyDeliveryQueue,
    SQLAlchemyNotificationRepository,
)

__all__ = [
    "Base",
    "CampaignModel",
    "DeliveryLogModel",
    "DeliveryQueueItemModel",
    "NotificationModel",
    "SQLAlchemyCampaignRepository",
    "SQLAlchemyDeliveryLog",
    "SQLAlchemyDeliveryQueue",
    "SQLAlchemyNotificationRepository",
]
