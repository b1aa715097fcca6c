"""Domain models, enumerations and input commands."""

from .campaign import AudienceSelector, CampaignRecipient, NotificationCampaign
from .commands import (
    ChannelStats,
    CreateCampaign,
    CreateNotification,
    NotificationPage,
    NotificationQuery,
    NotificationStats,
    SendTemplated,
)
from .devices import FcmToken, PushSubscription
from .enums import (
    AudienceType,
    CampaignStatus,
    ConditionOperator,
    DeviceType,
    EventCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    QueueItemStatus,
    RecipientType,
)
from .notification import (
    LocalizedText,
    Notification,
    NotificationContent,
    NotificationRecipient,
    generate_notification_id,
)
from .queue import DeliveryLogEntry, DeliveryQueueItem
from .rule import NotificationRule, RuleCondition
from .settings import TypePreference, UserNotificationSettings
from .template import NotificationTemplate, TemplateText, TemplateVariable

__all__ = [
    "AudienceSelector",
    "AudienceType",
    "CampaignRecipient",
    "CampaignStatus",
    "ChannelStats",
    "ConditionOperator",
    "CreateCampaign",
    "CreateNotification",
    "DeliveryLogEntry",
    "DeliveryQueueItem",
    "DeviceType",
    "EventCategory",
    "FcmToken",
    "LocalizedText",
    "Notification",
    "NotificationCampaign",
    "NotificationContent",
    "NotificationPage",
    "NotificationPriority",
    "NotificationQuery",
    "NotificationRecipient",
    "NotificationRule",
    "NotificationStats",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationType",
    "PushSubscription",
    "QueueItemStatus",
    "RecipientType",
    "RuleCondition",
    "SendTemplated",
    "TemplateText",
    "TemplateVariable",
    "TypePreference",
    "UserNotificationSettings",
    "generate_notification_id",
]
