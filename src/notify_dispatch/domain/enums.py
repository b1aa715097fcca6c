"""Domain enumerations."""

from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
    SYSTEM = "system"
    ANNOUNCEMENT = "announcement"
    MAINTENANCE = "maintenance"

    MACHINE_ALERT = "machine_alert"
    MACHINE_ERROR = "machine_error"
    MACHINE_OFFLINE = "machine_offline"
    MACHINE_LOW_STOCK = "machine_low_stock"
    MACHINE_OUT_OF_STOCK = "machine_out_of_stock"
    MACHINE_TEMPERATURE = "machine_temperature"

    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_OVERDUE = "task_overdue"
    TASK_REMINDER = "task_reminder"

    COMPLAINT_NEW = "complaint_new"
    COMPLAINT_ASSIGNED = "complaint_assigned"
    COMPLAINT_UPDATED = "complaint_updated"
    COMPLAINT_RESOLVED = "complaint_resolved"
    COMPLAINT_SLA_WARNING = "complaint_sla_warning"

    INVENTORY_LOW = "inventory_low"
    INVENTORY_EXPIRING = "inventory_expiring"
    INVENTORY_TRANSFER = "inventory_transfer"

    TRANSACTION_ALERT = "transaction_alert"
    COLLECTION_DUE = "collection_due"
    COLLECTION_COMPLETED = "collection_completed"
    PAYMENT_RECEIVED = "payment_received"
    REVENUE_MILESTONE = "revenue_milestone"

    USER_LOGIN = "user_login"
    USER_INVITED = "user_invited"
    PASSWORD_CHANGED = "password_changed"
    ROLE_CHANGED = "role_changed"

    CONTRACT_EXPIRING = "contract_expiring"
    CONTRACT_EXPIRED = "contract_expired"
    CONTRACT_PAYMENT_DUE = "contract_payment_due"

    REPORT_READY = "report_ready"
    REPORT_SCHEDULED = "report_scheduled"

    CUSTOM = "custom"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def weight(self) -> int:
        """Sort weight, higher is more urgent."""
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    NotificationPriority.LOW: 25,
    NotificationPriority.NORMAL: 50,
    NotificationPriority.HIGH: 75,
    NotificationPriority.URGENT: 100,
}


class NotificationStatus(str, Enum):
    """Aggregate lifecycle of a notification.

    Forward path::

        PENDING → QUEUED → SENDING → SENT → DELIVERED → READ

    FAILED, CANCELLED and EXPIRED end the dispatch path.
    """

    PENDING = "pending"
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class QueueItemStatus(str, Enum):
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class EventCategory(str, Enum):
    MACHINE = "machine"
    TASK = "task"
    COMPLAINT = "complaint"
    INVENTORY = "inventory"
    TRANSACTION = "transaction"
    USER = "user"
    CONTRACT = "contract"
    SYSTEM = "system"
    REPORT = "report"


class RecipientType(str, Enum):
    SPECIFIC_USERS = "specific_users"
    ROLE = "role"
    ASSIGNEE = "assignee"
    MANAGER = "manager"
    ALL = "all"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


class CampaignStatus(str, Enum):
    """Campaign lifecycle.

    ``DRAFT → SCHEDULED → IN_PROGRESS → COMPLETED``; PAUSED and CANCELLED
    are reachable from any non-terminal state.
    """

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class AudienceType(str, Enum):
    ALL = "all"
    ROLES = "roles"
    USERS = "users"
    FILTER = "filter"


class DeviceType(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"
