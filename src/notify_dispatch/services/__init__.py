"""Application services."""

from .campaigns import CampaignService
from .devices import DeviceService
from .dispatch import DispatchReport, DispatchService, ItemResult
from .notifications import NotificationService
from .rules import RuleEngine, resolve_recipient
from .settings import SettingsService
from .templates import TemplateService
from .worker import DispatchWorker

__all__ = [
    "CampaignService",
    "DeviceService",
    "DispatchReport",
    "DispatchService",
    "DispatchWorker",
    "ItemResult",
    "NotificationService",
    "RuleEngine",
    "SettingsService",
    "TemplateService",
    "resolve_recipient",
]
