"""Assembles the services over one set of stores and gateways."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .adapters.memory import (
    InMemoryCampaignRepository,
    InMemoryDeliveryLog,
    InMemoryDeliveryQueue,
    InMemoryDeviceRepository,
    InMemoryNotificationRepository,
    InMemoryRuleRepository,
    InMemorySettingsRepository,
    InMemoryTemplateRepository,
)
from .clock import utc_now
from .config import DispatchConfig
from .gateways.registry import ChannelGatewayRegistry
from .services import (
    CampaignService,
    DeviceService,
    DispatchService,
    DispatchWorker,
    NotificationService,
    RuleEngine,
    SettingsService,
    TemplateService,
)

if TYPE_CHECKING:
    from .clock import Clock
    from .ports.audience import IAudienceResolver
    from .ports.storage import (
        ICampaignRepository,
        IDeliveryLog,
        IDeliveryQueue,
        IDeviceRepository,
        INotificationRepository,
        IRuleRepository,
        ISettingsRepository,
        ITemplateRepository,
    )


@dataclass
class NotificationEngine:
    """Every service of the engine, wired to shared stores.

    ``NotificationEngine.build()`` fills any store that is not passed with
    its in-memory adapter, so a SQL deployment passes only the four shared
    stores.
    """

    config: DispatchConfig
    notifications: NotificationService
    templates: TemplateService
    rules: RuleEngine
    campaigns: CampaignService
    devices: DeviceService
    settings: SettingsService
    dispatcher: DispatchService
    worker: DispatchWorker
    gateways: ChannelGatewayRegistry

    @classmethod
    def build(
        cls,
        *,
        gateways: ChannelGatewayRegistry | None = None,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
        audience: IAudienceResolver | None = None,
        notification_store: INotificationRepository | None = None,
        queue: IDeliveryQueue | None = None,
        delivery_log: IDeliveryLog | None = None,
        template_store: ITemplateRepository | None = None,
        rule_store: IRuleRepository | None = None,
        settings_store: ISettingsRepository | None = None,
        campaign_store: ICampaignRepository | None = None,
        device_store: IDeviceRepository | None = None,
        worker_id: str | None = None,
    ) -> NotificationEngine:
        config = config or DispatchConfig()
        gateways = gateways or ChannelGatewayRegistry()
        notification_store = notification_store or InMemoryNotificationRepository()
        queue = queue or InMemoryDeliveryQueue()
        delivery_log = delivery_log or InMemoryDeliveryLog()
        settings_store = settings_store or InMemorySettingsRepository()
        device_store = device_store or InMemoryDeviceRepository()

        notifications = NotificationService(
            notification_store, queue, config, clock, delivery_log=delivery_log
        )
        templates = TemplateService(
            template_store or InMemoryTemplateRepository(),
            settings_store,
            notifications,
            config,
            clock,
        )
        dispatcher = DispatchService(
            queue,
            notification_store,
            delivery_log,
            gateways,
            config,
            clock,
            devices=device_store,
            worker_id=worker_id,
        )
        worker = DispatchWorker(dispatcher, poll_interval=config.poll_interval)
        notifications.set_dispatch_trigger(worker.trigger)

        return cls(
            config=config,
            notifications=notifications,
            templates=templates,
            rules=RuleEngine(
                rule_store or InMemoryRuleRepository(),
                notification_store,
                templates,
                clock,
            ),
            campaigns=CampaignService(
                campaign_store or InMemoryCampaignRepository(),
                notifications,
                notification_store,
                audience,
                config,
                clock,
            ),
            devices=DeviceService(device_store, clock),
            settings=SettingsService(settings_store, config, clock),
            dispatcher=dispatcher,
            worker=worker,
            gateways=gateways,
        )
