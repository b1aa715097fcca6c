"""DeviceService: web-push subscriptions and FCM tokens."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..clock import utc_now
from ..domain.devices import FcmToken, PushSubscription
from ..domain.enums import DeviceType
from ..exceptions import NotFoundError

if TYPE_CHECKING:
    from ..clock import Clock
    from ..ports.storage import IDeviceRepository

logger = logging.getLogger("notify_dispatch.devices")


class DeviceService:
    """Upserts by unique endpoint/token; unregistering only deactivates."""

    def __init__(self, devices: IDeviceRepository, clock: Clock = utc_now) -> None:
        self._devices = devices
        self._clock = clock

    async def subscribe_push(
        self,
        user_id: str,
        organization_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        now = self._clock()
        existing = await self._devices.get_push_subscription(endpoint)
        if existing is not None:
            subscription = existing.model_copy(
                update={
                    "user_id": user_id,
                    "organization_id": organization_id,
                    "p256dh": p256dh,
                    "auth": auth,
                    "user_agent": user_agent,
                    "is_active": True,
                    "last_used_at": now,
                }
            )
        else:
            subscription = PushSubscription(
                user_id=user_id,
                organization_id=organization_id,
                endpoint=endpoint,
                p256dh=p256dh,
                auth=auth,
                user_agent=user_agent,
                last_used_at=now,
                created_at=now,
            )
        await self._devices.save_push_subscription(subscription)
        return subscription

    async def unsubscribe_push(self, endpoint: str) -> None:
        subscription = await self._devices.get_push_subscription(endpoint)
        if subscription is None:
            raise NotFoundError("PushSubscription", endpoint)
        await self._devices.save_push_subscription(
            subscription.model_copy(update={"is_active": False})
        )

    async def register_fcm(
        self,
        user_id: str,
        organization_id: str,
        token: str,
        device_type: DeviceType = DeviceType.ANDROID,
        device_name: str | None = None,
        device_id: str | None = None,
    ) -> FcmToken:
        now = self._clock()
        existing = await self._devices.get_fcm_token(token)
        if existing is not None:
            registration = existing.model_copy(
                update={
                    "user_id": user_id,
                    "organization_id": organization_id,
                    "device_type": device_type,
                    "device_name": device_name,
                    "device_id": device_id,
                    "is_active": True,
                    "last_used_at": now,
                }
            )
        else:
            registration = FcmToken(
                user_id=user_id,
                organization_id=organization_id,
                token=token,
                device_type=device_type,
                device_name=device_name,
                device_id=device_id,
                last_used_at=now,
                created_at=now,
            )
            logger.debug(
                "FCM token registered for user %s (%s)", user_id, device_type.value
            )
        await self._devices.save_fcm_token(registration)
        return registration

    async def unregister_fcm(self, token: str) -> None:
        registration = await self._devices.get_fcm_token(token)
        if registration is None:
            raise NotFoundError("FcmToken", token)
        await self._devices.save_fcm_token(
            registration.model_copy(update={"is_active": False})
        )

    async def get_active_tokens(self, user_id: str) -> list[FcmToken]:
        return await self._devices.list_active_fcm_tokens(user_id)
