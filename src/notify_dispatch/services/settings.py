"""SettingsService: per-user notification preferences."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..clock import utc_now
from ..config import DispatchConfig
from ..domain.commands import revalidate
from ..domain.settings import UserNotificationSettings
from ..exceptions import ValidationError

if TYPE_CHECKING:
    from ..clock import Clock
    from ..ports.storage import ISettingsRepository

logger = logging.getLogger("notify_dispatch.settings")

_READ_ONLY = frozenset({"user_id", "organization_id", "created_at", "updated_at"})


class SettingsService:
    def __init__(
        self,
        settings: ISettingsRepository,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._config = config or DispatchConfig()
        self._clock = clock

    async def get_settings(self, user_id: str) -> UserNotificationSettings | None:
        return await self._settings.get(user_id)

    async def update_settings(
        self, user_id: str, organization_id: str, changes: dict[str, Any]
    ) -> UserNotificationSettings:
        """Apply ``changes``, creating default settings on first use."""
        protected = sorted(_READ_ONLY & changes.keys())
        if protected:
            raise ValidationError({name: ["Field is read-only"] for name in protected})

        now = self._clock()
        current = await self._settings.get(user_id)
        if current is None:
            current = UserNotificationSettings(
                user_id=user_id,
                organization_id=organization_id,
                locale=self._config.primary_locale,
                created_at=now,
            )
        merged = current.model_dump() | changes | {"updated_at": now}
        updated = revalidate(UserNotificationSettings, merged)
        await self._settings.save(updated)
        logger.debug("Notification settings updated for user %s", user_id)
        return updated
