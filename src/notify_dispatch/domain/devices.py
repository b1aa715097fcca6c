"""Registered push endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from ..clock import utc_now
from .enums import DeviceType


class PushSubscription(BaseModel):
    """Web-push subscription, unique by endpoint."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    organization_id: str
    endpoint: str
    p256dh: str
    auth: str
    user_agent: str | None = None
    is_active: bool = True
    last_used_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)


class FcmToken(BaseModel):
    """Firebase Cloud Messaging registration token, unique by token."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    organization_id: str
    token: str
    device_type: DeviceType = DeviceType.ANDROID
    device_name: str | None = None
    device_id: str | None = None
    is_active: bool = True
    last_used_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
