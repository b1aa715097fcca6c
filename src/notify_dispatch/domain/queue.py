"""Delivery queue items and the immutable delivery log."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..clock import utc_now
from ..delivery import NotificationChannel
from ..exceptions import InvalidStateError
from .enums import QueueItemStatus


class DeliveryQueueItem(BaseModel):
    """Work item for one (notification, channel) pair.

    Status transitions::

        QUEUED  → SENDING (claim)
        SENDING → SENT    (record_success)
        SENDING → QUEUED  (record_failure, retries left) | release
        SENDING → FAILED  (record_failure, budget spent) | fail_terminally
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    notification_id: str
    channel: NotificationChannel
    user_id: str | None = None
    status: QueueItemStatus = QueueItemStatus.QUEUED
    scheduled_at: datetime = Field(default_factory=utc_now)
    processed_at: datetime | None = None
    retry_count: int = 0
    max_retries: int = 3
    next_retry_at: datetime | None = None
    last_error: str | None = None
    external_id: str | None = None
    response: dict[str, Any] = Field(default_factory=dict)
    claimed_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def is_due(self, now: datetime) -> bool:
        if self.status != QueueItemStatus.QUEUED or self.scheduled_at > now:
            return False
        return self.next_retry_at is None or self.next_retry_at <= now

    def claim(self, worker_id: str | None, now: datetime) -> None:
        if self.status != QueueItemStatus.QUEUED:
            raise InvalidStateError(
                f"Cannot claim queue item in {self.status.value} state"
            )
        self.status = QueueItemStatus.SENDING
        self.claimed_by = worker_id
        self.updated_at = now

    def record_success(
        self,
        now: datetime,
        external_id: str | None = None,
        response: dict[str, Any] | None = None,
    ) -> None:
        self.status = QueueItemStatus.SENT
        self.processed_at = now
        self.external_id = external_id
        self.response = response or {}
        self.last_error = None
        self.updated_at = now

    def record_failure(self, error: str, now: datetime, backoff: timedelta) -> bool:
        """Count a failed attempt; re-queue with linear backoff while budget remains.

        Returns ``True`` when the item was re-queued.
        """
        self.retry_count = min(self.retry_count + 1, self.max_retries)
        self.last_error = error
        self.claimed_by = None
        self.updated_at = now
        if self.retry_count < self.max_retries:
            self.status = QueueItemStatus.QUEUED
            self.next_retry_at = now + backoff * self.retry_count
            return True
        self.status = QueueItemStatus.FAILED
        self.processed_at = now
        self.next_retry_at = None
        return False

    def release(self, now: datetime) -> None:
        """Return an abandoned claim to the queue without spending a retry."""
        if self.status != QueueItemStatus.SENDING:
            raise InvalidStateError(
                f"Cannot release queue item in {self.status.value} state"
            )
        self.status = QueueItemStatus.QUEUED
        self.last_error = "Claim expired"
        self.claimed_by = None
        self.updated_at = now

    def fail_terminally(self, error: str, now: datetime) -> None:
        """Fail without consuming retries (expired notification, no address)."""
        self.status = QueueItemStatus.FAILED
        self.last_error = error
        self.processed_at = now
        self.next_retry_at = None
        self.claimed_by = None
        self.updated_at = now


class DeliveryLogEntry(BaseModel):
    """Immutable record of one delivery attempt."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    notification_id: str
    queue_item_id: str
    channel: NotificationChannel
    status: QueueItemStatus
    user_id: str | None = None
    recipient: str | None = None
    external_id: str | None = None
    error_message: str | None = None
    provider_response: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = 0
    attempt: int = 1
    created_at: datetime = Field(default_factory=utc_now)
