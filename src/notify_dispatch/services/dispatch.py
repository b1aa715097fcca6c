"""DispatchService: one pass over the delivery queue."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..clock import utc_now
from ..config import DispatchConfig
from ..correlation import correlation_scope, get_correlation_id
from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..domain.enums import NotificationStatus, QueueItemStatus
from ..domain.queue import DeliveryLogEntry
from ..exceptions import DeliveryFailure, GatewayNotRegisteredError
from ..template.renderer import localize

if TYPE_CHECKING:
    from ..clock import Clock
    from ..domain.notification import Notification
    from ..domain.queue import DeliveryQueueItem
    from ..gateways.registry import ChannelGatewayRegistry
    from ..ports.storage import (
        IDeliveryLog,
        IDeliveryQueue,
        IDeviceRepository,
        INotificationRepository,
    )

logger = logging.getLogger("notify_dispatch.dispatch")
attempt_log = logging.getLogger("notify_dispatch.delivery")


class ItemResult(str, Enum):
    SENT = "sent"
    RETRIED = "retried"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DispatchReport:
    """Counters for one ``process_queue`` pass."""

    fetched: int = 0
    claimed: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    released: int = 0

    def record(self, result: ItemResult) -> None:
        if result is ItemResult.SENT:
            self.sent += 1
        elif result is ItemResult.RETRIED:
            self.retried += 1
        elif result is ItemResult.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


def log_delivery_attempt(
    item: DeliveryQueueItem,
    outcome: DeliveryOutcome,
    attempt: int,
    duration_ms: float,
) -> None:
    """Emit one JSON line per gateway attempt."""
    entry = {
        "kind": "delivery",
        "channel": item.channel.value,
        "notification_id": item.notification_id,
        "queue_item_id": item.id,
        "attempt": attempt,
        "outcome": "sent" if outcome.success else "failed",
        "duration_ms": round(duration_ms, 2),
        "correlation_id": get_correlation_id(),
    }
    if outcome.error:
        entry["error"] = outcome.error
    attempt_log.info(json.dumps(entry))


class DispatchService:
    """Claims due queue items and hands them to channel gateways.

    Lifecycle per pass:
    0. Put ``sending`` items claimed longer than ``claim_timeout`` ago back
       in the queue.
    1. Fetch due ``queued`` items (oldest first, at most ``batch_size``).
    2. Claim each one atomically; items claimed elsewhere are skipped.
    3. Deliver claimed items concurrently, each gateway call under its own
       timeout.
    4. Record the outcome on the item, append a delivery log entry and roll
       the result up into the notification status. An exception raised while
       processing an item counts as a failed attempt for that item.

    Several services may run this against the same queue at once.
    """

    def __init__(
        self,
        queue: IDeliveryQueue,
        notifications: INotificationRepository,
        delivery_log: IDeliveryLog,
        gateways: ChannelGatewayRegistry,
        config: DispatchConfig | None = None,
        clock: Clock = utc_now,
        devices: IDeviceRepository | None = None,
        worker_id: str | None = None,
    ) -> None:
        self._queue = queue
        self._notifications = notifications
        self._log = delivery_log
        self._gateways = gateways
        self._config = config or DispatchConfig()
        self._clock = clock
        self._devices = devices
        self.worker_id = worker_id or f"dispatch-{uuid.uuid4().hex[:8]}"
        self._rollup_lock = asyncio.Lock()

    async def process_queue(self) -> DispatchReport:
        with correlation_scope():
            return await self._process_batch()

    async def _process_batch(self) -> DispatchReport:
        now = self._clock()
        released = await self._queue.release_stale(
            now - self._config.claim_timeout, now
        )
        if released:
            logger.warning(
                "Released %d queue item(s) with claims older than %s",
                released,
                self._config.claim_timeout,
            )
        candidates = await self._queue.fetch_due(now, self._config.batch_size)
        report = DispatchReport(fetched=len(candidates), released=released)
        if not candidates:
            return report

        claimed: list[DeliveryQueueItem] = []
        for item in candidates:
            if await self._queue.claim(item.id, self.worker_id, now):
                item.claim(self.worker_id, now)
                claimed.append(item)
        report.claimed = len(claimed)
        if not claimed:
            logger.debug("No queue items could be claimed (held by other workers)")
            return report

        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def run(item: DeliveryQueueItem) -> ItemResult:
            async with semaphore:
                try:
                    return await self._process_item(item)
                except Exception as exc:
                    await self._record_error(item, exc)
                    raise

        results = await asyncio.gather(
            *(run(i) for i in claimed), return_exceptions=True
        )
        for item, result in zip(claimed, results):
            if isinstance(result, ItemResult):
                report.record(result)
            elif isinstance(result, Exception):
                report.errors += 1
                logger.error(
                    "Queue item %s could not be processed: %s",
                    item.id,
                    result,
                    exc_info=result,
                )
            else:
                raise result

        logger.info(
            "Dispatch pass: %d claimed, %d sent, %d retried, %d failed",
            report.claimed,
            report.sent,
            report.retried,
            report.failed,
        )
        return report

    async def _process_item(self, item: DeliveryQueueItem) -> ItemResult:
        notification = await self._notifications.get(item.notification_id)
        now = self._clock()

        if notification is None:
            item.fail_terminally("Notification no longer exists", now)
            await self._queue.save(item)
            return ItemResult.SKIPPED
        if notification.status == NotificationStatus.CANCELLED:
            item.fail_terminally("Notification cancelled", now)
            await self._queue.save(item)
            return ItemResult.SKIPPED
        if (
            notification.is_expired(now)
            or notification.status == NotificationStatus.EXPIRED
        ):
            item.fail_terminally("expired", now)
            await self._queue.save(item)
            await self._rollup(notification.id, expire=True)
            return ItemResult.SKIPPED

        attempt = item.retry_count + 1
        addresses = await self._addresses_for(item.channel, notification)
        if not addresses:
            outcome = DeliveryOutcome.failed(
                f"Recipient has no {item.channel.value} address"
            )
            item.fail_terminally(outcome.error or "", now)
            await self._queue.save(item)
            await self._append_log(item, outcome, "", attempt, 0.0)
            await self._rollup(notification.id)
            return ItemResult.FAILED

        await self._mark_sending(notification.id)
        content = self._content_for(notification)
        start = time.monotonic()
        outcome = await self._deliver(item.channel, addresses, content)
        duration_ms = (time.monotonic() - start) * 1000

        now = self._clock()
        if outcome.success:
            item.record_success(now, outcome.external_id, outcome.response)
            result = ItemResult.SENT
        else:
            requeued = item.record_failure(
                outcome.error or "Unknown delivery error",
                now,
                self._config.retry_backoff,
            )
            result = ItemResult.RETRIED if requeued else ItemResult.FAILED
            if not requeued:
                logger.warning(
                    "Queue item %s (%s) failed after %d attempt(s): %s",
                    item.id,
                    item.channel.value,
                    item.retry_count,
                    item.last_error,
                )
        await self._queue.save(item)
        await self._append_log(item, outcome, ",".join(addresses), attempt, duration_ms)
        log_delivery_attempt(item, outcome, attempt, duration_ms)
        await self._rollup(notification.id)
        return result

    async def _record_error(self, item: DeliveryQueueItem, exc: Exception) -> None:
        """Count an exception raised while processing as a failed attempt.

        Only items still held in ``sending`` are touched. An item whose outcome
        was recorded before the error is left to the stale-claim sweep.
        """
        if item.status != QueueItemStatus.SENDING:
            return
        error = str(exc) or exc.__class__.__name__
        requeued = item.record_failure(error, self._clock(), self._config.retry_backoff)
        await self._queue.save(item)
        await self._append_log(
            item, DeliveryOutcome.failed(error), "", item.retry_count, 0.0
        )
        if not requeued:
            await self._rollup(item.notification_id)

    async def _deliver(
        self,
        channel: NotificationChannel,
        addresses: list[str],
        content: RenderedContent,
    ) -> DeliveryOutcome:
        """Send to every address; success when at least one accepts."""
        try:
            gateway = self._gateways.get(channel)
        except GatewayNotRegisteredError as exc:
            return DeliveryOutcome.failed(str(exc))

        first_success: DeliveryOutcome | None = None
        last_failure = DeliveryOutcome.failed("No delivery attempted")
        for address in addresses:
            try:
                outcome = await asyncio.wait_for(
                    gateway.send(channel, address, content),
                    timeout=self._config.gateway_timeout,
                )
            except asyncio.TimeoutError:
                outcome = DeliveryOutcome.failed(
                    f"Gateway timed out after {self._config.gateway_timeout}s"
                )
            except DeliveryFailure as exc:
                outcome = DeliveryOutcome.failed(exc.reason)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Gateway for %s raised unexpectedly", channel.value)
                outcome = DeliveryOutcome.failed(str(exc) or exc.__class__.__name__)
            if outcome.success:
                first_success = first_success or outcome
            else:
                last_failure = outcome
        return first_success or last_failure

    async def _addresses_for(
        self, channel: NotificationChannel, notification: Notification
    ) -> list[str]:
        recipient = notification.recipient
        if channel == NotificationChannel.IN_APP:
            return [notification.user_id or notification.id]
        if channel == NotificationChannel.EMAIL:
            candidates = [recipient.email]
        elif channel in (NotificationChannel.SMS, NotificationChannel.WHATSAPP):
            candidates = [recipient.phone]
        elif channel == NotificationChannel.TELEGRAM:
            candidates = [recipient.telegram_id]
        elif channel in (NotificationChannel.WEBHOOK, NotificationChannel.SLACK):
            candidates = [recipient.webhook_url]
        else:
            candidates = list(recipient.device_tokens)
            if self._devices is not None and notification.user_id:
                tokens = await self._devices.list_active_fcm_tokens(
                    notification.user_id
                )
                candidates.extend(t.token for t in tokens)
        return [c for c in dict.fromkeys(candidates) if c]

    @staticmethod
    def _content_for(notification: Notification) -> RenderedContent:
        localized = localize(notification.content, notification.recipient.locale)
        return RenderedContent(
            title=localized.title,
            body=localized.body,
            short_body=localized.short_body,
            html_body=localized.html_body,
            action_url=localized.action_url,
            image_url=localized.image_url,
            locale=localized.locale,
            data={
                "notification_id": notification.notification_id,
                "type": notification.type.value,
                "priority": notification.priority.value,
            },
        )

    async def _append_log(
        self,
        item: DeliveryQueueItem,
        outcome: DeliveryOutcome,
        recipient: str,
        attempt: int,
        duration_ms: float,
    ) -> None:
        await self._log.append(
            DeliveryLogEntry(
                organization_id=item.organization_id,
                notification_id=item.notification_id,
                queue_item_id=item.id,
                channel=item.channel,
                status=(
                    QueueItemStatus.SENT if outcome.success else QueueItemStatus.FAILED
                ),
                user_id=item.user_id,
                recipient=recipient or None,
                external_id=outcome.external_id,
                error_message=outcome.error,
                provider_response=outcome.response,
                duration_ms=int(duration_ms),
                attempt=attempt,
                created_at=self._clock(),
            )
        )

    async def _mark_sending(self, notification_id: str) -> None:
        async with self._rollup_lock:
            notification = await self._notifications.get(notification_id)
            if notification is None:
                return
            before = notification.status
            notification.mark_sending(self._clock())
            if notification.status != before:
                await self._notifications.save(notification)

    async def _rollup(self, notification_id: str, *, expire: bool = False) -> None:
        """Derive the notification status from its queue items.

        SENT once any channel succeeded; FAILED only when every item is
        terminally failed. Cancelled notifications keep their status.
        """
        async with self._rollup_lock:
            notification = await self._notifications.get(notification_id)
            if notification is None:
                return
            now = self._clock()
            before = notification.status
            items = await self._queue.list_for_notification(notification_id)
            if expire:
                notification.expire(now)
            elif any(i.status == QueueItemStatus.SENT for i in items):
                notification.mark_sent(now)
            elif items and all(i.status == QueueItemStatus.FAILED for i in items):
                errors = dict.fromkeys(i.last_error for i in items if i.last_error)
                notification.mark_failed("; ".join(errors) or "Delivery failed", now)
            if notification.status != before:
                await self._notifications.save(notification)
