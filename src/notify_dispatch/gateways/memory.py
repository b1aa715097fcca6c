"""In-memory gateway for test assertions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..delivery import DeliveryOutcome, NotificationChannel, RenderedContent
from ..exceptions import DeliveryFailure
from ..ports.gateway import IChannelGateway

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of one gateway call."""

    channel: NotificationChannel
    address: str
    content: RenderedContent
    success: bool


class InMemoryGateway(IChannelGateway):
    """
    Test double that records every call.

    Channels listed in ``failing_channels`` report a failed outcome, or raise
    ``DeliveryFailure`` when ``raise_on_failure`` is set. ``delay`` makes each
    call sleep first, which lets tests exercise gateway timeouts.
    """

    def __init__(
        self,
        *,
        failing_channels: Iterable[NotificationChannel] = (),
        error: str = "simulated provider failure",
        raise_on_failure: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.failing_channels = set(failing_channels)
        self.error = error
        self.raise_on_failure = raise_on_failure
        self.delay = delay
        self.attempts: list[SentMessage] = []

    @property
    def sent_messages(self) -> list[SentMessage]:
        return [m for m in self.attempts if m.success]

    async def send(
        self,
        channel: NotificationChannel,
        address: str,
        content: RenderedContent,
    ) -> DeliveryOutcome:
        if self.delay:
            await asyncio.sleep(self.delay)
        failing = channel in self.failing_channels
        self.attempts.append(SentMessage(channel, address, content, not failing))
        if failing:
            if self.raise_on_failure:
                raise DeliveryFailure(channel.value, address, self.error)
            return DeliveryOutcome.failed(self.error)
        return DeliveryOutcome.sent(external_id=f"mem-{len(self.attempts)}")

    def assert_sent(
        self,
        address: str,
        channel: NotificationChannel,
        count: int = 1,
    ) -> None:
        """Helper for test assertions."""
        matches = [
            m
            for m in self.sent_messages
            if m.address == address and m.channel == channel
        ]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {address} via {channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        self.attempts.clear()
