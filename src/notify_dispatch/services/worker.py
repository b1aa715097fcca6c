"""DispatchWorker: standing loop around ``DispatchService.process_queue``."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from ..ports.worker import IBackgroundWorker

if TYPE_CHECKING:
    from .dispatch import DispatchReport, DispatchService

logger = logging.getLogger("notify_dispatch.worker")


class DispatchWorker(IBackgroundWorker):
    """Runs a dispatch pass every ``poll_interval`` seconds.

    Call :meth:`trigger` to wake it immediately (``NotificationService``
    does so after enqueueing when wired with ``set_dispatch_trigger``).
    """

    def __init__(self, service: DispatchService, poll_interval: float = 30.0) -> None:
        self._service = service
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._trigger = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        """Wake the worker immediately."""
        self._trigger.set()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("DispatchWorker started (poll_interval=%.1fs)", self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        self._trigger.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._task, timeout=5.0)
            self._task = None
        logger.info("DispatchWorker stopped")

    async def run_once(self) -> DispatchReport:
        """Execute a single pass (useful in tests)."""
        return await self._service.process_queue()

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self._service.process_queue()
            except Exception:
                logger.exception("DispatchWorker error")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    self._trigger.wait(), timeout=self._poll_interval
                )
            self._trigger.clear()
