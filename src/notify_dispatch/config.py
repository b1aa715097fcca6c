"""Engine configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class DispatchConfig:
    """Tunables shared by the services.

    Attributes:
        batch_size: Maximum queue items pulled by one ``process_queue`` pass.
        max_retries: Attempts allowed per queue item before it fails terminally.
        retry_backoff: Unit of the linear backoff (``retry_count * retry_backoff``).
        gateway_timeout: Seconds a single gateway call may take.
        max_concurrency: Gateway calls in flight per pass.
        poll_interval: Seconds between passes of :class:`DispatchWorker`.
        claim_timeout: Age after which a ``sending`` item is treated as abandoned
            by its worker and put back in the queue.
        primary_locale: Last-resort locale for rendering.
        organization_locales: Default locale per organization id.
        campaign_batch_size: Recipients handled per campaign batch.
        default_page_size: Page size used by notification queries.
    """

    batch_size: int = 100
    max_retries: int = 3
    retry_backoff: timedelta = timedelta(seconds=60)
    gateway_timeout: float = 10.0
    max_concurrency: int = 10
    poll_interval: float = 30.0
    claim_timeout: timedelta = timedelta(minutes=5)
    primary_locale: str = "ru"
    organization_locales: Mapping[str, str] = field(default_factory=dict)
    campaign_batch_size: int = 100
    default_page_size: int = 20

    def organization_locale(self, organization_id: str | None) -> str | None:
        if organization_id is None:
            return None
        return self.organization_locales.get(organization_id)
