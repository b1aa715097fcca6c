"""Campaign audience resolution port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.campaign import AudienceSelector, CampaignRecipient


@runtime_checkable
class IAudienceResolver(Protocol):
    """Turns an audience selector into concrete recipients."""

    async def resolve(
        self, organization_id: str, selector: AudienceSelector
    ) -> list[CampaignRecipient]: ...

    async def estimate(self, organization_id: str, selector: AudienceSelector) -> int:
        """Cheap count used when a campaign is created."""
        ...
