"""Static audience resolver for tests and single-process setups."""

from __future__ import annotations

from ...domain.campaign import AudienceSelector, CampaignRecipient
from ...domain.enums import AudienceType
from ...ports.audience import IAudienceResolver


class StaticAudienceResolver(IAudienceResolver):
    """Resolves audiences from a fixed member directory.

    ``members`` maps organization id to ``(recipient, roles)`` pairs.
    """

    def __init__(
        self,
        members: dict[str, list[tuple[CampaignRecipient, set[str]]]] | None = None,
    ) -> None:
        self._members = members or {}

    def add_member(
        self, organization_id: str, recipient: CampaignRecipient, *roles: str
    ) -> None:
        self._members.setdefault(organization_id, []).append((recipient, set(roles)))

    async def resolve(
        self, organization_id: str, selector: AudienceSelector
    ) -> list[CampaignRecipient]:
        members = self._members.get(organization_id, [])
        if selector.type == AudienceType.USERS:
            known = {r.user_id: r for r, _ in members}
            return [
                known.get(uid) or CampaignRecipient(user_id=uid)
                for uid in dict.fromkeys(selector.user_ids)
            ]
        if selector.type == AudienceType.ROLES:
            roles = set(selector.roles)
            return [r for r, member_roles in members if member_roles & roles]
        if selector.type == AudienceType.FILTER:
            return [
                r
                for r, _ in members
                if all(getattr(r, k, None) == v for k, v in selector.filter.items())
            ]
        return [r for r, _ in members]

    async def estimate(self, organization_id: str, selector: AudienceSelector) -> int:
        return len(await self.resolve(organization_id, selector))
