"""Exception hierarchy for the notification dispatch engine."""

from __future__ import annotations


class NotificationError(Exception):
    """Root exception for notify-dispatch."""


class NotFoundError(NotificationError):
    """Raised when a notification, template, rule, campaign or device is missing."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class TemplateNotFoundError(NotFoundError):
    """Raised when no active template exists for a code."""

    def __init__(self, code: str, organization_id: str | None = None) -> None:
        self.code = code
        self.organization_id = organization_id
        super().__init__("NotificationTemplate", code)


class InvalidStateError(NotificationError):
    """Raised when a lifecycle transition is not legal from the current state."""


class ValidationError(NotificationError):
    """Raised when an input fails validation.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class DeliveryFailure(NotificationError):
    """Raised when a channel gateway cannot hand a message to its provider.

    Always retryable; the dispatcher records it on the queue item.
    """

    def __init__(self, channel: str, recipient: str, reason: str) -> None:
        self.channel = channel
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Failed to deliver via {channel} to {recipient}: {reason}")


class ConfigurationError(NotificationError):
    """Raised when the engine is wired incorrectly or an audience cannot resolve."""


class GatewayNotRegisteredError(ConfigurationError):
    """Raised when no gateway is registered for a channel."""

    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(f"No gateway registered for channel {channel!r}")
