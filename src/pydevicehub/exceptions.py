"""Custom exception hierarchy for pydevicehub."""

from __future__ import annotations


class DeviceHubError(Exception):
    """Base exception for all pydevicehub errors."""


class DeviceHubConfigError(DeviceHubError):
    """Invalid or missing configuration."""


class ValidationError(DeviceHubError, ValueError):
    """A mutating call was rejected before touching any state.

    Raised when the device identity is missing or empty.  The store is
    left exactly as it was and nothing is published.
    """

    def __init__(self, message: str, *, field: str = "deviceId") -> None:
        self.field = field
        super().__init__(message)


class UnknownCategoryError(DeviceHubError):
    """A submission addressed a category the hub does not know.

    Non-fatal: the store ignores unknown categories.  Only raised by
    :func:`pydevicehub.state.events.resolve_category` in strict mode.
    """

    def __init__(self, category: object) -> None:
        self.category = category
        super().__init__(f"Unknown category: {category!r}")


class MalformedRecordError(DeviceHubError):
    """A record failed the type-shape checks for its category."""

    def __init__(self, message: str, *, category: str = "") -> None:
        self.category = category
        super().__init__(message)


class SubscriptionClosedError(DeviceHubError):
    """An operation was attempted on a closed subscription."""


class SubscriptionOverflowError(DeviceHubError):
    """A bounded subscription dropped events; the stream has a gap.

    The observer must reconnect to obtain a fresh snapshot.
    """

    def __init__(self, message: str, *, dropped: int = 0) -> None:
        self.dropped = dropped
        super().__init__(message)
