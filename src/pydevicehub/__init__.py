"""pydevicehub - In-memory device telemetry hub with real-time observer sync."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pydevicehub")
except PackageNotFoundError:
    __version__ = "0+local"
from pydevicehub.config import HubConfig
from pydevicehub.exceptions import (
    DeviceHubConfigError,
    DeviceHubError,
    MalformedRecordError,
    SubscriptionClosedError,
    SubscriptionOverflowError,
    UnknownCategoryError,
    ValidationError,
)
from pydevicehub.models import (
    AudioRecord,
    CallLogRecord,
    ContactRecord,
    DeviceRecordEntry,
    DeviceSummary,
    LocationRecord,
    Record,
    ScreenshotRecord,
    SmsRecord,
)
from pydevicehub.state.events import Category, EventKind, HubEvent
from pydevicehub.state.snapshot import DeviceSnapshot, Snapshot
from pydevicehub.state.store import EventStore
from pydevicehub.sync.broadcaster import AsyncSubscription, Broadcaster, Subscription
from pydevicehub.sync.gateway import ObserverConnection, ObserverState, SynchronizationGateway
from pydevicehub.sync.mirror import ObserverMirror

__all__ = [
    "__version__",
    "AsyncSubscription",
    "AudioRecord",
    "Broadcaster",
    "CallLogRecord",
    "Category",
    "ContactRecord",
    "DeviceHubConfigError",
    "DeviceHubError",
    "DeviceRecordEntry",
    "DeviceSnapshot",
    "DeviceSummary",
    "EventKind",
    "EventStore",
    "HubConfig",
    "HubEvent",
    "LocationRecord",
    "MalformedRecordError",
    "ObserverConnection",
    "ObserverMirror",
    "ObserverState",
    "Record",
    "ScreenshotRecord",
    "SmsRecord",
    "Snapshot",
    "Subscription",
    "SubscriptionClosedError",
    "SubscriptionOverflowError",
    "SynchronizationGateway",
    "UnknownCategoryError",
    "ValidationError",
]
