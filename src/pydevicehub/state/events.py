"""Hub events and the fixed category set.

Every committed store mutation produces exactly one :class:`HubEvent`.
Events are immutable values; the same instance is handed to every
subscriber.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydevicehub.exceptions import UnknownCategoryError

if TYPE_CHECKING:
    from pydevicehub.models.records import Record


class Category(StrEnum):
    CONTACTS = "contacts"
    SMS = "sms"
    CALLLOG = "calllog"
    LOCATION = "location"
    SCREENSHOT = "screenshot"
    AUDIO = "audio"


class EventKind(StrEnum):
    RECORDS = "records"
    DEVICE_INFO = "deviceinfo-update"


def resolve_category(value: Category | str, *, strict: bool = False) -> Category | None:
    """Return the canonical :class:`Category` for *value*.

    Unknown values yield ``None``, or raise :class:`UnknownCategoryError`
    when *strict* is set.
    """
    if isinstance(value, Category):
        return value
    try:
        return Category(str(value).strip().lower())
    except ValueError:
        if strict:
            raise UnknownCategoryError(value) from None
        return None


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class HubEvent:
    """A committed store mutation, as seen by observers.

    ``sequence`` is assigned under the store's commit lock and strictly
    increases in publish order, so an observer holding a snapshot can
    tell which events the snapshot already contains.
    """

    sequence: int
    kind: EventKind
    device_id: str
    category: Category | None = None
    records: tuple[Record, ...] = ()
    info: Mapping[str, Any] | None = None
    emitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        """Wire event name (``new-<category>`` or ``deviceinfo-update``)."""
        if self.kind == EventKind.DEVICE_INFO:
            return EventKind.DEVICE_INFO.value
        return f"new-{self.category}"

    @property
    def payload(self) -> Any:
        if self.kind == EventKind.DEVICE_INFO:
            return dict(self.info or {})
        return [record.to_dict() for record in self.records]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event": self.name,
            "deviceId": self.device_id,
            "category": self.category.value if self.category is not None else None,
            "payload": self.payload,
            "emittedAt": isoformat(self.emitted_at),
        }
