"""Immutable point-in-time copies of the store."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pydevicehub.models._base import Record
from pydevicehub.models.device import DeviceRecordEntry
from pydevicehub.state.events import Category, isoformat


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    device_id: str
    info: Mapping[str, Any]
    records: Mapping[Category, tuple[Record, ...]]

    @classmethod
    def build(
        cls,
        device_id: str,
        info: dict[str, Any],
        records: dict[Category, tuple[Record, ...]],
    ) -> DeviceSnapshot:
        return cls(
            device_id=device_id,
            info=MappingProxyType(info),
            records=MappingProxyType(records),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"info": dict(self.info)}
        for category in Category:
            out[category.value] = [record.to_dict() for record in self.records.get(category, ())]
        return out


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A value copy of the store.

    ``sequence`` is the sequence number of the last event whose mutation
    the snapshot contains; ``0`` for a store that never published.
    ``device_id`` is set when the snapshot was scoped to one device.
    """

    sequence: int
    taken_at: datetime
    devices: Mapping[str, DeviceSnapshot]
    device_id: str | None = None

    def device(self, device_id: str) -> DeviceSnapshot | None:
        return self.devices.get(device_id)

    def records(self, category: Category, device_id: str | None = None) -> list[DeviceRecordEntry]:
        """Same shape and semantics as :meth:`EventStore.query`."""
        if device_id is not None:
            device = self.devices.get(device_id)
            if device is None:
                return []
            return [DeviceRecordEntry(device_id, record) for record in device.records.get(category, ())]
        entries: list[DeviceRecordEntry] = []
        for dev_id, device in self.devices.items():
            entries.extend(DeviceRecordEntry(dev_id, record) for record in device.records.get(category, ()))
        return entries

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "takenAt": isoformat(self.taken_at),
            "deviceId": self.device_id,
            "devices": {dev_id: device.to_dict() for dev_id, device in self.devices.items()},
        }
