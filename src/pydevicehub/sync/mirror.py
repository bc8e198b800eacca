"""Observer-side replica of the store.

Applies a snapshot and then streamed events idempotently: an event whose
sequence has already been applied (because the snapshot contained it,
or it was delivered twice) is a no-op.
"""

from __future__ import annotations

import copy
from typing import Any

from pydevicehub.models._base import Record
from pydevicehub.models.device import DeviceRecordEntry
from pydevicehub.state.events import Category, EventKind, HubEvent
from pydevicehub.state.snapshot import Snapshot


class ObserverMirror:
    """Rebuilds the pull view from push data."""

    def __init__(self) -> None:
        self._sequence = 0
        self._info: dict[str, dict[str, Any]] = {}
        self._records: dict[str, dict[Category, list[Record]]] = {}

    @property
    def sequence(self) -> int:
        return self._sequence

    def _device(self, device_id: str) -> dict[Category, list[Record]]:
        logs = self._records.get(device_id)
        if logs is None:
            logs = {category: [] for category in Category}
            self._records[device_id] = logs
            self._info.setdefault(device_id, {})
        return logs

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        """Replace local state with *snapshot*."""
        self._info.clear()
        self._records.clear()
        for device_id, device in snapshot.devices.items():
            logs = self._device(device_id)
            self._info[device_id] = copy.deepcopy(dict(device.info))
            for category, records in device.records.items():
                logs[category] = list(records)
        self._sequence = snapshot.sequence

    def apply(self, event: HubEvent) -> bool:
        """Apply a streamed event; returns ``False`` if it was already applied."""
        if event.sequence <= self._sequence:
            return False
        logs = self._device(event.device_id)
        if event.kind == EventKind.DEVICE_INFO:
            self._info[event.device_id] = copy.deepcopy(dict(event.info or {}))
        elif event.category is not None:
            logs[event.category].extend(event.records)
        self._sequence = event.sequence
        return True

    def device_ids(self) -> frozenset[str]:
        return frozenset(self._records)

    def info(self, device_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._info.get(device_id, {}))

    def records(self, category: Category, device_id: str | None = None) -> list[DeviceRecordEntry]:
        """Same shape and semantics as :meth:`EventStore.query`."""
        if device_id is not None:
            logs = self._records.get(device_id)
            if logs is None:
                return []
            return [DeviceRecordEntry(device_id, record) for record in logs[category]]
        entries: list[DeviceRecordEntry] = []
        for dev_id, logs in self._records.items():
            entries.extend(DeviceRecordEntry(dev_id, record) for record in logs[category])
        return entries
