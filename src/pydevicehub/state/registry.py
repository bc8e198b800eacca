"""Device registry.

Maps device identifiers to :class:`DeviceRecord` instances.  Exactly one
record ever exists per identifier for the lifetime of a registry.
"""

from __future__ import annotations

import builtins
import copy
import logging
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydevicehub.state.events import Category, isoformat
from pydevicehub.state.log import CategoryLog

_logger = logging.getLogger(__name__)

LAST_UPDATED_KEY = "last_updated"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DeviceRecord:
    """One tracked device: merged info plus one log per category."""

    def __init__(self, device_id: str, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._device_id = device_id
        self._clock = clock
        self._info_lock = threading.Lock()
        self._info: dict[str, Any] = {}
        self._last_updated: datetime | None = None
        self._logs: dict[Category, CategoryLog] = {category: CategoryLog(category, clock=clock) for category in Category}

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def last_updated(self) -> datetime | None:
        with self._info_lock:
            return self._last_updated

    def log(self, category: Category) -> CategoryLog:
        return self._logs[category]

    def _info_view(self) -> dict[str, Any]:
        view = copy.deepcopy(self._info)
        if self._last_updated is not None:
            view[LAST_UPDATED_KEY] = isoformat(self._last_updated)
        return view

    def merge_info(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Merge *fields* (last write wins per key) and stamp ``last_updated``.

        Returns the full merged info.
        """
        with self._info_lock:
            for key, value in fields.items():
                self._info[str(key)] = copy.deepcopy(value)
            self._info.pop(LAST_UPDATED_KEY, None)
            self._last_updated = self._clock()
            return self._info_view()

    def info(self) -> dict[str, Any]:
        """Detached copy of the merged info, including ``last_updated``."""
        with self._info_lock:
            return self._info_view()


class DeviceRegistry:
    """Thread-safe map of device id to :class:`DeviceRecord`."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._devices: dict[str, DeviceRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices

    def ensure(self, device_id: str) -> DeviceRecord:
        """Return the record for *device_id*, creating it on first reference."""
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                device = DeviceRecord(device_id, clock=self._clock)
                self._devices[device_id] = device
                _logger.debug("Registered device %s", device_id)
            return device

    def get(self, device_id: str) -> DeviceRecord | None:
        """Lookup without creation."""
        with self._lock:
            return self._devices.get(device_id)

    def list(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._devices)

    def records(self) -> builtins.list[DeviceRecord]:
        with self._lock:
            return list(self._devices.values())

    def clear(self) -> None:
        with self._lock:
            self._devices.clear()
