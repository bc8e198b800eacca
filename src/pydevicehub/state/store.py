"""Concurrent in-memory event store.

This is the only component allowed to mutate device state.  Every
accepted mutation is published to the :class:`Broadcaster` exactly once,
after it is visible to readers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from pydevicehub._redact import redact_for_log
from pydevicehub.exceptions import ValidationError
from pydevicehub.models.device import DeviceRecordEntry, DeviceSummary
from pydevicehub.models.records import coerce_records
from pydevicehub.state.events import Category, EventKind, HubEvent, resolve_category
from pydevicehub.state.registry import DeviceRegistry
from pydevicehub.state.snapshot import DeviceSnapshot, Snapshot
from pydevicehub.sync.broadcaster import Broadcaster

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_device_id(device_id: Any) -> str:
    """Return the stripped device id or raise :class:`ValidationError`."""
    if not isinstance(device_id, str) or not device_id.strip():
        raise ValidationError("deviceId required")
    return device_id.strip()


def normalize_scope(device_id: str | None) -> str | None:
    """Strip an optional read scope; ``None`` means every device."""
    return device_id.strip() if device_id is not None else None


class EventStore:
    """Per-device, per-category append-only store with push notification.

    Mutations, sequence assignment and publishing happen under one commit
    lock, so broadcast order is the order in which mutations became
    visible and a snapshot is a consistent cut at a known sequence.
    Queries only take the per-log locks and never wait on each other.
    """

    def __init__(
        self,
        broadcaster: Broadcaster | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._broadcaster = broadcaster if broadcaster is not None else Broadcaster()
        self._clock = clock
        self._registry = DeviceRegistry(clock=clock)
        self._commit_lock = threading.Lock()
        self._sequence = 0

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    @property
    def sequence(self) -> int:
        """Sequence number of the last published event."""
        with self._commit_lock:
            return self._sequence

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, device_id: str) -> str:
        """Register *device_id* without storing anything; returns the normalized id."""
        normalized = normalize_device_id(device_id)
        with self._commit_lock:
            self._registry.ensure(normalized)
        return normalized

    def submit(self, device_id: str, category: Category | str, records: Any) -> HubEvent | None:
        """Append one record or a batch to a device's category log.

        Returns the published event, or ``None`` when nothing was stored
        (unknown category or empty batch).

        Raises
        ------
        ValidationError
            *device_id* is missing or empty.  Nothing is stored.
        MalformedRecordError
            A record failed the type-shape checks.  Nothing is stored.
        """
        normalized = normalize_device_id(device_id)
        resolved = resolve_category(category)
        if resolved is None:
            _logger.debug("Ignoring unknown category %r from device %s", category, normalized)
            return None

        batch = coerce_records(resolved, records)
        with self._commit_lock:
            device = self._registry.ensure(normalized)
            if not batch:
                return None
            stored = device.log(resolved).append_many(batch)
            event = self._publish_locked(
                EventKind.RECORDS,
                normalized,
                category=resolved,
                records=stored,
            )
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug(
                "Stored %d %s record(s) for %s seq=%d payload=%s",
                len(stored),
                resolved,
                normalized,
                event.sequence,
                redact_for_log(stored),
            )
        return event

    def merge_info(self, device_id: str, fields: Mapping[str, Any]) -> HubEvent:
        """Merge *fields* into the device info (last write wins per key)."""
        normalized = normalize_device_id(device_id)
        if not isinstance(fields, Mapping):
            raise TypeError(f"info fields must be a mapping, got {type(fields).__name__}")

        with self._commit_lock:
            device = self._registry.ensure(normalized)
            merged = device.merge_info(fields)
            event = self._publish_locked(
                EventKind.DEVICE_INFO,
                normalized,
                info=MappingProxyType(merged),
            )
        _logger.debug("Merged info for %s seq=%d keys=%s", normalized, event.sequence, sorted(fields))
        return event

    def reset(self) -> None:
        """Drop every device.  Sequence numbers keep increasing."""
        with self._commit_lock:
            self._registry.clear()
        _logger.debug("Store reset")

    def _publish_locked(
        self,
        kind: EventKind,
        device_id: str,
        *,
        category: Category | None = None,
        records: tuple[Any, ...] = (),
        info: Mapping[str, Any] | None = None,
    ) -> HubEvent:
        self._sequence += 1
        event = HubEvent(
            sequence=self._sequence,
            kind=kind,
            device_id=device_id,
            category=category,
            records=records,
            info=info,
            emitted_at=self._clock(),
        )
        self._broadcaster.publish(event)
        return event

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, category: Category | str, device_id: str | None = None) -> list[DeviceRecordEntry]:
        """Stored records of *category*, attributed to their device.

        With *device_id*, only that device's log (empty for unknown
        devices).  Without it, every device's log concatenated; per-device
        order is preserved, device order is unspecified.

        Raises
        ------
        UnknownCategoryError
            *category* is not one of the fixed categories.
        """
        resolved = resolve_category(category, strict=True)
        assert resolved is not None  # noqa: S101
        device_id = normalize_scope(device_id)
        if device_id is not None:
            device = self._registry.get(device_id)
            if device is None:
                return []
            return [DeviceRecordEntry(device.device_id, record) for record in device.log(resolved).snapshot()]

        entries: list[DeviceRecordEntry] = []
        for device in self._registry.records():
            entries.extend(DeviceRecordEntry(device.device_id, record) for record in device.log(resolved).snapshot())
        return entries

    def list_devices(self) -> list[DeviceSummary]:
        return [DeviceSummary(device_id=device.device_id, info=device.info()) for device in self._registry.records()]

    def device_ids(self) -> frozenset[str]:
        return self._registry.list()

    def snapshot(self, device_id: str | None = None) -> Snapshot:
        """Consistent copy of the whole store, or of one device when scoped.

        The snapshot contains exactly the mutations of events up to and
        including ``snapshot.sequence``.
        """
        device_id = normalize_scope(device_id)
        with self._commit_lock:
            if device_id is not None:
                scoped = self._registry.get(device_id)
                devices = [scoped] if scoped is not None else []
            else:
                devices = self._registry.records()
            built = {
                device.device_id: DeviceSnapshot.build(
                    device.device_id,
                    device.info(),
                    {category: device.log(category).snapshot() for category in Category},
                )
                for device in devices
            }
            return Snapshot(
                sequence=self._sequence,
                taken_at=self._clock(),
                devices=MappingProxyType(built),
                device_id=device_id,
            )
