from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from pydevicehub.state.events import Category
from pydevicehub.state.registry import DeviceRecord, DeviceRegistry


def test_concurrent_ensure_yields_one_record_per_id() -> None:
    registry = DeviceRegistry()
    callers = 16
    barrier = threading.Barrier(callers)

    def ensure(index: int) -> DeviceRecord:
        barrier.wait()
        return registry.ensure("d1" if index % 2 else "d2")

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(ensure, range(callers)))

    d1 = [record for record in results if record.device_id == "d1"]
    d2 = [record for record in results if record.device_id == "d2"]
    assert all(record is d1[0] for record in d1)
    assert all(record is d2[0] for record in d2)
    assert registry.list() == frozenset({"d1", "d2"})
    assert len(registry) == 2


def test_new_device_starts_empty() -> None:
    device = DeviceRegistry().ensure("d1")

    assert device.info() == {}
    assert device.last_updated is None
    for category in Category:
        assert len(device.log(category)) == 0


def test_get_does_not_create() -> None:
    registry = DeviceRegistry()

    assert registry.get("ghost") is None
    assert "ghost" not in registry


def test_merge_info_is_additive_and_stamped() -> None:
    device = DeviceRecord("d1", clock=lambda: datetime(2026, 1, 1, tzinfo=UTC))

    device.merge_info({"model": "X"})
    merged = device.merge_info({"os": "Y", "model": "X2"})

    assert merged == {"model": "X2", "os": "Y", "last_updated": "2026-01-01T00:00:00Z"}
    assert device.last_updated == datetime(2026, 1, 1, tzinfo=UTC)


def test_info_copy_is_detached() -> None:
    device = DeviceRecord("d1")
    device.merge_info({"tags": ["a"]})

    info = device.info()
    info["tags"].append("b")

    assert device.info()["tags"] == ["a"]


def test_records_and_ids_agree() -> None:
    registry = DeviceRegistry()
    registry.ensure("d1")
    registry.ensure("d2")

    records = registry.records()

    assert isinstance(records, list)
    assert {record.device_id for record in records} == registry.list()
