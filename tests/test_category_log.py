from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

import pytest

from pydevicehub.exceptions import MalformedRecordError
from pydevicehub.models.records import ContactRecord, SmsRecord
from pydevicehub.state.events import Category
from pydevicehub.state.log import CategoryLog


def _dt(second: int) -> datetime:
    return datetime(2026, 1, 1, 0, 0, second, tzinfo=UTC)


def test_append_returns_new_length_and_stamps_records() -> None:
    log = CategoryLog(Category.SMS, clock=lambda: _dt(1))

    assert log.append(SmsRecord(body="a")) == 1
    assert log.append(SmsRecord(body="b")) == 2

    assert [record.timestamp for record in log.snapshot()] == [_dt(1), _dt(1)]


def test_server_timestamps_never_go_backwards() -> None:
    times = iter([_dt(10), _dt(5)])
    log = CategoryLog(Category.SMS, clock=lambda: next(times))

    log.append(SmsRecord(body="a"))
    log.append(SmsRecord(body="b"))

    first, second = log.snapshot()
    assert first.timestamp == _dt(10)
    assert second.timestamp == _dt(10)
    assert [first.body, second.body] == ["a", "b"]


def test_producer_timestamp_is_kept() -> None:
    log = CategoryLog(Category.SMS, clock=lambda: _dt(30))

    log.append(SmsRecord(body="a", timestamp=_dt(3)))

    assert log.snapshot()[0].timestamp == _dt(3)


def test_append_rejects_record_of_another_category() -> None:
    log = CategoryLog(Category.SMS)

    with pytest.raises(MalformedRecordError):
        log.append(ContactRecord(name="Ann"))  # type: ignore[arg-type]
    assert len(log) == 0


def test_append_many_rejects_whole_batch_on_bad_record() -> None:
    log = CategoryLog(Category.SMS)

    with pytest.raises(MalformedRecordError):
        log.append_many([SmsRecord(body="ok"), ContactRecord(name="Ann")])
    assert len(log) == 0


def test_snapshot_is_not_affected_by_later_appends() -> None:
    log = CategoryLog(Category.SMS)
    log.append(SmsRecord(body="a"))

    snapshot = log.snapshot()
    log.append(SmsRecord(body="b"))

    assert [record.body for record in snapshot] == ["a"]
    assert len(log) == 2


def test_concurrent_appenders_lose_nothing() -> None:
    log = CategoryLog(Category.SMS)
    writers, per_writer = 8, 200

    def write(writer: int) -> None:
        for i in range(per_writer):
            log.append(SmsRecord(body=f"{writer}-{i}"))

    with ThreadPoolExecutor(max_workers=writers) as pool:
        list(pool.map(write, range(writers)))

    bodies = [record.body for record in log.snapshot()]
    assert len(bodies) == writers * per_writer
    assert len(set(bodies)) == writers * per_writer
    for writer in range(writers):
        mine = [body for body in bodies if body is not None and body.startswith(f"{writer}-")]
        assert mine == [f"{writer}-{i}" for i in range(per_writer)]


def test_readers_never_observe_a_partial_batch() -> None:
    log = CategoryLog(Category.SMS)
    batch_size = 10
    done = threading.Event()
    observed: list[int] = []

    def write() -> None:
        for n in range(300):
            log.append_many([SmsRecord(body=f"{n}-{i}") for i in range(batch_size)])
        done.set()

    def read() -> None:
        while not done.is_set():
            observed.append(len(log.snapshot()))

    writer = threading.Thread(target=write)
    reader = threading.Thread(target=read)
    reader.start()
    writer.start()
    writer.join()
    reader.join()

    assert all(length % batch_size == 0 for length in observed)
    assert len(log) == 300 * batch_size
