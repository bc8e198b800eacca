"""Append-only per-category record log.

A :class:`CategoryLog` is the storage primitive of the hub: one ordered
sequence of records for one device and one category.  Appends are
serialized by a per-log lock, so index position is the log's true order.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from pydevicehub.exceptions import MalformedRecordError
from pydevicehub.models._base import Record
from pydevicehub.models.records import record_model_for
from pydevicehub.state.events import Category


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CategoryLog:
    """Ordered, append-only sequence of records.

    Readers only ever see whole batches: :meth:`append_many` extends the
    backing list under the same lock :meth:`snapshot` copies it under.
    """

    def __init__(self, category: Category, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._category = category
        self._model = record_model_for(category)
        self._clock = clock
        self._lock = threading.Lock()
        self._records: list[Record] = []
        self._last_stamp: datetime | None = None

    @property
    def category(self) -> Category:
        return self._category

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _check(self, record: Record) -> None:
        if not isinstance(record, self._model):
            raise MalformedRecordError(
                f"{self._category} log only accepts {self._model.__name__}, got {type(record).__name__}",
                category=self._category.value,
            )

    def _stamp(self, record: Record) -> Record:
        if record.timestamp is not None:
            return record
        # Server stamps never go backwards within one log, even if the wall clock does.
        now = self._clock()
        if self._last_stamp is not None and now < self._last_stamp:
            now = self._last_stamp
        self._last_stamp = now
        return record.stamped(now)

    def append(self, record: Record) -> int:
        """Append *record*; returns the new length of the log."""
        self._check(record)
        with self._lock:
            self._records.append(self._stamp(record))
            return len(self._records)

    def append_many(self, records: Iterable[Record]) -> tuple[Record, ...]:
        """Append a batch atomically; returns the stored (stamped) records.

        The whole batch is checked before anything is appended.
        """
        batch = list(records)
        for record in batch:
            self._check(record)
        with self._lock:
            stored = tuple(self._stamp(record) for record in batch)
            self._records.extend(stored)
        return stored

    def snapshot(self) -> tuple[Record, ...]:
        """Immutable copy of every append completed before the call."""
        with self._lock:
            return tuple(self._records)
