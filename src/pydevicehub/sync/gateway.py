"""Snapshot-then-stream synchronization for new observers.

On connect the gateway subscribes first and snapshots second.  Any event
committed between the two steps is therefore both in the snapshot and in
the subscription; the connection skips streamed events whose sequence
the snapshot already covers, so nothing is lost and nothing is applied
twice.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from enum import StrEnum
from typing import Any

from pydevicehub.exceptions import SubscriptionClosedError, SubscriptionOverflowError
from pydevicehub.state.events import HubEvent
from pydevicehub.state.snapshot import Snapshot
from pydevicehub.state.store import EventStore, normalize_scope
from pydevicehub.sync.broadcaster import Broadcaster, Subscription

_logger = logging.getLogger(__name__)


class ObserverState(StrEnum):
    CONNECTING = "connecting"
    SNAPSHOTTING = "snapshotting"
    STREAMING = "streaming"
    DISCONNECTED = "disconnected"


class ObserverConnection:
    """One observer's view: a snapshot followed by a live event stream."""

    def __init__(self, gateway: SynchronizationGateway, *, device_id: str | None = None) -> None:
        self._gateway = gateway
        self._device_id = device_id
        self._state = ObserverState.CONNECTING
        self._subscription: Subscription | None = None
        self._snapshot: Snapshot | None = None

    def __repr__(self) -> str:
        return f"<ObserverConnection state={self._state} device_id={self._device_id!r}>"

    def __enter__(self) -> ObserverConnection:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def state(self) -> ObserverState:
        return self._state

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise SubscriptionClosedError("Connection has no snapshot yet")
        return self._snapshot

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def _open(self, subscription: Subscription, snapshot_fn: Callable[[str | None], Snapshot]) -> None:
        self._subscription = subscription
        self._state = ObserverState.SNAPSHOTTING
        self._snapshot = snapshot_fn(self._device_id)
        self._state = ObserverState.STREAMING

    def _accept(self, event: HubEvent) -> bool:
        # Device scoping is applied by the subscription before queueing.
        return self._snapshot is None or event.sequence > self._snapshot.sequence

    def _check_stream(self) -> Subscription:
        subscription = self._subscription
        if subscription is None or self._state != ObserverState.STREAMING:
            raise SubscriptionClosedError(f"Connection is {self._state}")
        if subscription.overflowed:
            raise SubscriptionOverflowError(
                "Observer fell behind and missed events; reconnect for a fresh snapshot",
                dropped=subscription.dropped,
            )
        return subscription

    def get(self, timeout: float | None = None) -> HubEvent | None:
        """Next streamed event; ``None`` once disconnected.

        Raises :class:`TimeoutError` when nothing arrived in time.
        """
        while True:
            if self._state == ObserverState.DISCONNECTED:
                return None
            event = self._check_stream().get(timeout)
            if event is None:
                self._mark_disconnected()
                return None
            if self._accept(event):
                return event

    async def aget(self) -> HubEvent | None:
        """Async variant of :meth:`get` for connections opened with a loop."""
        while True:
            if self._state == ObserverState.DISCONNECTED:
                return None
            event = await self._check_stream().aget()
            if event is None:
                self._mark_disconnected()
                return None
            if self._accept(event):
                return event

    def __iter__(self) -> Iterator[HubEvent]:
        while (event := self.get()) is not None:
            yield event

    async def __aiter__(self) -> AsyncIterator[HubEvent]:
        while (event := await self.aget()) is not None:
            yield event

    def _mark_disconnected(self) -> None:
        if self._state != ObserverState.DISCONNECTED:
            self._state = ObserverState.DISCONNECTED
            _logger.debug("Observer %s disconnected", self._subscription.id if self._subscription else "-")

    def close(self) -> None:
        """Unsubscribe and move to ``DISCONNECTED``.  Idempotent."""
        if self._subscription is not None:
            self._gateway.broadcaster.unsubscribe(self._subscription)
        self._mark_disconnected()


class SynchronizationGateway:
    """Connects observers to an :class:`EventStore`.

    By default observers receive the whole registry.  Passing
    ``device_id`` scopes both the snapshot and the stream to one device.
    """

    def __init__(self, store: EventStore) -> None:
        self._store = store

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def broadcaster(self) -> Broadcaster:
        return self._store.broadcaster

    def connect(
        self,
        *,
        device_id: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        maxsize: int | None = None,
    ) -> ObserverConnection:
        """Open a connection: subscribe, then snapshot, then stream.

        With *loop*, the connection is read with ``aget()``/``async for``.
        *device_id* is stripped the same way :meth:`EventStore.query` does.
        """
        device_id = normalize_scope(device_id)
        connection = ObserverConnection(self, device_id=device_id)
        subscription = self._store.broadcaster.subscribe(loop=loop, maxsize=maxsize, device_id=device_id)
        try:
            connection._open(subscription, self._store.snapshot)  # noqa: SLF001
        except Exception:
            self._store.broadcaster.unsubscribe(subscription)
            raise
        _logger.debug(
            "Observer %d connected device_id=%s snapshot_seq=%d devices=%d",
            subscription.id,
            device_id,
            connection.snapshot.sequence,
            len(connection.snapshot.devices),
        )
        return connection
