"""Fan-out of hub events to live observers.

Each observer owns a :class:`Subscription` with its own queue, so a slow
or failing observer never stalls the publisher.  Thread consumers read
with :meth:`Subscription.get`; asyncio consumers get an
:class:`AsyncSubscription` fed through ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import deque
from collections.abc import AsyncIterator, Iterator

from pydevicehub.state.events import HubEvent

_logger = logging.getLogger(__name__)


class Subscription:
    """A registered observer sink backed by a thread-safe queue.

    ``maxsize`` bounds the number of undelivered events (``0`` means
    unbounded).  When full, new events are dropped and counted and the
    subscription reports itself as overflowed.  With ``device_id`` set,
    other devices' events are never offered to it, so they do not count
    against ``maxsize``.
    """

    def __init__(self, subscription_id: int, *, maxsize: int = 0, device_id: str | None = None) -> None:
        self._id = subscription_id
        self._device_id = device_id
        self._maxsize = maxsize
        self._cond = threading.Condition()
        self._events: deque[HubEvent] = deque()
        self._closed = False
        self._dropped = 0

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self._id} closed={self._closed} dropped={self._dropped}>"

    @property
    def id(self) -> int:
        return self._id

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def accepts(self, event: HubEvent) -> bool:
        return self._device_id is None or event.device_id == self._device_id

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def dropped(self) -> int:
        with self._cond:
            return self._dropped

    @property
    def overflowed(self) -> bool:
        return self.dropped > 0

    def _record_drop(self, event: HubEvent) -> None:
        # Caller holds self._cond.
        self._dropped += 1
        if self._dropped == 1:
            _logger.warning(
                "Subscription %d is full (maxsize=%d); dropping events from seq=%d",
                self._id,
                self._maxsize,
                event.sequence,
            )

    def deliver(self, event: HubEvent) -> bool:
        """Enqueue *event*; returns ``False`` when closed or full."""
        with self._cond:
            if self._closed:
                return False
            if self._maxsize and len(self._events) >= self._maxsize:
                self._record_drop(event)
                return False
            self._events.append(event)
            self._cond.notify()
            return True

    def get(self, timeout: float | None = None) -> HubEvent | None:
        """Next event, blocking up to *timeout* seconds.

        Returns ``None`` once the subscription is closed and drained.
        Raises :class:`TimeoutError` when nothing arrived in time.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._events or self._closed, timeout):
                raise TimeoutError(f"No event on subscription {self._id} within {timeout}s")
            if self._events:
                return self._events.popleft()
            return None

    async def aget(self) -> HubEvent | None:
        raise TypeError("Thread subscriptions are read with get(); subscribe with a loop for aget()")

    def drain(self) -> list[HubEvent]:
        """Pop every buffered event without blocking."""
        with self._cond:
            events = list(self._events)
            self._events.clear()
            return events

    def close(self) -> None:
        """Stop accepting events and wake blocked readers.  Idempotent."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[HubEvent]:
        while (event := self.get()) is not None:
            yield event


class AsyncSubscription(Subscription):
    """A subscription whose events are handed to an asyncio loop."""

    def __init__(
        self,
        subscription_id: int,
        *,
        loop: asyncio.AbstractEventLoop,
        maxsize: int = 0,
        device_id: str | None = None,
    ) -> None:
        super().__init__(subscription_id, maxsize=maxsize, device_id=device_id)
        self._loop = loop
        self._queue: asyncio.Queue[HubEvent | None] = asyncio.Queue()
        self._pending = 0
        self._finished = False

    def deliver(self, event: HubEvent) -> bool:
        with self._cond:
            if self._closed:
                return False
            if self._maxsize and self._pending >= self._maxsize:
                self._record_drop(event)
                return False
            self._pending += 1
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Loop is closed: the observer is gone.
            with self._cond:
                self._pending -= 1
                self._closed = True
            return False
        return True

    def get(self, timeout: float | None = None) -> HubEvent | None:
        raise TypeError("Async subscriptions are read with aget()")

    async def aget(self) -> HubEvent | None:
        """Next event; ``None`` once the subscription is closed and drained."""
        if self._finished:
            return None
        event = await self._queue.get()
        if event is None:
            self._finished = True
            return None
        with self._cond:
            self._pending -= 1
        return event

    def drain(self) -> list[HubEvent]:
        events: list[HubEvent] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is None:
                self._finished = True
                break
            events.append(event)
        with self._cond:
            self._pending -= len(events)
        return events

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
        try:
            # Queued after every accepted event, so readers drain first.
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            self._finished = True

    async def __aiter__(self) -> AsyncIterator[HubEvent]:
        while (event := await self.aget()) is not None:
            yield event


class Broadcaster:
    """Publishes hub events to every registered subscription.

    Publishes are serialized, so every subscription sees events in
    publish order.  The subscriber set has its own lock: subscribing and
    unsubscribing never wait on an in-flight fan-out.
    """

    def __init__(self, *, queue_size: int = 0) -> None:
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._publish_lock = threading.Lock()
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(
        self,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        maxsize: int | None = None,
        device_id: str | None = None,
    ) -> Subscription:
        """Register a new sink.

        With *loop*, returns an :class:`AsyncSubscription` delivering on
        that loop.  *maxsize* defaults to the broadcaster's queue size.
        With *device_id*, only that device's events are delivered.
        """
        size = self._queue_size if maxsize is None else maxsize
        with self._lock:
            subscription_id = next(self._ids)
            subscription: Subscription
            if loop is not None:
                subscription = AsyncSubscription(subscription_id, loop=loop, maxsize=size, device_id=device_id)
            else:
                subscription = Subscription(subscription_id, maxsize=size, device_id=device_id)
            self._subscribers[subscription_id] = subscription
        _logger.debug(
            "Subscription %d registered (async=%s maxsize=%d device_id=%s)",
            subscription_id,
            loop is not None,
            size,
            device_id,
        )
        return subscription

    def unsubscribe(self, handle: Subscription | int) -> bool:
        """Remove a sink.  Idempotent; returns whether it was registered."""
        subscription_id = handle.id if isinstance(handle, Subscription) else handle
        with self._lock:
            subscription = self._subscribers.pop(subscription_id, None)
        if subscription is None:
            if isinstance(handle, Subscription):
                handle.close()
            return False
        subscription.close()
        _logger.debug("Subscription %d removed", subscription_id)
        return True

    def publish(self, event: HubEvent) -> int:
        """Deliver *event* to every current sink; returns how many accepted it.

        A sink that fails or is gone is skipped; it never affects other
        sinks or the caller.
        """
        with self._publish_lock:
            with self._lock:
                sinks = list(self._subscribers.values())
            delivered = 0
            for sink in sinks:
                if not sink.accepts(event):
                    continue
                try:
                    if sink.deliver(event):
                        delivered += 1
                except Exception:
                    _logger.debug("Delivery of seq=%d to subscription %d failed", event.sequence, sink.id, exc_info=True)
            return delivered

    def close(self) -> None:
        """Unsubscribe every sink."""
        with self._lock:
            sinks = list(self._subscribers.values())
            self._subscribers.clear()
        for sink in sinks:
            sink.close()
