"""Asynchronous event streams with an explicit cancel handle."""

import asyncio
from typing import Callable, Generic, Protocol, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_END = object()


class IEventStream(Protocol[T]):
    """Single-consumer stream of events."""

    def cancel(self) -> None:
        """Consumer side: stop receiving and release the subscription."""
        ...

    def __aiter__(self) -> "IEventStream[T]":
        ...

    async def __anext__(self) -> T:
        ...


class EventStream(Generic[T]):
    """Unbounded single-consumer channel.

    The producer calls put()/put_nowait() and close() at end of stream.
    The consumer iterates with ``async for`` and may call cancel(), which
    ends the iteration and runs the on_cancel callback once.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def put_nowait(self, item: T) -> bool:
        """Enqueue an item. Returns False if the stream is already closed."""
        if self._closed:
            return False
        self._queue.put_nowait(item)
        return True

    async def put(self, item: T) -> bool:
        """Enqueue an item. Returns False if the stream is already closed."""
        return self.put_nowait(item)

    def close(self) -> None:
        """Producer side: signal end of stream."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)

    def cancel(self) -> None:
        """Consumer side: stop receiving and release the subscription."""
        if self._cancelled:
            return
        self._cancelled = True
        self.close()
        if self._on_cancel is not None:
            try:
                self._on_cancel()
            except Exception as e:
                logger.error("Error in stream cancel handler: %s", e, exc_info=True)

    def pending(self) -> int:
        """Number of queued items not yet consumed."""
        size = self._queue.qsize()
        return size - 1 if self._closed and size else size

    def __aiter__(self) -> "EventStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            # Keep the marker so later reads also end
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item


class EventBroadcaster(Generic[T]):
    """Fans published events out to every live subscriber stream."""

    def __init__(self) -> None:
        self._subscribers: list[EventStream[T]] = []

    def subscribe(self) -> EventStream[T]:
        """Create a new subscriber stream."""
        stream: EventStream[T] = EventStream()
        stream._on_cancel = lambda: self._discard(stream)
        self._subscribers.append(stream)
        return stream

    def publish(self, event: T) -> int:
        """Deliver event to all subscribers. Returns how many received it."""
        delivered = 0
        for stream in list(self._subscribers):
            if stream.put_nowait(event):
                delivered += 1
            else:
                self._discard(stream)
        return delivered

    def close(self) -> None:
        """End every subscriber stream."""
        for stream in self._subscribers:
            stream.close()
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

    def _discard(self, stream: EventStream[T]) -> None:
        if stream in self._subscribers:
            self._subscribers.remove(stream)
