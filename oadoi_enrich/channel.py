"""Closable multi-producer/single-consumer queue for enriched records."""

from __future__ import annotations

import queue
import threading
from typing import Generic, Iterator, TypeVar

_T = TypeVar("_T")

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when publishing to a channel that was already closed."""


class ResultsChannel(Generic[_T]):
    """Hand items from many dispatch units to a single consumer.

    ``maxsize`` bounds the number of buffered items; producers block in
    :meth:`put` while the buffer is full.  ``0`` means unbounded, as with
    :class:`queue.Queue`.  Iterating the channel yields items in arrival order
    and stops once :meth:`close` was called and every earlier item was
    consumed.
    """

    def __init__(self, maxsize: int = 0) -> None:
        if maxsize < 0:
            msg = f"maxsize must not be negative, got {maxsize}"
            raise ValueError(msg)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def put(self, item: _T) -> None:
        if self.closed:
            raise ChannelClosedError("cannot publish to a closed channel")
        self._queue.put(item)

    def close(self) -> None:
        """Signal that no more items will be published.

        Must only be called after every producer has finished; calling it
        twice is a no-op.
        """

        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[_T]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]


__all__ = ["ChannelClosedError", "ResultsChannel"]
