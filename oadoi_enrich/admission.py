"""Fixed-capacity permit pool bounding concurrent API calls.

The :class:`AdmissionGate` is created per input file and shared by all of its
dispatch units.  A unit must hold a permit for the duration of a lookup, so
no more than ``capacity`` lookups are ever in flight for that file.  The
:meth:`AdmissionGate.permit` context manager is the preferred way to use the
gate because it releases the permit on every exit path.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class GateError(RuntimeError):
    """Raised when the acquire/release protocol of the gate is violated."""


class GateClosedError(GateError):
    """Raised when acquiring a permit from a closed gate."""


class AdmissionGate:
    """Counting semaphore with bookkeeping of permits currently held.

    Parameters
    ----------
    capacity:
        Maximum number of permits that can be held at once.  Must be at
        least ``1``.

    Raises
    ------
    ValueError
        If ``capacity`` is smaller than ``1``.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            msg = f"capacity must be at least 1, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._semaphore = threading.Semaphore(capacity)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0
        self._acquired_total = 0
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Number of permits currently held."""

        with self._lock:
            return self._in_flight

    @property
    def available(self) -> int:
        """Number of permits that can be acquired without blocking."""

        with self._lock:
            return self.capacity - self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of permits held simultaneously so far."""

        with self._lock:
            return self._peak

    @property
    def acquired_total(self) -> int:
        with self._lock:
            return self._acquired_total

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def acquire(self) -> None:
        """Block until a permit is available and take it.

        Raises
        ------
        GateClosedError
            If the gate was closed before or while waiting.
        """

        if self.closed:
            raise GateClosedError("admission gate is closed")
        self._semaphore.acquire()
        with self._lock:
            if self._closed:
                self._semaphore.release()
                raise GateClosedError("admission gate is closed")
            self._in_flight += 1
            self._acquired_total += 1
            if self._in_flight > self._peak:
                self._peak = self._in_flight

    def release(self) -> None:
        """Return a permit, waking at most one waiting unit.

        Raises
        ------
        GateError
            If no permit is currently held.
        """

        with self._lock:
            if self._in_flight == 0:
                raise GateError("release() called without a matching acquire()")
            self._in_flight -= 1
        self._semaphore.release()

    @contextmanager
    def permit(self) -> Iterator[None]:
        """Hold one permit for the duration of the ``with`` block."""

        self.acquire()
        try:
            yield
        finally:
            self.release()

    def close(self) -> None:
        """Refuse further acquisitions.

        Permits still held at this point indicate a unit that never released
        its permit; they are reported but not reclaimed.
        """

        with self._lock:
            self._closed = True
            leaked = self._in_flight
        if leaked:
            LOGGER.warning("Admission gate closed with %d permit(s) still held", leaked)
        LOGGER.debug(
            "Admission gate closed after %d acquisition(s), peak concurrency %d/%d",
            self.acquired_total,
            self.peak_in_flight,
            self.capacity,
        )


__all__ = ["AdmissionGate", "DEFAULT_CAPACITY", "GateClosedError", "GateError"]
