"""Thread-aware HTTP session holder for the enrichment workers.

This module exposes the :class:`HttpClient` which wraps :mod:`requests` for
the dispatch units of the pipeline.  Each worker thread lazily receives its
own :class:`requests.Session` because sessions are not safe to share between
threads; the client keeps track of every session it creates so that
:meth:`HttpClient.close` can release the pooled connections once a batch is
finished.

Algorithm Notes
---------------
1. The first request issued from a thread creates a session carrying the
   configured ``User-Agent`` header and stores it in thread-local storage.
   Sessions owned by threads that have since exited are closed at that
   point, since every input file runs on a new thread pool.
2. Every call performs exactly one request.  Transport errors propagate to
   the caller as :class:`requests.RequestException`; there is no retry layer.
3. Responses are returned as :class:`requests.Response` objects and are
   expected to be decoded by the caller.
"""

from __future__ import annotations

import logging
import threading
from threading import Lock
from types import TracebackType
from typing import Any

import requests  # type: ignore[import-untyped]

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "oadoi-enrich/1.0"


def create_http_session(user_agent: str | None = None) -> requests.Session:
    """Return a :class:`requests.Session` advertising ``user_agent``."""

    session = requests.Session()
    session.headers["User-Agent"] = user_agent or DEFAULT_USER_AGENT
    session.headers["Accept"] = "application/json"
    return session


class HttpClient:
    """A wrapper around :mod:`requests` handing out one session per thread.

    Args:
        timeout: Optional request timeout.  ``None`` keeps the transport
            default, which waits indefinitely.  A float applies to both the
            connect and read phases; a tuple is passed through as
            ``(connect, read)``.
        user_agent: ``User-Agent`` header sent with every request.
        session: Optional :class:`requests.Session` shared by all threads,
            mainly useful for tests or pre-configured adapters.
    """

    def __init__(
        self,
        *,
        timeout: float | tuple[float, float] | None = None,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self._thread_local = threading.local()
        self._session_lock = Lock()
        self._owned_sessions: dict[threading.Thread, requests.Session] = {}
        self._shared_session = session

    @property
    def session(self) -> requests.Session:
        """Return the thread-local :class:`requests.Session` instance.

        Creating a session also closes the sessions of threads that have
        exited, so the number of open sessions is bounded by the number of
        live worker threads even when every input file gets a fresh pool.
        """

        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = create_http_session(self.user_agent)
            self._thread_local.session = session
            with self._session_lock:
                stale = [
                    self._owned_sessions.pop(thread)
                    for thread in list(self._owned_sessions)
                    if not thread.is_alive()
                ]
                self._owned_sessions[threading.current_thread()] = session
            for old in stale:
                old.close()
            if stale:
                LOGGER.debug("Closed %d session(s) of finished threads", len(stale))
        return session

    @property
    def open_sessions(self) -> int:
        """Number of sessions created by this client and not yet closed."""

        with self._session_lock:
            return len(self._owned_sessions)

    def close(self) -> None:
        """Close any HTTP sessions owned by this client."""

        if self._shared_session is not None:
            return
        with self._session_lock:
            sessions = list(self._owned_sessions.values())
            self._owned_sessions.clear()
        for session in sessions:
            session.close()
        LOGGER.debug("Closed %d HTTP session(s)", len(sessions))
        self._thread_local = threading.local()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Perform a single ``GET`` request.

        Raises
        ------
        requests.RequestException
            On connection failures, timeouts and other transport errors.
            Non-2xx responses are returned unchanged.
        """

        kwargs.setdefault("timeout", self.timeout)
        return self.session.get(url, **kwargs)


__all__ = ["DEFAULT_USER_AGENT", "HttpClient", "create_http_session"]
