from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests  # type: ignore[import-untyped]

from oadoi_enrich.http_client import DEFAULT_USER_AGENT, HttpClient, create_http_session


def test_create_http_session_sets_headers() -> None:
    session = create_http_session("custom-agent/2.0")

    assert session.headers["User-Agent"] == "custom-agent/2.0"
    assert session.headers["Accept"] == "application/json"
    assert create_http_session().headers["User-Agent"] == DEFAULT_USER_AGENT


def test_each_thread_receives_its_own_session() -> None:
    client = HttpClient()
    sessions: list[requests.Session] = []

    def worker() -> None:
        sessions.append(client.session)

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert client.session is client.session
    assert len({id(session) for session in sessions}) == 3
    client.close()


def test_get_performs_single_request_with_timeout(requests_mock) -> None:
    url = "https://example.org/resource"
    requests_mock.get(url, status_code=503, json={"status": "down"})

    with HttpClient(timeout=2.5) as client:
        response = client.get(url)

    assert response.status_code == 503
    assert requests_mock.call_count == 1
    assert requests_mock.last_request.timeout == 2.5
    assert requests_mock.last_request.headers["User-Agent"] == DEFAULT_USER_AGENT


def test_transport_errors_propagate(requests_mock) -> None:
    url = "https://example.org/resource"
    requests_mock.get(url, exc=requests.exceptions.ConnectTimeout)

    with HttpClient() as client, pytest.raises(requests.RequestException):
        client.get(url)
    assert requests_mock.call_count == 1


def test_shared_session_is_not_closed() -> None:
    shared = requests.Session()
    client = HttpClient(session=shared)

    assert client.session is shared
    client.close()
    assert client.session is shared


class _TrackingSession(requests.Session):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True
        super().close()


def test_sessions_of_finished_threads_are_closed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    created: list[_TrackingSession] = []

    def factory(user_agent: str | None = None) -> requests.Session:
        session = _TrackingSession()
        created.append(session)
        return session

    monkeypatch.setattr("oadoi_enrich.http_client.create_http_session", factory)
    client = HttpClient()

    for _ in range(3):
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: client.session, range(4)))
        assert client.open_sessions <= 4

    main_session = client.session

    assert client.open_sessions == 1
    assert all(session.closed for session in created if session is not main_session)
    client.close()
    assert main_session.closed
