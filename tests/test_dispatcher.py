from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from fixtures import RecordingClient, publication_line
from oadoi_enrich.admission import AdmissionGate
from oadoi_enrich.channel import ResultsChannel
from oadoi_enrich.dispatcher import FanOutDispatcher
from oadoi_enrich.models import EnrichedRecord, EnrichmentResult


def _run(
    lines: list[str],
    client: object,
    *,
    capacity: int = 5,
    workers: int = 8,
) -> tuple[list[EnrichedRecord], AdmissionGate, object]:
    gate = AdmissionGate(capacity)
    channel: ResultsChannel[EnrichedRecord] = ResultsChannel()
    with ThreadPoolExecutor(max_workers=workers) as executor:
        dispatcher = FanOutDispatcher(client, gate, channel, executor, source="test")
        dispatcher.dispatch(line.encode("utf-8") + b"\n" for line in lines)
        stats = dispatcher.wait()
    channel.close()
    gate.close()
    return list(channel), gate, stats


def test_each_parsed_record_is_published_with_one_result_per_doi(
    recording_client: RecordingClient,
) -> None:
    lines = [
        publication_line("a", ["10.1/a1", "10.1/a2", "10.1/a3"]),
        publication_line("b", ["10.1/b1"]),
        publication_line("c", []),
    ]

    records, gate, stats = _run(lines, recording_client)

    by_id = {item.record.id: item for item in records}
    assert set(by_id) == {"a", "b", "c"}
    assert [r.body.doi for r in by_id["a"].results] == ["10.1/a1", "10.1/a2", "10.1/a3"]
    assert len(by_id["b"].results) == 1
    assert by_id["c"].results == ()
    assert stats.records == 3
    assert stats.lookups == 4
    assert stats.records_without_doi == 1
    assert gate.in_flight == 0


def test_malformed_line_is_logged_and_skipped(
    recording_client: RecordingClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, "oadoi_enrich.dispatcher")
    lines = [
        publication_line("a", ["10.1/a"]),
        '{"__id__": "broken", ',
        publication_line("b", ["10.1/b"]),
    ]

    records, _, stats = _run(lines, recording_client)

    assert sorted(item.record.id for item in records) == ["a", "b"]
    assert stats.parse_failures == 1
    assert stats.lines == 3
    assert "line 2" in caplog.text


def test_blank_lines_are_not_dispatched(recording_client: RecordingClient) -> None:
    records, _, stats = _run(["", publication_line("a", ["10.1/a"]), "   "], recording_client)

    assert len(records) == 1
    assert stats.lines == 3
    assert stats.parse_failures == 0


def test_concurrency_ceiling_of_one_serialises_lookups() -> None:
    client = RecordingClient(delay=0.005)
    lines = [publication_line(f"r{i}", [f"10.1/{i}"]) for i in range(12)]

    _run(lines, client, capacity=1, workers=6)

    assert client.peak == 1
    assert len(client.calls) == 12


@pytest.mark.parametrize("capacity", [2, 3])
def test_concurrency_ceiling_is_respected(capacity: int) -> None:
    client = RecordingClient(delay=0.01)
    lines = [publication_line(f"r{i}", [f"10.1/{i}a", f"10.1/{i}b"]) for i in range(10)]

    _, gate, stats = _run(lines, client, capacity=capacity, workers=10)

    assert client.peak <= capacity
    assert gate.peak_in_flight <= capacity
    assert stats.lookups == 20


def test_lookups_of_one_record_are_sequential() -> None:
    active: set[str] = set()
    overlaps: list[str] = []
    lock = threading.Lock()

    class _Client:
        def lookup(self, identifier: str) -> EnrichmentResult:
            record_id = identifier.split("/")[1].split("-")[0]
            with lock:
                if record_id in active:
                    overlaps.append(record_id)
                active.add(record_id)
            threading.Event().wait(0.002)
            with lock:
                active.discard(record_id)
            return EnrichmentResult(http_status="200 OK")

    lines = [
        publication_line(f"r{i}", [f"10.1/r{i}-{n}" for n in range(3)]) for i in range(5)
    ]

    _run(lines, _Client(), capacity=5, workers=5)

    assert overlaps == []


def test_unexpected_unit_failure_is_logged_and_releases_permit(
    caplog: pytest.LogCaptureFixture,
) -> None:
    class _FailingClient:
        def lookup(self, identifier: str) -> EnrichmentResult:
            raise RuntimeError("unexpected")

    caplog.set_level(logging.ERROR, "oadoi_enrich.dispatcher")

    records, gate, stats = _run([publication_line("a", ["10.1/a"])], _FailingClient())

    assert records == []
    assert stats.unit_failures == 1
    assert gate.in_flight == 0
    assert "Unexpected failure processing line 1" in caplog.text


def test_progress_callback_counts_units(recording_client: RecordingClient) -> None:
    updates: list[int] = []
    lock = threading.Lock()

    def _progress(count: int) -> None:
        with lock:
            updates.append(count)

    gate = AdmissionGate(2)
    channel: ResultsChannel[EnrichedRecord] = ResultsChannel()
    with ThreadPoolExecutor(max_workers=2) as executor:
        dispatcher = FanOutDispatcher(
            recording_client, gate, channel, executor, progress_callback=_progress
        )
        dispatcher.dispatch([publication_line("a", ["10.1/a"]), "{bad"])
        dispatcher.wait()

    assert sum(updates) == 2
