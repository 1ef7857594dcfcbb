"""Fan-out of per-line enrichment work onto a thread pool.

Algorithm Notes
---------------
1. :meth:`FanOutDispatcher.dispatch` submits one unit of work per non-blank
   input line to the executor and returns immediately after the last line was
   submitted.
2. A unit parses its line.  Lines that fail to parse are logged and dropped.
3. For every DOI identifier of the record, in input order, the unit acquires
   an admission permit, performs the lookup and releases the permit.  Lookups
   of one record are therefore sequential while lookups of different records
   run concurrently, bounded by the gate.
4. The completed :class:`EnrichedRecord` is published to the results channel.
5. :meth:`FanOutDispatcher.wait` blocks until every submitted unit finished
   and returns the aggregated :class:`DispatchStats`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from .admission import AdmissionGate
from .channel import ResultsChannel
from .models import EnrichedRecord, EnrichmentResult
from .record_parser import RecordParseError, parse_record

LOGGER = logging.getLogger(__name__)


class LookupClient(Protocol):
    def lookup(self, identifier: str) -> EnrichmentResult: ...


@dataclass
class DispatchStats:
    """Counters collected while dispatching one input file."""

    lines: int = 0
    records: int = 0
    parse_failures: int = 0
    records_without_doi: int = 0
    lookups: int = 0
    unit_failures: int = 0


class FanOutDispatcher:
    """Launch one unit of work per input line.

    Parameters
    ----------
    client:
        Object performing the per-DOI lookup, usually an
        :class:`~oadoi_enrich.oadoi_client.OadoiClient`.
    gate:
        Admission gate bounding the number of concurrent lookups.
    channel:
        Destination of the completed records.
    executor:
        Executor running the units.  Its worker count should be at least the
        capacity of ``gate`` for the gate to be the limiting factor.
    source:
        Label used in log messages, typically the input file name.
    progress_callback:
        Optional callable invoked with ``1`` after each finished unit.
    """

    def __init__(
        self,
        client: LookupClient,
        gate: AdmissionGate,
        channel: ResultsChannel[EnrichedRecord],
        executor: Executor,
        *,
        source: str = "<input>",
        progress_callback: Callable[[int], None] | None = None,
    ) -> None:
        self._client = client
        self._gate = gate
        self._channel = channel
        self._executor = executor
        self._source = source
        self._progress_callback = progress_callback
        self._futures: dict[Future[None], int] = {}
        self._stats = DispatchStats()
        self._stats_lock = threading.Lock()

    def dispatch(self, lines: Iterable[bytes | str]) -> int:
        """Submit one unit per non-blank line of ``lines``.

        Returns the number of units submitted by this call.
        """

        submitted = 0
        for line_number, line in enumerate(lines, start=1):
            with self._stats_lock:
                self._stats.lines += 1
            if not line.strip():
                continue
            future = self._executor.submit(self._run_unit, line_number, line)
            self._futures[future] = line_number
            submitted += 1
        LOGGER.debug("Dispatched %d unit(s) for %s", submitted, self._source)
        return submitted

    def wait(self) -> DispatchStats:
        """Block until all submitted units have finished."""

        for future in as_completed(list(self._futures)):
            line_number = self._futures[future]
            try:
                future.result()
            except Exception:
                LOGGER.exception(
                    "Unexpected failure processing line %d of %s",
                    line_number,
                    self._source,
                )
                with self._stats_lock:
                    self._stats.unit_failures += 1
        self._futures.clear()
        with self._stats_lock:
            return DispatchStats(**vars(self._stats))

    def _run_unit(self, line_number: int, line: bytes | str) -> None:
        try:
            self._enrich_line(line_number, line)
        finally:
            if self._progress_callback is not None:
                self._progress_callback(1)

    def _enrich_line(self, line_number: int, line: bytes | str) -> None:
        try:
            record = parse_record(line)
        except RecordParseError as exc:
            LOGGER.warning(
                "Skipping line %d of %s: invalid publication record: %s",
                line_number,
                self._source,
                exc,
            )
            with self._stats_lock:
                self._stats.parse_failures += 1
            return

        results: list[EnrichmentResult] = []
        for doi in record.doi_values():
            with self._gate.permit():
                result = self._client.lookup(doi)
            results.append(result)

        with self._stats_lock:
            self._stats.records += 1
            self._stats.lookups += len(results)
            if not results:
                self._stats.records_without_doi += 1
        if not results:
            LOGGER.debug(
                "Record %s on line %d of %s has no DOI identifier",
                record.id,
                line_number,
                self._source,
            )

        self._channel.put(EnrichedRecord(record=record, results=tuple(results)))


__all__ = ["DispatchStats", "FanOutDispatcher", "LookupClient"]
