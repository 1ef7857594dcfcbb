"""Serialise enriched records into CSV rows.

A :class:`CsvSink` wraps the shared output stream and serialises access to
it, while one :class:`ResultCollector` per input file drains that file's
results channel into the sink.  Rows belonging to the same record are always
written together; the order of records follows their arrival on the channel
and is therefore not deterministic between runs.
"""

from __future__ import annotations

import csv
import logging
import threading
from dataclasses import dataclass
from typing import IO, Iterable, List, Sequence, Tuple

from .channel import ResultsChannel
from .models import Attachment, EnrichedRecord
from .registry_links import make_registry_link

LOGGER = logging.getLogger(__name__)

OUTPUT_COLUMNS: List[str] = [
    "API - Available OA",
    "Artudis - Available OA",
    "Artudis - Best Type OA",
    "Artudis - ID",
    "API - Best OA Location URL",
    "API - Best OA Location Version",
    "Artudis - Publication Type",
    "API - HTTP Response Status",
    "API - JSON Decode Error",
    "API - GET Error",
    "API - DOI",
    "API - Title",
    "API - SHERPA/RoMEO Links",
]

MISSING_VERSION = "missing"

# Failures of the output stream: I/O errors, encoding errors such as
# ``UnicodeEncodeError`` on a narrow stdout, writes to a closed file.
WRITE_ERRORS: Tuple[type[Exception], ...] = (OSError, ValueError, csv.Error)

ATTACHMENT_TYPE_RANK = {
    MISSING_VERSION: 0,
    "other": 1,
    "submittedManuscript": 2,
    "acceptedManuscript": 3,
    "finalVersion": 4,
}


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def derive_local_access(attachments: Iterable[Attachment]) -> Tuple[bool, str]:
    """Summarise the open access state recorded by the repository itself.

    Returns
    -------
    tuple[bool, str]
        Whether any attachment is flagged open access, and the attachment
        type with the highest rank among the open access attachments
        (``"missing"`` when there is none).  Unknown types rank like
        ``"missing"`` and an equal rank never replaces an earlier find.
    """

    open_access = False
    best = MISSING_VERSION
    for attachment in attachments:
        if not attachment.is_open_access:
            continue
        open_access = True
        rank = ATTACHMENT_TYPE_RANK.get(attachment.type, 0)
        if rank > ATTACHMENT_TYPE_RANK[best]:
            best = attachment.type
    return open_access, best


def build_rows(enriched: EnrichedRecord) -> List[List[str]]:
    """Return one CSV row per lookup result of ``enriched``."""

    record = enriched.record
    local_oa, local_version = derive_local_access(record.attachment)
    rows: List[List[str]] = []
    for result in enriched.results:
        body = result.body
        rows.append(
            [
                _format_bool(body.is_oa),
                _format_bool(local_oa),
                local_version,
                record.id,
                body.best_oa_location.url,
                body.best_oa_location.version,
                record.type,
                result.http_status,
                result.decode_error,
                result.transport_error,
                body.doi,
                body.title,
                make_registry_link(body.journal_issns),
            ]
        )
    return rows


class CsvSink:
    """Thread-safe CSV writer over a text stream shared by several files."""

    def __init__(
        self,
        stream: IO[str],
        *,
        columns: Sequence[str] = OUTPUT_COLUMNS,
        write_header: bool = True,
    ) -> None:
        self._stream = stream
        self._writer = csv.writer(stream, lineterminator="\n")
        self._lock = threading.Lock()
        self.columns = list(columns)
        self._write_header = write_header
        self._header_written = False
        self.rows_written = 0

    def write_rows(self, rows: Sequence[Sequence[str]]) -> None:
        """Write ``rows`` atomically with respect to other writers.

        The header row is emitted before the first data rows.

        Raises
        ------
        OSError, ValueError, csv.Error
            When the underlying stream rejects the write, e.g. because it
            cannot encode a value.
        """

        with self._lock:
            if self._write_header and not self._header_written:
                self._writer.writerow(self.columns)
                self._header_written = True
            self._writer.writerows(rows)
            self.rows_written += len(rows)

    def ensure_header(self) -> None:
        self.write_rows([])

    def flush(self) -> None:
        with self._lock:
            self._stream.flush()


@dataclass
class WriterStats:
    """Outcome of draining one results channel."""

    records: int = 0
    rows: int = 0
    failed: bool = False
    error: str | None = None


class ResultCollector:
    """Single consumer draining a results channel into a :class:`CsvSink`.

    After any failure the collector stops writing rows for its file but keeps
    consuming the channel until it is closed, so that producers never block
    on it and the failure is always reflected in :attr:`stats`.
    """

    def __init__(self, sink: CsvSink, *, source: str = "<input>") -> None:
        self._sink = sink
        self._source = source
        self.stats = WriterStats()

    def drain(self, channel: ResultsChannel[EnrichedRecord]) -> WriterStats:
        for enriched in channel:
            self.stats.records += 1
            if self.stats.failed:
                continue
            try:
                rows = build_rows(enriched)
                if rows:
                    self._sink.write_rows(rows)
            except WRITE_ERRORS as exc:
                self._fail(exc)
                continue
            except Exception as exc:
                LOGGER.exception("Unexpected writer failure for %s", self._source)
                self._fail(exc)
                continue
            self.stats.rows += len(rows)

        if not self.stats.failed:
            try:
                self._sink.flush()
            except WRITE_ERRORS as exc:
                self._fail(exc)
        return self.stats

    def _fail(self, exc: Exception) -> None:
        self.stats.failed = True
        self.stats.error = f"{type(exc).__name__}: {exc}"
        LOGGER.error(
            "error writing record to csv for %s: %s; remaining rows are discarded",
            self._source,
            exc,
        )


__all__ = [
    "ATTACHMENT_TYPE_RANK",
    "CsvSink",
    "MISSING_VERSION",
    "OUTPUT_COLUMNS",
    "ResultCollector",
    "WRITE_ERRORS",
    "WriterStats",
    "build_rows",
    "derive_local_access",
]
