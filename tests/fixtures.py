"""Helpers shared across the test suite."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from oadoi_enrich.models import EnrichmentResult, ResponseBody


def publication_line(
    record_id: str,
    dois: Sequence[str] = (),
    *,
    record_type: str = "journalArticle",
    attachments: Iterable[Mapping[str, Any]] = (),
    other_identifiers: Sequence[tuple[str, str]] = (("isbn", "978-3-16-148410-0"),),
) -> str:
    """Render one line of a publication export."""

    identifiers = [{"scheme": "doi", "value": doi} for doi in dois]
    identifiers.extend(
        {"scheme": scheme, "value": value} for scheme, value in other_identifiers
    )
    payload = {
        "__id__": record_id,
        "type": record_type,
        "identifier": identifiers,
        "attachment": list(attachments),
        "title": {"en": f"Title of {record_id}"},
    }
    return json.dumps(payload)


class RecordingClient:
    """Lookup stub recording calls and the number of concurrent lookups."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def lookup(self, identifier: str) -> EnrichmentResult:
        with self._lock:
            self.calls.append(identifier)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return EnrichmentResult(
                http_status="200 OK",
                body=ResponseBody(doi=identifier, is_oa=True, title=f"T {identifier}"),
            )
        finally:
            with self._lock:
                self.active -= 1
