"""Build SHERPA/RoMEO journal policy links from ISSN lists."""

from __future__ import annotations

SHERPA_ROMEO_URL = "http://www.sherpa.ac.uk/romeo/issn/"


def _normalise_issn(issn: str) -> str:
    """Insert the hyphen into compact eight character ISSNs."""

    if len(issn) == 8 and "-" not in issn:
        return f"{issn[:4]}-{issn[4:]}"
    return issn


def make_registry_link(issns: str) -> str:
    """Map a comma separated ISSN list to comma separated SHERPA/RoMEO links.

    >>> make_registry_link("12345678")
    'http://www.sherpa.ac.uk/romeo/issn/1234-5678/'
    """

    if not issns:
        return ""
    links = [
        f"{SHERPA_ROMEO_URL}{_normalise_issn(segment)}/"
        for segment in (part.strip() for part in issns.split(","))
        if segment
    ]
    return ",".join(links)


__all__ = ["SHERPA_ROMEO_URL", "make_registry_link"]
