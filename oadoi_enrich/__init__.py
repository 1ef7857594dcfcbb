"""Open access enrichment of publication exports via the oaDOI API.

The package exposes the building blocks of the enrichment pipeline such as
``oadoi_client``, ``dispatcher`` and ``writer`` together with the
``pipeline`` orchestrator that wires them for each input file.
"""

__all__ = [
    "admission",
    "channel",
    "config",
    "discovery",
    "dispatcher",
    "http_client",
    "logging_utils",
    "metadata",
    "models",
    "oadoi_client",
    "pipeline",
    "record_parser",
    "registry_links",
    "writer",
]
