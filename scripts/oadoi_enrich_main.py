# ruff: noqa: E402
"""Command line wrapper around :mod:`oadoi_enrich.cli`.

Allows running the enrichment without installing the package::

    python scripts/oadoi_enrich_main.py --email team@example.org \
        2024-Publication-export.json > report.csv
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from oadoi_enrich.cli import main


if __name__ == "__main__":
    main()
