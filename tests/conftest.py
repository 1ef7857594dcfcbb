from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Sequence

import pytest

# Ensure the package and the shared test helpers are importable.
ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = ROOT / "tests"
for path in (ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fixtures import RecordingClient  # noqa: E402


@pytest.fixture()
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture()
def export_file(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing export lines to a file in ``tmp_path``."""

    def _write(
        lines: Sequence[str], name: str = "test-Publication-export.json"
    ) -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
