"""Helpers for writing ``.meta.yaml`` sidecars next to CSV outputs."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

import yaml  # type: ignore[import-untyped]

LOGGER = logging.getLogger(__name__)


def _file_sha256(path: Path, *, chunk_size: int = 1 << 20) -> str:
    """Compute the SHA-256 digest for ``path`` using streamed reads."""

    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            sha.update(chunk)
    return sha.hexdigest()


def write_meta_yaml(
    output_path: Path,
    *,
    command: str,
    config: Mapping[str, Any],
    row_count: int,
    column_count: int,
    inputs: list[str] | None = None,
    status: Literal["success", "error"] = "success",
    error: str | None = None,
    meta_path: Path | None = None,
) -> Path:
    """Write run metadata for ``output_path`` to ``<output_path>.meta.yaml``.

    Args:
        output_path: CSV file produced by the run.
        command: Command line that produced the file.
        config: Effective configuration of the run.
        row_count: Number of data rows written, excluding the header.
        column_count: Number of CSV columns.
        inputs: Input files that were processed.
        status: ``"success"`` or ``"error"``.
        error: Failure description when ``status`` is ``"error"``.
        meta_path: Optional override for the sidecar location.

    Returns:
        The path of the written sidecar.
    """

    target = meta_path or output_path.with_name(f"{output_path.name}.meta.yaml")
    target.parent.mkdir(parents=True, exist_ok=True)

    metadata: dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "command": command,
        "config": dict(config),
        "inputs": list(inputs or []),
        "output": str(output_path),
        "rows": row_count,
        "columns": column_count,
        "status": status,
    }
    if error:
        metadata["error"] = error
    metadata["sha256"] = _file_sha256(output_path) if output_path.exists() else None

    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(metadata, handle, allow_unicode=True, sort_keys=False)

    LOGGER.info("Metadata written to %s", target)
    return target


__all__ = ["write_meta_yaml"]
