"""Locate the publication exports to process."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from .config import DEFAULT_INPUT_GLOB

LOGGER = logging.getLogger(__name__)


def find_input_files(
    names: Sequence[str | Path],
    *,
    directory: str | Path | None = None,
    pattern: str = DEFAULT_INPUT_GLOB,
) -> List[Path]:
    """Return the input files for a run.

    Explicitly named files are returned unchanged and in the given order,
    even when they do not exist; opening them is the pipeline's concern.
    Without names, ``directory`` (default: the current working directory) is
    searched for files matching ``pattern`` and the matches are returned
    sorted by name.
    """

    if names:
        return [Path(name) for name in names]

    search_dir = Path.cwd() if directory is None else Path(directory)
    LOGGER.info(
        "No file names provided, trying to find files matching %s in %s",
        pattern,
        search_dir,
    )
    matches = sorted(path for path in search_dir.glob(pattern) if path.is_file())
    LOGGER.debug("Found %d matching file(s)", len(matches))
    return matches


__all__ = ["find_input_files"]
