"""Command line interface for the oaDOI enrichment pipeline.

Example
-------
Enrich two exports and write the report to standard output::

    python -m oadoi_enrich --email team@example.org \
        2024-Publication-export.json 2025-Publication-export.json > report.csv

Without file names every ``*Publication-export.json`` file in the current
directory is processed.  Use ``--output`` to write the CSV to a file together
with a ``.meta.yaml`` sidecar::

    python -m oadoi_enrich --email team@example.org --httplimit 10 \
        --output report.csv --log-format json
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Callable, List, Sequence, TextIO

from tqdm.auto import tqdm

from .config import ConfigError, EnrichmentConfig, load_config
from .discovery import find_input_files
from .http_client import HttpClient
from .logging_utils import configure_logging
from .metadata import write_meta_yaml
from .oadoi_client import OadoiClient
from .pipeline import BatchSummary, EnrichmentPipeline
from .writer import OUTPUT_COLUMNS, WRITE_ERRORS, CsvSink

LOGGER = logging.getLogger("oadoi_enrich")

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "human"


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser of the ``oadoi-enrich`` command."""

    parser = argparse.ArgumentParser(
        prog="oadoi-enrich",
        description=(
            "Look up the DOIs of newline-delimited JSON publication exports "
            "in the oaDOI API and report open access status as CSV"
        ),
    )
    parser.add_argument(
        "files",
        nargs="*",
        help=(
            "Publication export files; defaults to *Publication-export.json "
            "in the current directory"
        ),
    )
    parser.add_argument("--email", help="Email to pass to the oaDOI API (required)")
    parser.add_argument(
        "--httplimit",
        "--concurrency",
        dest="concurrency",
        type=int,
        default=None,
        help="Number of HTTP requests that can run concurrently (default: 5)",
    )
    parser.add_argument(
        "--config", help="YAML configuration file with an 'enrichment' section"
    )
    parser.add_argument(
        "--output", help="Write the CSV to this file instead of standard output"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: wait indefinitely)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads running per-record work (default: 4 per HTTP permit)",
    )
    parser.add_argument(
        "--file-workers",
        type=int,
        default=None,
        help="Number of input files processed concurrently (default: 1)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=None,
        help="Capacity of the results queue; 0 means unbounded (default: 0)",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar per input file on standard error",
    )
    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        help="Logging level (e.g. INFO, DEBUG)",
    )
    parser.add_argument(
        "--log-format",
        default=DEFAULT_LOG_FORMAT,
        choices=["human", "json"],
        help="Logging output format",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> EnrichmentConfig:
    """Combine configuration file, environment and command line flags."""

    config = load_config(args.config)
    return config.with_overrides(
        email=args.email,
        concurrency=args.concurrency,
        timeout=args.timeout,
        workers=args.workers,
        file_workers=args.file_workers,
        queue_size=args.queue_size,
    )


def _progress_factory(
    bars: List[Any],
) -> Callable[[Path], Callable[[int], None]]:
    def factory(path: Path) -> Callable[[int], None]:
        bar = tqdm(desc=path.name, unit="records", leave=False)
        bars.append(bar)
        return bar.update

    return factory


def run(
    config: EnrichmentConfig,
    files: Sequence[Path],
    stream: TextIO,
    *,
    progress: bool = False,
) -> BatchSummary:
    """Enrich ``files`` and write the CSV report to ``stream``."""

    if not config.email:
        raise ConfigError("An email is required.")
    sink = CsvSink(stream)
    output_errors: List[str] = []
    try:
        sink.ensure_header()
    except WRITE_ERRORS as exc:
        LOGGER.error("error writing csv header: %s", exc)
        output_errors.append(f"{type(exc).__name__}: {exc}")
    bars: List[Any] = []
    with HttpClient(timeout=config.timeout) as http:
        client = OadoiClient(config.email, base_url=config.base_url, http=http)
        pipeline = EnrichmentPipeline(
            config,
            client,
            sink,
            progress_factory=_progress_factory(bars) if progress else None,
        )
        try:
            summary = pipeline.process_batch(files)
        finally:
            for bar in bars:
                bar.close()
    try:
        sink.flush()
    except WRITE_ERRORS as exc:
        LOGGER.error("error flushing csv output: %s", exc)
        output_errors.append(f"{type(exc).__name__}: {exc}")
    if output_errors:
        summary.output_error = "; ".join(output_errors)
    return summary


def _write_sidecar(
    output_path: Path,
    config: EnrichmentConfig,
    files: Sequence[Path],
    summary: BatchSummary,
    argv: Sequence[str] | None,
) -> None:
    error = "; ".join(summary.write_failures) or None
    command_parts = [
        "***" if part == config.email else part
        for part in ["oadoi-enrich", *(sys.argv[1:] if argv is None else argv)]
    ]
    write_meta_yaml(
        output_path,
        command=" ".join(shlex.quote(part) for part in command_parts),
        config=config.model_dump(exclude={"email"}),
        row_count=summary.rows,
        column_count=len(OUTPUT_COLUMNS),
        inputs=[str(path) for path in files],
        status="error" if error else "success",
        error=error,
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the command line interface.

    Parameters
    ----------
    argv:
        Optional list of command line arguments.  When ``None`` the arguments
        are taken from :data:`sys.argv`.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        configure_logging(args.log_level, log_format=args.log_format)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        config = resolve_config(args)
        if not config.email:
            raise ConfigError("An email is required.")
        files = find_input_files(args.files, pattern=config.input_glob)
        if not files:
            raise ConfigError("Could not find any files to process.")
    except ConfigError as exc:
        LOGGER.error("FATAL: %s", exc)
        raise SystemExit(1) from exc

    output_path = Path(args.output).expanduser() if args.output else None
    with ExitStack() as stack:
        if output_path is None:
            stream: TextIO = sys.stdout
        else:
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                stream = stack.enter_context(
                    output_path.open("w", encoding="utf-8", newline="")
                )
            except OSError as exc:
                LOGGER.error("FATAL: cannot open output %s: %s", output_path, exc)
                raise SystemExit(1) from exc
        summary = run(config, files, stream, progress=args.progress)

    if output_path is not None:
        _write_sidecar(output_path, config, files, summary, argv)

    LOGGER.info(
        "Done: %d file(s) processed, %d skipped, %d record(s), %d row(s) written",
        len(summary.files),
        len(summary.skipped),
        summary.records,
        summary.rows,
    )


__all__ = ["build_parser", "main", "resolve_config", "run"]
