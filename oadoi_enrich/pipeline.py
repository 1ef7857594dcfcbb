"""Per-file orchestration of the enrichment pipeline.

For every input file :class:`EnrichmentPipeline` builds a fresh admission
gate and results channel, starts a writer thread draining the channel,
dispatches one unit per line onto a thread pool, waits for all units, closes
the channel and the gate and finally joins the writer.  Files are processed
one after another unless ``file_workers`` allows several at once; each file
still owns its gate and channel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Sequence

from .admission import AdmissionGate
from .channel import ResultsChannel
from .config import EnrichmentConfig
from .dispatcher import DispatchStats, FanOutDispatcher, LookupClient
from .models import EnrichedRecord
from .writer import CsvSink, ResultCollector, WriterStats

LOGGER = logging.getLogger(__name__)

ProgressFactory = Callable[[Path], Callable[[int], None] | None]


@dataclass
class FileSummary:
    """Counters describing the processing of one input file."""

    path: Path
    dispatch: DispatchStats
    writer: WriterStats
    peak_concurrency: int = 0
    read_error: str | None = None

    @property
    def rows(self) -> int:
        return self.writer.rows


@dataclass
class BatchSummary:
    """Aggregated outcome of a batch run."""

    files: List[FileSummary] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    output_error: str | None = None

    @property
    def write_failures(self) -> List[str]:
        """Describe every failure of the shared output stream."""

        failures = [
            f"{item.path}: {item.writer.error}" for item in self.files if item.writer.failed
        ]
        if self.output_error:
            failures.append(f"output: {self.output_error}")
        return failures

    @property
    def rows(self) -> int:
        return sum(item.rows for item in self.files)

    @property
    def records(self) -> int:
        return sum(item.dispatch.records for item in self.files)

    @property
    def parse_failures(self) -> int:
        return sum(item.dispatch.parse_failures for item in self.files)


class EnrichmentPipeline:
    """Wire dispatcher, admission gate and writer for each input file.

    Parameters
    ----------
    config:
        Validated run configuration.
    client:
        Lookup client shared by all files.
    sink:
        Destination of the CSV rows, shared by all files.
    progress_factory:
        Optional callable returning a per-file progress callback.
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        client: LookupClient,
        sink: CsvSink,
        *,
        progress_factory: ProgressFactory | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.sink = sink
        self._progress_factory = progress_factory

    def process_file(self, path: str | Path) -> FileSummary | None:
        """Enrich every record of ``path``.

        Returns ``None`` when the file cannot be opened; the error is logged.
        """

        source = Path(path)
        try:
            handle = source.open("rb")
        except OSError as exc:
            LOGGER.error("Cannot open %s: %s", source, exc)
            return None

        LOGGER.info("Processing %s", source)
        gate = AdmissionGate(self.config.concurrency)
        channel: ResultsChannel[EnrichedRecord] = ResultsChannel(self.config.queue_size)
        collector = ResultCollector(self.sink, source=str(source))
        writer_thread = threading.Thread(
            target=collector.drain,
            args=(channel,),
            name=f"oadoi-writer-{source.name}",
            daemon=True,
        )
        progress = self._progress_factory(source) if self._progress_factory else None
        read_error: str | None = None

        with handle:
            writer_thread.start()
            try:
                with ThreadPoolExecutor(
                    max_workers=self.config.effective_workers,
                    thread_name_prefix="oadoi-unit",
                ) as executor:
                    dispatcher = FanOutDispatcher(
                        self.client,
                        gate,
                        channel,
                        executor,
                        source=str(source),
                        progress_callback=progress,
                    )
                    try:
                        dispatcher.dispatch(handle)
                    except OSError as exc:
                        read_error = str(exc)
                        LOGGER.error(
                            "Error reading %s; records after the failure are skipped: %s",
                            source,
                            exc,
                        )
                    dispatch_stats = dispatcher.wait()
            finally:
                channel.close()
                gate.close()
                writer_thread.join()

        summary = FileSummary(
            path=source,
            dispatch=dispatch_stats,
            writer=collector.stats,
            peak_concurrency=gate.peak_in_flight,
            read_error=read_error,
        )
        LOGGER.info(
            "Finished %s: %d line(s), %d record(s), %d parse failure(s), "
            "%d without DOI, %d lookup(s), %d row(s) written",
            source,
            dispatch_stats.lines,
            dispatch_stats.records,
            dispatch_stats.parse_failures,
            dispatch_stats.records_without_doi,
            dispatch_stats.lookups,
            collector.stats.rows,
        )
        return summary

    def process_batch(self, paths: Sequence[str | Path]) -> BatchSummary:
        """Process ``paths`` and collect their summaries.

        Files that cannot be opened are listed in :attr:`BatchSummary.skipped`
        and do not interrupt the batch.
        """

        summary = BatchSummary()
        sources = [Path(path) for path in paths]
        if self.config.file_workers > 1 and len(sources) > 1:
            with ThreadPoolExecutor(
                max_workers=self.config.file_workers,
                thread_name_prefix="oadoi-file",
            ) as executor:
                outcomes = list(executor.map(self.process_file, sources))
        else:
            outcomes = [self.process_file(source) for source in sources]

        for source, outcome in zip(sources, outcomes):
            if outcome is None:
                summary.skipped.append(source)
            else:
                summary.files.append(outcome)
        return summary


__all__ = ["BatchSummary", "EnrichmentPipeline", "FileSummary"]
