"""Candle import pipeline: directory tree -> storage.

For every import unit found by ``DatasetLocator`` the pipeline streams each
file through ``CandleStreamParser`` into ``BatchImportEngine`` and collects
per-file and per-dataset statistics. Units are independent and run in
parallel on a thread pool; inside a unit, files are processed in path order
and batches in line order.

Failure handling:
    - storage unreachable / bad settings / missing root -> raised before any
      batch is submitted
    - unreadable file                                   -> warning, file skipped
    - unexpected error mid-file                         -> one error entry, counts so far kept
    - failed batch                                      -> one error entry, run continues
    - rejected line                                     -> one error entry, run continues

Example:
    engine = create_db_engine()
    pipeline = CandleImportPipeline(
        CandleRepository(get_session_factory(engine)), db_engine=engine
    )
    run = pipeline.run(Path("data/candles-import"))
    print(run.to_dataframe())
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from fx_ingest.ingestion.batch_import import BatchImportEngine
from fx_ingest.ingestion.csv_stream import CandleStreamParser, file_info
from fx_ingest.ingestion.locator import DatasetLocator
from fx_ingest.ingestion.models import DatasetKey
from fx_ingest.ingestion.statistics import (
    DatasetStatistics,
    ImportStatistics,
    RunStatistics,
    dataset_report,
)
from fx_ingest.shared.config import Config
from fx_ingest.shared.db import CandleRepository, check_connection
from fx_ingest.shared.utils import setup_logger

# Rejected lines echoed to the log per file; the rest stay in the statistics
MAX_LOGGED_ERRORS = 5


class CandleImportPipeline:
    """Imports every candle dataset found under an import directory."""

    def __init__(
        self,
        repository: CandleRepository,
        batch_size: int | None = None,
        max_workers: int | None = None,
        skip_header: bool = True,
        locator: DatasetLocator | None = None,
        db_engine: Engine | None = None,
        cancel_event: threading.Event | None = None,
        log_file: Path | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            repository: Candle storage.
            batch_size: Candles per bulk write (default: Config.CANDLE_BATCH_SIZE).
            max_workers: Import units processed in parallel (default: Config.MAX_WORKERS).
            skip_header: Whether each CSV file starts with a header line.
            locator: Dataset locator (default: CSV files only).
            db_engine: When given, connectivity is checked before the run.
            cancel_event: Shared cancellation flag (one is created if omitted).
            log_file: Optional path for file-based logging.

        Raises:
            ValueError: If batch_size or max_workers is not positive.
        """
        self.repository = repository
        self.batch_size = batch_size if batch_size is not None else Config.CANDLE_BATCH_SIZE
        self.max_workers = max_workers if max_workers is not None else Config.MAX_WORKERS
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

        self.skip_header = skip_header
        self.locator = locator or DatasetLocator(log_file=log_file)
        self.db_engine = db_engine
        self.cancel_event = cancel_event or threading.Event()
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def cancel(self) -> None:
        """Stop after the in-flight batches; finished work is kept."""
        self.logger.warning("Cancellation requested")
        self.cancel_event.set()

    def run(self, root: Path, layout: str = "auto") -> RunStatistics:
        """Discover and import every dataset under ``root``.

        Args:
            root: Import directory.
            layout: "flat", "nested" or "auto".

        Returns:
            Run statistics (partial if cancelled).

        Raises:
            StorageUnavailableError: If the database cannot be reached.
            FileNotFoundError: If ``root`` does not exist.
            ValueError: If ``layout`` is unknown.
        """
        if self.db_engine is not None:
            check_connection(self.db_engine)

        units = self.locator.locate(root, layout)
        run = RunStatistics()
        if not units:
            self.logger.warning("No source files found under %s", root)
            return run

        self.logger.info(
            "Importing %d dataset(s) with %d worker(s), batch size %d",
            len(units),
            self.max_workers,
            self.batch_size,
        )

        # Created up front so files finished before a unit failure stay counted
        datasets = {key: DatasetStatistics(key=str(key)) for key in units}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(units))) as executor:
            future_to_key = {
                executor.submit(self.import_unit, key, paths, datasets[key]): key
                for key, paths in units.items()
            }
            for future in as_completed(future_to_key):
                key = future_to_key[future]
                try:
                    future.result()
                except Exception as e:
                    self.logger.error("Dataset %s aborted: %s", key, e)
                    datasets[key].totals.record_error(f"{key}: {e}")

        for key in sorted(datasets):
            run.add_dataset(datasets[key])
        run.cancelled = run.cancelled or self.cancel_event.is_set()

        self._log_run_summary(run)
        return run

    def import_unit(
        self,
        key: DatasetKey,
        paths: list[Path],
        dataset: DatasetStatistics | None = None,
    ) -> DatasetStatistics:
        """Import all files of one (pair, timeframe) unit, in order.

        Each file's statistics are added to ``dataset`` as soon as the file
        is finished.
        """
        if dataset is None:
            dataset = DatasetStatistics(key=str(key))
        self.logger.info("Processing %s (%d file(s))", key, len(paths))

        for index, path in enumerate(paths, start=1):
            if self.cancel_event.is_set():
                break
            self.logger.info("  File %d/%d: %s", index, len(paths), path.name)
            dataset.add_file(self.import_file(key, path))

        dataset.cancelled = self.cancel_event.is_set()

        try:
            dataset.report = dataset_report(self.repository, key.pair, key.timeframe)
        except SQLAlchemyError as e:
            self.logger.warning("Could not read stored totals for %s: %s", key, e)

        self._log_dataset_summary(dataset)
        return dataset

    def import_file(self, key: DatasetKey, path: Path) -> ImportStatistics:
        """Stream one file into storage and return its statistics."""
        stats = ImportStatistics(label=str(path))
        parser = CandleStreamParser(path, key.pair, key.timeframe, skip_header=self.skip_header)
        engine = BatchImportEngine(
            self.repository.bulk_insert,
            batch_size=self.batch_size,
            timestamp_of=lambda candle: candle.timestamp,
            cancel_event=self.cancel_event,
            logger=self.logger,
        )

        try:
            lines, size = file_info(path)
            self.logger.debug("  %s: %d lines, %d bytes", path.name, lines, size)
            engine.run(parser, stats)
        except OSError as e:
            self.logger.warning("Skipping unreadable file %s: %s", path, e)
            stats.record_error(f"{path}: {e}")
        except Exception as e:
            self.logger.error("Import of %s stopped after line %d: %s", path, parser.lines_read, e)
            stats.record_error(f"{path}: line {parser.lines_read}: {e}")

        stats.record_rejections(parser.errors)
        if parser.weekend_skipped:
            self.logger.debug("  %s: %d weekend row(s) dropped", path.name, parser.weekend_skipped)

        self._log_file_summary(path, stats)
        return stats

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _log_file_summary(self, path: Path, stats: ImportStatistics) -> None:
        self.logger.info(
            "  %s: inserted %d, duplicates %d, errors %d",
            path.name,
            stats.inserted,
            stats.duplicates,
            stats.error_count,
        )
        for message in stats.errors[:MAX_LOGGED_ERRORS]:
            self.logger.info("    %s", message)

    def _log_dataset_summary(self, dataset: DatasetStatistics) -> None:
        totals = dataset.totals
        self.logger.info(
            "%s summary: inserted %d, duplicates %d, errors %d%s",
            dataset.key,
            totals.inserted,
            totals.duplicates,
            totals.error_count,
            " (cancelled)" if dataset.cancelled else "",
        )
        report = dataset.report
        if report is not None:
            self.logger.info("%s total in DB: %d", dataset.key, report.total)
            if report.oldest and report.newest:
                self.logger.info(
                    "%s date range: %s to %s (%d days)",
                    dataset.key,
                    report.oldest.date().isoformat(),
                    report.newest.date().isoformat(),
                    report.days,
                )

    def _log_run_summary(self, run: RunStatistics) -> None:
        totals = run.totals
        self.logger.info(
            "Import %s: %d dataset(s), %d file(s), %d inserted, %d duplicates, %d errors",
            "cancelled" if run.cancelled else "completed",
            len(run.datasets),
            run.file_count,
            totals.inserted,
            totals.duplicates,
            totals.error_count,
        )
