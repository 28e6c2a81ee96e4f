"""Import statistics and post-run reporting.

Accumulators are built incrementally while a unit is imported:

    ImportStatistics   one scope (a file, a dataset, or a whole run)
    DatasetStatistics  per-file scopes plus the dataset total for one unit
    RunStatistics      every dataset of a run, plus run-wide totals

Each accumulator is owned by the single worker that imports its unit, so
none of them is locked. Point queries about what is stored
(``dataset_report``, ``indicator_report``, ``coverage_report``) go to the
storage repositories instead of re-reading import state.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd

from fx_ingest.ingestion.models import DatasetKey, IndicatorPublication
from fx_ingest.shared.constants import CURRENCY_PAIRS, TIMEFRAMES


@dataclass
class ImportStatistics:
    """Counters for one statistics scope.

    total:      candidates seen (submitted records, rejected lines and skipped keys)
    inserted:   records persisted by this run
    duplicates: records refused by storage as natural-key collisions
    skipped:    records removed before batching because their key exists
    rejected:   lines that failed parsing or validation
    failed:     records lost to whole-batch storage errors
    errors:     one message per rejected line, failed batch, or unreadable file
    """

    label: str = ""
    total: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    rejected: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    skipped_keys: list[str] = field(default_factory=list)
    oldest: datetime | None = None
    newest: datetime | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def observe(self, timestamp: datetime | None) -> None:
        """Widen the observed date range to include ``timestamp``."""
        if timestamp is None:
            return
        if self.oldest is None or timestamp < self.oldest:
            self.oldest = timestamp
        if self.newest is None or timestamp > self.newest:
            self.newest = timestamp

    def record_rejections(self, messages: Iterable[str]) -> None:
        for message in messages:
            self.total += 1
            self.rejected += 1
            self.errors.append(message)

    def record_error(self, message: str) -> None:
        self.errors.append(message)

    def merge(self, other: "ImportStatistics") -> None:
        """Add ``other``'s counts, messages and date range into this scope."""
        self.total += other.total
        self.inserted += other.inserted
        self.duplicates += other.duplicates
        self.skipped += other.skipped
        self.rejected += other.rejected
        self.failed += other.failed
        self.errors.extend(other.errors)
        self.skipped_keys.extend(other.skipped_keys)
        self.observe(other.oldest)
        self.observe(other.newest)

    def as_dict(self) -> dict:
        return {
            "label": self.label,
            "total": self.total,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
            "rejected": self.rejected,
            "failed": self.failed,
            "errors": self.error_count,
            "oldest": self.oldest,
            "newest": self.newest,
        }


@dataclass(frozen=True)
class DatasetReport:
    """What storage holds for one dataset after a run."""

    key: str
    total: int
    oldest: datetime | None
    newest: datetime | None

    @property
    def days(self) -> int:
        if self.oldest is None or self.newest is None:
            return 0
        return math.ceil((self.newest - self.oldest).total_seconds() / 86400)


@dataclass
class DatasetStatistics:
    key: str
    files: dict[str, ImportStatistics] = field(default_factory=dict)
    totals: ImportStatistics = field(default_factory=ImportStatistics)
    report: DatasetReport | None = None
    cancelled: bool = False

    def __post_init__(self) -> None:
        if not self.totals.label:
            self.totals.label = self.key

    def add_file(self, file_stats: ImportStatistics) -> None:
        self.files[file_stats.label] = file_stats
        self.totals.merge(file_stats)


@dataclass
class RunStatistics:
    datasets: dict[str, DatasetStatistics] = field(default_factory=dict)
    cancelled: bool = False

    def add_dataset(self, dataset: DatasetStatistics) -> None:
        self.datasets[dataset.key] = dataset
        self.cancelled = self.cancelled or dataset.cancelled

    @property
    def totals(self) -> ImportStatistics:
        totals = ImportStatistics(label="run")
        for dataset in self.datasets.values():
            totals.merge(dataset.totals)
        return totals

    @property
    def file_count(self) -> int:
        return sum(len(dataset.files) for dataset in self.datasets.values())

    def to_dataframe(self) -> pd.DataFrame:
        """One row per dataset, plus stored count and span when reported."""
        rows = []
        for key in sorted(self.datasets):
            dataset = self.datasets[key]
            row = dataset.totals.as_dict()
            row["files"] = len(dataset.files)
            row["stored"] = dataset.report.total if dataset.report else None
            row["stored_days"] = dataset.report.days if dataset.report else None
            rows.append(row)

        columns = [
            "label",
            "files",
            "total",
            "inserted",
            "duplicates",
            "skipped",
            "rejected",
            "failed",
            "errors",
            "oldest",
            "newest",
            "stored",
            "stored_days",
        ]
        return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True)
class PublicationStatistics:
    total: int
    with_actual: int
    with_forecast: int
    with_revision: int
    oldest: datetime | None
    newest: datetime | None


@dataclass(frozen=True)
class CoverageReport:
    available: list[dict]
    missing: list[DatasetKey]

    @property
    def total_candles(self) -> int:
        return sum(item["count"] for item in self.available)


def dataset_report(repository, pair: str, timeframe: str) -> DatasetReport:
    """Stored count and date span for one (pair, timeframe)."""
    oldest, newest = repository.date_range(pair, timeframe)
    return DatasetReport(
        key=str(DatasetKey(pair, timeframe)),
        total=repository.count(pair, timeframe),
        oldest=oldest,
        newest=newest,
    )


def indicator_report(repository, indicator_id: int) -> DatasetReport:
    """Stored publication count and date span for one indicator."""
    oldest, newest = repository.date_range(indicator_id)
    return DatasetReport(
        key=f"indicator_{indicator_id}",
        total=repository.count(indicator_id),
        oldest=oldest,
        newest=newest,
    )


def _present(value) -> bool:
    return value is not None


def publication_statistics(publications: Iterable[IndicatorPublication]) -> PublicationStatistics:
    """Summarise a set of publications.

    An empty-string revision counts as absent, same as a missing one.
    """
    publications = list(publications)
    timestamps = [pub.timestamp for pub in publications if isinstance(pub.timestamp, datetime)]
    return PublicationStatistics(
        total=len(publications),
        with_actual=sum(1 for pub in publications if _present(pub.actual)),
        with_forecast=sum(1 for pub in publications if _present(pub.forecast)),
        with_revision=sum(
            1 for pub in publications if _present(pub.revision) and pub.revision != ""
        ),
        oldest=min(timestamps) if timestamps else None,
        newest=max(timestamps) if timestamps else None,
    )


def coverage_report(repository) -> CoverageReport:
    """Stored (pair, timeframe) combinations and the ones with no data."""
    available = repository.available_data_info()
    existing = {(item["pair"], item["timeframe"]) for item in available}
    missing = [
        DatasetKey(pair, timeframe)
        for pair in CURRENCY_PAIRS
        for timeframe in TIMEFRAMES
        if (pair, timeframe) not in existing
    ]
    return CoverageReport(available=available, missing=missing)
