"""Generic batched persistence with partial-failure accounting.

``BatchImportEngine`` partitions a stream of entities into fixed-size
batches (input order preserved) and hands each batch to a bulk-persist
callable. The callable returns either a plain inserted count or a
``BulkInsertResult``:

    - full success           -> the whole batch is credited to ``inserted``
    - reported failures      -> batch size minus failures to ``inserted``,
                                key-collision failures to ``duplicates``,
                                any other failure to ``failed`` plus an error
    - plain count < batch    -> the shortfall is credited to ``duplicates``
    - exception              -> one error entry for the batch, its records
                                to ``failed``; the next batch still runs

Batches are submitted sequentially. A set ``cancel_event`` stops dispatch
before the next batch; the statistics gathered so far are returned intact.
"""

import logging
import threading
from collections.abc import Callable, Hashable, Iterable, Iterator
from datetime import datetime
from itertools import islice
from typing import Generic, TypeVar

from fx_ingest.ingestion.dedup import dedup_gate
from fx_ingest.ingestion.models import BulkInsertResult
from fx_ingest.ingestion.statistics import ImportStatistics

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 10000

BulkPersist = Callable[[list[T]], "int | BulkInsertResult"]


def iter_batches(items: Iterable[T], batch_size: int) -> Iterator[list[T]]:
    """Split ``items`` into lists of at most ``batch_size``, lazily and in order."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    iterator = iter(items)
    while batch := list(islice(iterator, batch_size)):
        yield batch


class BatchImportEngine(Generic[T]):
    """Submit entities to storage in batches and account for every record.

    Example:
        engine = BatchImportEngine(repository.bulk_insert, batch_size=10000)
        stats = engine.run(candles, ImportStatistics(label="EURUSD_1h"))
    """

    def __init__(
        self,
        bulk_persist: BulkPersist,
        batch_size: int = DEFAULT_BATCH_SIZE,
        exists: Callable[[Hashable], bool] | None = None,
        key_of: Callable[[T], Hashable | None] | None = None,
        timestamp_of: Callable[[T], datetime | None] | None = None,
        cancel_event: threading.Event | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            bulk_persist: Storage bulk write for one batch.
            batch_size: Records per batch.
            exists: Optional natural-key existence check. When given, input
                goes through ``dedup_gate`` before batching.
            key_of: Natural-key extractor, required together with ``exists``.
            timestamp_of: Optional timestamp extractor used for the observed
                date range.
            cancel_event: Stops dispatching further batches once set.
            logger: Logger for per-batch progress and failures.

        Raises:
            ValueError: If ``batch_size`` is not positive or ``exists`` is
                given without ``key_of``.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if exists is not None and key_of is None:
            raise ValueError("key_of is required when an existence check is given")

        self.bulk_persist = bulk_persist
        self.batch_size = batch_size
        self.exists = exists
        self.key_of = key_of
        self.timestamp_of = timestamp_of
        self.cancel_event = cancel_event
        self.logger = logger or logging.getLogger(__name__)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def run(
        self, candidates: Iterable[T], statistics: ImportStatistics | None = None
    ) -> ImportStatistics:
        """Import ``candidates`` and return the updated statistics.

        Args:
            candidates: Entities to persist, in submission order.
            statistics: Scope to accumulate into (a fresh one if omitted).

        Returns:
            The statistics scope, also when the run was cancelled part-way.
        """
        stats = statistics if statistics is not None else ImportStatistics()
        if self.exists is not None:
            candidates = dedup_gate(candidates, self.exists, self.key_of, stats)

        batches = iter_batches(candidates, self.batch_size)
        offset = 0
        batch_number = 0
        while not self.cancelled:
            batch = next(batches, None)
            if batch is None:
                break
            batch_number += 1
            self._submit(batch_number, offset, batch, stats)
            offset += len(batch)

        if self.cancelled:
            self.logger.warning(
                "%s: cancelled after %d batch(es), %d record(s) submitted",
                stats.label or "import",
                batch_number,
                offset,
            )
        return stats

    def _submit(
        self, batch_number: int, offset: int, batch: list[T], stats: ImportStatistics
    ) -> None:
        stats.total += len(batch)
        if self.timestamp_of is not None:
            for item in batch:
                stats.observe(self.timestamp_of(item))

        try:
            result = self.bulk_persist(batch)
        except Exception as exc:
            message = (
                f"{stats.label or 'import'} batch {batch_number} "
                f"(records {offset}-{offset + len(batch)}): {exc}"
            )
            stats.failed += len(batch)
            stats.record_error(message)
            self.logger.error("Batch failed: %s", message)
            return

        inserted, duplicates = self._credit(batch_number, batch, result, stats)
        self.logger.debug(
            "%s batch %d: %d inserted, %d duplicates",
            stats.label or "import",
            batch_number,
            inserted,
            duplicates,
        )

    def _credit(
        self,
        batch_number: int,
        batch: list[T],
        result: "int | BulkInsertResult",
        stats: ImportStatistics,
    ) -> tuple[int, int]:
        if isinstance(result, BulkInsertResult) and result.failures:
            other_failures = [failure for failure in result.failures if not failure.duplicate]
            inserted = len(batch) - len(result.failures)
            duplicates = len(result.failures) - len(other_failures)
            for failure in other_failures:
                stats.record_error(
                    f"{stats.label or 'import'} batch {batch_number} "
                    f"record {failure.index}: {failure.reason}"
                )
            stats.failed += len(other_failures)
        else:
            count = result.inserted_count if isinstance(result, BulkInsertResult) else int(result)
            inserted = min(count, len(batch))
            duplicates = len(batch) - inserted

        stats.inserted += inserted
        stats.duplicates += duplicates
        return inserted, duplicates
