"""Pre-storage existence filter for entities with an external natural key.

The gate is the first line of defence against re-importing a record; the
storage unique constraint, reported back through ``BulkInsertResult``
failures, stays the authoritative backstop for races between runs.
"""

from collections.abc import Callable, Hashable, Iterable, Iterator
from typing import TypeVar

from fx_ingest.ingestion.statistics import ImportStatistics

T = TypeVar("T")


def dedup_gate(
    candidates: Iterable[T],
    exists: Callable[[Hashable], bool],
    key_of: Callable[[T], Hashable | None],
    statistics: ImportStatistics,
) -> Iterator[T]:
    """Yield only candidates whose natural key is not stored yet.

    Existing candidates are counted in ``statistics.total`` and
    ``statistics.skipped`` and their key is appended to
    ``statistics.skipped_keys``. Candidates without a key pass through.
    The input is consumed lazily, one existence check per candidate.

    Args:
        candidates: Entities to filter, in input order.
        exists: Storage existence check for a natural key.
        key_of: Extracts the natural key from an entity.
        statistics: Scope receiving the skipped counts.
    """
    for candidate in candidates:
        key = key_of(candidate)
        if key is not None and exists(key):
            statistics.total += 1
            statistics.skipped += 1
            statistics.skipped_keys.append(str(key))
            continue
        yield candidate
