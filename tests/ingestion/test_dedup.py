"""Tests for the pre-storage dedup gate."""

from fx_ingest.ingestion.dedup import dedup_gate
from fx_ingest.ingestion.statistics import ImportStatistics


def test_existing_keys_skipped_and_counted():
    stored = {"a", "c"}
    stats = ImportStatistics()

    passed = list(dedup_gate(["a", "b", "c", "d"], stored.__contains__, lambda x: x, stats))

    assert passed == ["b", "d"]
    assert stats.skipped == 2
    assert stats.total == 2
    assert stats.skipped_keys == ["a", "c"]


def test_missing_key_passes_through():
    stats = ImportStatistics()
    items = [{"id": None}, {"id": "x"}]

    passed = list(dedup_gate(items, lambda key: True, lambda item: item["id"], stats))

    assert passed == [{"id": None}]
    assert stats.skipped == 1


def test_lazy_one_check_per_candidate():
    checked = []

    def exists(key):
        checked.append(key)
        return False

    gate = dedup_gate(iter(range(100)), exists, lambda x: x, ImportStatistics())
    assert next(gate) == 0
    assert checked == [0]
