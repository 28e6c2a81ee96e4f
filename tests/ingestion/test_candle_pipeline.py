"""End-to-end tests for the candle import pipeline on SQLite."""

import threading
from datetime import datetime

import pytest
import pytz
from sqlalchemy import create_engine

from fx_ingest.ingestion.candle_pipeline import CandleImportPipeline
from fx_ingest.ingestion.csv_stream import CandleStreamParser
from fx_ingest.ingestion.models import BulkInsertResult
from fx_ingest.shared.db import StorageUnavailableError


@pytest.fixture
def import_dir(tmp_path):
    root = tmp_path / "candles-import"
    root.mkdir()
    return root


@pytest.fixture
def pipeline(candle_repository, db_engine):
    return CandleImportPipeline(candle_repository, batch_size=25, max_workers=1, db_engine=db_engine)


class TestCandleImportPipeline:
    def test_imports_valid_rows_and_reports_rejects(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines
    ):
        lines = make_lines(100)
        lines.insert(5, "2024.01.01 bad,1,1,1,1,1")
        lines.insert(50, "2024.01.02 10:00,1.1,1.2")
        lines.insert(75, "2024.01.02 11:00,1.10,1.05,1.00,1.08,10")
        write_csv(import_dir / "EURUSD_1h.csv", lines)

        run = pipeline.run(import_dir)

        dataset = run.datasets["EURUSD_1h"]
        assert dataset.totals.inserted == 100
        assert dataset.totals.rejected == 3
        assert dataset.totals.total == 103
        assert dataset.totals.error_count == 3
        assert candle_repository.count("EURUSD", "1h") == 100

    def test_second_run_is_idempotent(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines
    ):
        write_csv(import_dir / "EURUSD_1h.csv", make_lines(60))

        first = pipeline.run(import_dir)
        second = pipeline.run(import_dir)

        assert first.totals.inserted == 60
        assert second.totals.inserted == 0
        assert second.totals.duplicates == 60
        assert candle_repository.count("EURUSD", "1h") == 60

    def test_overlapping_files_in_one_unit(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines
    ):
        write_csv(import_dir / "EURUSD" / "h1" / "part1.csv", make_lines(40))
        write_csv(import_dir / "EURUSD" / "h1" / "part2.csv", make_lines(60))

        run = pipeline.run(import_dir, layout="nested")

        dataset = run.datasets["EURUSD_1h"]
        assert len(dataset.files) == 2
        assert dataset.totals.inserted == 60
        assert dataset.totals.duplicates == 40
        assert candle_repository.count("EURUSD", "1h") == 60

    def test_weekend_rows_not_stored(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines
    ):
        lines = make_lines(24, start=datetime(2024, 1, 5)) + make_lines(
            24, start=datetime(2024, 1, 6)
        )
        write_csv(import_dir / "EURUSD_1h.csv", lines)

        run = pipeline.run(import_dir)

        assert run.totals.inserted == 24
        assert run.totals.error_count == 0
        oldest, newest = candle_repository.date_range("EURUSD", "1h")
        assert newest < datetime(2024, 1, 6, tzinfo=pytz.UTC)

    def test_post_run_report(self, pipeline, import_dir, write_csv, make_lines):
        write_csv(import_dir / "GBPUSD_1d.csv", make_lines(5, step_hours=24))

        run = pipeline.run(import_dir)

        report = run.datasets["GBPUSD_1d"].report
        assert report.total == 5
        assert report.oldest == datetime(2024, 1, 1, tzinfo=pytz.UTC)
        assert report.newest == datetime(2024, 1, 5, tzinfo=pytz.UTC)
        assert report.days == 4

    def test_undecodable_bytes_rejected_per_line(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines
    ):
        lines = make_lines(70)
        write_csv(import_dir / "EURUSD" / "h1" / "a.csv", lines[:50])
        broken = write_csv(import_dir / "EURUSD" / "h1" / "b.csv", lines[50:])
        with broken.open("ab") as handle:
            handle.write(b"2024.01.03 22:00,1.1\xff,1.2,1.0,1.1,5\n")

        run = pipeline.run(import_dir, layout="nested")

        dataset = run.datasets["EURUSD_1h"]
        assert len(dataset.files) == 2
        assert dataset.totals.inserted == 70
        assert dataset.totals.rejected == 1
        assert "MalformedEncoding" in dataset.totals.errors[0]
        assert dataset.totals.inserted == candle_repository.count("EURUSD", "1h")

    def test_error_mid_file_keeps_committed_counts(
        self, pipeline, candle_repository, import_dir, write_csv, make_lines, monkeypatch
    ):
        write_csv(import_dir / "EURUSD" / "h1" / "a.csv", make_lines(60))
        later = make_lines(60, start=datetime(2024, 1, 8))
        write_csv(import_dir / "EURUSD" / "h1" / "b.csv", later)

        parse_line = CandleStreamParser.parse_line

        def crash_on_row_29(self, line):
            if line.startswith("2024.01.02 05:00"):
                raise RuntimeError("parser crashed")
            return parse_line(self, line)

        monkeypatch.setattr(CandleStreamParser, "parse_line", crash_on_row_29)

        run = pipeline.run(import_dir, layout="nested")

        dataset = run.datasets["EURUSD_1h"]
        assert len(dataset.files) == 2
        assert dataset.totals.inserted == 85
        assert dataset.totals.error_count == 1
        assert "parser crashed" in dataset.totals.errors[0]
        assert dataset.totals.inserted == candle_repository.count("EURUSD", "1h")

    def test_units_reported_in_sorted_order(self, pipeline, import_dir, write_csv, make_lines):
        write_csv(import_dir / "USDJPY_1h.csv", make_lines(3))
        write_csv(import_dir / "EURUSD_1h.csv", make_lines(3))

        run = pipeline.run(import_dir)

        assert list(run.datasets) == ["EURUSD_1h", "USDJPY_1h"]
        assert run.file_count == 2

    def test_empty_directory(self, pipeline, import_dir):
        run = pipeline.run(import_dir)
        assert run.datasets == {}

    def test_missing_root_is_fatal(self, pipeline, tmp_path):
        with pytest.raises(FileNotFoundError):
            pipeline.run(tmp_path / "nowhere")

    def test_unreachable_storage_is_fatal(self, candle_repository, import_dir, tmp_path):
        broken = create_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'x.db'}")
        pipeline = CandleImportPipeline(candle_repository, db_engine=broken)

        with pytest.raises(StorageUnavailableError):
            pipeline.run(import_dir)

    @pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"max_workers": 0}])
    def test_invalid_settings(self, candle_repository, kwargs):
        with pytest.raises(ValueError):
            CandleImportPipeline(candle_repository, **kwargs)


class FlakyRepository:
    """Thread-safe in-memory candle store whose first bulk write fails."""

    def __init__(self):
        self.keys = set()
        self.calls = 0
        self._lock = threading.Lock()

    def bulk_insert(self, candles):
        with self._lock:
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("deadlock detected")
            new = [c for c in candles if c.natural_key not in self.keys]
            self.keys.update(c.natural_key for c in new)
            return BulkInsertResult(inserted_count=len(new))

    def count(self, pair, timeframe):
        return sum(1 for key in self.keys if key[:2] == (pair, timeframe))

    def date_range(self, pair, timeframe):
        stamps = [key[2] for key in self.keys if key[:2] == (pair, timeframe)]
        return (min(stamps), max(stamps)) if stamps else (None, None)


class TestParallelUnits:
    def test_failed_batch_recorded_and_other_work_continues(self, import_dir, write_csv, make_lines):
        for pair in ("EURUSD", "GBPUSD", "USDJPY", "AUDUSD"):
            write_csv(import_dir / f"{pair}_1h.csv", make_lines(30))
        repository = FlakyRepository()
        pipeline = CandleImportPipeline(repository, batch_size=10, max_workers=4)

        run = pipeline.run(import_dir)

        totals = run.totals
        assert totals.total == 120
        assert totals.failed == 10
        assert totals.inserted == 110
        assert totals.error_count == 1
        assert "deadlock detected" in totals.errors[0]

    def test_cancel_before_run_imports_nothing(self, import_dir, write_csv, make_lines):
        write_csv(import_dir / "EURUSD_1h.csv", make_lines(30))
        repository = FlakyRepository()
        pipeline = CandleImportPipeline(repository, batch_size=10, max_workers=2)
        pipeline.cancel()

        run = pipeline.run(import_dir)

        assert run.cancelled
        assert repository.calls == 0
        assert run.totals.inserted == 0
