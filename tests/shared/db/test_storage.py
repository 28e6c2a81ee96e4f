"""Tests for the repository layer on SQLite."""

from datetime import datetime, timedelta

import pytest
import pytz

from fx_ingest.ingestion.models import Candle, Indicator, IndicatorPublication
from fx_ingest.shared.db import StorageUnavailableError, check_connection, create_db_engine
from fx_ingest.shared.db import storage

START = datetime(2024, 1, 2, tzinfo=pytz.UTC)


def make_candles(count, pair="EURUSD", timeframe="1h", offset=0):
    return [
        Candle(
            pair=pair,
            timeframe=timeframe,
            timestamp=START + timedelta(hours=offset + i),
            ohlcv=(1.10, 1.11, 1.09, 1.105, 100.0),
        )
        for i in range(count)
    ]


def make_indicator(ff_id="123", **overrides):
    fields = {
        "forex_factory_id": ff_id,
        "name": "CPI m/m",
        "country": "US",
        "impact": "high",
        "frequency": "monthly",
        "publishing_time": "certain",
        "affected_currencies": ["USD"],
        "affected_pairs": ["EURUSD"],
    }
    fields.update(overrides)
    return Indicator(**fields)


class TestCandleRepository:
    def test_bulk_insert(self, candle_repository):
        result = candle_repository.bulk_insert(make_candles(10))

        assert result.inserted_count == 10
        assert not result.has_failures
        assert candle_repository.count("EURUSD", "1h") == 10

    def test_existing_rows_reported_by_index(self, candle_repository):
        candle_repository.bulk_insert(make_candles(5))

        result = candle_repository.bulk_insert(make_candles(10))

        assert result.inserted_count == 5
        assert [f.index for f in result.failures] == [0, 1, 2, 3, 4]
        assert all(f.duplicate for f in result.failures)

    def test_duplicate_inside_one_batch(self, candle_repository):
        candles = make_candles(3)
        result = candle_repository.bulk_insert(candles + [candles[1]])

        assert result.inserted_count == 3
        assert [f.index for f in result.failures] == [3]

    def test_batch_larger_than_one_statement(self, candle_repository, monkeypatch):
        monkeypatch.setattr(storage, "STATEMENT_ROWS", 7)
        result = candle_repository.bulk_insert(make_candles(30))
        assert result.inserted_count == 30
        assert candle_repository.count("EURUSD", "1h") == 30

    def test_same_instant_other_timeframe_is_distinct(self, candle_repository):
        candle_repository.bulk_insert(make_candles(3, timeframe="1h"))
        result = candle_repository.bulk_insert(make_candles(3, timeframe="4h"))
        assert result.inserted_count == 3

    def test_empty_batch(self, candle_repository):
        assert candle_repository.bulk_insert([]).inserted_count == 0

    def test_date_range(self, candle_repository):
        assert candle_repository.date_range("EURUSD", "1h") == (None, None)

        candle_repository.bulk_insert(make_candles(24))

        oldest, newest = candle_repository.date_range("EURUSD", "1h")
        assert oldest == START
        assert newest == START + timedelta(hours=23)

    def test_available_data_info(self, candle_repository):
        candle_repository.bulk_insert(make_candles(4, pair="GBPUSD"))
        candle_repository.bulk_insert(make_candles(2))

        info = candle_repository.available_data_info()

        assert [(i["pair"], i["timeframe"], i["count"]) for i in info] == [
            ("EURUSD", "1h", 2),
            ("GBPUSD", "1h", 4),
        ]
        assert info[1]["newest"] == START + timedelta(hours=3)


class TestIndicatorRepository:
    def test_insert_and_lookup(self, indicator_repository):
        result = indicator_repository.bulk_insert([make_indicator("1"), make_indicator("2")])

        assert result.inserted_count == 2
        assert indicator_repository.exists_by_key("1")
        assert not indicator_repository.exists_by_key("3")
        assert set(indicator_repository.id_map()) == {"1", "2"}

    def test_duplicate_key(self, indicator_repository):
        indicator_repository.bulk_insert([make_indicator("1")])
        result = indicator_repository.bulk_insert([make_indicator("1", name="renamed")])
        assert result.inserted_count == 0
        assert len(result.failures) == 1


class TestPublicationRepository:
    @pytest.fixture
    def indicator_id(self, indicator_repository):
        indicator_repository.bulk_insert([make_indicator("1")])
        return indicator_repository.id_map()["1"]

    def make_publications(self, indicator_id, count):
        return [
            IndicatorPublication(
                indicator_id=indicator_id,
                external_event_id=f"evt-{i}",
                timestamp=START + timedelta(days=30 * i),
                actual=f"{i}.0%",
                forecast=0.5 if i else None,
            )
            for i in range(count)
        ]

    def test_insert_count_and_range(self, publication_repository, indicator_id):
        result = publication_repository.bulk_insert(self.make_publications(indicator_id, 3))

        assert result.inserted_count == 3
        assert publication_repository.count(indicator_id) == 3
        assert publication_repository.exists_by_key("evt-2")
        oldest, newest = publication_repository.date_range(indicator_id)
        assert (oldest, newest) == (START, START + timedelta(days=60))

    def test_find_by_indicator(self, publication_repository, indicator_id):
        publication_repository.bulk_insert(self.make_publications(indicator_id, 4))

        found = publication_repository.find_by_indicator(
            indicator_id, start_date=START + timedelta(days=1), limit=2
        )

        assert [p.external_event_id for p in found] == ["evt-3", "evt-2"]
        assert found[0].forecast == 0.5

    def test_null_values_round_trip(self, publication_repository, indicator_id):
        publication_repository.bulk_insert(self.make_publications(indicator_id, 1))
        (found,) = publication_repository.find_by_indicator(indicator_id)
        assert found.forecast is None
        assert found.revision is None


def test_check_connection_failure(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}")
    with pytest.raises(StorageUnavailableError):
        check_connection(engine)
