"""Tests for timestamp decoding."""

from datetime import datetime

import pytest
import pytz

from fx_ingest.ingestion.timestamps import (
    MalformedTimestampError,
    decode_timestamp,
    match_day_first_dotted,
    match_iso8601,
    match_year_first_dotted,
)


class TestSupportedFormats:
    def test_year_first_dotted(self):
        assert decode_timestamp("2005.01.03 00:00") == datetime(2005, 1, 3, tzinfo=pytz.UTC)

    def test_year_first_dotted_with_seconds_and_millis(self):
        decoded = decode_timestamp("2024.03.15 13:45:30.250")
        assert decoded == datetime(2024, 3, 15, 13, 45, 30, 250000, tzinfo=pytz.UTC)

    def test_day_first_dotted(self):
        decoded = decode_timestamp("03.01.2005 00:00:00.000")
        assert decoded == datetime(2005, 1, 3, tzinfo=pytz.UTC)

    def test_dashed(self):
        decoded = decode_timestamp("2005-01-03 14:30:15")
        assert decoded == datetime(2005, 1, 3, 14, 30, 15, tzinfo=pytz.UTC)

    def test_dashed_without_seconds(self):
        assert decode_timestamp("2005-01-03 14:30") == datetime(2005, 1, 3, 14, 30, tzinfo=pytz.UTC)

    def test_iso8601_zulu(self):
        assert decode_timestamp("2024-01-02T10:00:00Z") == datetime(
            2024, 1, 2, 10, tzinfo=pytz.UTC
        )

    def test_iso8601_offset_converted_to_utc(self):
        decoded = decode_timestamp("2024-01-02T12:00:00+02:00")
        assert decoded == datetime(2024, 1, 2, 10, tzinfo=pytz.UTC)

    def test_result_is_utc_aware(self):
        decoded = decode_timestamp("2024.01.02 10:00")
        assert decoded.tzinfo is not None
        assert decoded.utcoffset().total_seconds() == 0

    def test_surrounding_whitespace_ignored(self):
        assert decode_timestamp("  2005.01.03 00:00 ") == datetime(2005, 1, 3, tzinfo=pytz.UTC)


class TestMatchers:
    def test_matcher_returns_none_on_other_shape(self):
        assert match_year_first_dotted("03.01.2005 00:00") is None
        assert match_day_first_dotted("2005.01.03 00:00") is None
        assert match_iso8601("not a date") is None

    def test_matcher_raises_on_impossible_components(self):
        with pytest.raises(ValueError):
            match_year_first_dotted("2024.02.30 00:00")


class TestMalformed:
    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "yesterday", "2024/01/02 10:00", "2024.13.01 00:00", "31.02.2024 00:00"],
    )
    def test_rejected(self, raw):
        with pytest.raises(MalformedTimestampError):
            decode_timestamp(raw)

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            decode_timestamp("garbage")

    def test_impossible_date_is_not_retried_with_later_formats(self):
        with pytest.raises(MalformedTimestampError, match="Invalid date format"):
            decode_timestamp("2024.02.30 00:00")
