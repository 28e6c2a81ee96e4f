"""Streaming CSV reader for candle files.

Expected row layout: ``timestamp,open,high,low,close,volume`` with an
optional header line, e.g.::

    Gmt time,Open,High,Low,Close,Volume
    2005.01.03 00:00,1.3556,1.3576,1.3555,1.3569,53

Rows are read and decoded one line at a time; the file is never
materialised. Rejected rows (including undecodable bytes) are recorded as
``"line <n>: <reason>"`` and the stream carries on.
Rows dated on a Saturday or Sunday (UTC) are dropped without being counted
as rejected.
"""

from collections.abc import Iterator
from pathlib import Path

from fx_ingest.ingestion.models import Candle
from fx_ingest.ingestion.timestamps import MalformedTimestampError, decode_timestamp
from fx_ingest.ingestion.validators import validate_candle
from fx_ingest.shared.constants import DEFAULT_SOURCE
from fx_ingest.shared.utils import is_weekend


class RecordRejected(ValueError):
    """A single source line could not be turned into a valid candle."""


class CandleStreamParser:
    """Lazy, single-pass candle sequence over one CSV file.

    Iterating yields valid candles in line order. The counters and the
    ``errors`` list describe the lines consumed so far, so they are complete
    once iteration finishes (or as far as it got, if the consumer stopped
    early).

    Example:
        parser = CandleStreamParser(Path("EURUSD_1h.csv"), "EURUSD", "1h")
        for candle in parser:
            ...
        print(parser.valid_count, parser.errors)
    """

    EXPECTED_COLUMNS = 6

    def __init__(
        self,
        path: Path,
        pair: str,
        timeframe: str,
        skip_header: bool = True,
        source: str = DEFAULT_SOURCE,
    ) -> None:
        self.path = Path(path)
        self.pair = pair
        self.timeframe = timeframe
        self.skip_header = skip_header
        self.source = source

        self.errors: list[str] = []
        self.lines_read = 0
        self.valid_count = 0
        self.weekend_skipped = 0
        self._consumed = False

    @property
    def rejected_count(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[Candle]:
        if self._consumed:
            raise RuntimeError(f"{self.path} has already been streamed")
        self._consumed = True
        return self._stream()

    def _stream(self) -> Iterator[Candle]:
        with self.path.open("rb") as handle:
            for line_number, raw in enumerate(handle, start=1):
                self.lines_read = line_number

                if line_number == 1 and self.skip_header:
                    continue

                try:
                    line = raw.decode("utf-8-sig" if line_number == 1 else "utf-8")
                except UnicodeDecodeError as e:
                    self.errors.append(f"line {line_number}: MalformedEncoding: {e}")
                    continue

                if not line.strip():
                    continue

                try:
                    candle = self.parse_line(line)
                except RecordRejected as e:
                    self.errors.append(f"line {line_number}: {e}")
                    continue

                if candle is None:
                    self.weekend_skipped += 1
                    continue

                self.valid_count += 1
                yield candle

    def parse_line(self, line: str) -> Candle | None:
        """Parse one CSV row.

        Returns:
            The candle, or ``None`` if it falls on a weekend.

        Raises:
            RecordRejected: On a wrong column count, an undecodable
                timestamp, non-numeric OHLCV, or a failed validation.
        """
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < self.EXPECTED_COLUMNS:
            raise RecordRejected(
                f"WrongColumnCount: expected {self.EXPECTED_COLUMNS} columns, got {len(parts)}"
            )

        date_str, *value_strs = parts[: self.EXPECTED_COLUMNS]

        try:
            timestamp = decode_timestamp(date_str)
        except MalformedTimestampError as e:
            raise RecordRejected(f"MalformedTimestamp: {e}") from e

        if is_weekend(timestamp):
            return None

        try:
            ohlcv = tuple(float(value) for value in value_strs)
        except ValueError as e:
            raise RecordRejected(f"MalformedOHLCV: Invalid numeric values in OHLCV ({e})") from e

        candle = Candle(
            pair=self.pair,
            timeframe=self.timeframe,
            timestamp=timestamp,
            ohlcv=ohlcv,
            source=self.source,
        )
        result = validate_candle(candle)
        if not result.valid:
            raise RecordRejected(str(result))
        return candle


def file_info(path: Path) -> tuple[int, int]:
    """Return (line count, size in bytes) without loading the file."""
    path = Path(path)
    with path.open("rb") as handle:
        lines = sum(1 for _ in handle)
    return lines, path.stat().st_size
