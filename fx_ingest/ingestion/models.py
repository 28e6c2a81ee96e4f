"""Domain records flowing through the ingestion pipeline.

Candle:
    One OHLCV observation for a currency pair at a timeframe-aligned UTC
    instant. Natural key: (pair, timeframe, timestamp).

Indicator:
    An economic indicator as described by the calendar feed.
    Natural key: forex_factory_id.

IndicatorPublication:
    One release of an indicator. Natural key: external_event_id.

BulkInsertResult:
    What a storage bulk write reports back for one submitted batch.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from fx_ingest.shared.constants import DEFAULT_SOURCE

PublicationValue = float | int | str | None


class DatasetKey(NamedTuple):
    """Identity of an import unit: one (pair, timeframe) combination."""

    pair: str
    timeframe: str

    def __str__(self) -> str:
        return f"{self.pair}_{self.timeframe}"


@dataclass(frozen=True)
class SourceFile:
    """A discovered source file resolved to its dataset."""

    path: Path
    pair: str
    timeframe: str

    @property
    def key(self) -> DatasetKey:
        return DatasetKey(self.pair, self.timeframe)


@dataclass(frozen=True)
class Candle:
    pair: str
    timeframe: str
    timestamp: datetime
    ohlcv: tuple[float, float, float, float, float]
    source: str = DEFAULT_SOURCE

    @property
    def open(self) -> float:
        return self.ohlcv[0]

    @property
    def high(self) -> float:
        return self.ohlcv[1]

    @property
    def low(self) -> float:
        return self.ohlcv[2]

    @property
    def close(self) -> float:
        return self.ohlcv[3]

    @property
    def volume(self) -> float:
        return self.ohlcv[4]

    @property
    def natural_key(self) -> tuple[str, str, datetime]:
        return (self.pair, self.timeframe, self.timestamp)


@dataclass(frozen=True)
class Indicator:
    forex_factory_id: str
    name: str
    country: str
    impact: str
    frequency: str | None
    publishing_time: str
    affected_currencies: list[str] = field(default_factory=list)
    affected_pairs: list[str] = field(default_factory=list)
    title: str = ""
    description: str = ""


@dataclass(frozen=True)
class IndicatorPublication:
    indicator_id: int
    external_event_id: str
    timestamp: datetime
    actual: PublicationValue = None
    forecast: PublicationValue = None
    previous: PublicationValue = None
    revision: PublicationValue = None
    is_active: bool = False
    is_most_recent: bool = False


@dataclass(frozen=True)
class InsertFailure:
    """One record of a batch that storage refused.

    ``duplicate`` is True when the refusal was a natural-key collision.
    """

    index: int
    reason: str
    duplicate: bool = True


@dataclass(frozen=True)
class BulkInsertResult:
    inserted_count: int
    failures: list[InsertFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
