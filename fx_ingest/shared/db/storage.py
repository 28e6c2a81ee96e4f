"""
Repository layer for fx-ingest.

Each repository wraps one table and exposes the contracts the ingestion
pipeline consumes: a conflict-tolerant bulk write, natural-key existence
checks, and count / date-range queries for post-run reporting.

Example:

    from fx_ingest.shared.db import CandleRepository, create_db_engine, get_session_factory

    engine = create_db_engine()
    repository = CandleRepository(get_session_factory(engine))
    result = repository.bulk_insert(candles)
    print(result.inserted_count, len(result.failures))

Bulk writes run ``INSERT ... ON CONFLICT DO NOTHING RETURNING <natural key>``
in sub-statements of at most ``STATEMENT_ROWS`` rows, all inside one
transaction per batch. Rows whose key is not returned were refused by the
unique constraint and are reported as duplicate failures by index.
"""

from collections import Counter
from datetime import datetime

from sqlalchemy import Table, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from fx_ingest.ingestion.models import (
    BulkInsertResult,
    Candle,
    Indicator,
    IndicatorPublication,
    InsertFailure,
)
from fx_ingest.shared.utils import from_naive_utc, to_naive_utc

from .models import EconomicIndicator, FXCandle
from .models import IndicatorPublication as PublicationRow
from .session import get_db

# Keeps every statement well below SQLite's bound-parameter limit
STATEMENT_ROWS = 1000


def _dialect_insert(session: Session, table: Table):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise NotImplementedError(f"Bulk insert is not supported for dialect '{dialect}'")


def _match_inserted(
    rows: list[dict], key_columns: tuple[str, ...], returned: list[tuple]
) -> BulkInsertResult:
    """Attribute returned keys to row indexes; every unmatched row is a failure.

    A key repeated inside one batch is credited to its first occurrence only.
    """
    remaining = Counter(returned)
    failures = []
    for index, row in enumerate(rows):
        key = tuple(row[name] for name in key_columns)
        if remaining[key] > 0:
            remaining[key] -= 1
        else:
            failures.append(InsertFailure(index=index, reason=f"duplicate key {key}"))
    return BulkInsertResult(inserted_count=len(rows) - len(failures), failures=failures)


def bulk_insert_ignoring_conflicts(
    session_factory: sessionmaker,
    table: Table,
    rows: list[dict],
    key_columns: tuple[str, ...],
) -> BulkInsertResult:
    """Insert ``rows`` into ``table``, skipping natural-key collisions.

    Args:
        session_factory: Session factory bound to the target database.
        table: Target table.
        rows: Column-name -> value mappings, in batch order.
        key_columns: Columns of the natural-key unique constraint.

    Returns:
        Inserted count plus one failure per refused row.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: On any failure other than a key
            collision. The whole batch is rolled back.
    """
    if not rows:
        return BulkInsertResult(inserted_count=0)

    key_cols = [table.c[name] for name in key_columns]
    returned: list[tuple] = []
    with get_db(session_factory) as session:
        for start in range(0, len(rows), STATEMENT_ROWS):
            chunk = rows[start : start + STATEMENT_ROWS]
            stmt = (
                _dialect_insert(session, table)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=list(key_columns))
                .returning(*key_cols)
            )
            returned.extend(tuple(row) for row in session.execute(stmt))

    return _match_inserted(rows, key_columns, returned)


class CandleRepository:
    """Storage contract for FX candles (table ``fx_candles``)."""

    KEY_COLUMNS = ("pair", "timeframe", "timestamp_utc")

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def bulk_insert(self, candles: list[Candle]) -> BulkInsertResult:
        rows = [
            {
                "timestamp_utc": to_naive_utc(candle.timestamp),
                "pair": candle.pair,
                "timeframe": candle.timeframe,
                "open": candle.open,
                "high": candle.high,
                "low": candle.low,
                "close": candle.close,
                "volume": candle.volume,
                "source": candle.source,
            }
            for candle in candles
        ]
        return bulk_insert_ignoring_conflicts(
            self._session_factory, FXCandle.__table__, rows, self.KEY_COLUMNS
        )

    def count(self, pair: str, timeframe: str) -> int:
        with get_db(self._session_factory) as session:
            return (
                session.query(func.count(FXCandle.id))
                .filter(FXCandle.pair == pair, FXCandle.timeframe == timeframe)
                .scalar()
            )

    def date_range(self, pair: str, timeframe: str) -> tuple[datetime | None, datetime | None]:
        """Return (oldest, newest) candle open times, or (None, None) if empty."""
        with get_db(self._session_factory) as session:
            oldest, newest = (
                session.query(func.min(FXCandle.timestamp_utc), func.max(FXCandle.timestamp_utc))
                .filter(FXCandle.pair == pair, FXCandle.timeframe == timeframe)
                .one()
            )
        return from_naive_utc(oldest), from_naive_utc(newest)

    def available_data_info(self) -> list[dict]:
        """Count and date range for every stored (pair, timeframe)."""
        with get_db(self._session_factory) as session:
            rows = (
                session.query(
                    FXCandle.pair,
                    FXCandle.timeframe,
                    func.count(FXCandle.id),
                    func.min(FXCandle.timestamp_utc),
                    func.max(FXCandle.timestamp_utc),
                )
                .group_by(FXCandle.pair, FXCandle.timeframe)
                .order_by(FXCandle.pair, FXCandle.timeframe)
                .all()
            )
        return [
            {
                "pair": pair,
                "timeframe": timeframe,
                "count": count,
                "oldest": from_naive_utc(oldest),
                "newest": from_naive_utc(newest),
            }
            for pair, timeframe, count, oldest, newest in rows
        ]


class IndicatorRepository:
    """Storage contract for economic indicators (table ``economic_indicators``)."""

    KEY_COLUMNS = ("forex_factory_id",)

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def bulk_insert(self, indicators: list[Indicator]) -> BulkInsertResult:
        rows = [
            {
                "forex_factory_id": indicator.forex_factory_id,
                "name": indicator.name,
                "country": indicator.country,
                "impact": indicator.impact,
                "frequency": indicator.frequency,
                "publishing_time": indicator.publishing_time,
                "affected_currencies": list(indicator.affected_currencies),
                "affected_pairs": list(indicator.affected_pairs),
                "title": indicator.title,
                "description": indicator.description,
            }
            for indicator in indicators
        ]
        return bulk_insert_ignoring_conflicts(
            self._session_factory, EconomicIndicator.__table__, rows, self.KEY_COLUMNS
        )

    def exists_by_key(self, forex_factory_id: str) -> bool:
        with get_db(self._session_factory) as session:
            return (
                session.query(EconomicIndicator.id)
                .filter(EconomicIndicator.forex_factory_id == forex_factory_id)
                .first()
                is not None
            )

    def id_map(self) -> dict[str, int]:
        """Map every stored forex_factory_id to its storage id."""
        with get_db(self._session_factory) as session:
            rows = session.query(EconomicIndicator.forex_factory_id, EconomicIndicator.id).all()
        return {ff_id: indicator_id for ff_id, indicator_id in rows}


class PublicationRepository:
    """Storage contract for indicator publications (table ``indicator_publications``)."""

    KEY_COLUMNS = ("external_event_id",)

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def bulk_insert(self, publications: list[IndicatorPublication]) -> BulkInsertResult:
        rows = [
            {
                "indicator_id": publication.indicator_id,
                "external_event_id": publication.external_event_id,
                "timestamp_utc": to_naive_utc(publication.timestamp),
                "actual": publication.actual,
                "forecast": publication.forecast,
                "previous": publication.previous,
                "revision": publication.revision,
                "is_active": publication.is_active,
                "is_most_recent": publication.is_most_recent,
            }
            for publication in publications
        ]
        return bulk_insert_ignoring_conflicts(
            self._session_factory, PublicationRow.__table__, rows, self.KEY_COLUMNS
        )

    def exists_by_key(self, external_event_id: str) -> bool:
        with get_db(self._session_factory) as session:
            return (
                session.query(PublicationRow.id)
                .filter(PublicationRow.external_event_id == external_event_id)
                .first()
                is not None
            )

    def count(self, indicator_id: int) -> int:
        with get_db(self._session_factory) as session:
            return (
                session.query(func.count(PublicationRow.id))
                .filter(PublicationRow.indicator_id == indicator_id)
                .scalar()
            )

    def date_range(self, indicator_id: int) -> tuple[datetime | None, datetime | None]:
        with get_db(self._session_factory) as session:
            oldest, newest = (
                session.query(
                    func.min(PublicationRow.timestamp_utc), func.max(PublicationRow.timestamp_utc)
                )
                .filter(PublicationRow.indicator_id == indicator_id)
                .one()
            )
        return from_naive_utc(oldest), from_naive_utc(newest)

    def find_by_indicator(
        self,
        indicator_id: int,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[IndicatorPublication]:
        """Publications of one indicator, newest first."""
        with get_db(self._session_factory) as session:
            query = session.query(PublicationRow).filter(
                PublicationRow.indicator_id == indicator_id
            )
            if start_date:
                query = query.filter(PublicationRow.timestamp_utc >= to_naive_utc(start_date))
            if end_date:
                query = query.filter(PublicationRow.timestamp_utc <= to_naive_utc(end_date))
            rows = query.order_by(PublicationRow.timestamp_utc.desc()).offset(skip).limit(limit).all()

            return [
                IndicatorPublication(
                    indicator_id=row.indicator_id,
                    external_event_id=row.external_event_id,
                    timestamp=from_naive_utc(row.timestamp_utc),
                    actual=row.actual,
                    forecast=row.forecast,
                    previous=row.previous,
                    revision=row.revision,
                    is_active=bool(row.is_active),
                    is_most_recent=bool(row.is_most_recent),
                )
                for row in rows
            ]
