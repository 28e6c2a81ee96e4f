from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .base import Base


class FXCandle(Base):
    __tablename__ = "fx_candles"

    id = Column(Integer, primary_key=True)
    timestamp_utc = Column(TIMESTAMP, nullable=False)
    pair = Column(String(10), nullable=False)
    timeframe = Column(String(10), nullable=False)
    open = Column(Float, nullable=False)
    high = Column(Float, nullable=False)
    low = Column(Float, nullable=False)
    close = Column(Float, nullable=False)
    volume = Column(Float, nullable=False)
    source = Column(String(50))

    __table_args__ = (
        UniqueConstraint("pair", "timeframe", "timestamp_utc", name="uq_fx_candles_key"),
        Index("idx_fx_candles_time", "timestamp_utc"),
    )


class EconomicIndicator(Base):
    __tablename__ = "economic_indicators"

    id = Column(Integer, primary_key=True)
    forex_factory_id = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    country = Column(String(50))
    impact = Column(String(20))
    frequency = Column(String(20))
    publishing_time = Column(String(20))
    affected_currencies = Column(JSON)
    affected_pairs = Column(JSON)
    title = Column(String(200))
    description = Column(Text)

    __table_args__ = (
        UniqueConstraint("forex_factory_id", name="uq_economic_indicators_ff_id"),
    )


class IndicatorPublication(Base):
    __tablename__ = "indicator_publications"

    id = Column(Integer, primary_key=True)
    indicator_id = Column(Integer, ForeignKey("economic_indicators.id"), nullable=False)
    external_event_id = Column(String(50), nullable=False)
    timestamp_utc = Column(TIMESTAMP, nullable=False)
    actual = Column(JSON(none_as_null=True))
    forecast = Column(JSON(none_as_null=True))
    previous = Column(JSON(none_as_null=True))
    revision = Column(JSON(none_as_null=True))
    is_active = Column(Boolean, default=False)
    is_most_recent = Column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("external_event_id", name="uq_indicator_publications_event"),
        Index("idx_indicator_publications_indicator_time", "indicator_id", "timestamp_utc"),
    )
