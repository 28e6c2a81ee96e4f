"""Database engine, session factory, ORM models, and repositories."""

from .base import Base
from .engine import StorageUnavailableError, check_connection, create_db_engine, init_db
from .models import EconomicIndicator, FXCandle, IndicatorPublication
from .session import get_db, get_session_factory
from .storage import (
    CandleRepository,
    IndicatorRepository,
    PublicationRepository,
    bulk_insert_ignoring_conflicts,
)

__all__ = [
    # ORM infrastructure
    "Base",
    "create_db_engine",
    "init_db",
    "check_connection",
    "StorageUnavailableError",
    "get_session_factory",
    "get_db",
    # ORM models
    "FXCandle",
    "EconomicIndicator",
    "IndicatorPublication",
    # Repositories
    "CandleRepository",
    "IndicatorRepository",
    "PublicationRepository",
    "bulk_insert_ignoring_conflicts",
]
