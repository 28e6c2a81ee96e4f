"""Engine construction and connectivity checks."""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from fx_ingest.shared.config import Config

from .base import Base


class StorageUnavailableError(RuntimeError):
    """Raised when the database cannot be reached at all."""


def create_db_engine(url: str | None = None, echo: bool = False) -> Engine:
    """Create an engine for ``url`` (default: ``Config().database_url``).

    PostgreSQL gets a bounded connection pool sized for parallel import units.
    """
    url = url or Config().database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=echo,
    )


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401  (register tables on Base.metadata)

    Base.metadata.create_all(engine)


def check_connection(engine: Engine) -> None:
    """Verify the database is reachable.

    Raises:
        StorageUnavailableError: If a trivial query cannot be executed.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StorageUnavailableError(f"Database connection failed: {e}") from e
