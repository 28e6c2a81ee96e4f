"""Shared fixtures: a throwaway SQLite database and candle CSV writers."""

from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from fx_ingest.shared.db import (
    CandleRepository,
    IndicatorRepository,
    PublicationRepository,
    create_db_engine,
    get_session_factory,
    init_db,
)

CSV_HEADER = "Gmt time,Open,High,Low,Close,Volume"


def candle_lines(count: int, start: datetime = datetime(2024, 1, 1), step_hours: int = 1) -> list[str]:
    """Consecutive well-formed candle rows starting at ``start`` (2024-01-01 is a Monday)."""
    lines = []
    for i in range(count):
        ts = start + timedelta(hours=i * step_hours)
        base = 1.1000 + i * 0.0001
        lines.append(
            f"{ts:%Y.%m.%d %H:%M},{base:.5f},{base + 0.0010:.5f},{base - 0.0010:.5f},"
            f"{base + 0.0005:.5f},{100 + i}"
        )
    return lines


def write_lines(path: Path, lines: list[str], header: bool = True) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = ([CSV_HEADER] if header else []) + lines
    path.write_text("\n".join(content) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def write_csv() -> Callable[..., Path]:
    return write_lines


@pytest.fixture
def db_engine(tmp_path: Path):
    """File-backed SQLite engine with all tables created."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'fx_ingest.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def candle_repository(session_factory) -> CandleRepository:
    return CandleRepository(session_factory)


@pytest.fixture
def indicator_repository(session_factory) -> IndicatorRepository:
    return IndicatorRepository(session_factory)


@pytest.fixture
def publication_repository(session_factory) -> PublicationRepository:
    return PublicationRepository(session_factory)


@pytest.fixture
def make_lines() -> Callable[..., list[str]]:
    return candle_lines
