"""Tests for configuration."""

import pytest

from fx_ingest.shared.config import Config


def test_defaults():
    assert Config.CANDLE_BATCH_SIZE > 0
    assert Config.PUBLICATION_BATCH_SIZE > 0
    assert Config.MAX_WORKERS > 0
    assert Config.IMPORT_DIR is not None


def test_database_url_assembled(monkeypatch):
    monkeypatch.setattr(Config, "DATABASE_URL", None)
    monkeypatch.setattr(Config, "DB_USER", "fx")
    monkeypatch.setattr(Config, "DB_PASSWORD", "secret")
    monkeypatch.setattr(Config, "DB_HOST", "db")
    monkeypatch.setattr(Config, "DB_PORT", 5433)
    monkeypatch.setattr(Config, "DB_NAME", "candles")

    assert Config().database_url == "postgresql+psycopg2://fx:secret@db:5433/candles"


def test_database_url_override(monkeypatch):
    monkeypatch.setattr(Config, "DATABASE_URL", "sqlite:///local.db")
    assert Config().database_url == "sqlite:///local.db"


@pytest.mark.parametrize("setting", ["CANDLE_BATCH_SIZE", "PUBLICATION_BATCH_SIZE", "MAX_WORKERS"])
def test_validate_rejects_non_positive(monkeypatch, setting):
    monkeypatch.setattr(Config, setting, 0)
    with pytest.raises(ValueError, match=setting):
        Config.validate()


def test_validate_accepts_defaults(monkeypatch):
    monkeypatch.setattr(Config, "CANDLE_BATCH_SIZE", 10000)
    monkeypatch.setattr(Config, "PUBLICATION_BATCH_SIZE", 1000)
    monkeypatch.setattr(Config, "MAX_WORKERS", 4)
    Config.validate()
