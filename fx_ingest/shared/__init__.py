"""Shared utilities and configuration."""

from fx_ingest.shared.config import Config
from fx_ingest.shared.utils import is_weekend, setup_logger, to_utc

__all__ = ["Config", "setup_logger", "to_utc", "is_weekend"]
