"""Candle and calendar ingestion: parsing, validation, discovery and batched import.

The pipelines (``candle_pipeline``, ``publication_pipeline``) depend on the
storage layer and are imported from their modules directly.
"""

from fx_ingest.ingestion.batch_import import BatchImportEngine, iter_batches
from fx_ingest.ingestion.csv_stream import CandleStreamParser, file_info
from fx_ingest.ingestion.dedup import dedup_gate
from fx_ingest.ingestion.locator import DatasetLocator, group_import_units
from fx_ingest.ingestion.models import (
    BulkInsertResult,
    Candle,
    DatasetKey,
    Indicator,
    IndicatorPublication,
    InsertFailure,
    SourceFile,
)
from fx_ingest.ingestion.statistics import DatasetStatistics, ImportStatistics, RunStatistics
from fx_ingest.ingestion.timestamps import MalformedTimestampError, decode_timestamp
from fx_ingest.ingestion.validators import ValidationResult, Violation, validate_candle

__all__ = [
    "BatchImportEngine",
    "BulkInsertResult",
    "Candle",
    "CandleStreamParser",
    "DatasetKey",
    "DatasetLocator",
    "DatasetStatistics",
    "ImportStatistics",
    "Indicator",
    "IndicatorPublication",
    "InsertFailure",
    "MalformedTimestampError",
    "RunStatistics",
    "SourceFile",
    "ValidationResult",
    "Violation",
    "decode_timestamp",
    "dedup_gate",
    "file_info",
    "group_import_units",
    "iter_batches",
    "validate_candle",
]
