"""fx-ingest: bulk ingestion of FX candles and economic calendar publications."""

__version__ = "0.1.0"
