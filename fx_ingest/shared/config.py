"""Configuration management for fx-ingest."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Project paths
    ROOT_DIR = Path(__file__).parent.parent.parent
    DATA_DIR = ROOT_DIR / "data"
    LOGS_DIR = ROOT_DIR / "logs"
    IMPORT_DIR = Path(os.getenv("IMPORT_DIR", str(DATA_DIR / "candles-import")))

    # Database
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
    DB_NAME: str = os.getenv("DB_NAME", "fx_ingest")
    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")

    # Import settings
    CANDLE_BATCH_SIZE: int = int(os.getenv("CANDLE_BATCH_SIZE", "10000"))
    PUBLICATION_BATCH_SIZE: int = int(os.getenv("PUBLICATION_BATCH_SIZE", "1000"))
    MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "4"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> None:
        """Validate import configuration.

        Raises:
            ValueError: If a batch size or the worker count is not positive.
        """
        if cls.CANDLE_BATCH_SIZE <= 0:
            raise ValueError(f"CANDLE_BATCH_SIZE must be positive, got {cls.CANDLE_BATCH_SIZE}")
        if cls.PUBLICATION_BATCH_SIZE <= 0:
            raise ValueError(
                f"PUBLICATION_BATCH_SIZE must be positive, got {cls.PUBLICATION_BATCH_SIZE}"
            )
        if cls.MAX_WORKERS <= 0:
            raise ValueError(f"MAX_WORKERS must be positive, got {cls.MAX_WORKERS}")

    @property
    def database_url(self) -> str:
        """Construct database URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


config = Config()
