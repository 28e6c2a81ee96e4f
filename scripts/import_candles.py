"""Bulk import of FX candle CSV exports into the database.

Walks an import directory, groups files by (pair, timeframe), and streams
every file into the ``fx_candles`` table in batches. Re-running over the
same files is safe: rows that are already stored are counted as duplicates.

Usage:
    # Import everything under the default folder (IMPORT_DIR)
    python scripts/import_candles.py

    # Flat folder of EURUSD_1h.csv style files
    python scripts/import_candles.py --root data/candles-import --layout flat

    # Nested PAIR/h1/*.csv exports, smaller batches, two workers
    python scripts/import_candles.py --layout nested --batch-size 5000 --workers 2

    # Files without a header line, write a per-dataset summary
    python scripts/import_candles.py --no-header --summary-csv logs/import_summary.csv

Example:
    $ python scripts/import_candles.py --root data/candles-import
    [INFO] Found 3 source file(s) under data/candles-import
    [INFO] Importing 2 dataset(s) with 2 worker(s), batch size 10000
    [INFO] EURUSD_1h summary: inserted 43,800, duplicates 0, errors 2
    [INFO] Import completed: 2 dataset(s), 3 file(s), 45626 inserted, 0 duplicates, 2 errors

Press Ctrl+C to stop after the in-flight batches; the summary still prints.
"""

import argparse
import signal
import sys
from pathlib import Path

from fx_ingest.ingestion.candle_pipeline import CandleImportPipeline
from fx_ingest.ingestion.locator import DatasetLocator
from fx_ingest.shared.config import Config
from fx_ingest.shared.db import (
    CandleRepository,
    StorageUnavailableError,
    create_db_engine,
    get_session_factory,
    init_db,
)
from fx_ingest.shared.utils import setup_logger


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Import FX candle CSV files into the database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--root",
        type=Path,
        default=Config.IMPORT_DIR,
        help=f"Import directory (default: {Config.IMPORT_DIR})",
        metavar="DIR",
    )

    parser.add_argument(
        "--layout",
        choices=DatasetLocator.LAYOUTS,
        default="auto",
        help="Directory layout (default: auto)",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=Config.CANDLE_BATCH_SIZE,
        help=f"Candles per bulk insert (default: {Config.CANDLE_BATCH_SIZE})",
        metavar="N",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=Config.MAX_WORKERS,
        help=f"Datasets imported in parallel (default: {Config.MAX_WORKERS})",
        metavar="N",
    )

    parser.add_argument(
        "--no-header",
        action="store_true",
        help="Treat the first line of every file as data",
    )

    parser.add_argument(
        "--summary-csv",
        type=Path,
        help="Write the per-dataset summary to this CSV file",
        metavar="PATH",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args()


def main() -> int:
    """Main import script."""
    args = parse_args()

    logger = setup_logger(
        "import_candles",
        level="DEBUG" if args.verbose else Config.LOG_LEVEL,
    )

    try:
        Config.validate()
        engine = create_db_engine()
        init_db(engine)

        pipeline = CandleImportPipeline(
            CandleRepository(get_session_factory(engine)),
            batch_size=args.batch_size,
            max_workers=args.workers,
            skip_header=not args.no_header,
            db_engine=engine,
        )
        signal.signal(signal.SIGINT, lambda signum, frame: pipeline.cancel())

        logger.info("=" * 60)
        logger.info("Candle import: %s (layout: %s)", args.root, args.layout)
        logger.info("=" * 60)

        run = pipeline.run(args.root, layout=args.layout)

    except (StorageUnavailableError, FileNotFoundError, ValueError) as e:
        logger.error("Import aborted: %s", e)
        return 1

    if args.summary_csv:
        args.summary_csv.parent.mkdir(parents=True, exist_ok=True)
        run.to_dataframe().to_csv(args.summary_csv, index=False)
        logger.info("Summary written to %s", args.summary_csv)

    if run.cancelled:
        logger.warning("Import cancelled by user")
        return 130

    logger.info("")
    logger.info("=" * 60)
    logger.info("✓ Import Complete!")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
