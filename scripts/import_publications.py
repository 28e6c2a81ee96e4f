"""Import economic indicators and their publications from an enriched calendar export.

Usage:
    # Default export location
    python scripts/import_publications.py

    # Explicit export file and batch size
    python scripts/import_publications.py --source data/calendar/enriched.json --batch-size 500
"""

import argparse
import sys
from pathlib import Path

from fx_ingest.ingestion.publication_pipeline import PublicationImportPipeline
from fx_ingest.shared.config import Config
from fx_ingest.shared.db import (
    IndicatorRepository,
    PublicationRepository,
    StorageUnavailableError,
    create_db_engine,
    get_session_factory,
    init_db,
)
from fx_ingest.shared.utils import setup_logger

DEFAULT_SOURCE = Config.DATA_DIR / "calendar" / "enriched_indicators.json"


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Import economic indicators and publications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--source",
        type=Path,
        default=DEFAULT_SOURCE,
        help=f"Enriched calendar export (default: {DEFAULT_SOURCE})",
        metavar="PATH",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=Config.PUBLICATION_BATCH_SIZE,
        help=f"Records per bulk insert (default: {Config.PUBLICATION_BATCH_SIZE})",
        metavar="N",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger = setup_logger(
        "import_publications",
        level="DEBUG" if args.verbose else Config.LOG_LEVEL,
    )

    try:
        Config.validate()
        engine = create_db_engine()
        init_db(engine)
        session_factory = get_session_factory(engine)

        pipeline = PublicationImportPipeline(
            IndicatorRepository(session_factory),
            PublicationRepository(session_factory),
            batch_size=args.batch_size,
            db_engine=engine,
        )
        run = pipeline.run(args.source)

    except (StorageUnavailableError, ValueError) as e:
        logger.error("Import aborted: %s", e)
        return 1

    except KeyboardInterrupt:
        logger.warning("Import interrupted by user")
        return 130

    if not run.datasets:
        logger.warning("Nothing imported")
        return 0

    for key, dataset in run.datasets.items():
        totals = dataset.totals
        logger.info(
            "  ✓ %s: %d new, %d already stored, %d error(s)",
            key,
            totals.inserted,
            totals.skipped + totals.duplicates,
            totals.error_count,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
