"""Report which candle datasets are stored and which are still missing.

Usage:
    python scripts/check_candles.py
    python scripts/check_candles.py --pair EURUSD
"""

import argparse
import sys

from fx_ingest.ingestion.statistics import coverage_report
from fx_ingest.shared.db import (
    CandleRepository,
    StorageUnavailableError,
    check_connection,
    create_db_engine,
    get_session_factory,
)
from fx_ingest.shared.utils import setup_logger


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Show stored candle coverage per pair and timeframe",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--pair", type=str, help="Only report this pair", metavar="PAIR")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger = setup_logger("check_candles")

    try:
        engine = create_db_engine()
        check_connection(engine)
        report = coverage_report(CandleRepository(get_session_factory(engine)))
    except StorageUnavailableError as e:
        logger.error("%s", e)
        return 1

    pair = args.pair.upper() if args.pair else None
    available = [item for item in report.available if pair is None or item["pair"] == pair]
    missing = [key for key in report.missing if pair is None or key.pair == pair]

    print(f"\nStored datasets ({len(available)})\n" + "=" * 60)
    for item in available:
        oldest = item["oldest"].date().isoformat() if item["oldest"] else "-"
        newest = item["newest"].date().isoformat() if item["newest"] else "-"
        print(f"  {item['pair']:<8} {item['timeframe']:<4} {item['count']:>10,}  {oldest} -> {newest}")

    print(f"\nMissing datasets ({len(missing)})\n" + "=" * 60)
    for key in missing:
        print(f"  {key}")

    print(f"\nTotal candles: {sum(item['count'] for item in available):,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
