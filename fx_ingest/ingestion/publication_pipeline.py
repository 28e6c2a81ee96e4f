"""Economic indicator and publication import.

Input is the enriched calendar export written by the calendar scraper::

    {
      "indicators": [
        {
          "ebaseId": 123, "name": "Non-Farm Employment Change",
          "country": "US", "currency": "USD", "impactName": "high",
          "timeMasked": false, "soloTitle": "...", "specs": [...],
          "publications": [
            {"id": 98765, "dateline": 1704461400, "actual": "216K",
             "forecast": "170K", "previous": "199K", "revision": "173K",
             "is_active": false, "is_most_recent": true}
          ]
        }
      ]
    }

Indicators are imported first (natural key ``forex_factory_id``), storage
ids are then resolved, and publications follow (natural key
``external_event_id``). Both passes put a dedup gate in front of the batch
engine, and storage uniqueness catches whatever slips through concurrently.
"""

import json
import threading
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

import pytz
from sqlalchemy.engine import Engine

from fx_ingest.ingestion.batch_import import BatchImportEngine
from fx_ingest.ingestion.models import Indicator, IndicatorPublication
from fx_ingest.ingestion.statistics import DatasetStatistics, ImportStatistics, RunStatistics
from fx_ingest.shared.config import Config
from fx_ingest.shared.constants import CURRENCY_COUNTRIES, CURRENCY_PAIRS
from fx_ingest.shared.db import IndicatorRepository, PublicationRepository, check_connection
from fx_ingest.shared.utils import setup_logger

IMPACT_MAP = {
    "holiday": "low",
    "low": "low",
    "medium": "medium",
    "high": "high",
}

_FREQUENCY_KEYWORDS = (
    ("annual", ("annual", "yearly")),
    ("quarterly", ("quarter", "q1", "q2", "q3", "q4")),
    ("monthly", ("monthly", "month")),
    ("weekly", ("weekly", "week")),
    ("daily", ("daily", "day")),
)


def detect_frequency(name: str) -> str:
    """Guess the release frequency from an indicator name (default: monthly)."""
    lower = name.lower()
    for frequency, keywords in _FREQUENCY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return frequency
    return "monthly"


def detect_publishing_time(time_masked: bool) -> str:
    return "uncertain" if time_masked else "certain"


def currency_for_country(country: str | None) -> str | None:
    if not country:
        return None
    needle = country.strip().lower()
    for currency, countries in CURRENCY_COUNTRIES.items():
        if any(needle == name.lower() for name in countries):
            return currency
    return None


def affected_currencies(currency: str | None, country: str | None) -> list[str]:
    currencies = [currency] if currency else []
    country_currency = currency_for_country(country)
    if country_currency and country_currency not in currencies:
        currencies.append(country_currency)
    return currencies


def affected_pairs(currencies: list[str]) -> list[str]:
    """Supported pairs quoting any of ``currencies`` as base or quote."""
    return [
        pair for pair in CURRENCY_PAIRS if pair[:3] in currencies or pair[3:] in currencies
    ]


def transform_indicator(event: dict) -> Indicator | None:
    """Build an Indicator from a calendar event, or None without an ebaseId."""
    if not event.get("ebaseId"):
        return None

    name = event.get("name") or ""
    currencies = affected_currencies(event.get("currency"), event.get("country"))
    specs = sorted(event.get("specs") or [], key=lambda spec: spec.get("order") or 0)
    description = "\n\n".join(
        ": ".join(part for part in (spec.get("title"), spec.get("html")) if part) for spec in specs
    )

    return Indicator(
        forex_factory_id=str(event["ebaseId"]),
        name=name,
        country=event.get("country") or "",
        impact=IMPACT_MAP.get(str(event.get("impactName", "")).lower(), "low"),
        frequency=detect_frequency(name),
        publishing_time=detect_publishing_time(bool(event.get("timeMasked"))),
        affected_currencies=currencies,
        affected_pairs=affected_pairs(currencies),
        title=event.get("soloTitle") or event.get("prefixedName") or name,
        description=description,
    )


def _absent_if_blank(value):
    return None if value in ("", None) else value


def transform_publication(raw: dict, indicator_id: int) -> IndicatorPublication | None:
    """Build a publication from a raw entry, or None without id or dateline.

    ``dateline`` is a Unix timestamp in seconds.

    Raises:
        ValueError: If ``dateline`` is not an integer timestamp.
        OverflowError: If ``dateline`` is out of the representable range.
    """
    if not raw.get("id") or not raw.get("dateline"):
        return None

    return IndicatorPublication(
        indicator_id=indicator_id,
        external_event_id=str(raw["id"]),
        timestamp=datetime.fromtimestamp(int(raw["dateline"]), tz=pytz.UTC),
        actual=raw.get("actual"),
        forecast=raw.get("forecast"),
        previous=_absent_if_blank(raw.get("previous")),
        revision=raw.get("revision"),
        is_active=bool(raw.get("is_active")),
        is_most_recent=bool(raw.get("is_most_recent")),
    )


def load_enriched_events(path: Path) -> list[dict]:
    """Read the ``indicators`` list from an enriched calendar export.

    Raises:
        ValueError: If the file is not a JSON object with an indicators list.
    """
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or not isinstance(payload.get("indicators", []), list):
        raise ValueError(f"{path} is not an enriched calendar export")
    return payload.get("indicators", [])


class PublicationImportPipeline:
    """Imports indicators and their publications from an enriched export."""

    def __init__(
        self,
        indicator_repository: IndicatorRepository,
        publication_repository: PublicationRepository,
        batch_size: int | None = None,
        db_engine: Engine | None = None,
        cancel_event: threading.Event | None = None,
        log_file: Path | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            indicator_repository: Indicator storage.
            publication_repository: Publication storage.
            batch_size: Records per bulk write (default: Config.PUBLICATION_BATCH_SIZE).
            db_engine: When given, connectivity is checked before the run.
            cancel_event: Shared cancellation flag (one is created if omitted).
            log_file: Optional path for file-based logging.

        Raises:
            ValueError: If batch_size is not positive.
        """
        self.indicator_repository = indicator_repository
        self.publication_repository = publication_repository
        self.batch_size = batch_size if batch_size is not None else Config.PUBLICATION_BATCH_SIZE
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        self.db_engine = db_engine
        self.cancel_event = cancel_event or threading.Event()
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def cancel(self) -> None:
        self.logger.warning("Cancellation requested")
        self.cancel_event.set()

    def run(self, source_path: Path) -> RunStatistics:
        """Import indicators, then publications, from ``source_path``.

        Returns:
            Run statistics with an "indicators" and a "publications" dataset.
            Empty if the source file is missing.

        Raises:
            StorageUnavailableError: If the database cannot be reached.
            ValueError: If the source file is not an enriched export.
        """
        if self.db_engine is not None:
            check_connection(self.db_engine)

        run = RunStatistics()
        source_path = Path(source_path)
        if not source_path.is_file():
            self.logger.warning("Enriched calendar export not found: %s", source_path)
            return run

        events = load_enriched_events(source_path)
        self.logger.info("Found %d enriched indicator(s) in %s", len(events), source_path.name)

        indicators = self.import_indicators(events)
        run.add_dataset(indicators)

        if not self.cancel_event.is_set():
            run.add_dataset(self.import_publications(events))
        run.cancelled = self.cancel_event.is_set()

        for dataset in run.datasets.values():
            totals = dataset.totals
            self.logger.info(
                "%s: imported %d, skipped %d, duplicates %d, errors %d",
                dataset.key,
                totals.inserted,
                totals.skipped,
                totals.duplicates,
                totals.error_count,
            )
        return run

    def import_indicators(self, events: list[dict]) -> DatasetStatistics:
        dataset = DatasetStatistics(key="indicators")
        stats = ImportStatistics(label="indicators")

        engine = BatchImportEngine(
            self.indicator_repository.bulk_insert,
            batch_size=self.batch_size,
            exists=self.indicator_repository.exists_by_key,
            key_of=lambda indicator: indicator.forex_factory_id,
            cancel_event=self.cancel_event,
            logger=self.logger,
        )
        engine.run(self._iter_indicators(events, stats), stats)

        dataset.add_file(stats)
        dataset.cancelled = self.cancel_event.is_set()
        return dataset

    def import_publications(self, events: list[dict]) -> DatasetStatistics:
        dataset = DatasetStatistics(key="publications")
        stats = ImportStatistics(label="publications")

        id_map = self.indicator_repository.id_map()
        self.logger.info("Mapped %d stored indicator(s)", len(id_map))

        engine = BatchImportEngine(
            self.publication_repository.bulk_insert,
            batch_size=self.batch_size,
            exists=self.publication_repository.exists_by_key,
            key_of=lambda publication: publication.external_event_id,
            timestamp_of=lambda publication: publication.timestamp,
            cancel_event=self.cancel_event,
            logger=self.logger,
        )
        engine.run(self._iter_publications(events, id_map, stats), stats)

        dataset.add_file(stats)
        dataset.cancelled = self.cancel_event.is_set()
        return dataset

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _iter_indicators(self, events: list[dict], stats: ImportStatistics) -> Iterator[Indicator]:
        for position, event in enumerate(events):
            indicator = transform_indicator(event)
            if indicator is None:
                stats.record_rejections([f"indicator {position}: missing ebaseId"])
                continue
            yield indicator

    def _iter_publications(
        self, events: list[dict], id_map: dict[str, int], stats: ImportStatistics
    ) -> Iterator[IndicatorPublication]:
        for event in events:
            if not event.get("ebaseId"):
                continue
            forex_factory_id = str(event["ebaseId"])
            raw_publications = event.get("publications") or []

            indicator_id = id_map.get(forex_factory_id)
            if indicator_id is None:
                self.logger.warning(
                    "No indicator ID found for forexFactoryId %s (%d publication(s) skipped)",
                    forex_factory_id,
                    len(raw_publications),
                )
                stats.record_error(f"indicator {forex_factory_id}: not stored")
                continue

            for raw in raw_publications:
                if not isinstance(raw, dict):
                    stats.record_rejections(
                        [f"indicator {forex_factory_id}: publication entry is not an object"]
                    )
                    continue
                try:
                    publication = transform_publication(raw, indicator_id)
                except (TypeError, ValueError, OverflowError, OSError) as e:
                    stats.record_rejections(
                        [f"indicator {forex_factory_id} publication {raw.get('id')!r}: {e}"]
                    )
                    continue
                if publication is None:
                    message = (
                        f"indicator {forex_factory_id} publication {raw.get('id')!r}: "
                        "missing id or dateline"
                    )
                    stats.record_rejections([message])
                    continue
                yield publication
