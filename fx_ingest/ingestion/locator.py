"""Discovery of candle source files and their grouping into import units.

Two directory conventions are understood:

Flat:
    root/{PAIR}_{TIMEFRAME}.csv, e.g. ``EURUSD_1h.csv`` or ``eurusd_1H.csv``.
    Pair and timeframe are matched case-insensitively against the fixed
    enumerations.

Nested:
    root/{PAIR}/{timeframe-folder}/*.csv, where the folder name goes through
    ``FOLDER_TO_TIMEFRAME`` (``h1`` -> ``1h``, ``d1`` -> ``1d``, ...)::

        candles-import/
          EURUSD/
            h1/
              EURUSD_Candlestick_1_Hour_BID_01.01.2024-31.12.2024.csv
              EURUSD_Candlestick_1_Hour_BID_01.01.2025-31.10.2025.csv

Anything that does not resolve is skipped with a warning. Files sharing a
(pair, timeframe) form one import unit.
"""

import re
from collections.abc import Iterable
from pathlib import Path

from fx_ingest.ingestion.models import DatasetKey, SourceFile
from fx_ingest.shared.constants import CURRENCY_PAIRS, FOLDER_TO_TIMEFRAME, TIMEFRAMES
from fx_ingest.shared.utils import setup_logger

_FLAT_FILENAME = re.compile(r"^([A-Za-z0-9]+)_([A-Za-z0-9]+)\.[A-Za-z0-9]+$")


def group_import_units(files: Iterable[SourceFile]) -> dict[DatasetKey, list[Path]]:
    """Group discovered files by dataset key.

    Pure function: the result depends only on ``files``. Keys come out
    sorted, and so do the paths inside each unit.

    Args:
        files: Discovered source files.

    Returns:
        Mapping of (pair, timeframe) to the unit's file paths.
    """
    grouped: dict[DatasetKey, set[Path]] = {}
    for source_file in files:
        grouped.setdefault(source_file.key, set()).add(source_file.path)
    return {key: sorted(grouped[key]) for key in sorted(grouped)}


class DatasetLocator:
    """Scans an import directory and resolves files to datasets."""

    LAYOUTS = ("flat", "nested", "auto")

    def __init__(
        self,
        extensions: tuple[str, ...] = (".csv",),
        log_file: Path | None = None,
    ) -> None:
        """Initialize the locator.

        Args:
            extensions: File suffixes considered source files (case-insensitive).
            log_file: Optional path for file-based logging.
        """
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.logger = setup_logger(self.__class__.__name__, log_file)

    def locate(self, root: Path, layout: str = "auto") -> dict[DatasetKey, list[Path]]:
        """Discover files under ``root`` and group them into import units."""
        return group_import_units(self.discover(root, layout))

    def discover(self, root: Path, layout: str = "auto") -> list[SourceFile]:
        """Enumerate resolvable source files under ``root``.

        Args:
            root: Import directory.
            layout: "flat", "nested", or "auto" (flat files at the root plus
                nested pair folders).

        Returns:
            Resolved source files.

        Raises:
            ValueError: If ``layout`` is unknown.
            FileNotFoundError: If ``root`` is not a directory.
        """
        if layout not in self.LAYOUTS:
            raise ValueError(f"Invalid layout '{layout}'. Must be one of {self.LAYOUTS}.")

        root = Path(root)
        if not root.is_dir():
            raise FileNotFoundError(f"Import folder not found: {root}")

        files: list[SourceFile] = []
        if layout in ("flat", "auto"):
            files.extend(self.scan_flat(root))
        if layout in ("nested", "auto"):
            files.extend(self.scan_nested(root))

        self.logger.info("Found %d source file(s) under %s", len(files), root)
        return files

    def resolve_flat_filename(self, filename: str) -> DatasetKey | None:
        """Resolve ``{PAIR}_{TIMEFRAME}.<ext>`` to a dataset key, or None."""
        match = _FLAT_FILENAME.match(filename)
        if not match:
            return None

        pair = match.group(1).upper()
        timeframe = match.group(2).lower()
        if pair not in CURRENCY_PAIRS or timeframe not in TIMEFRAMES:
            return None
        return DatasetKey(pair, timeframe)

    def scan_flat(self, root: Path) -> list[SourceFile]:
        """Resolve source files directly under ``root`` by filename."""
        files = []
        for entry in self._list_dir(root):
            if not entry.is_file() or not self._has_source_extension(entry):
                continue

            key = self.resolve_flat_filename(entry.name)
            if key is None:
                self.logger.warning(
                    "Skipping %s: expected {PAIR}_{TIMEFRAME}%s with a supported pair and timeframe",
                    entry.name,
                    entry.suffix,
                )
                continue

            files.append(SourceFile(path=entry, pair=key.pair, timeframe=key.timeframe))
        return files

    def scan_nested(self, root: Path) -> list[SourceFile]:
        """Resolve source files in ``root/{PAIR}/{timeframe-folder}/``."""
        files = []
        for pair_dir in self._list_dir(root):
            if not pair_dir.is_dir():
                continue

            pair = pair_dir.name.upper()
            if pair not in CURRENCY_PAIRS:
                self.logger.warning("Skipping unknown pair folder: %s", pair_dir.name)
                continue

            for tf_dir in self._list_dir(pair_dir):
                if not tf_dir.is_dir():
                    continue

                timeframe = FOLDER_TO_TIMEFRAME.get(tf_dir.name.lower())
                if timeframe is None:
                    self.logger.warning(
                        "Skipping unknown timeframe folder: %s/%s", pair_dir.name, tf_dir.name
                    )
                    continue

                for entry in self._list_dir(tf_dir):
                    if entry.is_file() and self._has_source_extension(entry):
                        files.append(SourceFile(path=entry, pair=pair, timeframe=timeframe))
        return files

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _has_source_extension(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def _list_dir(self, directory: Path) -> list[Path]:
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            self.logger.warning("Cannot read directory %s: %s", directory, e)
            return []
        return [entry for entry in entries if not entry.name.startswith(".")]
