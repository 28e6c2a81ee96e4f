"""Domain validation for candidate candles.

Checks, in order:
    - required fields present (pair, timeframe, timestamp, ohlcv)
    - pair and timeframe belong to the supported enumerations
    - timestamp is a real datetime
    - ohlcv holds exactly five finite numbers
    - OHLC consistency: high >= max(open, close), low <= min(open, close)
    - volume is non-negative

Validation is pure: the same candle always yields the same result.
"""

import math
from datetime import datetime
from enum import Enum
from numbers import Real
from typing import NamedTuple

from fx_ingest.ingestion.models import Candle
from fx_ingest.shared.constants import CURRENCY_PAIRS, TIMEFRAMES


class Violation(str, Enum):
    MISSING_FIELD = "MissingField"
    UNKNOWN_PAIR = "UnknownPair"
    UNKNOWN_TIMEFRAME = "UnknownTimeframe"
    INVALID_TIMESTAMP = "InvalidTimestamp"
    MALFORMED_OHLCV = "MalformedOHLCV"
    INCONSISTENT_OHLC = "InconsistentOHLC"
    NEGATIVE_VOLUME = "NegativeVolume"


class ValidationResult(NamedTuple):
    valid: bool
    violation: Violation | None = None
    message: str = ""

    def __str__(self) -> str:
        if self.valid:
            return "valid"
        return f"{self.violation.value}: {self.message}"


VALID = ValidationResult(valid=True)


def _invalid(violation: Violation, message: str) -> ValidationResult:
    return ValidationResult(valid=False, violation=violation, message=message)


def _is_finite_number(value) -> bool:
    # bool is a Real subclass but never a price
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_candle(candle: Candle) -> ValidationResult:
    """Validate a single candle against the domain invariants.

    Args:
        candle: Candidate candle with parsed fields.

    Returns:
        ``VALID`` or a result naming the first violated invariant.
    """
    if not candle.pair or not candle.timeframe or candle.timestamp is None or candle.ohlcv is None:
        return _invalid(Violation.MISSING_FIELD, "Missing required fields")

    if candle.pair not in CURRENCY_PAIRS:
        return _invalid(Violation.UNKNOWN_PAIR, f"Invalid pair: {candle.pair}")

    if candle.timeframe not in TIMEFRAMES:
        return _invalid(Violation.UNKNOWN_TIMEFRAME, f"Invalid timeframe: {candle.timeframe}")

    if not isinstance(candle.timestamp, datetime):
        return _invalid(Violation.INVALID_TIMESTAMP, f"Invalid timestamp: {candle.timestamp!r}")

    if not isinstance(candle.ohlcv, (tuple, list)) or len(candle.ohlcv) != 5:
        return _invalid(
            Violation.MALFORMED_OHLCV,
            f"OHLCV must be a sequence of 5 numbers, got {candle.ohlcv!r}",
        )
    if not all(_is_finite_number(value) for value in candle.ohlcv):
        return _invalid(Violation.MALFORMED_OHLCV, "OHLCV values must be finite numbers")

    open_, high, low, close, volume = candle.ohlcv

    if high < max(open_, close) or low > min(open_, close):
        return _invalid(
            Violation.INCONSISTENT_OHLC,
            f"Invalid OHLC relationship (o={open_}, h={high}, l={low}, c={close})",
        )

    if volume < 0:
        return _invalid(Violation.NEGATIVE_VOLUME, f"Volume cannot be negative: {volume}")

    return VALID
