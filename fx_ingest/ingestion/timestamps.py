"""Timestamp decoding for heterogeneous broker CSV exports.

Supported formats, tried in this order:

1. ``YYYY.MM.DD HH:MM[:SS][.mmm]`` (year first, dot separated)
2. ``DD.MM.YYYY HH:MM[:SS][.mmm]`` (day first, dot separated)
3. ``YYYY-MM-DD HH:MM[:SS]`` (dash separated)
4. ISO 8601 (``datetime.fromisoformat``, trailing ``Z`` accepted)

Formats 1 and 2 are told apart only by where the four-digit year group sits.
Every component is read as UTC; no zone is inferred. An ISO 8601 value with
an explicit offset is converted to UTC.

Each matcher returns ``None`` when the string does not have its shape and
raises ``ValueError`` when it does but the components are out of range.
"""

import re
from collections.abc import Callable
from datetime import datetime

import pytz

_YEAR_FIRST_DOTTED = re.compile(
    r"^(\d{4})\.(\d{2})\.(\d{2})\s+(\d{2}):(\d{2})(?::(\d{2}))?(?:\.(\d{3}))?$"
)
_DAY_FIRST_DOTTED = re.compile(
    r"^(\d{2})\.(\d{2})\.(\d{4})\s+(\d{2}):(\d{2})(?::(\d{2}))?(?:\.(\d{3}))?$"
)
_DASHED = re.compile(r"^(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2})(?::(\d{2}))?$")


class MalformedTimestampError(ValueError):
    """Raised when a timestamp string matches none of the supported formats."""


def _build_utc(
    year: str,
    month: str,
    day: str,
    hour: str,
    minute: str,
    second: str | None = None,
    millis: str | None = None,
) -> datetime:
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second or 0),
        int(millis or 0) * 1000,
        tzinfo=pytz.UTC,
    )


def match_year_first_dotted(value: str) -> datetime | None:
    """``2005.01.03 00:00`` (Dukascopy)."""
    match = _YEAR_FIRST_DOTTED.match(value)
    if not match:
        return None
    year, month, day, hour, minute, second, millis = match.groups()
    return _build_utc(year, month, day, hour, minute, second, millis)


def match_day_first_dotted(value: str) -> datetime | None:
    """``03.01.2005 00:00:00.000`` (European)."""
    match = _DAY_FIRST_DOTTED.match(value)
    if not match:
        return None
    day, month, year, hour, minute, second, millis = match.groups()
    return _build_utc(year, month, day, hour, minute, second, millis)


def match_dashed(value: str) -> datetime | None:
    """``2005-01-03 00:00:00``."""
    match = _DASHED.match(value)
    if not match:
        return None
    year, month, day, hour, minute, second = match.groups()
    return _build_utc(year, month, day, hour, minute, second)


def match_iso8601(value: str) -> datetime | None:
    """Generic ISO 8601 fallback."""
    candidate = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return pytz.UTC.localize(parsed)
    return parsed.astimezone(pytz.UTC)


TIMESTAMP_MATCHERS: tuple[Callable[[str], datetime | None], ...] = (
    match_year_first_dotted,
    match_day_first_dotted,
    match_dashed,
    match_iso8601,
)


def decode_timestamp(raw: str) -> datetime:
    """Decode ``raw`` into a timezone-aware UTC datetime.

    Args:
        raw: Timestamp text as found in the source file.

    Returns:
        The instant, with ``tzinfo`` set to UTC.

    Raises:
        MalformedTimestampError: If no matcher accepts the value, or the
            first matching format holds an impossible date or time.
    """
    value = (raw or "").strip()
    if not value:
        raise MalformedTimestampError("Empty timestamp")

    for matcher in TIMESTAMP_MATCHERS:
        try:
            decoded = matcher(value)
        except ValueError as e:
            raise MalformedTimestampError(f"Invalid date format: {value} ({e})") from e
        if decoded is not None:
            return decoded

    raise MalformedTimestampError(f"Unsupported date format: {value}")
