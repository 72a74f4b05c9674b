"""
Period key normalization.

The spend ledger buckets weeks by ISO week (Monday start) while the
savings store buckets them by a legacy week that starts on Saturday.
ccusage can also emit Sunday-start weeks. Day and month keys already
agree between the sources.
"""

import re
from datetime import date, timedelta
from enum import Enum

from .errors import DateParseError


class Granularity(Enum):
    """Time-bucket size of a report."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class CalendarConvention(Enum):
    """Week numbering convention of a data source."""
    ISO = "iso"        # Weeks start on Monday
    SUNDAY = "sunday"  # Weeks start on Sunday
    LEGACY = "legacy"  # Weeks start on Saturday


# Days between a legacy (Saturday) week start and the ISO (Monday) week start
LEGACY_WEEK_OFFSET_DAYS = 2

# Days to add to a native week start to land inside the matching ISO week
WEEK_START_OFFSET_DAYS = {
    CalendarConvention.ISO: 0,
    CalendarConvention.SUNDAY: 1,
    CalendarConvention.LEGACY: LEGACY_WEEK_OFFSET_DAYS,
}

_DAY_KEY = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_MONTH_KEY = re.compile(r"(\d{4})-(\d{2})")


def parse_period_key(key: str, granularity: Granularity) -> date:
    """Parse a period key into its anchor date.

    Day and week keys are ``YYYY-MM-DD``; month keys are ``YYYY-MM`` and
    anchor on the first of the month.

    Raises:
        DateParseError: If the key is not a well-formed date string
    """
    if not isinstance(key, str):
        raise DateParseError(key, granularity)

    pattern = _MONTH_KEY if granularity == Granularity.MONTH else _DAY_KEY
    match = pattern.fullmatch(key)
    if match is None:
        raise DateParseError(key, granularity)

    parts = [int(part) for part in match.groups()]
    if granularity == Granularity.MONTH:
        parts.append(1)

    try:
        return date(*parts)
    except ValueError as e:
        raise DateParseError(key, granularity, f"Invalid {granularity.value} period key {key!r}: {e}")


def iso_week_start(day: date) -> date:
    """Return the Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def normalize_period_key(
    key: str,
    granularity: Granularity,
    convention: CalendarConvention = CalendarConvention.ISO
) -> str:
    """Map a native period key onto the canonical key space.

    Args:
        key: Period key in the source's native calendar
        granularity: Bucket size the key belongs to
        convention: Week convention of the source that produced the key

    Returns:
        Canonical key: unchanged for day and month, ISO week start for week

    Raises:
        DateParseError: If the key is malformed for its granularity
    """
    anchor = parse_period_key(key, granularity)

    if granularity != Granularity.WEEK:
        return key

    anchor += timedelta(days=WEEK_START_OFFSET_DAYS[convention])
    return iso_week_start(anchor).isoformat()
