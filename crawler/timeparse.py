"""Conversion of Madara "time ago" labels into absolute timestamps."""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 3600
DAY = 86400
# Julian mean year, used platform-wide for every source
YEAR = 31556952

# Checked in order; the first unit whose keyword is a substring wins.
UNIT_KEYWORDS = (
    (('mins', 'minutes', 'minute'), MINUTE),
    (('hours', 'hour'), HOUR),
    (('days', 'day'), DAY),
    (('years', 'year'), YEAR),
)

_LEADING_NUMBER = re.compile(r'\d+')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with parsed times."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _magnitude(text: str) -> int:
    match = _LEADING_NUMBER.match(text)
    value = int(match.group(0)) if match else 0
    if value == 0 and 'a' in text:
        # "a day ago", "an hour ago"
        value = 1
    return value


def parse_absolute(text: str) -> Optional[datetime]:
    """
    Parse an absolute date string such as "March 5, 2021" or "2021-03-05".

    Returns:
        An aware datetime (naive values are taken as UTC), or None
    """
    if not text:
        return None
    try:
        parsed = dateparser.parse(text)
    except (ValueError, OverflowError):
        return None
    if parsed is None:
        return None
    return as_utc(parsed)


def convert_time(time_ago: str, now: Optional[datetime] = None) -> datetime:
    """
    Convert a relative or absolute time label into an aware UTC datetime.

    Relative labels ("5 hours ago", "a day") are resolved against ``now``.
    Anything else is parsed as a date string. Labels that cannot be parsed
    at all resolve to ``now``; this function never raises.

    Args:
        time_ago: Label as rendered by the site
        now: Reference time (defaults to the current UTC time)

    Returns:
        Absolute timestamp
    """
    if now is None:
        now = utcnow()
    text = (time_ago or '').strip()

    for keywords, seconds in UNIT_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return now - timedelta(seconds=_magnitude(text) * seconds)

    parsed = parse_absolute(text)
    if parsed is not None:
        return parsed

    if text:
        logger.debug(f"Unparsable time label {text!r}, using current time")
    return now
