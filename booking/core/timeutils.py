"""UTC date/time helpers.

Every datetime handled by the core is naive and expressed in UTC, matching how the
columns are stored.
"""

import re
from datetime import date, datetime, time, timedelta, timezone

from booking.core.errors import InvalidInputError

DAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

_ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_CLOCK_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: str | None) -> date:
    if value is None or not _ISO_DATE_PATTERN.match(value.strip()):
        raise InvalidInputError('Date must use the YYYY-MM-DD format.')
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidInputError('Date must use the YYYY-MM-DD format.') from exc


def parse_clock(value: str) -> time:
    match = _CLOCK_PATTERN.match(value.strip()) if value else None
    if match is None:
        raise InvalidInputError(f'Invalid time of day {value!r}; expected HH:MM.')
    return time(int(match.group(1)), int(match.group(2)))


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) bounds of a UTC calendar day."""
    start = datetime.combine(day, time(0, 0))
    return start, start + timedelta(days=1)


def weekday_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def isoformat_utc(value: datetime) -> str:
    return to_naive_utc(value).isoformat(timespec='milliseconds') + 'Z'
