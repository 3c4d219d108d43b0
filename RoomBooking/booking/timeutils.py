"""Date/time helpers shared by the registries and the availability checker.

All intervals are half-open ``[start, end)``: a booking that ends at 10:00
does not collide with one that starts at 10:00.
"""

import re
from datetime import date, datetime, time, timedelta

from django.utils import timezone

from .exceptions import InvalidTimeValue

TIME_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')
DATE_FORMAT = '%Y-%m-%d'


def parse_time_of_day(value):
    """Return a ``time`` for ``HH:MM`` / ``HH:MM:SS`` input, or None."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None
    match = TIME_RE.match(value.strip())
    if not match:
        return None
    hour, minute, second = match.groups()
    return time(int(hour), int(minute), int(second or 0))


def parse_date(value):
    """Return a ``date`` for ``YYYY-MM-DD`` input, or None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def normalize_time(value):
    """``"09:00"`` -> ``"09:00:00"``. Raises InvalidTimeValue on bad input."""
    parsed = parse_time_of_day(value)
    if parsed is None:
        raise InvalidTimeValue(f"Invalid time of day: {value!r}")
    return parsed.strftime('%H:%M:%S')


def combine(day, time_of_day):
    """Combine a calendar date and a wall clock time into an aware instant.

    Returns None when either part is malformed; callers must check before
    using the result.
    """
    parsed_day = parse_date(day)
    parsed_time = parse_time_of_day(time_of_day)
    if parsed_day is None or parsed_time is None:
        return None
    naive = datetime.combine(parsed_day, parsed_time)
    return timezone.make_aware(naive, timezone.get_current_timezone())


def overlaps(a_start, a_end, b_start, b_end):
    if None in (a_start, a_end, b_start, b_end):
        raise InvalidTimeValue('Cannot compare an invalid instant.')
    return a_start < b_end and a_end > b_start


def dates_touched(start, end):
    """Local calendar dates covered by ``[start, end)``."""
    local_start = timezone.localtime(start) if timezone.is_aware(start) else start
    local_end = timezone.localtime(end) if timezone.is_aware(end) else end
    last = local_end.date()
    # An interval ending exactly at midnight does not touch that day
    if local_end.time() == time(0, 0) and last > local_start.date():
        last -= timedelta(days=1)
    current = local_start.date()
    days = []
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def day_of_week(day):
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def semester_type(ordinal):
    return 'odd' if ordinal % 2 != 0 else 'even'


def now_to_minute(now=None):
    current = timezone.localtime(now) if now is not None else timezone.localtime()
    return current.replace(second=0, microsecond=0)
