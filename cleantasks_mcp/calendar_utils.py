"""Calendar arithmetic helpers for the recurrence engine.

Weekdays here are Sunday-based (Sunday=0 .. Saturday=6), matching the
persisted task records. Python's own ``date.weekday()`` is Monday=0, so
always go through ``js_weekday`` when comparing against a rule.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, tzinfo

DEFAULT_RESET_HOUR = 9

# Zero millisecond group right before the zone designator (or end of string)
_ZERO_MILLIS = re.compile(r"\.000(?=Z$|[+-]\d\d:?\d\d$|$)")


# ---------------------------------------------------------------------------
# Weekdays and months
# ---------------------------------------------------------------------------

def js_weekday(d: date) -> int:
    """Return the weekday of ``d`` with Sunday=0 and Saturday=6."""
    return d.isoweekday() % 7


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month (1-12)."""
    return calendar.monthrange(year, month)[1]


def first_weekday_on_or_after(d: date, weekday: int) -> date:
    """Return the first date on/after ``d`` falling on ``weekday`` (Sunday=0)."""
    offset = (weekday - js_weekday(d)) % 7
    return d + timedelta(days=offset)


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> date:
    """Return the n-th (1-4) occurrence of ``weekday`` in the month.

    Example: second Friday of Feb 2026 -> nth_weekday_of_month(2026, 2, 5, 2)
    == date(2026, 2, 13).
    """
    if n < 1 or n > 4:
        raise ValueError(f"n must be between 1 and 4, got {n}")
    first = first_weekday_on_or_after(date(year, month, 1), weekday)
    return first + timedelta(days=7 * (n - 1))


def last_weekday_of_month(year: int, month: int, weekday: int) -> date:
    """Return the last occurrence of ``weekday`` in the month."""
    d = date(year, month, days_in_month(year, month))
    while js_weekday(d) != weekday:
        d -= timedelta(days=1)
    return d


def same_month(a: date, b: date) -> bool:
    return (a.year, a.month) == (b.year, b.month)


# ---------------------------------------------------------------------------
# Period indices
# ---------------------------------------------------------------------------

def week_number(d: date) -> int:
    """Simplified week number: ceil(day_of_year / 7).

    Jan 1-7 is week 1, Jan 8-14 week 2, and so on. This is deliberately not
    ISO-8601 numbering; weeks restart at every Jan 1.
    """
    day_of_year = d.timetuple().tm_yday
    return (day_of_year + 6) // 7


def quarter_index(d: date) -> int:
    """Zero-based quarter of the year (Jan-Mar = 0)."""
    return (d.month - 1) // 3


# ---------------------------------------------------------------------------
# Instants
# ---------------------------------------------------------------------------

def parse_instant(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 instant. Returns None if missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        # Records may carry "2026-02-13T09:00:00.000Z" (JS toISOString)
        # or "2026-02-13T09:00:00+0000"
        cleaned = _ZERO_MILLIS.sub("", value.strip())
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        elif cleaned.endswith("+0000") or cleaned.endswith("-0000"):
            cleaned = cleaned[:-5] + "+00:00"
        return datetime.fromisoformat(cleaned)
    except (ValueError, TypeError):
        return None


def localize(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Return ``dt`` as an aware datetime in the evaluation zone.

    Naive datetimes are taken to already be in that zone. With ``tz=None``
    the zone is the system local zone.
    """
    if dt.tzinfo is None:
        if tz is not None:
            return dt.replace(tzinfo=tz)
        return dt.astimezone()
    return dt.astimezone(tz)


def parse_reset_hour(time_str: str | None) -> int:
    """Hour component of an "HH:MM" string, or DEFAULT_RESET_HOUR."""
    if not time_str:
        return DEFAULT_RESET_HOUR
    try:
        hour = int(str(time_str).split(":")[0])
    except (ValueError, TypeError):
        return DEFAULT_RESET_HOUR
    if not 0 <= hour <= 23:
        return DEFAULT_RESET_HOUR
    return hour
