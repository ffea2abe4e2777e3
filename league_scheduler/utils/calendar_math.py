"""
Calendar arithmetic for fixture placement.

Pure helpers used by every fixture generator to put matches on a given
weekday and wall-clock time. Nothing here mutates its input or raises on
well-typed values.
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Tuple, Union

from dateutil import tz as dateutil_tz

from league_scheduler.config import DEFAULT_MATCH_TIME, LEAGUE_TIMEZONE

DateLike = Union[date, datetime]

_MATCH_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def league_timezone(name: Optional[str] = None) -> tzinfo:
    """Resolve a zone name (default: LEAGUE_TIMEZONE). Unknown names fall back to UTC."""
    zone = dateutil_tz.gettz(name or LEAGUE_TIMEZONE)
    return zone if zone is not None else dateutil_tz.UTC


def add_days(value: DateLike, days: int) -> DateLike:
    """Return value shifted by `days` calendar days, keeping the wall-clock time."""
    return value + timedelta(days=days)


def add_minutes(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=minutes)


def apply_time_to_date(
    value: DateLike,
    hours: int,
    minutes: int,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """
    Keep the calendar day of `value` and set the wall-clock time.

    The calendar day is read in the league zone: an aware datetime is
    converted first, a naive datetime or a plain date is taken as already
    local. A time that falls in a DST gap is moved forward to the first
    valid instant.
    """
    zone = tz or league_timezone()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(zone)
        day = value.date()
    else:
        day = value

    result = datetime.combine(day, time(hour=hours, minute=minutes), tzinfo=zone)
    return dateutil_tz.resolve_imaginary(result)


def parse_match_time(raw: Optional[str]) -> Tuple[int, int]:
    """
    Parse "HH:MM" into (hours, minutes).

    Missing or malformed input yields DEFAULT_MATCH_TIME.
    """
    for candidate in (raw, DEFAULT_MATCH_TIME, "18:00"):
        if not candidate:
            continue
        m = _MATCH_TIME_RE.match(candidate)
        if not m:
            continue
        hours, minutes = int(m.group(1)), int(m.group(2))
        if 0 <= hours <= 23 and 0 <= minutes <= 59:
            return hours, minutes
    return 18, 0


def normalize_weekday(weekday: int) -> int:
    """0=Monday .. 6=Sunday; any integer is folded into that range."""
    return ((weekday % 7) + 7) % 7


def first_match_day(start: DateLike, weekday: int) -> date:
    """First calendar date on or after `start` that falls on `weekday`."""
    day = start.date() if isinstance(start, datetime) else start
    delta = (normalize_weekday(weekday) - day.weekday()) % 7
    return add_days(day, delta)


def week_kickoff(
    first_day: date,
    week_offset: int,
    hours: int,
    minutes: int,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """Kickoff on the match day `week_offset` weeks after `first_day`."""
    return apply_time_to_date(add_days(first_day, week_offset * 7), hours, minutes, tz)
