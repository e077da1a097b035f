"""Shared date and time utilities.

Provides month windows, duration and clock-range parsing, UTC
normalization and a small injectable clock.
"""
from __future__ import annotations

import calendar
import datetime as _dt
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .constants import FMT_DAY, FMT_UTC_SECONDS

__all__ = [
    "Clock",
    "format_day",
    "format_utc",
    "iter_days",
    "month_window",
    "parse_clock_range",
    "parse_datetime",
    "parse_day",
    "parse_duration",
    "to_utc_seconds",
]

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_CLOCK_RANGE_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


@dataclass
class Clock:
    """Source of "now" and of the local time zone.

    ``tz=None`` means the system local zone.
    """

    tz: Optional[_dt.tzinfo] = None

    def now(self) -> _dt.datetime:
        return _dt.datetime.now(self.tz).astimezone(self.tz)

    def today(self) -> _dt.date:
        return self.now().date()

    def to_local(self, value: _dt.datetime) -> _dt.datetime:
        return value.astimezone(self.tz)

    def localize(self, value: _dt.datetime) -> _dt.datetime:
        """Attach the local zone to a naive datetime; aware values pass through."""
        if value.tzinfo is not None:
            return value
        if self.tz is not None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone()


def month_window(day: _dt.date) -> Tuple[_dt.date, _dt.date]:
    """Return (first, last) day of the calendar month containing ``day``."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def iter_days(start: _dt.date, end: _dt.date) -> Iterator[_dt.date]:
    """Yield every date from start to end inclusive."""
    cur = start
    while cur <= end:
        yield cur
        cur += _dt.timedelta(days=1)


def parse_day(value: str, clock: Optional[Clock] = None) -> _dt.date:
    """Parse YYYY-MM-DD (also accepts 'today' and 'yesterday' as seen by ``clock``)."""
    s = (value or "").strip().lower()
    if s in ("today", "yesterday"):
        today = (clock or Clock()).today()
        return today if s == "today" else today - _dt.timedelta(days=1)
    try:
        return _dt.datetime.strptime(s, FMT_DAY).date()
    except ValueError as exc:
        raise ValueError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def parse_datetime(value: str) -> _dt.datetime:
    """Parse an ISO 8601 datetime; a trailing 'Z' means UTC."""
    s = (value or "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return _dt.datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"invalid datetime {value!r}, expected ISO 8601") from exc


def parse_duration(spec: str) -> _dt.timedelta:
    """Parse a Go-style duration string.

    Examples:
        '1m' -> 60 seconds
        '1h30m' -> 5400 seconds
        '90s' -> 90 seconds
        '0' -> zero
    """
    s = (spec or "").strip().replace(" ", "")
    if s in ("", "0"):
        return _dt.timedelta(0)
    pos = 0
    total = _dt.timedelta(0)
    for m in _DURATION_RE.finditer(s):
        if m.start() != pos:
            break
        amount = float(m.group(1))
        unit = m.group(2)
        if unit == "h":
            total += _dt.timedelta(hours=amount)
        elif unit == "m":
            total += _dt.timedelta(minutes=amount)
        elif unit == "s":
            total += _dt.timedelta(seconds=amount)
        else:
            total += _dt.timedelta(milliseconds=amount)
        pos = m.end()
    if pos != len(s):
        raise ValueError(f"invalid duration {spec!r}, expected e.g. 1m, 90s or 1h30m")
    return total


def parse_clock_range(spec: str) -> Tuple[_dt.time, _dt.time]:
    """Parse 'HH:MM-HH:MM' into a (start, end) pair of times."""
    m = _CLOCK_RANGE_RE.match(spec or "")
    if not m:
        raise ValueError(f"invalid time range {spec!r}, expected HH:MM-HH:MM")
    h1, m1, h2, m2 = (int(g) for g in m.groups())
    try:
        return _dt.time(h1, m1), _dt.time(h2, m2)
    except ValueError as exc:
        raise ValueError(f"invalid time range {spec!r}: {exc}") from exc


def to_utc_seconds(value: _dt.datetime) -> _dt.datetime:
    """Convert to UTC and truncate to whole seconds.

    Naive datetimes are interpreted in the system local zone.
    """
    return value.astimezone(_dt.timezone.utc).replace(microsecond=0)


def format_utc(value: _dt.datetime) -> str:
    return to_utc_seconds(value).strftime(FMT_UTC_SECONDS)


def format_day(value: _dt.date) -> str:
    return value.strftime(FMT_DAY)
