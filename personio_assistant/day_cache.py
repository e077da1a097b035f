"""Date -> attendance-day identifier cache with mint-on-miss.

The API wants the client to name the attendance day on every write, but has
no separate "create day" endpoint. Known days are looked up from the
calendar one month at a time; days the server has never seen get a freshly
minted identifier, which is then reused for the rest of the run.
"""

from __future__ import annotations

import datetime as _dt
import logging
import threading
from typing import Callable, Dict, Optional

from core.date_utils import iter_days, month_window

from .models import AttendanceCalendar, new_identifier

LOG = logging.getLogger(__name__)

CalendarFetcher = Callable[[_dt.date, _dt.date], AttendanceCalendar]


class DayIDCache:
    """Per-run day identifier cache.

    A date mapped to ``None`` was looked up and has no server record; a date
    missing from the mapping has not been looked up yet.
    """

    def __init__(self, fetch_calendar: CalendarFetcher, mint: Callable[[], str] = new_identifier) -> None:
        self._fetch_calendar = fetch_calendar
        self._mint = mint
        self._ids: Dict[_dt.date, Optional[str]] = {}
        self._lock = threading.Lock()

    def __contains__(self, day: _dt.date) -> bool:
        return day in self._ids

    def peek(self, day: _dt.date) -> Optional[str]:
        """Return the cached identifier without any lookup."""
        return self._ids.get(day)

    def get_or_create(self, day: _dt.date) -> str:
        """Return the identifier for ``day``, querying or minting as needed."""
        with self._lock:
            if day not in self._ids:
                self._refresh_month(day)
            day_id = self._ids.get(day)
            if day_id is None:
                day_id = self._mint()
                self._ids[day] = day_id
                LOG.debug("Minted attendance day id %s for %s", day_id, day.isoformat())
            return day_id

    def refresh_month(self, day: _dt.date) -> None:
        """Query the month containing ``day`` and cache every day in it."""
        with self._lock:
            self._refresh_month(day)

    def _refresh_month(self, day: _dt.date) -> None:
        start, end = month_window(day)
        LOG.debug("Loading attendance day ids for %s..%s", start.isoformat(), end.isoformat())
        known = self._fetch_calendar(start, end).day_ids()
        for d in iter_days(start, end):
            if d in known:
                self._ids[d] = known[d]
            else:
                # keep ids minted earlier in the run
                self._ids.setdefault(d, None)
