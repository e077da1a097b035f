"""Attendance reads and writes on top of a logged-in session."""

from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from core.date_utils import Clock, format_day, format_utc

from .day_cache import DayIDCache
from .errors import RemoteAPIError
from .models import (
    AttendanceCalendar,
    AttendancePeriod,
    Data,
    WorkingTimePeriod,
    new_identifier,
)
from .session import SessionManager

LOG = logging.getLogger(__name__)

CALENDAR_PATH = "/svc/attendance-bff/attendance-calendar/{employee_id}"
PERIODS_PATH = "/api/v1/attendances/periods"
DAY_PATH = "/api/v1/attendances/days/{day_id}"


def _check_window(start: _dt.date, end: _dt.date) -> None:
    if start > end:
        raise ValueError(f"start date {start.isoformat()} is after end date {end.isoformat()}")


def period_payload(period: AttendancePeriod) -> Dict[str, Any]:
    """Wire form of a normalized period."""
    return {
        "id": period.id,
        "period_type": period.type.value if period.type else None,
        "comment": period.comment or "",
        "project_id": period.project_id,
        "start": format_utc(period.start),
        "end": format_utc(period.end),
    }


class AttendanceService:
    """Calendar, working-time and attendance-day operations for one session.

    The service owns its DayIDCache; identifiers resolved or minted during a
    run are reused by every later write through the same service.
    """

    def __init__(
        self,
        sessions: SessionManager,
        clock: Optional[Clock] = None,
        minimum_period: _dt.timedelta = _dt.timedelta(0),
    ) -> None:
        self.sessions = sessions
        self.client = sessions.client
        self.clock = clock or Clock()
        self.minimum_period = minimum_period
        self.day_ids = DayIDCache(self.get_my_calendar)

    # -------------------- Reads --------------------
    def get_calendar(self, employee_id: int, start_date: _dt.date, end_date: _dt.date) -> AttendanceCalendar:
        """Fetch the attendance calendar for ``[start_date, end_date]``.

        Day entries the server returns outside the window are dropped.
        """
        self.sessions.ensure_logged_in()
        _check_window(start_date, end_date)
        params = {
            "start_date": format_day(start_date),
            "end_date": format_day(end_date),
        }
        data = self.client.send_json("GET", CALENDAR_PATH.format(employee_id=int(employee_id)), params=params)
        if not isinstance(data, dict):
            raise RemoteAPIError("attendance calendar: unexpected response shape", body=data)
        cal = AttendanceCalendar.from_json(data)
        cal.attendance_days = Data([d for d in cal.attendance_days.data if start_date <= d.day <= end_date])
        return cal

    def get_my_calendar(self, start_date: _dt.date, end_date: _dt.date) -> AttendanceCalendar:
        return self.get_calendar(self.sessions.employee_id, start_date, end_date)

    def get_working_time_periods(self, from_date: _dt.date, to_date: _dt.date) -> List[WorkingTimePeriod]:
        """List the logged-in employee's periods with instants in local time."""
        self.sessions.ensure_logged_in()
        _check_window(from_date, to_date)
        params = {
            "filter[startDate]": format_day(from_date),
            "filter[endDate]": format_day(to_date),
            "filter[employee]": str(self.sessions.employee_id),
        }
        data = self.client.send_json("GET", PERIODS_PATH, params=params)
        if isinstance(data, dict):
            data = data.get("data")
        if not isinstance(data, list):
            raise RemoteAPIError("attendance periods: unexpected response shape", body=data)
        return [WorkingTimePeriod.from_json(raw).localized(self.clock.to_local) for raw in data]

    # -------------------- Writes --------------------
    def plan_attendance(self, day: _dt.date, periods: Iterable[AttendancePeriod]) -> Dict[str, Any]:
        """Build the request body for ``set_attendance`` without sending it.

        Resolves (and if needed mints) the day identifier, so a later
        ``set_attendance`` for the same day reuses it. Raises ValueError when
        periods were given but all are shorter than ``minimum_period``; an
        empty ``periods`` still clears the day.
        """
        self.sessions.ensure_logged_in()
        periods = list(periods)
        kept: List[AttendancePeriod] = []
        for period in periods:
            normalized = replace(
                period,
                start=self.clock.localize(period.start),
                end=self.clock.localize(period.end),
            ).normalized()
            if normalized.duration < self.minimum_period:
                LOG.info(
                    "Skipping %s period %s-%s: shorter than %s",
                    normalized.type.value if normalized.type else "",
                    normalized.start.isoformat(),
                    normalized.end.isoformat(),
                    self.minimum_period,
                )
                continue
            kept.append(normalized)
        if periods and not kept:
            raise ValueError(
                f"all {len(periods)} periods for {day.isoformat()} are shorter than "
                f"{self.minimum_period}; nothing saved"
            )
        return {
            "day_id": self.day_ids.get_or_create(day),
            "employee_id": self.sessions.employee_id,
            "periods": [period_payload(p) for p in kept],
        }

    def set_attendance(self, day: _dt.date, periods: Iterable[AttendancePeriod]) -> None:
        """Replace the attendance periods of ``day``.

        If the write fails, a day identifier minted for it stays cached and
        is reused by the next attempt.
        """
        plan = self.plan_attendance(day, periods)
        body = {"employee_id": plan["employee_id"], "periods": plan["periods"]}
        LOG.info("Saving %d periods for %s", len(plan["periods"]), day.isoformat())
        self.client.send_json("PUT", DAY_PATH.format(day_id=plan["day_id"]), json_body=body)

    def set_working_time_period(self, start: _dt.datetime, end: _dt.datetime) -> None:
        """Create a single working-time period from ``start`` to ``end``."""
        self.sessions.ensure_logged_in()
        start = self.clock.localize(start)
        end = self.clock.localize(end)
        if start > end:
            raise ValueError(f"period starts after it ends: {start.isoformat()} > {end.isoformat()}")
        payload = [
            {
                "id": new_identifier(),
                "employee_id": self.sessions.employee_id,
                "start": format_utc(start),
                "end": format_utc(end),
                "activity_id": None,
                "comment": "",
                "project_id": None,
            }
        ]
        results = self.client.send_json("POST", PERIODS_PATH, json_body=payload)
        if isinstance(results, dict):
            results = results.get("data")
        if not isinstance(results, list):
            raise RemoteAPIError("create attendance period: unexpected response shape", body=results)
        LOG.info("Got %d results", len(results))
