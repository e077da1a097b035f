"""Typed results and request records for the attendance API."""
from __future__ import annotations

import datetime as _dt
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from core.date_utils import parse_datetime, to_utc_seconds

T = TypeVar("T")


def new_identifier() -> str:
    """Return a fresh 128-bit random identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Credentials:
    """Login credentials; immutable for the lifetime of a run."""

    email: str
    password: str = field(repr=False)
    csrf_token: Optional[str] = None
    email_token: Optional[str] = field(default=None, repr=False)

    @property
    def has_device_tokens(self) -> bool:
        return bool(self.csrf_token and self.email_token)


class PeriodType(str, Enum):
    WORK = "work"
    BREAK = "break"


@dataclass
class AttendancePeriod:
    """One work or break interval to submit for a day."""

    start: _dt.datetime
    end: _dt.datetime
    type: Optional[PeriodType] = None
    id: Optional[str] = None
    comment: Optional[str] = None
    project_id: Optional[int] = None

    @property
    def duration(self) -> _dt.timedelta:
        return self.end - self.start

    def normalized(self) -> "AttendancePeriod":
        """Return a copy ready for transmission.

        Mints an id when absent, defaults the type to work and the comment to
        an empty string, and truncates start/end to whole-second UTC instants.
        """
        start = to_utc_seconds(self.start)
        end = to_utc_seconds(self.end)
        if start > end:
            raise ValueError(f"period starts after it ends: {start.isoformat()} > {end.isoformat()}")
        return replace(
            self,
            id=self.id or new_identifier(),
            type=self.type or PeriodType.WORK,
            comment=self.comment or "",
            start=start,
            end=end,
        )


@dataclass
class Data(Generic[T]):
    """The API's ``{"data": ...}`` wrapper."""

    data: T


@dataclass
class AttendanceDay:
    id: str
    day: _dt.date
    status: str = ""
    duration_min: int = 0
    break_min: int = 0

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "AttendanceDay":
        attrs = raw.get("attributes") or {}
        return cls(
            id=str(raw.get("id") or ""),
            day=_dt.date.fromisoformat(str(attrs.get("day"))),
            status=attrs.get("status") or "",
            duration_min=int(attrs.get("duration_min") or 0),
            break_min=int(attrs.get("break_min") or 0),
        )


@dataclass
class AbsencePeriod:
    id: str
    name: str
    start_date: str
    end_date: str
    start_time: str = ""
    end_time: str = ""
    measurement_unit: str = ""
    tracks_overtime: bool = False
    effective_duration_in_minutes: Optional[int] = None
    half_day_start: bool = False
    half_day_end: bool = False

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "AbsencePeriod":
        duration = raw.get("effective_duration_in_minutes")
        return cls(
            id=str(raw.get("id") or ""),
            name=raw.get("name") or "",
            start_date=raw.get("start_date") or "",
            end_date=raw.get("end_date") or "",
            start_time=raw.get("start_time") or "",
            end_time=raw.get("end_time") or "",
            measurement_unit=raw.get("measurement_unit") or "",
            tracks_overtime=bool(raw.get("tracks_overtime")),
            effective_duration_in_minutes=int(duration) if duration is not None else None,
            half_day_start=bool(raw.get("half_day_start")),
            half_day_end=bool(raw.get("half_day_end")),
        )


@dataclass
class Holiday:
    id: str
    name: str
    date: str
    half_day: bool = False
    holiday_calendar_name: str = ""

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "Holiday":
        half_day = raw.get("half_day")
        if isinstance(half_day, str):
            half_day = half_day.strip().lower() in ("1", "true", "yes")
        return cls(
            id=str(raw.get("id") or ""),
            name=raw.get("name") or "",
            date=raw.get("date") or "",
            half_day=bool(half_day),
            holiday_calendar_name=raw.get("holiday_calendar_name") or "",
        )


@dataclass
class AttendanceCalendar:
    attendance_days: Data[List[AttendanceDay]]
    attendance_periods: Data[List[AbsencePeriod]]
    holidays: Data[List[Holiday]]
    attendance_rights: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "AttendanceCalendar":
        def items(key: str) -> List[Dict[str, Any]]:
            return list(((raw.get(key) or {}).get("data")) or [])

        return cls(
            attendance_days=Data([AttendanceDay.from_json(d) for d in items("attendance_days")]),
            attendance_periods=Data([AbsencePeriod.from_json(p) for p in items("attendance_periods")]),
            holidays=Data([Holiday.from_json(h) for h in items("holidays")]),
            attendance_rights={str(k): bool(v) for k, v in (raw.get("attendance_rights") or {}).items()},
        )

    def day_ids(self) -> Dict[_dt.date, str]:
        """Map each listed day to its identifier (days without an id are skipped)."""
        return {d.day: d.id for d in self.attendance_days.data if d.id}


@dataclass
class WorkingTimePeriod:
    id: str
    type: str
    start: _dt.datetime
    end: _dt.datetime
    period_type: str = ""
    comment: str = ""
    legacy_break_min: int = 0
    employee_id: Optional[int] = None
    created_by: Optional[int] = None
    attendance_day_id: str = ""
    created_at: Optional[_dt.datetime] = None
    updated_at: Optional[_dt.datetime] = None

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "WorkingTimePeriod":
        attrs = raw.get("attributes") or {}

        def instant(key: str) -> Optional[_dt.datetime]:
            value = attrs.get(key)
            return parse_datetime(value) if value else None

        start = instant("start")
        end = instant("end")
        if start is None or end is None:
            raise ValueError(f"working time period {raw.get('id')!r} has no start/end")
        return cls(
            id=str(raw.get("id") or ""),
            type=raw.get("type") or "",
            start=start,
            end=end,
            period_type=attrs.get("period_type") or "",
            comment=attrs.get("comment") or "",
            legacy_break_min=int(attrs.get("legacy_break_min") or 0),
            employee_id=attrs.get("employee_id"),
            created_by=attrs.get("created_by"),
            attendance_day_id=attrs.get("attendance_day_id") or "",
            created_at=instant("created_at"),
            updated_at=instant("updated_at"),
        )

    def localized(self, to_local) -> "WorkingTimePeriod":
        """Return a copy with every instant passed through ``to_local``."""
        return replace(
            self,
            start=to_local(self.start),
            end=to_local(self.end),
            created_at=to_local(self.created_at) if self.created_at else None,
            updated_at=to_local(self.updated_at) if self.updated_at else None,
        )
