"""Command tree for the Personio assistant CLI."""

from __future__ import annotations

import argparse
import datetime as _dt
import logging
from typing import List, Optional, Tuple

from core.cli_errors import UsageError
from core.cli_framework import Argument, CLIApp
from core.constants import CONFIG_ENV_VAR, ENV_PREFIX
from core.date_utils import Clock, month_window, parse_clock_range, parse_datetime, parse_day
from core.log_utils import LOG_FORMATS, LOG_LEVELS, configure_logging

from . import __version__
from . import config as config_mod
from .attendance import AttendanceService
from .client import PersonioClient
from .models import AttendancePeriod, PeriodType
from .session import SessionManager

LOG = logging.getLogger(__name__)

COMMON_ARGUMENTS = [
    Argument(("--config", "-c"), {"help": "Path to personio.yaml (default: search ./, $XDG_CONFIG_HOME, ~/.config)"}),
    Argument(("--base-url",), {"dest": "base_url", "help": "Personio URL, e.g. https://example.personio.de"}),
    Argument(("--auth.email",), {"dest": "email", "help": "Login email"}),
    Argument(("--auth.password",), {"dest": "password", "help": "Login password"}),
    Argument(("--auth.csrf-token",), {"dest": "csrf_token", "help": "CSRF token from a new-device challenge"}),
    Argument(("--auth.email-token",), {"dest": "email_token", "help": "One-time token emailed by a new-device challenge"}),
    Argument(("--log-level",), {"choices": [k for k in LOG_LEVELS if k != "warning"], "help": "Console log level (default: warn)"}),
    Argument(("--log-format",), {"choices": list(LOG_FORMATS), "help": "Console log format (default: pretty)"}),
]


def _epilog() -> str:
    lines = [
        "Settings resolve as: flag, then environment, then personio.yaml, then default.",
        "",
        "Environment:",
        f"  {CONFIG_ENV_VAR:<34} config file to read (must exist)",
    ]
    for yaml_key, env_suffix, _ in config_mod.SETTINGS.values():
        lines.append(f"  {ENV_PREFIX + env_suffix:<34} {yaml_key}")
    return "\n".join(lines)


_OVERRIDES = ("base_url", "email", "password", "csrf_token", "email_token", "output", "log_level", "log_format")


def _setup(args: argparse.Namespace) -> None:
    overrides = {name: getattr(args, name, None) for name in _OVERRIDES}
    cfg = config_mod.resolve(overrides, config_path=getattr(args, "config", None))
    configure_logging(cfg.log_level, cfg.log_format)
    args.output = cfg.output
    args._config = cfg


app = CLIApp(
    "personio-assistant",
    "Read and write your Personio attendance from the command line.\n\n"
    "Results are printed to STDOUT; logs go to STDERR.",
    version=__version__,
    epilog=_epilog(),
    common_arguments=COMMON_ARGUMENTS,
    setup=_setup,
)


def login_session(cfg: config_mod.Config) -> SessionManager:
    """Create a client for the configured origin and log in."""
    sessions = SessionManager(PersonioClient(cfg.require_base_url()))
    sessions.login(cfg.credentials())
    return sessions


def build_service(cfg: config_mod.Config, clock: Optional[Clock] = None) -> AttendanceService:
    return AttendanceService(login_session(cfg), clock=clock, minimum_period=cfg.minimum_period)


def _date_arg(value: str) -> str:
    # validated here; "today" and "yesterday" resolve later against the service clock
    try:
        parse_day(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _datetime_arg(value: str) -> _dt.datetime:
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _range_arg(value: str) -> Tuple[_dt.time, _dt.time]:
    try:
        return parse_clock_range(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _day(value: Optional[str], clock: Clock) -> Optional[_dt.date]:
    return parse_day(value, clock) if value else None


def _window(start: Optional[_dt.date], end: Optional[_dt.date], today: _dt.date) -> Tuple[_dt.date, _dt.date]:
    """Default to the month of ``start`` (else ``end``, else today); a lone bound runs to its month edge."""
    first, last = month_window(start or end or today)
    return start or first, end or last


# -------------------- login --------------------
@app.command("login", help="Log in and show the resolved employee")
def cmd_login(args: argparse.Namespace) -> int:
    cfg = args._config
    sessions = login_session(cfg)
    args._output.print_data(
        {
            "base_url": cfg.base_url,
            "state": sessions.session.state,
            "employee_id": sessions.session.employee_id,
        }
    )
    return 0


# -------------------- calendar --------------------
calendar = app.group("calendar", help="Attendance calendar: days, absences and holidays")


def _calendar_arguments(func):
    # applied bottom-up, like stacked decorators
    func = calendar.argument("--employee", type=int, help="Employee ID (default: yourself)")(func)
    func = calendar.argument("--end", type=_date_arg, help="Last day (YYYY-MM-DD; default: end of month)")(func)
    func = calendar.argument("--start", type=_date_arg, help="First day (YYYY-MM-DD; default: start of month)")(func)
    return func


def _fetch_calendar(args: argparse.Namespace):
    service = build_service(args._config)
    clock = service.clock
    start, end = _window(_day(args.start, clock), _day(args.end, clock), clock.today())
    employee = args.employee if args.employee is not None else service.sessions.employee_id
    return service.get_calendar(employee, start, end)


@calendar.command("get", help="Full attendance calendar")
@_calendar_arguments
def cmd_calendar_get(args: argparse.Namespace) -> int:
    args._output.print_data(_fetch_calendar(args))
    return 0


@calendar.command("days", help="Attendance days with worked and break minutes")
@_calendar_arguments
def cmd_calendar_days(args: argparse.Namespace) -> int:
    cal = _fetch_calendar(args)
    args._output.print_data(cal.attendance_days.data, headers=["day", "status", "duration_min", "break_min", "id"])
    return 0


@calendar.command("absences", help="Absence periods (vacation, sick leave, ...)")
@_calendar_arguments
def cmd_calendar_absences(args: argparse.Namespace) -> int:
    cal = _fetch_calendar(args)
    args._output.print_data(
        cal.attendance_periods.data,
        headers=["name", "start_date", "end_date", "measurement_unit", "effective_duration_in_minutes", "id"],
    )
    return 0


@calendar.command("holidays", help="Public holidays")
@_calendar_arguments
def cmd_calendar_holidays(args: argparse.Namespace) -> int:
    cal = _fetch_calendar(args)
    args._output.print_data(cal.holidays.data, headers=["date", "name", "half_day", "holiday_calendar_name"])
    return 0


# -------------------- attendance --------------------
attendance = app.group("attendance", help="Working-time periods")


@attendance.command("get", help="List your working-time periods (local time)")
@attendance.argument("--from", dest="from_date", type=_date_arg, help="First day (default: start of month)")
@attendance.argument("--to", dest="to_date", type=_date_arg, help="Last day (default: end of month)")
def cmd_attendance_get(args: argparse.Namespace) -> int:
    service = build_service(args._config)
    clock = service.clock
    start, end = _window(_day(args.from_date, clock), _day(args.to_date, clock), clock.today())
    periods = service.get_working_time_periods(start, end)
    args._output.print_data(periods, headers=["start", "end", "period_type", "comment", "id"])
    return 0


def build_day_periods(
    day: _dt.date,
    work: List[Tuple[_dt.time, _dt.time]],
    breaks: List[Tuple[_dt.time, _dt.time]],
    comment: Optional[str] = None,
    project_id: Optional[int] = None,
) -> List[AttendancePeriod]:
    """Turn --work/--break clock ranges into periods ordered by start."""
    periods = [
        AttendancePeriod(
            start=_dt.datetime.combine(day, start),
            end=_dt.datetime.combine(day, end),
            type=kind,
            comment=comment if kind == PeriodType.WORK else None,
            project_id=project_id if kind == PeriodType.WORK else None,
        )
        for kind, ranges in ((PeriodType.WORK, work), (PeriodType.BREAK, breaks))
        for start, end in ranges
    ]
    return sorted(periods, key=lambda p: p.start)


@attendance.command("set", help="Replace all periods of one day")
@attendance.argument("--date", required=True, type=_date_arg, help="Day to set (YYYY-MM-DD)")
@attendance.argument("--work", action="append", default=[], type=_range_arg, metavar="HH:MM-HH:MM", help="Work period (repeatable)")
@attendance.argument("--break", dest="breaks", action="append", default=[], type=_range_arg, metavar="HH:MM-HH:MM", help="Break period (repeatable)")
@attendance.argument("--comment", help="Comment for work periods")
@attendance.argument("--project", type=int, help="Project ID for work periods")
@attendance.argument("--dry-run", action="store_true", help="Print the request instead of sending it")
def cmd_attendance_set(args: argparse.Namespace) -> int:
    if not args.work and not args.breaks:
        raise UsageError("Nothing to set", hint="Pass at least one --work or --break range.")
    service = build_service(args._config)
    day = parse_day(args.date, service.clock)
    periods = build_day_periods(day, args.work, args.breaks, args.comment, args.project)
    if args.dry_run:
        plan = service.plan_attendance(day, periods)
        args._output.print_data({"date": day, "dry_run": True, **plan})
        return 0
    service.set_attendance(day, periods)
    args._output.print_data(
        {"date": day, "day_id": service.day_ids.peek(day), "status": "saved"}
    )
    return 0


@attendance.command("add", help="Create one working-time period")
@attendance.argument("--from", dest="start", required=True, type=_datetime_arg, help="Start (ISO 8601; local time unless offset given)")
@attendance.argument("--to", dest="end", required=True, type=_datetime_arg, help="End (ISO 8601; local time unless offset given)")
def cmd_attendance_add(args: argparse.Namespace) -> int:
    service = build_service(args._config)
    service.set_working_time_period(args.start, args.end)
    args._output.print_data({"start": args.start, "end": args.end, "status": "created"})
    return 0
