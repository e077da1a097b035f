import datetime as dt
import io
import json
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import requests

from core.cli_errors import ExitCode
from core.date_utils import Clock
from personio_assistant import __main__ as cli
from personio_assistant.cli import _window, build_day_periods
from personio_assistant.errors import AuthChallengeRequired, TransportError
from personio_assistant.models import PeriodType

from tests.personio_tests.fixtures import (
    BASE_URL,
    CEST,
    EMPLOYEE_ID,
    FakeHTTPSession,
    FakeResponse,
    calendar_body,
    dashboard_page,
    logged_in_sessions,
    login_page,
    make_day,
    make_period,
    make_service,
)

ENV = {
    "PERSONIO_BASE_URL": BASE_URL,
    "PERSONIO_AUTH_EMAIL": "ada@example.com",
    "PERSONIO_AUTH_PASSWORD": "s3cret",
}


class CLITestCase(unittest.TestCase):
    env = ENV

    def setUp(self):
        patches = [
            mock.patch.dict("os.environ", self.env, clear=True),
            mock.patch("personio_assistant.config.config_search_paths", return_value=[]),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = cli.main(list(argv))
        return rc, out.getvalue(), err.getvalue()


class CLIBasicsTests(CLITestCase):
    def test_no_command_prints_help(self):
        rc, _, err = self.run_cli()
        self.assertEqual(rc, ExitCode.USAGE)
        self.assertIn("attendance", err)

    def test_group_without_subcommand_prints_group_help(self):
        rc, _, err = self.run_cli("calendar")
        self.assertEqual(rc, ExitCode.USAGE)
        self.assertIn("holidays", err)

    def test_bad_range_is_argparse_error(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["attendance", "set", "--date", "2023-01-18", "--work", "9-17"])
        self.assertEqual(ctx.exception.code, 2)

    def test_help_lists_environment(self):
        out = io.StringIO()
        with redirect_stdout(out):
            with self.assertRaises(SystemExit):
                cli.main(["--help"])
        self.assertIn("PERSONIO_CONFIG", out.getvalue())
        self.assertIn("PERSONIO_AUTH_EMAIL", out.getvalue())


class CLIConfigTests(CLITestCase):
    env = {}

    def test_missing_base_url_is_config_error(self):
        rc, _, err = self.run_cli("login")
        self.assertEqual(rc, ExitCode.CONFIG_ERROR)
        self.assertIn("base URL", err)
        self.assertIn("Hint:", err)

    def test_missing_credentials_is_config_error(self):
        rc, _, err = self.run_cli("login", "--base-url", BASE_URL)
        self.assertEqual(rc, ExitCode.CONFIG_ERROR)
        self.assertIn("auth.email", err)

    def test_invalid_output_env_is_config_error(self):
        with mock.patch.dict("os.environ", {"PERSONIO_OUTPUT": "xml"}):
            rc, _, _ = self.run_cli("login")
        self.assertEqual(rc, ExitCode.CONFIG_ERROR)

    def test_missing_env_config_file_is_config_error(self):
        with mock.patch.dict("os.environ", {"PERSONIO_CONFIG": "/nonexistent/personio.yaml"}):
            rc, _, err = self.run_cli("login")
        self.assertEqual(rc, ExitCode.CONFIG_ERROR)
        self.assertIn("Config file not found", err)


class LoginCommandTests(CLITestCase):
    def test_prints_state_and_employee(self):
        sessions, _ = logged_in_sessions()
        with mock.patch("personio_assistant.cli.login_session", return_value=sessions):
            rc, out, _ = self.run_cli("login", "-o", "json")
        self.assertEqual(rc, 0)
        self.assertEqual(
            json.loads(out),
            {"base_url": BASE_URL, "state": "logged_in", "employee_id": EMPLOYEE_ID},
        )

    def test_output_flag_before_command(self):
        sessions, _ = logged_in_sessions()
        with mock.patch("personio_assistant.cli.login_session", return_value=sessions):
            rc, out, _ = self.run_cli("--output", "yaml", "login")
        self.assertEqual(rc, 0)
        self.assertIn("state: logged_in", out)

    def test_device_challenge_exit_code_and_hint(self):
        with mock.patch("personio_assistant.cli.login_session", side_effect=AuthChallengeRequired("chal")):
            rc, _, err = self.run_cli("login")
        self.assertEqual(rc, ExitCode.AUTH_ERROR)
        self.assertIn("--auth.email-token", err)
        self.assertIn("chal", err)

    def test_transport_error_exit_code(self):
        exc = TransportError("GET https://acme.personio.de/login/index: refused", cause=requests.ConnectionError())
        with mock.patch("personio_assistant.cli.login_session", side_effect=exc):
            rc, _, err = self.run_cli("login")
        self.assertEqual(rc, ExitCode.NETWORK_ERROR)
        self.assertIn("refused", err)

    def test_login_flow_through_client(self):
        http = FakeHTTPSession([
            FakeResponse(text=login_page()),
            FakeResponse(text=dashboard_page(), set_cookies={"personio_session": "abc"}),
        ])
        with mock.patch("personio_assistant.client.requests.Session", return_value=http):
            rc, out, _ = self.run_cli("login", "-o", "json")
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out)["employee_id"], EMPLOYEE_ID)
        self.assertEqual(http.calls[1]["data"]["email"], "ada@example.com")


class CalendarCommandTests(CLITestCase):
    def test_days_json(self):
        days = [make_day("d1", "2023-01-02"), make_day("d9", "2023-01-09")]
        service, http = make_service([FakeResponse(calendar_body(days))])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli("calendar", "days", "--start", "2023-01-02", "--end", "2023-01-08", "-o", "json")
        self.assertEqual(rc, 0)
        rows = json.loads(out)
        self.assertEqual([r["day"] for r in rows], ["2023-01-02"])
        self.assertEqual(http.calls[0]["params"], {"start_date": "2023-01-02", "end_date": "2023-01-08"})

    def test_defaults_to_month_of_start(self):
        service, http = make_service([FakeResponse(calendar_body())])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli("calendar", "holidays", "--start", "2024-02-10")
        self.assertEqual(rc, 0)
        self.assertEqual(http.calls[0]["params"], {"start_date": "2024-02-10", "end_date": "2024-02-29"})
        self.assertIn("(none)", out)

    def test_lone_end_uses_its_own_month(self):
        service, http = make_service([FakeResponse(calendar_body())])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, _, _ = self.run_cli("calendar", "days", "--end", "2023-01-10")
        self.assertEqual(rc, 0)
        self.assertEqual(http.calls[0]["params"], {"start_date": "2023-01-01", "end_date": "2023-01-10"})

    def test_relative_start_follows_service_clock(self):
        # 23:30 UTC on the 17th is the 18th in the service's +02:00 zone
        now = dt.datetime(2023, 1, 18, 1, 30, tzinfo=CEST)
        service, http = make_service([FakeResponse(calendar_body())])
        with mock.patch("personio_assistant.cli.build_service", return_value=service), \
                mock.patch.object(Clock, "now", return_value=now):
            rc, _, _ = self.run_cli("calendar", "days", "--start", "yesterday")
        self.assertEqual(rc, 0)
        self.assertEqual(http.calls[0]["params"], {"start_date": "2023-01-17", "end_date": "2023-01-31"})

    def test_other_employee(self):
        service, http = make_service([FakeResponse(calendar_body())])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, _, _ = self.run_cli("calendar", "get", "--start", "2023-01-01", "--employee", "99")
        self.assertEqual(rc, 0)
        self.assertTrue(http.calls[0]["url"].endswith("/attendance-calendar/99"))


class AttendanceCommandTests(CLITestCase):
    def test_get_pretty_table(self):
        body = {"data": [make_period("p1", "2023-01-18T07:00:00Z", "2023-01-18T15:00:00Z")]}
        service, _ = make_service([FakeResponse(body)])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli("attendance", "get", "--from", "2023-01-01", "--to", "2023-01-31")
        self.assertEqual(rc, 0)
        self.assertIn("period_type", out.splitlines()[0])
        self.assertIn("2023-01-18T09:00:00+02:00", out)

    def test_get_lone_to_uses_its_own_month(self):
        service, http = make_service([FakeResponse({"data": []})])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, _, _ = self.run_cli("attendance", "get", "--to", "2023-01-10")
        self.assertEqual(rc, 0)
        self.assertEqual(http.calls[0]["params"]["filter[startDate]"], "2023-01-01")
        self.assertEqual(http.calls[0]["params"]["filter[endDate]"], "2023-01-10")

    def test_set_requires_a_range(self):
        with mock.patch("personio_assistant.cli.build_service") as m_build:
            rc, _, err = self.run_cli("attendance", "set", "--date", "2023-01-18")
        self.assertEqual(rc, ExitCode.USAGE)
        self.assertIn("--work", err)
        m_build.assert_not_called()

    def test_set_dry_run_prints_plan(self):
        service, http = make_service([FakeResponse(calendar_body([make_day("day-18", "2023-01-18")]))])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli(
                "attendance", "set", "--date", "2023-01-18",
                "--work", "09:00-12:00", "--break", "12:00-12:30", "--work", "12:30-17:00",
                "--comment", "sprint", "--dry-run", "-o", "json",
            )
        self.assertEqual(rc, 0)
        plan = json.loads(out)
        self.assertTrue(plan["dry_run"])
        self.assertEqual(plan["day_id"], "day-18")
        self.assertEqual([p["period_type"] for p in plan["periods"]], ["work", "break", "work"])
        self.assertEqual(plan["periods"][0]["start"], "2023-01-18T07:00:00Z")
        self.assertEqual(plan["periods"][0]["comment"], "sprint")
        self.assertEqual(plan["periods"][1]["comment"], "")
        self.assertEqual([c["method"] for c in http.calls], ["GET"])

    def test_set_saves_day(self):
        service, http = make_service([
            FakeResponse(calendar_body([make_day("day-18", "2023-01-18")])),
            FakeResponse({"success": True, "data": {}}),
        ])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli("attendance", "set", "--date", "2023-01-18", "--work", "09:00-17:00", "-o", "json")
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out), {"date": "2023-01-18", "day_id": "day-18", "status": "saved"})
        self.assertEqual(http.calls[1]["method"], "PUT")

    def test_set_all_periods_too_short_is_refused(self):
        service, http = make_service(minimum_period=dt.timedelta(minutes=5))
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, _, err = self.run_cli("attendance", "set", "--date", "2023-01-18", "--work", "09:00-09:02")
        self.assertEqual(rc, ExitCode.ERROR)
        self.assertIn("nothing saved", err)
        self.assertEqual(http.calls, [])

    def test_set_remote_failure_exit_code(self):
        service, _ = make_service([
            FakeResponse(calendar_body()),
            FakeResponse({"success": False, "error": {"message": "locked"}}, status=409),
        ])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, _, err = self.run_cli("attendance", "set", "--date", "2023-01-18", "--work", "09:00-17:00")
        self.assertEqual(rc, ExitCode.ERROR)
        self.assertIn("locked", err)

    def test_add_creates_period(self):
        service, http = make_service([FakeResponse({"success": True, "data": [{"id": "x"}]})])
        with mock.patch("personio_assistant.cli.build_service", return_value=service):
            rc, out, _ = self.run_cli(
                "attendance", "add", "--from", "2023-01-18T09:00:00", "--to", "2023-01-18T10:00:00Z", "-o", "json"
            )
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out)["status"], "created")
        record = http.calls[0]["json"][0]
        self.assertEqual(record["start"], "2023-01-18T07:00:00Z")
        self.assertEqual(record["end"], "2023-01-18T10:00:00Z")


class WindowTests(unittest.TestCase):
    today = dt.date(2026, 10, 18)

    def test_defaults_to_current_month(self):
        self.assertEqual(_window(None, None, self.today), (dt.date(2026, 10, 1), dt.date(2026, 10, 31)))

    def test_lone_start_runs_to_month_end(self):
        self.assertEqual(_window(dt.date(2023, 1, 10), None, self.today), (dt.date(2023, 1, 10), dt.date(2023, 1, 31)))

    def test_lone_end_starts_at_month_start(self):
        self.assertEqual(_window(None, dt.date(2023, 1, 10), self.today), (dt.date(2023, 1, 1), dt.date(2023, 1, 10)))


class BuildDayPeriodsTests(unittest.TestCase):
    def test_orders_by_start_and_tags_types(self):
        periods = build_day_periods(
            dt.date(2023, 1, 18),
            work=[(dt.time(13, 0), dt.time(17, 0)), (dt.time(9, 0), dt.time(12, 0))],
            breaks=[(dt.time(12, 0), dt.time(13, 0))],
            comment="c",
            project_id=7,
        )
        self.assertEqual([p.start.hour for p in periods], [9, 12, 13])
        self.assertEqual([p.type for p in periods], [PeriodType.WORK, PeriodType.BREAK, PeriodType.WORK])
        self.assertEqual(periods[0].project_id, 7)
        self.assertIsNone(periods[1].comment)


if __name__ == "__main__":
    unittest.main()
