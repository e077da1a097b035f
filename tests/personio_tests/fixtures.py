"""Shared test fixtures for personio_assistant tests."""

from __future__ import annotations

import datetime as _dt
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from core.date_utils import Clock
from personio_assistant.attendance import AttendanceService
from personio_assistant.client import PersonioClient
from personio_assistant.session import AuthState, Session, SessionManager

BASE_URL = "https://acme.personio.de"
EMPLOYEE_ID = 4711

# Fixed +02:00 zone so local-time assertions do not depend on the host.
CEST = _dt.timezone(_dt.timedelta(hours=2), "CEST")


class FakeCookie:
    def __init__(self, name: str, value: str):
        self.name = name
        self.value = value


class FakeResponse:
    """Fake HTTP response for mocking requests."""

    def __init__(
        self,
        body: Any = None,
        status: int = 200,
        *,
        text: Optional[str] = None,
        url: str = "",
        headers: Optional[Dict[str, str]] = None,
        set_cookies: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status
        self._body = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.url = url
        self.headers = headers or {}
        self.set_cookies = set_cookies or {}
        self.request = SimpleNamespace(method="")

    def json(self) -> Any:
        if self._body is None:
            return json.loads(self.text)
        return self._body


class FakeHTTPSession:
    """Fake requests.Session that returns queued responses and records calls."""

    def __init__(self, responses: Optional[List[FakeResponse]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []
        self.cookies: List[FakeCookie] = []

    def queue(self, *responses: FakeResponse) -> None:
        self.responses.extend(responses)

    def set_cookie(self, name: str, value: str) -> None:
        self.cookies = [c for c in self.cookies if c.name != name]
        self.cookies.append(FakeCookie(name, value))

    def request(self, method, url, params=None, json=None, data=None, headers=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "params": params, "json": json, "data": data, "headers": headers}
        )
        if not self.responses:
            raise AssertionError(f"No response queued for {method} {url}")
        resp = self.responses.pop(0)
        resp.request = SimpleNamespace(method=method)
        if not resp.url:
            resp.url = url
        for name, value in resp.set_cookies.items():
            self.set_cookie(name, value)
        return resp


def login_page(token: str = "page-csrf") -> str:
    return (
        "<html><body><form action='/login/index' method='post'>"
        f"<input type='hidden' name='_token' value='{token}'>"
        "<input type='email' name='email'>"
        "<input type='password' name='password'>"
        "</form></body></html>"
    )


def challenge_page(token: str = "challenge-csrf") -> str:
    return (
        "<html><body><form action='/login/token-auth' method='post'>"
        f"<input type='hidden' name='_token' value='{token}'>"
        "<input type='text' name='token'>"
        "</form></body></html>"
    )


def dashboard_page(employee_id: int = EMPLOYEE_ID) -> str:
    return f"<html><body><div id='app' data-employee-id='{employee_id}'>Dashboard</div></body></html>"


def make_client(responses: Optional[List[FakeResponse]] = None):
    http = FakeHTTPSession(responses)
    return PersonioClient(BASE_URL, session=http), http


def logged_in_sessions(responses: Optional[List[FakeResponse]] = None, employee_id: int = EMPLOYEE_ID):
    """A SessionManager already past the login handshake."""
    client, http = make_client(responses)
    http.set_cookie("personio_session", "sess")
    session = Session(state=AuthState.LOGGED_IN, session_cookie="sess", employee_id=employee_id)
    return SessionManager(client, session=session), http


def make_service(responses: Optional[List[FakeResponse]] = None, minimum_period=_dt.timedelta(0)):
    sessions, http = logged_in_sessions(responses)
    return AttendanceService(sessions, clock=Clock(CEST), minimum_period=minimum_period), http


def make_day(day_id: str, day: str, status: str = "confirmed", duration: int = 480, breaks: int = 30) -> dict:
    return {
        "id": day_id,
        "type": "attendance_day",
        "attributes": {"day": day, "status": status, "duration_min": duration, "break_min": breaks},
    }


def calendar_body(days: Optional[List[dict]] = None, absences=None, holidays=None, envelope: bool = True) -> dict:
    data = {
        "attendance_days": {"data": days or []},
        "attendance_periods": {"data": absences or []},
        "holidays": {"data": holidays or []},
        "attendance_rights": {"can_edit": True},
    }
    if envelope:
        return {"success": True, "data": data}
    return data


def make_period(period_id: str, start: str, end: str, period_type: str = "work", comment: str = "") -> dict:
    return {
        "id": period_id,
        "type": "attendance_period",
        "attributes": {
            "period_type": period_type,
            "start": start,
            "end": end,
            "comment": comment,
            "legacy_break_min": 0,
            "employee_id": EMPLOYEE_ID,
            "attendance_day_id": "day-1",
            "created_at": start,
            "updated_at": end,
        },
    }
