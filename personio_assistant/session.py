"""Login state machine for Personio's browser login flow.

States: LOGGED_OUT -> AWAITING_DEVICE_CHALLENGE | LOGGED_IN.

The login form is posted once per ``login`` call. When Personio does not
recognize the device it answers with a verification form instead of the
dashboard and emails a one-time token; the caller re-runs with that token and
the CSRF token from the challenge attached to the credentials.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from .client import PersonioClient
from .errors import AuthChallengeRequired, AuthFailure, NotLoggedIn, RemoteAPIError
from .models import Credentials

LOG = logging.getLogger(__name__)

LOGIN_PATH = "/login/index"
TOKEN_AUTH_PATH = "/login/token-auth"
SESSION_COOKIE = "personio_session"

_REJECTED_STATUSES = (401, 403, 419, 422)

_EMPLOYEE_ID_PATTERNS = (
    re.compile(r'data-employee-id\s*=\s*["\'](\d+)["\']'),
    re.compile(r"EMPLOYEE\s*=\s*\{\s*[\"']?id[\"']?\s*:\s*(\d+)"),
    re.compile(r'["\']employee_id["\']\s*:\s*(\d+)'),
)


class AuthState(str, Enum):
    LOGGED_OUT = "logged_out"
    AWAITING_DEVICE_CHALLENGE = "awaiting_device_challenge"
    LOGGED_IN = "logged_in"


@dataclass
class Session:
    """Per-run authentication state; never persisted."""

    state: AuthState = AuthState.LOGGED_OUT
    session_cookie: Optional[str] = None
    employee_id: Optional[int] = None
    csrf_token: Optional[str] = None

    @property
    def is_logged_in(self) -> bool:
        return self.state == AuthState.LOGGED_IN

    def ensure_logged_in(self) -> None:
        """Raise NotLoggedIn unless the login handshake completed."""
        if self.state != AuthState.LOGGED_IN:
            raise NotLoggedIn(self.state)


def _attr_to_str(attr) -> str:
    if attr is None:
        return ""
    if isinstance(attr, list):
        return str(attr[0]) if attr else ""
    return str(attr)


def extract_csrf_token(soup: BeautifulSoup) -> Optional[str]:
    """Find the CSRF token in a hidden ``_token`` input or a csrf-token meta tag."""
    tag = soup.find("input", attrs={"name": "_token"})
    if isinstance(tag, Tag):
        value = _attr_to_str(tag.get("value"))
        if value:
            return value
    meta = soup.find("meta", attrs={"name": "csrf-token"})
    if isinstance(meta, Tag):
        content = _attr_to_str(meta.get("content"))
        if content:
            return content
    return None


def extract_employee_id(html: str) -> Optional[int]:
    for pattern in _EMPLOYEE_ID_PATTERNS:
        m = pattern.search(html or "")
        if m:
            return int(m.group(1))
    return None


def is_device_challenge(soup: BeautifulSoup, url: str) -> bool:
    if urlparse(url or "").path.rstrip("/").endswith(TOKEN_AUTH_PATH):
        return True
    return isinstance(soup.find("input", attrs={"name": "token"}), Tag)


def is_login_form(soup: BeautifulSoup) -> bool:
    return isinstance(soup.find("input", attrs={"type": "password"}), Tag)


class SessionManager:
    """Owns the Session and performs the login handshake through a client."""

    def __init__(self, client: PersonioClient, session: Optional[Session] = None) -> None:
        self.client = client
        self.session = session or Session()
        self._lock = threading.Lock()

    @property
    def employee_id(self) -> int:
        self.ensure_logged_in()
        if self.session.employee_id is None:
            raise NotLoggedIn(self.session.state)
        return self.session.employee_id

    def ensure_logged_in(self) -> None:
        self.session.ensure_logged_in()

    def login(self, credentials: Credentials) -> Session:
        """Run the login handshake and return the updated session.

        Raises:
            AuthChallengeRequired: the server wants the emailed device token;
                the session is left in AWAITING_DEVICE_CHALLENGE.
            AuthFailure: credentials rejected or no usable session.
            TransportError: the request could not be sent.
        """
        with self._lock:
            return self._login(credentials)

    def _login(self, credentials: Credentials) -> Session:
        if not credentials.email or not credentials.password:
            raise AuthFailure("email and password are required to log in")

        self.session = Session()
        page = self.client.send("GET", LOGIN_PATH)
        page_token = extract_csrf_token(BeautifulSoup(page.text or "", "html.parser"))

        form: Dict[str, str] = {"email": credentials.email, "password": credentials.password}
        csrf = credentials.csrf_token or page_token
        if csrf:
            form["_token"] = csrf
        if credentials.has_device_tokens:
            form["token"] = credentials.email_token or ""
            LOG.info("Logging in as %s with device verification tokens", credentials.email)
        else:
            LOG.info("Logging in as %s", credentials.email)

        resp = self.client.send("POST", LOGIN_PATH, data=form)
        soup = BeautifulSoup(resp.text or "", "html.parser")

        if is_device_challenge(soup, resp.url):
            challenge_token = extract_csrf_token(soup)
            self.session = Session(state=AuthState.AWAITING_DEVICE_CHALLENGE, csrf_token=challenge_token)
            LOG.warning("Login for %s needs new-device verification", credentials.email)
            raise AuthChallengeRequired(challenge_token)

        if resp.status_code in _REJECTED_STATUSES or is_login_form(soup):
            raise AuthFailure(
                f"Login rejected for {credentials.email} (HTTP {resp.status_code})",
                hint="Check auth.email and auth.password.",
            )
        if resp.status_code >= 400:
            raise RemoteAPIError(f"POST {LOGIN_PATH}: HTTP {resp.status_code}", status=resp.status_code)

        cookie = self.client.cookie(SESSION_COOKIE)
        if not cookie:
            raise AuthFailure(f"Login did not return a {SESSION_COOKIE} cookie")

        employee_id = extract_employee_id(resp.text)
        if employee_id is None:
            raise AuthFailure(
                "Logged in, but could not determine the employee ID from the landing page",
                hint="Check that baseUrl points at your company's Personio domain.",
            )

        self.session = Session(
            state=AuthState.LOGGED_IN,
            session_cookie=cookie,
            employee_id=employee_id,
            csrf_token=csrf,
        )
        LOG.info("Logged in as employee %d", employee_id)
        return self.session
