"""Error kinds raised by the session, client and attendance service."""
from __future__ import annotations

from typing import Any, Optional

from core.cli_errors import AuthError, CLIError, NetworkError


class TransportError(NetworkError):
    """The HTTP request itself failed (DNS, TLS, connection, timeout)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, hint="Check baseUrl and your network connection.")
        self.cause = cause


class AuthFailure(AuthError):
    """Login was rejected or produced no usable session."""


class AuthChallengeRequired(AuthError):
    """The server does not recognize this device and emailed a one-time token."""

    def __init__(self, csrf_token: Optional[str]):
        super().__init__(
            "Login requires new-device verification; a one-time token was sent to your email.",
            hint=(
                "Re-run with --auth.csrf-token "
                f"{csrf_token or '<token>'} --auth.email-token <token from email>"
            ),
        )
        self.csrf_token = csrf_token


class NotLoggedIn(AuthError):
    """An authenticated operation was attempted before logging in."""

    def __init__(self, state: Any = None):
        detail = f" (session state: {getattr(state, 'value', state)})" if state is not None else ""
        super().__init__(f"Not logged in{detail}; call login() first.")
        self.state = state


class RemoteAPIError(CLIError):
    """The API answered with a non-success status or error envelope."""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body
