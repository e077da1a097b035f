"""Thin HTTP executor bound to one Personio origin."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import unquote

import requests

from core.constants import DEFAULT_REQUEST_TIMEOUT, USER_AGENT

from .errors import RemoteAPIError, TransportError

LOG = logging.getLogger(__name__)

XSRF_COOKIE = "XSRF-TOKEN"
XSRF_HEADER = "X-XSRF-TOKEN"


class PersonioClient:
    """Sends requests against ``base_url`` and keeps cookies between calls.

    The session cookie set by the login handshake is carried automatically by
    the underlying ``requests.Session``.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Any = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _make_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def cookie(self, name: str) -> Optional[str]:
        """Return the value of a cookie set by the server, if any."""
        for c in self.session.cookies:
            if c.name == name:
                return c.value
        return None

    def send(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """Send one request; transport failures raise TransportError.

        HTTP error statuses are returned, not raised; see ``send_json``.
        """
        method = method.upper()
        url = self._make_url(path)
        req_headers = {"User-Agent": USER_AGENT, "Accept": "application/json, text/html;q=0.9"}
        xsrf = self.cookie(XSRF_COOKIE)
        if xsrf:
            req_headers[XSRF_HEADER] = unquote(xsrf)
        if headers:
            req_headers.update(headers)
        LOG.debug("%s %s", method, url)
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                data=data,
                headers=req_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url}: {exc}", cause=exc) from exc
        LOG.debug("%s %s -> %s", method, url, resp.status_code)
        return resp

    def send_json(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """Send a JSON API request and return the decoded payload."""
        resp = self.send(method, path, params=params, json_body=json_body)
        return parse_response_json(resp)


def parse_response_json(resp: requests.Response) -> Any:
    """Decode a JSON API response.

    Non-2xx statuses raise RemoteAPIError. A ``{"success": ..., "data": ...}``
    envelope is unwrapped; ``success: false`` raises RemoteAPIError.
    """
    method = getattr(resp.request, "method", None) or ""
    where = f"{method} {resp.url}".strip()
    try:
        body = resp.json()
    except ValueError:
        body = None
        if 200 <= resp.status_code < 300:
            raise RemoteAPIError(
                f"{where}: expected JSON, got {resp.headers.get('Content-Type') or 'unknown content'}",
                status=resp.status_code,
                body=_snippet(resp.text),
            ) from None

    if not (200 <= resp.status_code < 300):
        raise RemoteAPIError(
            f"{where}: HTTP {resp.status_code}: {_error_message(body) or _snippet(resp.text)}",
            status=resp.status_code,
            body=body if body is not None else _snippet(resp.text),
        )

    if isinstance(body, dict) and "success" in body:
        if not body.get("success"):
            raise RemoteAPIError(
                f"{where}: request was not successful: {_error_message(body) or 'no error message'}",
                status=resp.status_code,
                body=body,
            )
        return body.get("data")
    return body


def _error_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    err = body.get("error")
    if isinstance(err, dict):
        return err.get("message") or err.get("detail") or None
    if isinstance(err, str):
        return err
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return first.get("detail") or first.get("title") or str(first)
        return str(first)
    return body.get("message")


def _snippet(text: Optional[str], limit: int = 300) -> str:
    s = (text or "").replace("\r", " ").replace("\n", " ").strip()
    return s if len(s) <= limit else s[:limit] + "..."
