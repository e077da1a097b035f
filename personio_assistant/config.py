"""Config resolution for the Personio assistant.

Each setting is taken from, in order: CLI flag, environment variable,
personio.yaml, built-in default.
"""

from __future__ import annotations

import datetime as _dt
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from core.cli_errors import ConfigError
from core.cli_output import OutputFormat
from core.constants import CONFIG_ENV_VAR, DEFAULT_MINIMUM_PERIOD, ENV_PREFIX, config_search_paths
from core.date_utils import parse_duration
from core.log_utils import LOG_FORMATS, parse_level
from core.yamlio import load_config, lookup

from .models import Credentials

LOG = logging.getLogger(__name__)

# setting name -> (YAML key, environment suffix, default)
SETTINGS: Dict[str, tuple] = {
    "base_url": ("baseUrl", "BASE_URL", None),
    "email": ("auth.email", "AUTH_EMAIL", None),
    "password": ("auth.password", "AUTH_PASSWORD", None),
    "csrf_token": ("auth.csrfToken", "AUTH_CSRF_TOKEN", None),
    "email_token": ("auth.emailToken", "AUTH_EMAIL_TOKEN", None),
    "minimum_period": ("minimumPeriodDuration", "MINIMUM_PERIOD_DURATION", DEFAULT_MINIMUM_PERIOD),
    "output": ("output", "OUTPUT", OutputFormat.PRETTY.value),
    "log_format": ("log.format", "LOG_FORMAT", "pretty"),
    "log_level": ("log.level", "LOG_LEVEL", "warn"),
}


@dataclass
class Config:
    base_url: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    csrf_token: Optional[str] = None
    email_token: Optional[str] = field(default=None, repr=False)
    minimum_period: _dt.timedelta = _dt.timedelta(minutes=1)
    output: str = OutputFormat.PRETTY.value
    log_format: str = "pretty"
    log_level: str = "warn"
    path: Optional[Path] = None

    def require_base_url(self) -> str:
        if not self.base_url:
            raise ConfigError(
                "No Personio base URL configured",
                hint="Set baseUrl in personio.yaml, PERSONIO_BASE_URL, or pass --base-url.",
            )
        return self.base_url

    def credentials(self) -> Credentials:
        missing = [name for name, value in (("auth.email", self.email), ("auth.password", self.password)) if not value]
        if missing:
            raise ConfigError(
                f"Missing login credentials: {', '.join(missing)}",
                hint="Set them in personio.yaml, via PERSONIO_AUTH_EMAIL / PERSONIO_AUTH_PASSWORD, or as flags.",
            )
        return Credentials(
            email=str(self.email),
            password=str(self.password),
            csrf_token=self.csrf_token or None,
            email_token=self.email_token or None,
        )


def find_config_file(
    explicit: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Path]:
    """Return the config file to read, or None when there is none.

    A path named by --config or PERSONIO_CONFIG must exist; the default
    search locations are optional.
    """
    env = os.environ if environ is None else environ
    named = explicit or env.get(CONFIG_ENV_VAR)
    if named:
        p = Path(os.path.expanduser(named))
        if not p.is_file():
            source = "--config" if explicit else CONFIG_ENV_VAR
            raise ConfigError(
                f"Config file not found: {pretty_path(str(p))}",
                hint=f"Fix the path given by {source} or create the file.",
            )
        return p
    for candidate in config_search_paths():
        if os.path.isfile(candidate):
            return Path(candidate)
    return None


def resolve(
    overrides: Optional[Mapping[str, Any]] = None,
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """Merge flags, environment and YAML into a validated Config."""
    overrides = overrides or {}
    env = os.environ if environ is None else environ
    path = find_config_file(config_path, env)
    try:
        data = load_config(str(path)) if path else {}
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    if path:
        LOG.debug("Loaded config from %s", pretty_path(str(path)))

    values: Dict[str, Any] = {}
    for name, (yaml_key, env_suffix, default) in SETTINGS.items():
        value = overrides.get(name)
        if value in (None, ""):
            value = env.get(ENV_PREFIX + env_suffix)
        if value in (None, ""):
            value = lookup(data, yaml_key)
        if value in (None, ""):
            value = default
        values[name] = value

    try:
        minimum = parse_duration(str(values["minimum_period"]))
        output = OutputFormat.parse(values["output"]).value
        parse_level(values["log_level"])
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    if values["log_format"] not in LOG_FORMATS:
        raise ConfigError(f"unknown log format: {values['log_format']!r}, must be one of: {', '.join(LOG_FORMATS)}")

    base_url = values["base_url"]
    return Config(
        base_url=str(base_url).rstrip("/") if base_url else None,
        email=_str_or_none(values["email"]),
        password=_str_or_none(values["password"]),
        csrf_token=_str_or_none(values["csrf_token"]),
        email_token=_str_or_none(values["email_token"]),
        minimum_period=minimum,
        output=output,
        log_format=str(values["log_format"]),
        log_level=str(values["log_level"]),
        path=path,
    )


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def pretty_path(path: str) -> str:
    """Shorten a path for messages: relative to cwd when inside it, else ~/..."""
    p = os.path.normpath(os.path.abspath(path))
    try:
        rel = os.path.relpath(p, os.getcwd())
        if not rel.startswith(".." + os.sep) and rel != "..":
            return rel
    except ValueError:
        pass
    home = os.path.expanduser("~")
    if home and home != "~" and p.startswith(home + os.sep):
        return os.path.join("~", p[len(home) + 1:])
    return p
