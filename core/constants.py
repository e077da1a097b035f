"""Shared constants for the assistant CLI and API client."""

from __future__ import annotations

import os
from typing import Tuple

# -----------------------------------------------------------------------------
# Config file lookup
# -----------------------------------------------------------------------------

CONFIG_FILENAME = "personio.yaml"
CONFIG_ENV_VAR = "PERSONIO_CONFIG"
ENV_PREFIX = "PERSONIO_"


def config_search_paths() -> list[str]:
    """Return ordered list of personio.yaml paths to search.

    The working directory comes first, then the XDG config root and finally
    ~/.config. A file named by PERSONIO_CONFIG is not searched for; the
    config loader requires it to exist.
    """
    paths: list[str] = [os.path.join(os.getcwd(), CONFIG_FILENAME)]

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.append(os.path.join(os.path.expanduser(xdg), CONFIG_FILENAME))
    paths.append(os.path.expanduser(os.path.join("~", ".config", CONFIG_FILENAME)))

    # Dedupe while preserving order
    seen: set[str] = set()
    unique: list[str] = []
    for p in paths:
        if p and p not in seen:
            seen.add(p)
            unique.append(p)
    return unique


# -----------------------------------------------------------------------------
# HTTP and timeouts
# -----------------------------------------------------------------------------

# Default timeout for HTTP requests: (connect_seconds, read_seconds)
DEFAULT_REQUEST_TIMEOUT: Tuple[int, int] = (10, 30)

USER_AGENT = "personio-assistant"


# -----------------------------------------------------------------------------
# Formats
# -----------------------------------------------------------------------------

FMT_DAY = "%Y-%m-%d"
FMT_UTC_SECONDS = "%Y-%m-%dT%H:%M:%SZ"

DEFAULT_MINIMUM_PERIOD = "1m"
