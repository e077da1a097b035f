"""Exit codes and the error base class for the assistant CLI.

Anything raised past a command that derives from CLIError carries its own
exit code and an optional hint; ``handle_error`` turns it into STDERR output.
"""
from __future__ import annotations

import logging
import sys
import traceback
from enum import IntEnum
from typing import Optional

LOG = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit codes."""
    SUCCESS = 0
    ERROR = 1
    USAGE = 2
    CONFIG_ERROR = 3
    AUTH_ERROR = 4
    NETWORK_ERROR = 5
    INTERRUPTED = 130  # Ctrl+C


class CLIError(Exception):
    """Error with an exit code and an optional hint for the user.

    Subclasses pick their exit code through the ``code`` class attribute;
    a ``code`` argument overrides it per instance.
    """

    code: ExitCode = ExitCode.ERROR

    def __init__(self, message: str, hint: Optional[str] = None, *, code: Optional[ExitCode] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ConfigError(CLIError):
    """Missing or invalid configuration."""
    code = ExitCode.CONFIG_ERROR


class AuthError(CLIError):
    """Login failed or a command ran without a session."""
    code = ExitCode.AUTH_ERROR


class NetworkError(CLIError):
    """The server could not be reached."""
    code = ExitCode.NETWORK_ERROR


class UsageError(CLIError):
    """Arguments are valid individually but not together."""
    code = ExitCode.USAGE


def handle_error(error: BaseException, verbose: bool = False) -> int:
    """Report ``error`` on STDERR and return the exit code for it.

    Args:
        error: The exception that ended the command.
        verbose: Also print the traceback of errors that are not CLIErrors.
    """
    if isinstance(error, KeyboardInterrupt):
        print("\nInterrupted.", file=sys.stderr)
        return int(ExitCode.INTERRUPTED)

    if isinstance(error, CLIError):
        print(f"Error: {error.message}", file=sys.stderr)
        if error.hint:
            print(f"Hint: {error.hint}", file=sys.stderr)
        LOG.debug("%s -> exit %d", type(error).__name__, int(error.code), exc_info=error)
        return int(error.code)

    print(f"Error: {error}", file=sys.stderr)
    if verbose:
        traceback.print_exception(type(error), error, error.__traceback__)
    return int(ExitCode.ERROR)
