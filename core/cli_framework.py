"""Decorator-driven argparse apps.

Commands register with ``@app.command`` (or ``@group.command`` for nested
commands such as ``attendance set``) and take their flags from stacked
``@app.argument`` decorators. Common arguments are accepted both before and
after the command name.
"""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .cli_errors import ExitCode, handle_error
from .cli_output import OutputConfig, OutputFormat, OutputWriter

CommandFunc = Callable[[argparse.Namespace], int]
SetupFunc = Callable[[argparse.Namespace], None]


@dataclass
class Argument:
    """Positional args and keyword args for ``add_argument``."""
    name_or_flags: tuple
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CommandDef:
    name: str
    func: CommandFunc
    help: str = ""
    arguments: List[Argument] = field(default_factory=list)


class _Registry:
    """Shared command registration for apps and groups."""

    name: str

    def __init__(self) -> None:
        self._commands: Dict[str, CommandDef] = {}

    def _pending(self) -> List[Argument]:
        raise NotImplementedError

    def command(self, name: str, *, help: str = "") -> Callable[[CommandFunc], CommandFunc]:
        """Register the decorated function as command ``name``."""
        def decorator(func: CommandFunc) -> CommandFunc:
            pending = self._pending()
            # argument decorators ran bottom-up; restore source order
            arguments = pending[::-1]
            pending.clear()
            self._commands[name] = CommandDef(name, func, help, arguments)
            return func
        return decorator

    def argument(self, *name_or_flags: str, **kwargs: Any) -> Callable[[CommandFunc], CommandFunc]:
        """Add an argument to the next registered command (place below @command)."""
        def decorator(func: CommandFunc) -> CommandFunc:
            self._pending().append(Argument(name_or_flags, kwargs))
            return func
        return decorator


class CLIApp(_Registry):
    """An argparse program assembled from decorated command functions.

    Example:
        app = CLIApp("personio-assistant", "Attendance from the terminal")

        @app.command("login", help="Log in")
        @app.argument("--base-url")
        def cmd_login(args):
            args._output.print_data({"ok": True})
            return 0

    ``run`` parses argv, calls ``setup(args)`` if given, attaches an
    OutputWriter as ``args._output`` and dispatches. Exceptions from setup or
    the command are reported through ``handle_error``.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        version: Optional[str] = None,
        epilog: Optional[str] = None,
        common_arguments: Optional[Sequence[Argument]] = None,
        setup: Optional[SetupFunc] = None,
    ):
        super().__init__()
        self.name = name
        self.description = description
        self.version = version
        self.epilog = epilog
        self.setup = setup
        self.common_arguments = [
            Argument(("--output", "-o"), {
                "choices": [f.value for f in OutputFormat],
                "help": "Result format on STDOUT (default: pretty)",
            }),
            Argument(("--verbose", "-v"), {
                "action": "store_true",
                "help": "Print tracebacks for unexpected errors",
            }),
        ] + list(common_arguments or [])
        self._groups: Dict[str, CommandGroup] = {}
        self._arguments: List[Argument] = []
        self._parser: Optional[argparse.ArgumentParser] = None

    def _pending(self) -> List[Argument]:
        return self._arguments

    def group(self, name: str, *, help: str = "") -> "CommandGroup":
        """Create a group whose commands run as ``<group> <command>``."""
        group = CommandGroup(self, name, help=help)
        self._groups[name] = group
        return group

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog=self.name,
            description=self.description,
            epilog=self.epilog,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        if self.version:
            parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {self.version}")
        self._add_common(parser, leaf=False)

        subparsers = parser.add_subparsers(dest="command", metavar="<command>")
        for group in self._groups.values():
            group_parser = subparsers.add_parser(group.name, help=group.help, description=group.help)
            group_parser.set_defaults(_group_parser=group_parser)
            nested = group_parser.add_subparsers(dest=f"{group.name}_cmd", metavar="<subcommand>")
            for cmd_def in group._commands.values():
                self._add_leaf(nested, cmd_def)
        for cmd_def in self._commands.values():
            self._add_leaf(subparsers, cmd_def)

        self._parser = parser
        return parser

    def _add_common(self, parser: argparse.ArgumentParser, *, leaf: bool) -> None:
        # Leaf parsers use SUPPRESS so they never clobber a value given before the command.
        for arg in self.common_arguments:
            kwargs = dict(arg.kwargs)
            if leaf:
                kwargs["default"] = argparse.SUPPRESS
            parser.add_argument(*arg.name_or_flags, **kwargs)

    def _add_leaf(self, subparsers, cmd_def: CommandDef) -> None:
        leaf = subparsers.add_parser(cmd_def.name, help=cmd_def.help, description=cmd_def.help)
        self._add_common(leaf, leaf=True)
        for arg in cmd_def.arguments:
            leaf.add_argument(*arg.name_or_flags, **arg.kwargs)
        leaf.set_defaults(_cmd_func=cmd_def.func)

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        """Parse ``argv`` (default: sys.argv[1:]), dispatch and return the exit code."""
        parser = self._parser or self.build_parser()
        args = parser.parse_args(argv)

        func = getattr(args, "_cmd_func", None)
        if func is None:
            (getattr(args, "_group_parser", None) or parser).print_help(sys.stderr)
            return int(ExitCode.USAGE)

        try:
            if self.setup:
                self.setup(args)
            fmt = OutputFormat.parse(getattr(args, "output", None) or OutputFormat.PRETTY.value)
            args._output = OutputWriter(OutputConfig(format=fmt))
            return int(func(args))
        except (Exception, KeyboardInterrupt) as exc:
            return handle_error(exc, verbose=bool(getattr(args, "verbose", False)))


class CommandGroup(_Registry):
    """Commands nested under one name, e.g. ``calendar days``."""

    def __init__(self, app: CLIApp, name: str, *, help: str = ""):
        super().__init__()
        self.app = app
        self.name = name
        self.help = help

    def _pending(self) -> List[Argument]:
        # shares the app's queue so app.argument and group.argument mix freely
        return self.app._arguments
