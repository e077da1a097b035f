"""CLI entry point: ``python -m personio_assistant``."""

from __future__ import annotations

from typing import Optional, Sequence

from personio_assistant.cli import app


def main(argv: Optional[Sequence[str]] = None) -> int:
    return app.run(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
