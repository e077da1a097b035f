"""Shared YAML read/write helpers for the assistant CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

__all__ = ["load_config", "dump_yaml", "lookup"]

_MISSING = object()


def _require_yaml():
    try:
        import yaml  # type: ignore

        return yaml
    except Exception as exc:  # pragma: no cover - runtime guard
        raise RuntimeError("PyYAML not installed. Run: pip install pyyaml") from exc


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML mapping; returns {} if the path is unset, missing or empty.

    Raises ValueError when the file is not valid YAML or its root is not a mapping.
    """
    if not path:
        return {}
    yaml = _require_yaml()
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def dump_yaml(data: Any) -> str:
    """Render data as block-style YAML with stable ordering for humans."""
    yaml = _require_yaml()
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def lookup(data: Dict[str, Any], dotted: str, default: Any = None) -> Any:
    """Return a nested value by dotted key, e.g. lookup(cfg, "auth.email").

    Empty values (YAML ``key:`` with nothing after it) count as missing.
    """
    cur: Any = data
    for part in dotted.split("."):
        if not isinstance(cur, dict):
            return default
        cur = cur.get(part, _MISSING)
        if cur is _MISSING:
            return default
    if cur is None:
        return default
    return cur
