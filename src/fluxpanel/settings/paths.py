from __future__ import annotations

from typing import Any


def split_path(path: str) -> list[str]:
    parts = str(path).split(".")
    if not path or "" in parts:
        raise ValueError(f"invalid settings path: {path!r}")
    return parts


def get_path(doc: dict | None, path: str, fallback: Any = None) -> Any:
    """Read a dotted path ("risk.stop_loss_pct") out of a nested dict.

    Missing keys, non-dict intermediates and explicit None all return fallback.
    """
    cur: Any = doc
    for part in split_path(path):
        if not isinstance(cur, dict):
            return fallback
        cur = cur.get(part)
    return fallback if cur is None else cur


def set_path(doc: dict | None, path: str, value: Any, *, clear_preset: bool = True) -> dict:
    """Return a copy of doc with value written at path.

    Only the dicts along the path are copied; sibling branches are shared with
    the input, and the input itself is never mutated. A manual edit drops the
    document out of preset mode unless clear_preset=False.
    """
    parts = split_path(path)
    root = dict(doc or {})
    if clear_preset:
        root["preset_id"] = None

    cur = root
    for part in parts[:-1]:
        nxt = cur.get(part)
        cur[part] = dict(nxt) if isinstance(nxt, dict) else {}
        cur = cur[part]
    cur[parts[-1]] = value
    return root
