from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

PRESETS_PATH = Path("config/presets.yaml")


class Preset(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    description: str = ""
    settings: dict[str, Any] | None = None


PRESET_SCHEMES: dict[str, dict[str, str]] = {
    "conservative": {"bg": "rgba(34, 197, 94, 0.1)", "border": "#22c55e", "label": "Conservative"},
    "balanced": {"bg": "rgba(59, 130, 246, 0.1)", "border": "#3b82f6", "label": "Balanced"},
    "aggressive": {"bg": "rgba(239, 68, 68, 0.1)", "border": "#ef4444", "label": "Aggressive"},
}


def preset_scheme(preset_id: str | None) -> dict[str, str]:
    return PRESET_SCHEMES.get(str(preset_id), PRESET_SCHEMES["balanced"])


def parse_presets(items: list | None) -> list[Preset]:
    out = []
    for p in items or []:
        if isinstance(p, Preset):
            out.append(p)
        elif isinstance(p, dict) and p.get("id") is not None:
            out.append(Preset.model_validate(dict(p, id=str(p["id"]))))
    return out


def find_preset(presets: list[Preset], preset_id: str | None) -> Preset | None:
    if preset_id is None:
        return None
    for p in presets:
        if p.id == str(preset_id):
            return p
    return None


def is_preset_mode(settings: dict | None) -> bool:
    return (settings or {}).get("preset_id") is not None


def current_preset(presets: list[Preset], settings: dict | None) -> Preset | None:
    return find_preset(presets, (settings or {}).get("preset_id"))


# Local preset store: lets the CLI keep named bundles when the backend has none.


def load_local_presets(path: Path = PRESETS_PATH) -> list[Preset]:
    if not path.exists():
        return []
    data = yaml.safe_load(path.read_text()) or {}
    return parse_presets(list(data.get("presets") or []))


def save_local_preset(preset_id: str, settings: dict[str, Any], *, name: str | None = None, description: str = "", path: Path = PRESETS_PATH) -> Preset:
    preset_id = str(preset_id).strip()
    if not preset_id:
        raise ValueError("missing preset id")

    settings = {k: v for k, v in (settings or {}).items() if k != "preset_id"}
    preset = Preset(id=preset_id, name=name or preset_id.title(), description=description, settings=settings)

    # replace if exists
    out = [p for p in load_local_presets(path) if p.id != preset_id]
    out.append(preset)
    out.sort(key=lambda x: x.id)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"presets": [p.model_dump() for p in out]}, sort_keys=False))
    return preset
