from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel


class Guardrail(BaseModel):
    min: float
    max: float
    default: float | None = None
    recommended: float | None = None


def _g(lo, hi, d) -> Guardrail:
    return Guardrail(min=lo, max=hi, default=d, recommended=d)


DEFAULT_GUARDRAILS: dict[str, Guardrail] = {
    "conf_threshold": _g(0.50, 0.80, 0.60),
    "trades_per_ticker_per_day": _g(1, 3, 1),
    "max_open_positions": _g(1, 10, 5),
    "stop_loss_pct": _g(0.005, 0.03, 0.01),
    "take_profit_pct": _g(0.005, 0.05, 0.02),
    "risk_per_trade_pct": _g(0.001, 0.01, 0.005),
    "max_hold_min": _g(15, 390, 120),
    "mom_entry_pct": _g(0.001, 0.01, 0.002),
    "mom_lookback": _g(3, 20, 8),
}


def parse_guardrails(obj: dict | None) -> dict[str, Guardrail]:
    out: dict[str, Guardrail] = {}
    for field, raw in (obj or {}).items():
        if isinstance(raw, Guardrail):
            out[str(field)] = raw
        elif isinstance(raw, BaseModel):
            out[str(field)] = Guardrail.model_validate(raw.model_dump())
        else:
            out[str(field)] = Guardrail.model_validate(raw)
    return out


def merge_guardrails(base: dict[str, Guardrail], override: dict | None) -> dict[str, Guardrail]:
    out = dict(base)
    out.update(parse_guardrails(override))
    return out


def _num(v: float) -> str:
    # 1.0 -> "1", 0.005 -> "0.005"
    return str(int(v)) if float(v).is_integer() else repr(float(v))


def check_value(guardrails: dict[str, Guardrail], field: str | None, value: Any) -> str | None:
    """Return an error string when value falls outside the field's guardrail, else None."""
    if not field:
        return None
    guard = guardrails.get(field)
    if guard is None:
        return None
    if isinstance(value, bool):
        return "Must be a number"
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "Must be a number"
    if math.isnan(v):
        return "Must be a number"
    if v < guard.min or v > guard.max:
        return f"Must be between {_num(guard.min)} and {_num(guard.max)}"
    return None


Level = Literal["success", "warning", "error"]


@dataclass(frozen=True)
class GuardrailHint:
    position: float
    recommended_position: float
    zone: str
    level: Level
    min_label: str
    max_label: str
    value_label: str
    recommended_label: str | None


def format_value(v: float, *, is_percent: bool = False, decimals: int = 2) -> str:
    if is_percent:
        return f"{v * 100:.{decimals}f}%"
    if isinstance(v, int) or float(v).is_integer():
        return str(int(v))
    return f"{v:.{decimals}f}"


def _zone(distance: float) -> tuple[str, Level]:
    if distance > 40:
        return "High risk", "error"
    if distance > 25:
        return "Moderate", "warning"
    return "Optimal", "success"


def guardrail_hint(guard: Guardrail, value: float, *, is_percent: bool = False, decimals: int = 2) -> GuardrailHint:
    lo, hi = float(guard.min), float(guard.max)
    rng = hi - lo
    pos = ((float(value) - lo) / rng) * 100 if rng > 0 else 50.0
    pos = max(0.0, min(100.0, pos))

    rec = guard.recommended or guard.default
    if rec is not None and rng > 0:
        rec_pos = ((float(rec) - lo) / rng) * 100
    else:
        rec_pos = 50.0

    zone, level = _zone(abs(pos - rec_pos))
    fmt = lambda x: format_value(x, is_percent=is_percent, decimals=decimals)  # noqa: E731
    return GuardrailHint(
        position=pos,
        recommended_position=rec_pos,
        zone=zone,
        level=level,
        min_label=fmt(guard.min),
        max_label=fmt(guard.max),
        value_label=fmt(value),
        recommended_label=fmt(rec) if rec is not None else None,
    )
