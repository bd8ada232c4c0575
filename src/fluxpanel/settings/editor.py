from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from fluxpanel.api.client import FluxClient
from fluxpanel.panel.toasts import ToastQueue
from fluxpanel.settings.guardrails import DEFAULT_GUARDRAILS, Guardrail, check_value, guardrail_hint, parse_guardrails
from fluxpanel.settings.paths import get_path, set_path
from fluxpanel.settings.presets import Preset, current_preset, is_preset_mode, parse_presets, preset_scheme

FieldKind = Literal["onoff", "toggle", "select", "text", "time", "percent", "number"]


@dataclass(frozen=True)
class Tab:
    id: str
    label: str


@dataclass(frozen=True)
class Field:
    tab: str
    path: str
    label: str
    description: str
    kind: FieldKind
    fallback: Any
    guardrail: str | None = None
    choices: tuple[str, ...] = ()
    suffix: str = ""


TABS: tuple[Tab, ...] = (
    Tab("profile", "Profile"),
    Tab("safety", "Safety"),
    Tab("trading", "Trading"),
    Tab("risk", "Risk"),
    Tab("limits", "Limits"),
    Tab("strategy", "Strategy"),
)

FIELDS: tuple[Field, ...] = (
    Field("safety", "kill_switch", "Kill Switch", "When ON, all trading is blocked", "onoff", "off"),
    Field("safety", "mode", "Mode", "Paper trading or live trading", "select", "paper", choices=("paper", "live")),
    Field("trading", "symbols", "Symbols", "Comma-separated list of symbols to trade", "text", "QQQ,SPY"),
    Field("trading", "trading_window_start", "Trading Window Start", "Time window for trading (PST)", "time", "06:30"),
    Field("trading", "trading_window_end", "Trading Window End", "Time window for trading (PST)", "time", "10:30"),
    Field("trading", "conf_threshold", "Confidence Threshold", "Minimum confidence to enter a trade", "percent", 0.60, "conf_threshold"),
    Field("risk", "stop_loss_pct", "Stop Loss %", "Percentage loss to trigger stop loss", "percent", 0.01, "stop_loss_pct"),
    Field("risk", "take_profit_pct", "Take Profit %", "Percentage gain to trigger take profit", "percent", 0.02, "take_profit_pct"),
    Field("risk", "risk_per_trade_pct", "Risk per Trade %", "Percentage of account to risk per trade", "percent", 0.005, "risk_per_trade_pct"),
    Field("risk", "max_hold_min", "Max Hold (minutes)", "Maximum time to hold a position", "number", 120, "max_hold_min", suffix=" min"),
    Field("risk", "mq_exit_enabled", "MQ Exit Enabled", "Exit early when market quality degrades", "toggle", True),
    Field("risk", "mq_exit_loss_threshold", "MQ Exit Threshold %", "Min unrealized loss to trigger mq_exit", "percent", 0.001),
    Field("limits", "trades_per_ticker_per_day", "Trades per Ticker per Day", "Maximum trades per symbol per day", "number", 1, "trades_per_ticker_per_day"),
    Field("limits", "max_open_positions", "Max Open Positions", "Maximum concurrent open positions", "number", 5, "max_open_positions"),
    Field("strategy", "mom_entry_pct", "Momentum Entry %", "Minimum momentum to trigger entry override", "percent", 0.002, "mom_entry_pct"),
    Field("strategy", "mom_lookback", "Momentum Lookback", "Number of bars to calculate momentum", "number", 8, "mom_lookback", suffix=" bars"),
)


def field_for(path: str) -> Field | None:
    for f in FIELDS:
        if f.path == path:
            return f
    return None


def _message(e: Exception) -> str:
    return str(e) or e.__class__.__name__


class SettingsEditor:
    """Editable copy of a settings document bound to the settings tabs.

    The admin edits the system-wide settings; everyone else gets a read-only
    view of their own per-user settings.
    """

    def __init__(
        self,
        client: FluxClient,
        *,
        user_id: str | None = None,
        admin_user_id: str | None = None,
        guardrails: dict[str, Guardrail] | None = None,
        toasts: ToastQueue | None = None,
    ):
        self.client = client
        self.user_id = user_id
        self.admin_user_id = admin_user_id
        self.settings: dict | None = None
        self.presets: list[Preset] = []
        self.default_guardrails = dict(guardrails or DEFAULT_GUARDRAILS)
        self.guardrails = dict(self.default_guardrails)
        self.errors: dict[str, str | None] = {}
        self.saving = False
        self.toasts = toasts or ToastQueue()

    @property
    def is_admin(self) -> bool:
        return bool(self.user_id and self.admin_user_id and self.user_id == self.admin_user_id)

    @property
    def loaded(self) -> bool:
        return self.settings is not None

    def load(self) -> bool:
        try:
            settings_res = self.client.settings() if self.is_admin else self.client.user_settings()
            presets_res = self.client.presets()
            try:
                guard_res = self.client.guardrails()
            except Exception:
                guard_res = None
        except Exception as e:
            self.toasts.add(_message(e), "error")
            return False

        settings_res = settings_res or {}
        if isinstance(settings_res.get("settings"), dict):
            self.settings = dict(settings_res["settings"])

        presets_res = presets_res or {}
        if presets_res.get("ok") and presets_res.get("presets"):
            self.presets = parse_presets(presets_res["presets"])

        if guard_res and guard_res.get("ok") and guard_res.get("guardrails"):
            try:
                self.guardrails = parse_guardrails(guard_res["guardrails"])
            except ValueError as e:
                self.toasts.add(f"Ignoring invalid guardrails: {e}", "error")
                self.guardrails = dict(self.default_guardrails)
        else:
            self.guardrails = dict(self.default_guardrails)
        return self.loaded

    def get(self, path: str, fallback: Any = None) -> Any:
        if self.settings is None:
            return fallback
        return get_path(self.settings, path, fallback)

    def set(self, path: str, value: Any) -> bool:
        if not self.is_admin:
            return False
        self.errors[path] = None
        self.settings = set_path(self.settings, path, value)
        return True

    def validate(self, path: str, value: Any, field: str | None = None) -> bool:
        err = check_value(self.guardrails, field or path, value)
        self.errors[path] = err
        return err is None

    def update(self, path: str, value: Any, field: str | None = None) -> bool:
        """Write a control's value and validate it, the way a bound input does."""
        f = field_for(path)
        if field is None and f is not None:
            field = f.guardrail
        if f is not None and f.kind == "onoff" and isinstance(value, bool):
            value = "on" if value else "off"
        if not self.set(path, value):
            return False
        return self.validate(path, value, field)

    @property
    def has_errors(self) -> bool:
        return any(self.errors.values())

    def select_preset(self, preset_id: str | None) -> bool:
        if not self.is_admin:
            return False

        if preset_id is None:
            self.settings = dict(self.settings or {}, preset_id=None)
            return True

        self.saving = True
        try:
            res = self.client.apply_preset(preset_id) or {}
            if res.get("ok") and res.get("settings"):
                self.settings = dict(res["settings"])
                self.errors = {}
                self.toasts.add(f"Applied {preset_id} preset", "success")
                return True
            self.toasts.add(res.get("error") or "Failed to apply preset", "error")
            return False
        except Exception as e:
            self.toasts.add(_message(e), "error")
            return False
        finally:
            self.saving = False

    def save(self) -> bool:
        if not self.is_admin:
            return False

        if self.has_errors:
            self.toasts.add("Please fix validation errors", "error")
            return False

        self.saving = True
        try:
            # Only the admin edits, and the admin's document is the system-wide one
            res = self.client.save_settings(self.settings) or {}
            if res.get("ok") or res.get("settings"):
                if res.get("settings") is not None:
                    self.settings = dict(res["settings"])
                self.toasts.add("Settings saved successfully", "success")
                return True
            self.toasts.add(res.get("error") or "Failed to save settings", "error")
            return False
        except Exception as e:
            self.toasts.add(_message(e), "error")
            return False
        finally:
            self.saving = False

    # -- view model --

    def _field_view(self, f: Field) -> dict:
        value = self.get(f.path, f.fallback)
        out: dict[str, Any] = {
            "path": f.path,
            "label": f.label,
            "description": f.description,
            "kind": f.kind,
            "value": (value == "on") if f.kind == "onoff" else value,
            "error": self.errors.get(f.path),
            "editable": self.is_admin,
        }
        if f.choices:
            out["choices"] = list(f.choices)
        if f.suffix:
            out["display"] = f"{value}{f.suffix}"
        guard = self.guardrails.get(f.guardrail) if f.guardrail else None
        if guard is not None:
            try:
                # Fractional ranges render as percentages; sub-1% ranges keep two decimals
                hint = guardrail_hint(guard, float(value), is_percent=guard.min < 1, decimals=2 if guard.min < 0.01 else 1)
                out["hint"] = asdict(hint)
            except (TypeError, ValueError):
                out["hint"] = None
        return out

    def view(self) -> dict:
        cur = current_preset(self.presets, self.settings)
        return {
            "loaded": self.loaded,
            "is_admin": self.is_admin,
            "read_only": not self.is_admin,
            "saving": self.saving,
            "preset": {
                "mode": is_preset_mode(self.settings),
                "current": cur.model_dump() if cur else None,
                "options": [dict(p.model_dump(), scheme=preset_scheme(p.id)) for p in self.presets],
            },
            "tabs": [
                {
                    "id": t.id,
                    "label": t.label,
                    "fields": [self._field_view(f) for f in FIELDS if f.tab == t.id],
                }
                for t in TABS
            ],
            "errors": {k: v for k, v in self.errors.items() if v},
            "toasts": self.toasts.to_json(),
        }
