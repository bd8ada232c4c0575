from __future__ import annotations

from typing import Any

from rich.console import Console

from fluxpanel.api.client import FluxClient

_stderr = Console(stderr=True)

PRESELECT_CONFIDENCE = 0.7


def confidence_style(confidence: float) -> dict[str, str]:
    if confidence >= 0.8:
        return {"label": "High", "level": "success"}
    if confidence >= 0.6:
        return {"label": "Medium", "level": "accent"}
    return {"label": "Low", "level": "warning"}


class OptimizeFlow:
    """Settings suggestions: pick, backtest, then apply or dismiss them."""

    def __init__(self, client: FluxClient, *, days: int = 30):
        self.client = client
        self.days = int(days)
        self.backtest: Any = None
        self.suggestions: list[dict] = []
        self.selected: set[str] = set()
        self.error: str | None = None
        self.loading = False
        self.applying = False
        self.running_backtest = False
        self.loaded = False

    def load(self, days: int | None = None) -> bool:
        if days is not None:
            self.days = int(days)
        self.loading = True
        self.error = None
        try:
            self.backtest = self.client.quick_backtest(self.days)
            res = self.client.settings_suggestions(self.days) or {}
            self.suggestions = [s for s in (res.get("suggestions") or []) if isinstance(s, dict) and s.get("setting_name")]
            self.selected = {
                s["setting_name"] for s in self.suggestions if float(s.get("confidence") or 0) >= PRESELECT_CONFIDENCE
            }
            self.loaded = True
            return True
        except Exception as e:
            _stderr.print(f"[yellow]Warning[/yellow]: failed to load optimization data: {e}")
            self.error = "Failed to load optimization data. Please try again."
            return False
        finally:
            self.loading = False

    def _find(self, name: str) -> dict:
        for s in self.suggestions:
            if s["setting_name"] == name:
                return s
        raise KeyError(name)

    def toggle(self, name: str) -> bool:
        self._find(name)
        if name in self.selected:
            self.selected.discard(name)
        else:
            self.selected.add(name)
        return name in self.selected

    def selected_settings(self) -> dict[str, Any]:
        return {s["setting_name"]: s.get("suggested_value") for s in self.suggestions if s["setting_name"] in self.selected}

    def run_backtest(self) -> bool:
        settings = self.selected_settings()
        if not settings:
            return False
        self.running_backtest = True
        try:
            self.backtest = self.client.run_backtest(settings, self.days, True)
            return True
        except Exception as e:
            _stderr.print(f"[yellow]Warning[/yellow]: backtest failed: {e}")
            self.error = "Backtest failed. Please try again."
            return False
        finally:
            self.running_backtest = False

    def apply(self) -> bool:
        """Log every selected suggestion as accepted, save them, then reload."""
        if not self.selected:
            return False
        self.applying = True
        try:
            payload = {}
            for s in self.suggestions:
                if s["setting_name"] not in self.selected:
                    continue
                payload[s["setting_name"]] = s.get("suggested_value")
                self.client.log_suggestion_action(s["setting_name"], s.get("current_value"), s.get("suggested_value"), "accepted")
            self.client.save_user_settings(payload)
        except Exception as e:
            _stderr.print(f"[yellow]Warning[/yellow]: failed to apply settings: {e}")
            self.error = "Failed to apply settings. Please try again."
            return False
        finally:
            self.applying = False
        self.load()
        return True

    def dismiss(self, name: str) -> bool:
        s = self._find(name)
        try:
            self.client.log_suggestion_action(name, s.get("current_value"), s.get("suggested_value"), "dismissed")
        except Exception as e:
            _stderr.print(f"[yellow]Warning[/yellow]: failed to dismiss suggestion: {e}")
            return False
        self.suggestions = [x for x in self.suggestions if x["setting_name"] != name]
        self.selected.discard(name)
        return True

    def view(self) -> dict:
        return {
            "days": self.days,
            "loaded": self.loaded,
            "backtest": self.backtest,
            "suggestions": [
                dict(s, selected=s["setting_name"] in self.selected, confidence_style=confidence_style(float(s.get("confidence") or 0)))
                for s in self.suggestions
            ],
            "selected": sorted(self.selected),
            "error": self.error,
            "loading": self.loading,
            "applying": self.applying,
            "running_backtest": self.running_backtest,
        }
