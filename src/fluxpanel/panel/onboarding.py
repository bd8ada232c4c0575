from __future__ import annotations

from rich.console import Console

from fluxpanel.api.client import ApiError, FluxClient
from fluxpanel.settings.presets import Preset, find_preset, parse_presets

_stderr = Console(stderr=True)

DEFAULT_PRESET = "balanced"


class OnboardingFlow:
    def __init__(self, client: FluxClient):
        self.client = client
        self.presets: list[Preset] = []
        self.selected = DEFAULT_PRESET
        self.error = ""
        self.submitting = False
        self.done = False

    def check(self) -> str:
        """Return "done" if the user already has settings, else load presets and return "pending"."""
        try:
            res = self.client.user_settings() or {}
            if res.get("ok") and res.get("settings"):
                self.done = True
                return "done"
        except ApiError as e:
            # 404 means not onboarded yet
            if e.status_code != 404:
                _stderr.print(f"[yellow]Warning[/yellow]: onboarding check failed: {e}")

        try:
            res = self.client.presets() or {}
            if res.get("ok"):
                self.presets = parse_presets(res.get("presets"))
        except ApiError as e:
            _stderr.print(f"[yellow]Warning[/yellow]: failed to load presets: {e}")
        return "pending"

    def select(self, preset_id: str) -> None:
        if self.presets and find_preset(self.presets, preset_id) is None:
            raise KeyError(preset_id)
        self.selected = str(preset_id)

    def complete(self, *, terms_accepted: bool = False, risk_disclosed: bool = False) -> bool:
        self.submitting = True
        self.error = ""
        try:
            res = self.client.complete_onboarding(self.selected, terms_accepted, risk_disclosed) or {}
            if res.get("ok"):
                self.done = True
                return True
            self.error = res.get("error") or "Failed to complete setup"
            return False
        except Exception as e:
            self.error = str(e) or "An error occurred"
            return False
        finally:
            self.submitting = False

    def view(self) -> dict:
        return {
            "done": self.done,
            "selected": self.selected,
            "presets": [p.model_dump() for p in self.presets],
            "error": self.error or None,
            "submitting": self.submitting,
        }
