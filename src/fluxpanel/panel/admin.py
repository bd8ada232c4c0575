from __future__ import annotations

from fluxpanel.api.client import FluxClient

PRICE_FIELDS = ("subscription_plus_price", "subscription_pro_price")


class AdminAccessError(PermissionError):
    pass


class AdminPanel:
    """Global kill switch and subscription pricing."""

    def __init__(self, client: FluxClient, *, user_id: str | None, admin_user_id: str | None):
        if not (user_id and admin_user_id and user_id == admin_user_id):
            raise AdminAccessError("You do not have permission to access admin settings.")
        self.client = client
        self.settings: dict | None = None
        self.error: str | None = None
        self.success = False
        self.saving = False

    def load(self) -> bool:
        try:
            res = self.client.admin_settings() or {}
            if res.get("settings"):
                self.settings = dict(res["settings"])
            elif res.get("error"):
                self.error = str(res["error"])
        except Exception as e:
            self.error = str(e) or "Failed to load admin settings"
        return self.settings is not None

    @property
    def kill_switch_active(self) -> bool:
        return bool((self.settings or {}).get("global_kill_switch"))

    def toggle_kill_switch(self) -> bool:
        self.settings = dict(self.settings or {}, global_kill_switch=not self.kill_switch_active)
        return self.kill_switch_active

    def set_kill_switch(self, on: bool) -> None:
        self.settings = dict(self.settings or {}, global_kill_switch=bool(on))

    def update_price(self, field: str, value) -> None:
        if field not in PRICE_FIELDS:
            raise KeyError(field)
        self.settings = dict(self.settings or {}, **{field: value})

    def _payload(self) -> dict:
        s = self.settings or {}
        out = {"global_kill_switch": bool(s.get("global_kill_switch"))}
        for f in PRICE_FIELDS:
            if s.get(f) is None:
                continue
            try:
                out[f] = float(s.get(f))
            except (TypeError, ValueError):
                raise ValueError(f"{f} must be a number") from None
        return out

    def save(self) -> bool:
        self.saving = True
        self.error = None
        self.success = False
        try:
            res = self.client.save_admin_settings(self._payload()) or {}
            if res.get("ok"):
                self.success = True
                if res.get("settings"):
                    self.settings = dict(res["settings"])
                return True
            self.error = res.get("error") or "Failed to save settings"
            return False
        except Exception as e:
            self.error = str(e) or "Failed to save settings"
            return False
        finally:
            self.saving = False

    def view(self) -> dict:
        return {
            "settings": self.settings,
            "kill_switch_active": self.kill_switch_active,
            "error": self.error,
            "success": self.success,
            "saving": self.saving,
        }
