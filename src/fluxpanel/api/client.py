from __future__ import annotations

import json
from typing import Any

import httpx
from rich.console import Console

from fluxpanel.util.env import load_env

_stderr = Console(stderr=True)


class ApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ApiConfigError(ApiError):
    pass


class FluxClient:
    """Thin JSON client for the Flux trading backend.

    Every endpoint returns the decoded JSON body (or None for an empty body).
    Non-2xx responses and transport failures raise ApiError.
    """

    def __init__(
        self,
        base_url: str | None,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or "").strip().rstrip("/") or None
        self.token = token
        self._http = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_env(cls, **kwargs) -> "FluxClient":
        env = load_env()
        kwargs.setdefault("token", env.access_token)
        return cls(env.api_base, **kwargs)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FluxClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- plumbing --

    def _must_base(self) -> str:
        if not self.base_url:
            raise ApiConfigError("Missing NEXT_PUBLIC_API_BASE")
        return self.base_url

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        body: Any = None,
        auth: bool = False,
        base: str | None = None,
    ) -> Any:
        url = f"{base or self._must_base()}{path}"
        headers: dict[str, str] = {}
        if auth or body is not None:
            headers["Content-Type"] = "application/json"
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        content = json.dumps(body) if body is not None else None
        try:
            r = self._http.request(method, url, params=params, content=content, headers=headers)
            text = r.text  # always read body
            if r.is_error:
                raise ApiError(
                    f"{r.status_code} {r.reason_phrase} :: {text[:200]}",
                    status_code=r.status_code,
                    url=url,
                )
            return json.loads(text) if text else None
        except ApiError as e:
            _stderr.print("FETCH_FAIL", url, str(e), markup=False)
            raise
        except (httpx.HTTPError, ValueError) as e:
            _stderr.print("FETCH_FAIL", url, str(e), markup=False)
            raise ApiError(str(e), url=url) from e

    def _get(self, path: str, params: dict | None = None, *, auth: bool = False) -> Any:
        return self._request("GET", path, params=params, auth=auth)

    def _post(self, path: str, body: Any = None, *, auth: bool = False) -> Any:
        return self._request("POST", path, body=body if body is not None else {}, auth=auth)

    # -- read endpoints --

    def status(self) -> Any:
        return self._get("/api/status")

    def latest_cycle(self) -> Any:
        return self._get("/api/cycle/latest")

    def settings(self) -> Any:
        return self._get("/api/settings")

    def recent_trades(self, limit: int = 10, trading_mode: str = "paper") -> Any:
        return self._get("/api/trades/recent", {"limit": limit, "trading_mode": trading_mode})

    def recent_shadow_logs(self, limit: int = 10) -> Any:
        return self._get("/api/shadow/recent", {"limit": limit})

    def active_positions(self) -> Any:
        return self._get("/api/positions/active")

    def account_summary(self, trading_mode: str = "paper") -> Any:
        return self._get("/api/account/summary", {"trading_mode": trading_mode})

    def daily_pnl(self, days: int = 7) -> Any:
        return self._get("/api/performance/daily", {"days": days})

    # -- analytics --

    def performance_metrics(self, days: int = 30) -> Any:
        return self._get("/api/analytics/performance", {"days": days})

    def trade_history(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        symbol: str | None = None,
        side: str | None = None,
        win: bool | None = None,
        from_: str | None = None,
        to: str | None = None,
    ) -> Any:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if symbol:
            params["symbol"] = symbol
        if side:
            params["side"] = side
        if win is not None:
            params["win"] = "true" if win else "false"
        if from_:
            params["from"] = from_
        if to:
            params["to"] = to
        return self._get("/api/analytics/trades", params)

    def symbol_analytics(self) -> Any:
        return self._get("/api/analytics/symbols")

    def timing_analytics(self) -> Any:
        return self._get("/api/analytics/timing")

    # -- write / action endpoints --

    def save_settings(self, payload: dict | None) -> Any:
        return self._post("/api/settings", payload or {})

    def run_decision_cycle(self, force: bool = False) -> Any:
        return self._get("/decision_cycle", {"force": "true"} if force else None)

    def force_exit_all(self) -> Any:
        return self._get("/force_exit_all")

    # -- multi-tenant endpoints --

    def presets(self) -> Any:
        return self._get("/api/presets")

    def guardrails(self) -> Any:
        return self._get("/api/guardrails")

    def user_settings(self) -> Any:
        return self._get("/api/user/settings", auth=True)

    def save_user_settings(self, payload: dict | None) -> Any:
        return self._post("/api/user/settings", payload or {}, auth=True)

    def apply_preset(self, preset_id: str) -> Any:
        return self._post("/api/user/settings/apply-preset", {"preset_id": preset_id}, auth=True)

    def complete_onboarding(self, preset_id: str, terms_accepted: bool = False, risk_disclosed: bool = False) -> Any:
        return self._post(
            "/api/user/onboarding",
            {
                "preset_id": preset_id,
                "terms_accepted": terms_accepted,
                "risk_disclosed": risk_disclosed,
            },
            auth=True,
        )

    # Theme calls are optional: no base configured means "not available", not an error.
    def user_theme(self) -> Any:
        if not self.base_url:
            return {"ok": False}
        return self._request("GET", "/api/user/theme", auth=True)

    def save_user_theme(self, theme: str) -> Any:
        if not self.base_url:
            return {"ok": False}
        return self._request("POST", "/api/user/theme", body={"theme": theme}, auth=True)

    def subscription(self) -> Any:
        return self._get("/api/user/subscription", auth=True)

    def subscription_limits(self) -> Any:
        return self._get("/api/user/subscription/limits", auth=True)

    def upgrade_subscription(self, target_plan: str) -> Any:
        return self._post("/api/user/subscription/upgrade", {"target_plan": target_plan}, auth=True)

    # -- optimisation --

    def settings_suggestions(self, days: int = 30) -> Any:
        return self._get("/api/user/settings/suggestions", {"days": days, "strategy": "llm"}, auth=True)

    def run_backtest(self, settings: dict, days: int = 30, compare_to_current: bool = True) -> Any:
        return self._post(
            "/api/user/backtest",
            {
                "settings": settings,
                "days": days,
                "compare_to_current": compare_to_current,
                "strategy": "llm",
            },
            auth=True,
        )

    def quick_backtest(self, days: int = 30) -> Any:
        return self._get("/api/user/backtest/quick", {"days": days, "strategy": "llm"}, auth=True)

    def log_suggestion_action(
        self,
        suggestion_type: str,
        current_value: Any,
        suggested_value: Any,
        action: str,
        **extra: Any,
    ) -> Any:
        body = {
            "suggestion_type": suggestion_type,
            "current_value": current_value,
            "suggested_value": suggested_value,
            "action": action,
        }
        body.update(extra)
        return self._post("/api/user/suggestion-action", body, auth=True)

    def run_cycle_replay(self, **options: Any) -> Any:
        return self._post("/api/backtest/replay", options)

    def compare_cycle_replay(self, days: int = 30, base_conf: float = 0.60, variant_conf: float = 0.65) -> Any:
        return self._get(
            "/api/backtest/replay/compare",
            {"days": days, "base_conf": base_conf, "variant_conf": variant_conf},
        )

    def run_parameter_optimization(self, **options: Any) -> Any:
        return self._post("/api/backtest/optimize", options)

    def quick_optimization(self, days: int = 30) -> Any:
        return self._get("/api/backtest/optimize/quick", {"days": days})

    def compare_vs_optimal(self, current_params: dict | None = None, days: int = 30) -> Any:
        return self._post("/api/backtest/optimize/compare", {"current_params": current_params or {}, "days": days})

    def flux_settings(self) -> Any:
        return self._get("/api/user/flux-settings", auth=True)

    def save_to_flux_settings(self, settings: dict, metrics: dict, days: int = 30) -> Any:
        return self._post("/api/user/flux-settings", {"settings": settings, "metrics": metrics, "days": days}, auth=True)

    def save_to_custom_settings(self, settings: dict) -> Any:
        # backend resets preset_id to null (custom mode)
        return self._post("/api/backtest/replay/save", {"settings": settings}, auth=True)

    # -- admin --

    def admin_settings(self) -> Any:
        return self._get("/api/admin/settings", auth=True)

    def save_admin_settings(self, payload: dict | None) -> Any:
        return self._post("/api/admin/settings", payload or {}, auth=True)
