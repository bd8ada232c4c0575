from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from fluxpanel.api.client import ApiError, FluxClient
from fluxpanel.panel.admin import PRICE_FIELDS, AdminAccessError, AdminPanel
from fluxpanel.panel.auth import require_token
from fluxpanel.panel.banners import TradingModeBanner, subscription_banner
from fluxpanel.panel.onboarding import OnboardingFlow
from fluxpanel.panel.optimize import OptimizeFlow
from fluxpanel.panel.overview import force_exit_all, load_overview, refresh_interval, run_cycle
from fluxpanel.panel.toasts import ToastQueue
from fluxpanel.panel.upgrade import UpgradeFlow
from fluxpanel.settings.editor import SettingsEditor
from fluxpanel.settings.guardrails import DEFAULT_GUARDRAILS, merge_guardrails
from fluxpanel.util.config import PanelConfig, load_config


def _lookback(raw: str | None, default, words: tuple[str, ...] = ("today", "week", "all")):
    if raw is None or raw == "":
        return default
    if raw in words:
        return raw
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid lookback: {raw}")


async def _body(req: Request) -> dict:
    try:
        body = await req.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Expected a JSON object")
    return body


def create_app(*, config_path: str | None = None, cfg: PanelConfig | None = None, client: FluxClient | None = None) -> FastAPI:
    cfg = cfg or load_config(config_path)
    client = client or FluxClient(cfg.api_base, token=cfg.access_token, timeout=cfg.timeout_s)
    toasts = ToastQueue(ttl=cfg.toast_ttl_s)

    guardrails = merge_guardrails(DEFAULT_GUARDRAILS, {k: v.model_dump() for k, v in cfg.guardrails.items()})
    editor = SettingsEditor(client, user_id=cfg.user_id, admin_user_id=cfg.admin_user_id, guardrails=guardrails, toasts=toasts)
    banner = TradingModeBanner(client)
    onboarding = OnboardingFlow(client)
    optimize = OptimizeFlow(client)
    upgrade = UpgradeFlow(client)
    panel_state: dict[str, object] = {"admin": None}

    app = FastAPI(title="flux control panel")

    @app.exception_handler(ApiError)
    async def api_error(_req: Request, exc: ApiError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(AdminAccessError)
    async def admin_denied(_req: Request, exc: AdminAccessError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    def admin_panel() -> AdminPanel:
        p = panel_state["admin"]
        if p is None:
            p = AdminPanel(client, user_id=cfg.user_id, admin_user_id=cfg.admin_user_id)
            p.load()
            panel_state["admin"] = p
        return p  # type: ignore[return-value]

    def loaded_editor() -> SettingsEditor:
        if not editor.loaded and not editor.load():
            last = toasts.last()
            raise HTTPException(status_code=502, detail=last.message if last else "Failed to load settings")
        return editor

    @app.get("/api/health")
    def health():
        return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}

    # Dashboard

    @app.get("/api/overview")
    def overview(trades: str | None = None, chart_days: int | None = None, shadow: str | None = None):
        out = load_overview(
            client,
            trade_lookback=_lookback(trades, cfg.lookbacks.trades),
            chart_days=chart_days or cfg.lookbacks.chart_days,
            shadow_lookback=_lookback(shadow, cfg.lookbacks.shadow, ("all",)),
        )
        out["refresh_sec"] = refresh_interval(cfg.refresh_sec)
        out["toasts"] = toasts.to_json()
        return out

    @app.post("/api/panel/cycle")
    async def cycle(req: Request):
        require_token(req)
        body = await _body(req)
        ok = run_cycle(client, toasts, force=bool(body.get("force")))
        return {"ok": ok, "toasts": toasts.to_json()}

    @app.post("/api/panel/force-exit")
    async def force_exit(req: Request):
        require_token(req)
        body = await _body(req)
        if not body.get("confirm"):
            raise HTTPException(status_code=400, detail="Force exit requires confirm=true")
        ok = force_exit_all(client, toasts)
        return {"ok": ok, "toasts": toasts.to_json()}

    # Settings editor

    @app.get("/api/panel/settings")
    def settings_view(reload: bool = False):
        if reload:
            editor.load()
        return loaded_editor().view()

    @app.post("/api/panel/settings/field")
    async def settings_field(req: Request):
        require_token(req)
        body = await _body(req)
        path = str(body.get("path") or "").strip()
        if not path or "value" not in body:
            raise HTTPException(status_code=400, detail="Missing path/value")
        ed = loaded_editor()
        if not ed.is_admin:
            raise HTTPException(status_code=403, detail="Settings are view-only")
        try:
            ok = ed.update(path, body["value"], body.get("field"))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"ok": ok, "error": ed.errors.get(path), "settings": ed.settings}

    @app.post("/api/panel/settings/preset")
    async def settings_preset(req: Request):
        require_token(req)
        body = await _body(req)
        ed = loaded_editor()
        if not ed.is_admin:
            raise HTTPException(status_code=403, detail="Settings are view-only")
        ok = ed.select_preset(body.get("preset_id"))
        return {"ok": ok, "view": ed.view()}

    @app.post("/api/panel/settings/save")
    async def settings_save(req: Request):
        require_token(req)
        ed = loaded_editor()
        if not ed.is_admin:
            raise HTTPException(status_code=403, detail="Settings are view-only")
        ok = ed.save()
        return {"ok": ok, "view": ed.view()}

    # Admin

    @app.get("/api/panel/admin")
    def admin_view(reload: bool = False):
        p = admin_panel()
        if reload:
            p.load()
        return p.view()

    @app.post("/api/panel/admin")
    async def admin_save(req: Request):
        require_token(req)
        body = await _body(req)
        p = admin_panel()
        if "global_kill_switch" in body:
            p.set_kill_switch(bool(body["global_kill_switch"]))
        for f in PRICE_FIELDS:
            if f in body:
                p.update_price(f, body[f])
        ok = p.save()
        return dict(p.view(), ok=ok)

    @app.post("/api/panel/admin/kill-switch")
    async def admin_kill_switch(req: Request):
        require_token(req)
        body = await _body(req)
        p = admin_panel()
        if "on" in body:
            p.set_kill_switch(bool(body["on"]))
        else:
            p.toggle_kill_switch()
        ok = p.save()
        return dict(p.view(), ok=ok)

    # Banners

    @app.get("/api/panel/banners")
    def banners(dismissed: bool = False):
        user_settings = (client.user_settings() or {}).get("settings")
        status = client.status()
        try:
            limits = client.subscription_limits()
        except ApiError:
            limits = None
        limits = limits if (limits or {}).get("ok") else None
        return {
            "trading_mode": banner.state(user_settings, status),
            "subscription": subscription_banner(limits, dismissed=dismissed),
        }

    @app.post("/api/panel/trading-mode")
    async def trading_mode(req: Request):
        require_token(req)
        body = await _body(req)
        confirmed = bool(body.get("confirm"))
        user_settings = (client.user_settings() or {}).get("settings")
        res = banner.switch(user_settings, confirm=lambda _prompt: confirmed)
        return {"ok": res.ok, "mode": res.mode, "error": res.error, "cancelled": res.cancelled}

    # Onboarding

    @app.get("/api/panel/onboarding")
    def onboarding_view():
        onboarding.check()
        return onboarding.view()

    @app.post("/api/panel/onboarding")
    async def onboarding_complete(req: Request):
        require_token(req)
        body = await _body(req)
        if body.get("preset_id"):
            try:
                onboarding.select(str(body["preset_id"]))
            except KeyError:
                raise HTTPException(status_code=400, detail=f"Unknown preset: {body['preset_id']}")
        ok = onboarding.complete(
            terms_accepted=bool(body.get("terms_accepted")),
            risk_disclosed=bool(body.get("risk_disclosed")),
        )
        return dict(onboarding.view(), ok=ok)

    # Optimisation

    @app.get("/api/panel/optimize")
    def optimize_view(days: int | None = None, reload: bool = False):
        if reload or not optimize.loaded or (days is not None and days != optimize.days):
            optimize.load(days)
        return optimize.view()

    def _suggestion(body: dict) -> str:
        name = str(body.get("setting_name") or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Missing setting_name")
        return name

    @app.post("/api/panel/optimize/toggle")
    async def optimize_toggle(req: Request):
        require_token(req)
        name = _suggestion(await _body(req))
        try:
            optimize.toggle(name)
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown suggestion: {name}")
        return optimize.view()

    @app.post("/api/panel/optimize/backtest")
    async def optimize_backtest(req: Request):
        require_token(req)
        ok = optimize.run_backtest()
        return dict(optimize.view(), ok=ok)

    @app.post("/api/panel/optimize/apply")
    async def optimize_apply(req: Request):
        require_token(req)
        ok = optimize.apply()
        return dict(optimize.view(), ok=ok)

    @app.post("/api/panel/optimize/dismiss")
    async def optimize_dismiss(req: Request):
        require_token(req)
        name = _suggestion(await _body(req))
        try:
            ok = optimize.dismiss(name)
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown suggestion: {name}")
        return dict(optimize.view(), ok=ok)

    # Subscription

    @app.get("/api/panel/upgrade")
    def upgrade_view():
        upgrade.load()
        return upgrade.view()

    @app.post("/api/panel/upgrade")
    async def upgrade_plan(req: Request):
        require_token(req)
        body = await _body(req)
        plan = str(body.get("plan") or "")
        try:
            ok = upgrade.upgrade(plan)
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown plan: {plan}")
        return dict(upgrade.view(), ok=ok)

    return app
