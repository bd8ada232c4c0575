from __future__ import annotations

import argparse
import json
from pathlib import Path

from rich import print, print_json
from rich.markup import escape

from fluxpanel.api.client import ApiError, FluxClient
from fluxpanel.commands.panel import cmd_panel
from fluxpanel.panel.admin import AdminAccessError, AdminPanel
from fluxpanel.panel.onboarding import OnboardingFlow
from fluxpanel.panel.optimize import OptimizeFlow
from fluxpanel.panel.overview import format_currency, load_overview
from fluxpanel.panel.upgrade import UpgradeFlow
from fluxpanel.settings.editor import SettingsEditor, field_for
from fluxpanel.settings.guardrails import DEFAULT_GUARDRAILS, merge_guardrails
from fluxpanel.settings.presets import load_local_presets, save_local_preset
from fluxpanel.util.config import PanelConfig, load_config, save_config

DEFAULT_CONFIG = str(Path("config/panel.yaml"))


def _client(cfg: PanelConfig) -> FluxClient:
    return FluxClient(cfg.api_base, token=cfg.access_token, timeout=cfg.timeout_s)


def _editor(cfg: PanelConfig, client: FluxClient) -> SettingsEditor:
    guardrails = merge_guardrails(DEFAULT_GUARDRAILS, {k: v.model_dump() for k, v in cfg.guardrails.items()})
    return SettingsEditor(client, user_id=cfg.user_id, admin_user_id=cfg.admin_user_id, guardrails=guardrails)


def _flush_toasts(editor: SettingsEditor) -> None:
    for t in editor.toasts.active():
        color = "red" if t.kind == "error" else "green"
        print(f"[{color}]{escape(t.message)}[/{color}]")


def _parse_value(raw: str, kind: str | None = None):
    if kind in ("text", "time", "select", "onoff"):
        return raw
    if kind in ("number", "percent"):
        for conv in (int, float):
            try:
                return conv(raw)
            except ValueError:
                pass
        return raw
    if kind == "toggle":
        low = raw.strip().lower()
        if low in ("true", "on", "yes", "1"):
            return True
        if low in ("false", "off", "no", "0"):
            return False
        return raw
    # Paths outside the field table: JSON scalars, otherwise the raw string
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def cmd_status(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        ov = load_overview(client, trade_lookback=cfg.lookbacks.trades, chart_days=cfg.lookbacks.chart_days, shadow_lookback=cfg.lookbacks.shadow)
    if ov.get("error"):
        print(f"[red]Error[/red]: {ov['error']}")
        return 1

    m = ov["metrics"]
    c = m["cycle"]
    print(f"Profile: [bold]{ov.get('active_profile') or '—'}[/bold]  Last cycle: {m.get('cycle_ts') or '—'}")
    print(f"Symbols: {c['total']}  Candles OK: {c['candles_ok_pct']}%  No price: {c['no_price']}  Active: {c['active_positions']}")
    wr = m["win_rate"]
    print(f"Today P&L: {m['today_pnl_label']}  Win rate: {'—' if wr is None else f'{wr}%'}  Loss streak: {m['consecutive_losses']} (max {m['max_consecutive_losses']})")
    if m["top_tickers"]:
        print("\nTop tickers:")
        for t in m["top_tickers"]:
            print(f"- {t['symbol']:8s} {format_currency(t['pnl'], compact=False)}")
    return 0


def cmd_settings_show(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        editor = _editor(cfg, client)
        if not editor.load():
            _flush_toasts(editor)
            return 1
        view = editor.view()

    if args.json:
        print_json(data=editor.settings)
        return 0

    cur = view["preset"]["current"]
    print(f"Preset: [bold]{cur['name'] if cur else 'Custom'}[/bold]{'' if view['is_admin'] else '  (view-only)'}")
    for tab in view["tabs"]:
        if not tab["fields"]:
            continue
        print(f"\n[bold]{tab['label']}[/bold]")
        for f in tab["fields"]:
            hint = f.get("hint")
            zone = f"  ({hint['zone']})" if hint else ""
            print(f"  {f['label']:28s} {f.get('display', f['value'])}{zone}")
    return 0


def cmd_settings_set(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        editor = _editor(cfg, client)
        if not editor.is_admin:
            print("[red]Error[/red]: settings are view-only for this user")
            return 1
        if not editor.load():
            _flush_toasts(editor)
            return 1

        for item in args.assignments:
            path, sep, raw = item.partition("=")
            if not sep:
                print(f"[red]Error[/red]: expected path=value, got {item!r}")
                return 2
            f = field_for(path.strip())
            value = _parse_value(raw, f.kind if f else None)
            if not editor.update(path.strip(), value):
                print(f"[red]{path}[/red]: {editor.errors.get(path.strip())}")

        ok = editor.save()
        _flush_toasts(editor)
    return 0 if ok else 1


def cmd_presets(args: argparse.Namespace) -> int:
    if args.local:
        presets = load_local_presets()
    else:
        cfg = load_config(args.config)
        with _client(cfg) as client:
            editor = _editor(cfg, client)
            if not editor.load():
                _flush_toasts(editor)
                return 1
            presets = editor.presets
    for p in presets:
        print(f"- [bold]{p.id}[/bold] {p.name}: {p.description}")
    return 0


def cmd_apply_preset(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        editor = _editor(cfg, client)
        if not editor.is_admin:
            print("[red]Error[/red]: settings are view-only for this user")
            return 1
        if not editor.load():
            _flush_toasts(editor)
            return 1

        if args.local:
            local = {p.id: p for p in load_local_presets()}
            p = local.get(args.preset_id)
            if p is None:
                print(f"[red]Error[/red]: unknown local preset {args.preset_id!r}")
                return 1
            # Local bundles are applied as a custom edit of every key they carry
            for k, v in (p.settings or {}).items():
                editor.update(k, v)
            ok = editor.save()
        else:
            ok = editor.select_preset(args.preset_id)
        _flush_toasts(editor)
    return 0 if ok else 1


def cmd_save_preset(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        editor = _editor(cfg, client)
        if not editor.load():
            _flush_toasts(editor)
            return 1
    p = save_local_preset(args.preset_id, editor.settings or {}, name=args.name, description=args.description or "")
    print(f"Saved local preset [bold]{p.id}[/bold] ({len(p.settings or {})} keys)")
    return 0


def cmd_kill_switch(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        try:
            panel = AdminPanel(client, user_id=cfg.user_id, admin_user_id=cfg.admin_user_id)
        except AdminAccessError as e:
            print(f"[red]Error[/red]: {e}")
            return 1
        if not panel.load():
            print(f"[red]Error[/red]: {panel.error or 'Failed to load admin settings'}")
            return 1
        if args.state is not None:
            panel.set_kill_switch(args.state == "on")
            if not panel.save():
                print(f"[red]Error[/red]: {panel.error}")
                return 1
    state = "[red]ACTIVE[/red]" if panel.kill_switch_active else "[green]off[/green]"
    print(f"Global kill switch: {state}")
    return 0


def cmd_onboard(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        flow = OnboardingFlow(client)
        if flow.check() == "done":
            print("Already onboarded.")
            return 0
        try:
            flow.select(args.preset)
        except KeyError:
            print(f"[red]Error[/red]: unknown preset {args.preset!r}")
            return 1
        ok = flow.complete(terms_accepted=args.accept_terms, risk_disclosed=args.accept_risk)
    if not ok:
        print(f"[red]Error[/red]: {flow.error}")
        return 1
    print(f"Onboarding complete with [bold]{flow.selected}[/bold] preset")
    return 0


def cmd_optimize(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        flow = OptimizeFlow(client, days=args.days)
        if not flow.load():
            print(f"[red]Error[/red]: {flow.error}")
            return 1
        try:
            for name in args.dismiss or []:
                flow.dismiss(name)
            if args.select is not None:
                wanted = {n.strip() for n in args.select.split(",") if n.strip()}
                for s in flow.suggestions:
                    if (s["setting_name"] in wanted) != (s["setting_name"] in flow.selected):
                        flow.toggle(s["setting_name"])
                unknown = wanted - {s["setting_name"] for s in flow.suggestions}
                if unknown:
                    raise KeyError(sorted(unknown)[0])
        except KeyError as e:
            print(f"[red]Error[/red]: unknown suggestion {e.args[0]!r}")
            return 1

        if args.backtest and not flow.run_backtest():
            print(f"[red]Error[/red]: {flow.error or 'nothing selected'}")
            return 1
        if args.apply and not flow.apply():
            print(f"[red]Error[/red]: {flow.error or 'nothing selected'}")
            return 1
        view = flow.view()

    for s in view["suggestions"]:
        mark = "x" if s["selected"] else " "
        style = s["confidence_style"]["label"]
        print(f"\\[{mark}] {s['setting_name']:28s} {s.get('current_value')} -> {s.get('suggested_value')}  ({style})")
    if args.backtest:
        print_json(data=view["backtest"])
    if args.apply:
        print("[green]Applied selected suggestions[/green]")
    return 0


def cmd_upgrade(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _client(cfg) as client:
        flow = UpgradeFlow(client)
        flow.load()
        if args.plan is None:
            for p in flow.view()["plans"]:
                tag = " (current)" if p["current"] else ""
                print(f"- [bold]{p['name']}[/bold] {p['price']}{p['period']}{tag}")
            return 0
        try:
            ok = flow.upgrade(args.plan)
        except KeyError:
            print(f"[red]Error[/red]: unknown plan {args.plan!r}")
            return 1
    if not ok:
        print(f"[red]Error[/red]: {flow.error or f'cannot upgrade from {flow.current_plan} to {args.plan}'}")
        return 1
    print(f"[green]{flow.success}[/green]")
    return 0


def cmd_init_config(args: argparse.Namespace) -> int:
    p = Path(args.config)
    if p.exists() and not args.force:
        print(f"[yellow]Warning[/yellow]: {p} exists (use --force to overwrite)")
        return 1
    save_config(p, load_config(None))
    print(f"Wrote {p}")
    return 0


def main() -> int:
    p = argparse.ArgumentParser(prog="fluxpanel")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add(name: str, func, help: str) -> argparse.ArgumentParser:
        sp = sub.add_parser(name, help=help)
        sp.add_argument("--config", default=DEFAULT_CONFIG, help="Path to panel config YAML")
        sp.set_defaults(func=func)
        return sp

    add("status", cmd_status, "Show bot status, latest cycle and trade metrics")

    ps = add("settings", cmd_settings_show, "Show current settings")
    ps.add_argument("--json", action="store_true", help="Print raw settings JSON")

    pset = add("set", cmd_settings_set, "Edit settings (admin only): path=value ...")
    pset.add_argument("assignments", nargs="+", help="e.g. stop_loss_pct=0.015 kill_switch=on")

    pp = add("presets", cmd_presets, "List presets")
    pp.add_argument("--local", action="store_true", help="List presets from config/presets.yaml")

    pa = add("apply-preset", cmd_apply_preset, "Apply a preset (admin only)")
    pa.add_argument("preset_id")
    pa.add_argument("--local", action="store_true", help="Apply a preset from config/presets.yaml")

    psp = add("save-preset", cmd_save_preset, "Save current settings as a local preset")
    psp.add_argument("preset_id")
    psp.add_argument("--name", default=None)
    psp.add_argument("--description", default=None)

    pk = add("kill-switch", cmd_kill_switch, "Show or set the global kill switch (admin only)")
    pk.add_argument("state", nargs="?", choices=["on", "off"], default=None)

    po = add("onboard", cmd_onboard, "Complete onboarding with a preset")
    po.add_argument("--preset", default="balanced")
    po.add_argument("--accept-terms", action="store_true")
    po.add_argument("--accept-risk", action="store_true")

    pop = add("optimize", cmd_optimize, "Review settings suggestions: select, backtest, apply or dismiss")
    pop.add_argument("--days", type=int, default=30)
    pop.add_argument("--select", default=None, help="Comma-separated suggestions to select (replaces the default pick)")
    pop.add_argument("--dismiss", action="append", help="Dismiss a suggestion (repeatable)")
    pop.add_argument("--backtest", action="store_true", help="Backtest the selected suggestions")
    pop.add_argument("--apply", action="store_true", help="Accept and save the selected suggestions")

    pu = add("upgrade", cmd_upgrade, "Show plans or upgrade the subscription")
    pu.add_argument("plan", nargs="?", default=None, choices=["free", "plus", "pro"])

    pi = add("init-config", cmd_init_config, "Write a panel config YAML from the current environment")
    pi.add_argument("--force", action="store_true")

    pd = add("panel", cmd_panel, "Run the control panel API server")
    pd.add_argument("--host", default="127.0.0.1")
    pd.add_argument("--port", type=int, default=8010)

    args = p.parse_args()
    try:
        return int(args.func(args))
    except ApiError as e:
        print(f"[red]Backend error[/red]: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
