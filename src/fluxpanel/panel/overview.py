from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pandas as pd

from fluxpanel.api.client import FluxClient
from fluxpanel.panel.toasts import ToastQueue

MIN_REFRESH_SEC = 3


def parse_ts(v: Any) -> datetime | None:
    if not v:
        return None
    if isinstance(v, datetime):
        return v
    s = str(v).strip()
    if "T" not in s:
        s = s.replace(" ", "T", 1)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def _aware(ts: datetime) -> datetime:
    # naive timestamps are local time
    return ts if ts.tzinfo is not None else ts.astimezone()


def format_currency(val: Any, compact: bool = True) -> str:
    if val is None:
        return "—"
    try:
        num = float(val)
    except (TypeError, ValueError):
        return "—"
    if not compact or abs(num) < 1000:
        return f"${num:.2f}"
    return f"${num / 1000:.1f}K"


def freshness(last_update: Any, now: datetime | None = None) -> dict[str, str]:
    ts = parse_ts(last_update)
    if ts is None:
        return {"label": "No data", "level": "old"}
    now = _aware(now or datetime.now())
    elapsed = int((now - _aware(ts)).total_seconds())
    if elapsed < 30:
        level = "fresh"
    elif elapsed < 120:
        level = "stale"
    else:
        level = "old"
    if elapsed < 60:
        label = f"{elapsed}s ago"
    elif elapsed < 3600:
        label = f"{elapsed // 60}m ago"
    else:
        label = f"{elapsed // 3600}h ago"
    return {"label": label, "level": level}


def refresh_interval(refresh_sec: Any) -> int:
    try:
        sec = int(refresh_sec or 10)
    except (TypeError, ValueError):
        sec = 10
    return max(MIN_REFRESH_SEC, sec)


def trade_fetch_limit(lookback: int | str) -> int:
    if lookback == "today":
        return 100
    if lookback in ("week", "all"):
        return 500
    return int(lookback)


def shadow_fetch_limit(lookback: int | str) -> int:
    if isinstance(lookback, str) and not lookback.isdigit():
        return 100
    return int(lookback)


def filter_trades(trades: list[dict], lookback: int | str, now: datetime | None = None) -> list[dict]:
    if lookback not in ("today", "week"):
        return list(trades)
    now = _aware(now or datetime.now())
    out = []
    for t in trades:
        ts = parse_ts(t.get("ts"))
        if ts is None:
            continue
        ts = _aware(ts).astimezone(now.tzinfo)
        if lookback == "today" and ts.date() == now.date():
            out.append(t)
        elif lookback == "week" and ts >= now - timedelta(days=7):
            out.append(t)
    return out


def cycle_health(cycle: dict | None) -> dict[str, int]:
    rows = (cycle or {}).get("rows")
    rows = rows if isinstance(rows, list) else []
    total = len(rows)
    no_price = sum(1 for r in rows if (r or {}).get("last_price") is None)
    active = sum(1 for r in rows if (r or {}).get("position_qty"))
    ok_pct = round((total - no_price) / total * 100) if total else 0
    return {"total": total, "no_price": no_price, "active_positions": active, "candles_ok_pct": ok_pct}


def _completed(trades: list[dict]) -> list[dict]:
    return [t for t in trades if "win" in t]


def win_rate(trades: list[dict]) -> int | None:
    done = _completed(trades)
    if not done:
        return None
    wins = sum(1 for t in done if t.get("win"))
    return round(wins / len(done) * 100)


def consecutive_losses(trades: list[dict]) -> int:
    # trades are newest first
    streak = 0
    for t in _completed(trades):
        if t.get("win"):
            break
        streak += 1
    return streak


def max_consecutive_losses(trades: list[dict]) -> int:
    best = cur = 0
    for t in _completed(trades):
        if t.get("win"):
            cur = 0
        else:
            cur += 1
            best = max(best, cur)
    return best


def top_tickers(trades: list[dict], n: int = 5) -> list[dict]:
    rows = [{"symbol": t.get("symbol"), "pnl": t.get("pnl")} for t in trades if t.get("symbol")]
    if not rows:
        return []
    df = pd.DataFrame(rows)
    df["pnl"] = pd.to_numeric(df["pnl"], errors="coerce").fillna(0.0)
    agg = df.groupby("symbol", sort=False)["pnl"].sum()
    agg = agg.sort_values(ascending=False, kind="mergesort").head(n)
    return [{"symbol": str(sym), "pnl": float(pnl)} for sym, pnl in agg.items()]


def trading_days_pnl(data: list[dict]) -> list[dict]:
    """Drop weekends and zero-PnL days from a daily PnL series."""
    rows = [d for d in (data or []) if d.get("date")]
    if not rows:
        return []
    df = pd.DataFrame(rows)
    dates = pd.to_datetime(df["date"], errors="coerce")
    if "pnl" in df.columns:
        pnl = pd.to_numeric(df["pnl"], errors="coerce")
    else:
        pnl = pd.Series(float("nan"), index=df.index)
    keep = dates.notna() & (dates.dt.dayofweek < 5) & (pnl != 0)
    return [rows[i] for i, k in enumerate(keep.to_numpy()) if k]


def load_overview(
    client: FluxClient,
    *,
    trade_lookback: int | str = 10,
    chart_days: int = 14,
    shadow_lookback: int | str = 10,
    now: datetime | None = None,
) -> dict:
    """Collect everything the dashboard shows. Backend failures become `error`."""
    out: dict[str, Any] = {"error": None}
    try:
        out["status"] = client.status()
        latest = client.latest_cycle() or {}
        cycle = latest.get("cycle")
        out["cycle"] = cycle

        trades_res = client.recent_trades(trade_fetch_limit(trade_lookback)) or {}
        trades = filter_trades(list(trades_res.get("trades") or []), trade_lookback, now)
        out["trades"] = trades
        out["today_pnl"] = trades_res.get("today_pnl")

        out["shadow_logs"] = (client.recent_shadow_logs(shadow_fetch_limit(shadow_lookback)) or {}).get("logs") or []
        out["positions"] = (client.active_positions() or {}).get("positions") or []
        out["daily_pnl"] = trading_days_pnl((client.daily_pnl(chart_days) or {}).get("data") or [])
        out["last_refresh"] = _aware(now or datetime.now()).isoformat()
    except Exception as e:
        out["error"] = str(e) or e.__class__.__name__
        return out

    # Active profile is non-critical
    try:
        res = client.settings() or {}
        preset = (res.get("settings") or {}).get("preset_id") or res.get("preset_id")
        out["active_profile"] = preset or "custom"
    except Exception:
        out["active_profile"] = None

    cycle = out.get("cycle") or {}
    trades = out["trades"]
    out["metrics"] = {
        "cycle": cycle_health(cycle),
        "cycle_ts": cycle.get("ts"),
        "unrealized": cycle.get("unrealized"),
        "win_rate": win_rate(trades),
        "consecutive_losses": consecutive_losses(trades),
        "max_consecutive_losses": max_consecutive_losses(trades),
        "top_tickers": top_tickers(trades),
        "today_pnl_label": format_currency(out.get("today_pnl")),
        "freshness": freshness(cycle.get("ts"), now),
    }
    return out


def run_cycle(client: FluxClient, toasts: ToastQueue, *, force: bool = False) -> bool:
    try:
        client.run_decision_cycle(force)
        toasts.add("Forced cycle ran successfully" if force else "Cycle ran successfully", "success")
        return True
    except Exception as e:
        toasts.add(str(e), "error")
        return False


def force_exit_all(client: FluxClient, toasts: ToastQueue) -> bool:
    try:
        client.force_exit_all()
        toasts.add("Force exit requested", "success")
        return True
    except Exception as e:
        toasts.add(str(e), "error")
        return False
