from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fluxpanel.api.client import FluxClient

MODE_CONFIG: dict[str, dict[str, str]] = {
    "paper": {
        "label": "Paper Mode",
        "desc": "Simulated trades",
        "switch_to": "live",
        "switch_label": "Switch to Live",
    },
    "live": {
        "label": "Live Mode",
        "desc": "Real money trades",
        "switch_to": "paper",
        "switch_label": "Switch to Paper",
    },
    "disabled": {
        "label": "Trading Disabled",
        "desc": "No trades executed",
        "switch_to": "paper",
        "switch_label": "Enable Paper",
    },
}

LIVE_CONFIRM_PROMPT = (
    "Switch to Live Mode?\n\n"
    "- Real money will be used for trades\n"
    "- Subscription tier limits apply\n"
    "- Make sure your Alpaca account is configured for live trading"
)


def mode_config(mode: str | None) -> dict[str, str]:
    return MODE_CONFIG.get(str(mode or "paper"), MODE_CONFIG["paper"])


@dataclass
class SwitchResult:
    ok: bool
    mode: str
    error: str | None = None
    cancelled: bool = False


class TradingModeBanner:
    def __init__(self, client: FluxClient):
        self.client = client
        self.switching = False
        self.error: str | None = None

    def state(self, user_settings: dict | None, broker_status: dict | None) -> dict:
        # Trading mode comes from the user's settings; broker mode is the actual connection.
        trading_mode = (user_settings or {}).get("trading_mode") or "paper"
        broker_mode = (broker_status or {}).get("broker_mode") or "paper"
        cfg = mode_config(trading_mode)
        return {
            "trading_mode": trading_mode,
            "broker_mode": broker_mode,
            "label": cfg["label"],
            "desc": cfg["desc"],
            "switch_to": cfg["switch_to"],
            "switch_label": "Switching..." if self.switching else cfg["switch_label"],
            "broker_mismatch": trading_mode == "live" and broker_mode == "paper",
            "error": self.error,
        }

    def switch(self, user_settings: dict | None, *, confirm: Callable[[str], bool] | None = None) -> SwitchResult:
        trading_mode = (user_settings or {}).get("trading_mode") or "paper"
        new_mode = mode_config(trading_mode)["switch_to"]

        if new_mode == "live":
            if confirm is None or not confirm(LIVE_CONFIRM_PROMPT):
                return SwitchResult(ok=False, mode=trading_mode, cancelled=True)

        self.switching = True
        self.error = None
        try:
            res = self.client.save_user_settings({"trading_mode": new_mode}) or {}
            if not res.get("ok"):
                if res.get("reason") == "subscription_limit":
                    self.error = "Live trading not available. Check your subscription."
                else:
                    self.error = res.get("error") or "Failed to switch mode"
                return SwitchResult(ok=False, mode=trading_mode, error=self.error)
            return SwitchResult(ok=True, mode=new_mode)
        except Exception:
            self.error = "Failed to switch mode. Please try again."
            return SwitchResult(ok=False, mode=trading_mode, error=self.error)
        finally:
            self.switching = False


def _usd(v) -> str:
    try:
        return f"${float(v):,.0f}"
    except (TypeError, ValueError):
        return "$0"


def subscription_banner(limits: dict | None, *, dismissed: bool = False) -> dict | None:
    """Banner for a user near or past their subscription limits, or None."""
    if not limits or dismissed:
        return None
    if limits.get("can_trade") and not limits.get("suggest_upgrade"):
        return None
    if limits.get("plan") == "admin":
        return None

    reason = limits.get("reason")
    upgrade = "Pro" if limits.get("suggest_upgrade") == "pro" else "Plus"
    if reason == "trade_limit_reached":
        message = f"You've used all {limits.get('trade_limit')} free live trades. Upgrade to Plus for unlimited trading."
    elif reason == "equity_cap_reached":
        message = (
            f"Your account equity has reached the {_usd(limits.get('equity_cap'))} {limits.get('plan')} tier limit. "
            f"Upgrade to {upgrade} to continue trading."
        )
    else:
        return None

    blocked = not limits.get("can_trade")
    return {
        "blocked": blocked,
        "title": "Trading Paused" if blocked else "Approaching Limit",
        "message": message,
        "upgrade_tier": upgrade,
    }
