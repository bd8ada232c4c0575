from __future__ import annotations

import httpx

from fluxpanel.panel.banners import LIVE_CONFIRM_PROMPT, TradingModeBanner, mode_config, subscription_banner


class TestTradingModeBanner:
    def test_state_defaults_to_paper(self, client):
        st = TradingModeBanner(client).state(None, None)
        assert st["trading_mode"] == "paper"
        assert st["label"] == "Paper Mode"
        assert st["switch_to"] == "live"
        assert st["broker_mismatch"] is False

    def test_broker_mismatch(self, client):
        st = TradingModeBanner(client).state({"trading_mode": "live"}, {"broker_mode": "paper"})
        assert st["broker_mismatch"] is True
        st = TradingModeBanner(client).state({"trading_mode": "live"}, {"broker_mode": "live"})
        assert st["broker_mismatch"] is False

    def test_unknown_mode_falls_back_to_paper_config(self):
        assert mode_config("weird") == mode_config("paper")
        assert mode_config("disabled")["switch_label"] == "Enable Paper"

    def test_switch_to_live_needs_confirmation(self, backend, client):
        b = TradingModeBanner(client)
        res = b.switch({"trading_mode": "paper"})
        assert res.cancelled and not res.ok
        res = b.switch({"trading_mode": "paper"}, confirm=lambda _p: False)
        assert res.cancelled
        assert backend.requests == []

    def test_switch_to_live_confirmed(self, backend, client):
        backend.on("POST", "/api/user/settings", {"ok": True})
        prompts = []
        res = TradingModeBanner(client).switch({"trading_mode": "paper"}, confirm=lambda p: prompts.append(p) or True)
        assert res.ok and res.mode == "live"
        assert prompts == [LIVE_CONFIRM_PROMPT]
        assert backend.body("POST", "/api/user/settings") == {"trading_mode": "live"}

    def test_switch_to_paper_needs_no_confirmation(self, backend, client):
        backend.on("POST", "/api/user/settings", {"ok": True})
        res = TradingModeBanner(client).switch({"trading_mode": "live"})
        assert res.ok and res.mode == "paper"

    def test_subscription_limit_error(self, backend, client):
        backend.on("POST", "/api/user/settings", {"ok": False, "reason": "subscription_limit"})
        b = TradingModeBanner(client)
        res = b.switch({"trading_mode": "paper"}, confirm=lambda _p: True)
        assert not res.ok
        assert res.mode == "paper"
        assert res.error == "Live trading not available. Check your subscription."
        assert b.state({"trading_mode": "paper"}, None)["error"] == res.error

    def test_generic_failures(self, backend, client):
        backend.on("POST", "/api/user/settings", {"ok": False})
        assert TradingModeBanner(client).switch({"trading_mode": "live"}).error == "Failed to switch mode"

        backend.on("POST", "/api/user/settings", httpx.ConnectError("down"))
        b = TradingModeBanner(client)
        assert b.switch({"trading_mode": "live"}).error == "Failed to switch mode. Please try again."
        assert not b.switching


class TestSubscriptionBanner:
    def test_hidden_cases(self):
        assert subscription_banner(None) is None
        assert subscription_banner({"can_trade": True}) is None
        assert subscription_banner({"can_trade": False, "plan": "admin", "reason": "trade_limit_reached"}) is None
        assert subscription_banner({"can_trade": False, "reason": "trade_limit_reached"}, dismissed=True) is None
        # unknown reason has no message
        assert subscription_banner({"can_trade": False, "reason": "other"}) is None

    def test_trade_limit_reached(self):
        b = subscription_banner({"can_trade": False, "plan": "free", "reason": "trade_limit_reached", "trade_limit": 5})
        assert b["blocked"] is True
        assert b["title"] == "Trading Paused"
        assert b["message"] == "You've used all 5 free live trades. Upgrade to Plus for unlimited trading."

    def test_equity_cap_approaching(self):
        b = subscription_banner(
            {"can_trade": True, "plan": "plus", "reason": "equity_cap_reached", "equity_cap": 25000, "suggest_upgrade": "pro"}
        )
        assert b["blocked"] is False
        assert b["title"] == "Approaching Limit"
        assert b["upgrade_tier"] == "Pro"
        assert b["message"] == "Your account equity has reached the $25,000 plus tier limit. Upgrade to Pro to continue trading."
