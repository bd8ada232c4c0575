from __future__ import annotations

import sys

import pytest

from fluxpanel import cli
from fluxpanel.util.config import PanelConfig


@pytest.fixture
def run(monkeypatch, make_client):
    def _run(*argv: str, user_id: str = "adm") -> int:
        cfg = PanelConfig(api_base="http://flux.test", user_id=user_id, admin_user_id="adm")
        monkeypatch.setattr(cli, "load_config", lambda *_a, **_kw: cfg)
        monkeypatch.setattr(cli, "_client", lambda _cfg: make_client())
        monkeypatch.setattr(sys, "argv", ["fluxpanel", *argv])
        return cli.main()

    return _run


@pytest.fixture
def settings_backend(backend, sample_settings, sample_presets):
    backend.on("GET", "/api/settings", {"settings": sample_settings})
    backend.on("GET", "/api/presets", {"ok": True, "presets": sample_presets})
    backend.on("GET", "/api/guardrails", {"ok": True, "guardrails": {}})
    return backend


def test_parse_value_by_field_kind():
    assert cli._parse_value("0.02", "percent") == 0.02
    assert cli._parse_value("5", "number") == 5
    assert cli._parse_value("five", "number") == "five"
    assert cli._parse_value("10:30", "time") == "10:30"
    assert cli._parse_value("on", "onoff") == "on"
    assert cli._parse_value("QQQ,SPY", "text") == "QQQ,SPY"
    assert cli._parse_value("off", "toggle") is False
    assert cli._parse_value("true") is True
    assert cli._parse_value("10:30") == "10:30"
    assert cli._parse_value("[unclosed") == "[unclosed"


def test_set_keeps_time_values_as_strings(run, settings_backend):
    settings_backend.on("POST", "/api/settings", {"ok": True})
    assert run("set", "trading_window_end=10:30", "kill_switch=on") == 0
    sent = settings_backend.body("POST", "/api/settings")
    assert sent["trading_window_end"] == "10:30"
    assert sent["kill_switch"] == "on"


def test_set_saves_valid_edits(run, settings_backend, capsys):
    settings_backend.on("POST", "/api/settings", {"ok": True})
    assert run("set", "stop_loss_pct=0.015", "risk.trailing.enabled=false") == 0
    sent = settings_backend.body("POST", "/api/settings")
    assert sent["stop_loss_pct"] == 0.015
    assert sent["risk"]["trailing"]["enabled"] is False
    assert sent["preset_id"] is None
    assert "Settings saved successfully" in capsys.readouterr().out


def test_set_out_of_range_does_not_save(run, settings_backend, capsys):
    assert run("set", "stop_loss_pct=0.5") == 1
    assert settings_backend.calls("POST", "/api/settings") == []
    assert "Please fix validation errors" in capsys.readouterr().out


def test_set_is_admin_only(run, backend):
    assert run("set", "mode=live", user_id="someone") == 1
    assert backend.requests == []


def test_set_rejects_bad_assignment(run, settings_backend):
    assert run("set", "stop_loss_pct") == 2


def test_kill_switch(run, backend, capsys):
    backend.on("GET", "/api/admin/settings", {"settings": {"global_kill_switch": False}})
    backend.on("POST", "/api/admin/settings", {"ok": True})
    assert run("kill-switch", "on") == 0
    assert backend.body("POST", "/api/admin/settings")["global_kill_switch"] is True
    assert "ACTIVE" in capsys.readouterr().out

    assert run("kill-switch", user_id="other") == 1


def test_onboard_failure(run, backend, capsys):
    backend.on("GET", "/api/user/settings", (500, "boom"))
    backend.on("GET", "/api/presets", {"ok": True, "presets": []})
    backend.on("POST", "/api/user/onboarding", (500, "db down"))
    assert run("onboard", "--accept-terms") == 1
    assert "db down" in capsys.readouterr().out


def test_optimize_select_and_apply(run, backend, capsys):
    backend.on("GET", "/api/user/backtest/quick", {"ok": True})
    backend.on(
        "GET",
        "/api/user/settings/suggestions",
        {
            "ok": True,
            "suggestions": [
                {"setting_name": "conf_threshold", "current_value": 0.6, "suggested_value": 0.65, "confidence": 0.9},
                {"setting_name": "max_open_positions", "current_value": 5, "suggested_value": 3, "confidence": 0.3},
            ],
        },
    )
    backend.on("POST", "/api/user/suggestion-action", {"ok": True})
    backend.on("POST", "/api/user/settings", {"ok": True})
    assert run("optimize", "--select", "max_open_positions", "--apply") == 0
    assert backend.body("POST", "/api/user/settings") == {"max_open_positions": 3}
    assert "Applied selected suggestions" in capsys.readouterr().out

    assert run("optimize", "--select", "bogus") == 1


def test_upgrade(run, backend, capsys):
    backend.on("GET", "/api/user/subscription/limits", {"ok": True, "plan": "plus"})
    assert run("upgrade", "free") == 1
    assert "cannot upgrade from plus to free" in capsys.readouterr().out
