from __future__ import annotations

import yaml

from fluxpanel.settings.presets import (
    current_preset,
    is_preset_mode,
    load_local_presets,
    parse_presets,
    preset_scheme,
    save_local_preset,
)
from fluxpanel.util.config import PanelConfig, load_config, save_config
from fluxpanel.util.env import Env

NO_ENV = Env(api_base=None, access_token=None, user_id=None, admin_user_id=None)


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.yaml", env=NO_ENV)
    assert cfg.api_base is None
    assert cfg.refresh_sec == 10
    assert cfg.lookbacks.trades == 10


def test_yaml_then_env(tmp_path):
    p = tmp_path / "panel.yaml"
    p.write_text(
        yaml.safe_dump(
            {
                "api_base": "http://from-yaml",
                "user_id": "u1",
                "lookbacks": {"trades": "week", "chart_days": 30},
                "guardrails": {"stop_loss_pct": {"min": 0.01, "max": 0.02}},
            }
        )
    )
    env = Env(api_base="http://from-env", access_token="tok", user_id=None, admin_user_id="adm")
    cfg = load_config(p, env=env)
    assert cfg.api_base == "http://from-env"
    assert cfg.user_id == "u1"
    assert cfg.admin_user_id == "adm"
    assert cfg.access_token == "tok"
    assert cfg.lookbacks.trades == "week"
    assert cfg.lookbacks.shadow == 10
    assert cfg.guardrails["stop_loss_pct"].max == 0.02


def test_load_env_reads_public_fallbacks(monkeypatch):
    from fluxpanel.util import env as env_mod

    monkeypatch.setattr(env_mod, "load_dotenv", lambda **_kw: False)
    monkeypatch.delenv("FLUX_API_BASE", raising=False)
    monkeypatch.setenv("NEXT_PUBLIC_API_BASE", "http://pub")
    monkeypatch.setenv("FLUX_ADMIN_USER_ID", "  ")
    monkeypatch.setenv("NEXT_PUBLIC_ADMIN_USER_ID", "adm")
    e = env_mod.load_env()
    assert e.api_base == "http://pub"
    assert e.admin_user_id == "adm"


def test_save_config_keeps_token_out(tmp_path):
    p = tmp_path / "cfg" / "panel.yaml"
    save_config(p, PanelConfig(api_base="http://x", access_token="secret"))
    text = p.read_text()
    assert "secret" not in text
    assert load_config(p, env=NO_ENV).api_base == "http://x"


class TestPresets:
    def test_parse_coerces_ids_and_skips_blank(self):
        presets = parse_presets([{"id": 3, "name": "Three"}, {"name": "no id"}, {"id": "balanced", "extra": 1}])
        assert [p.id for p in presets] == ["3", "balanced"]

    def test_mode_and_current(self, sample_presets):
        presets = parse_presets(sample_presets)
        assert is_preset_mode({"preset_id": "balanced"})
        assert not is_preset_mode({"preset_id": None})
        assert not is_preset_mode(None)
        assert current_preset(presets, {"preset_id": "aggressive"}).id == "aggressive"
        assert current_preset(presets, {"preset_id": "gone"}) is None

    def test_scheme_fallback(self):
        assert preset_scheme("mystery") == preset_scheme("balanced")

    def test_local_store(self, tmp_path):
        path = tmp_path / "presets.yaml"
        assert load_local_presets(path) == []

        save_local_preset("swing", {"preset_id": "balanced", "conf_threshold": 0.7}, path=path)
        save_local_preset("scalp", {"conf_threshold": 0.6}, name="Quick", path=path)
        save_local_preset("swing", {"conf_threshold": 0.65}, path=path)

        presets = load_local_presets(path)
        assert [p.id for p in presets] == ["scalp", "swing"]
        assert presets[0].name == "Quick"
        assert presets[1].name == "Swing"
        assert presets[1].settings == {"conf_threshold": 0.65}
