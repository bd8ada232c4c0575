from __future__ import annotations

from pathlib import Path
from typing import Literal, Union

import yaml
from pydantic import BaseModel, Field

from fluxpanel.util.env import Env, load_env

Lookback = Union[int, Literal["today", "week", "all"]]


class Lookbacks(BaseModel):
    trades: Lookback = 10
    chart_days: int = 14
    shadow: Lookback = 10


class GuardrailOverride(BaseModel):
    min: float
    max: float
    default: float | None = None
    recommended: float | None = None


class PanelConfig(BaseModel):
    api_base: str | None = None
    # Client-side admin gate only. The backend still checks permissions.
    admin_user_id: str | None = None
    user_id: str | None = None
    access_token: str | None = None

    timeout_s: float = 10.0
    toast_ttl_s: float = 4.0
    refresh_sec: int = 10
    lookbacks: Lookbacks = Lookbacks()
    guardrails: dict[str, GuardrailOverride] = Field(default_factory=dict)


def _deep_merge(a: dict, b: dict) -> dict:
    """Return deep merge of a <- b (b wins)."""
    out = dict(a or {})
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out.get(k) or {}, v)
        else:
            out[k] = v
    return out


def _env_patch(env: Env) -> dict:
    patch = {
        "api_base": env.api_base,
        "admin_user_id": env.admin_user_id,
        "user_id": env.user_id,
        "access_token": env.access_token,
    }
    return {k: v for k, v in patch.items() if v}


def load_config(path: str | Path | None = None, *, env: Env | None = None) -> PanelConfig:
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            data = yaml.safe_load(p.read_text()) or {}

    # Environment wins over the YAML file for connection/identity values
    env = env if env is not None else load_env()
    data = _deep_merge(data, _env_patch(env))
    return PanelConfig.model_validate(data)


def save_config(path: str | Path, cfg: PanelConfig) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    # Secrets stay in the environment
    p.write_text(yaml.safe_dump(cfg.model_dump(exclude={"access_token"}), sort_keys=False))
