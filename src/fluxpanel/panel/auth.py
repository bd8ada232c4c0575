from __future__ import annotations

import hmac
import os

from fastapi import HTTPException, Request


def require_token_enabled() -> bool:
    # Default: require token. Set PANEL_REQUIRE_TOKEN=false to disable (local use only).
    v = os.getenv("PANEL_REQUIRE_TOKEN", "true").strip().lower()
    return v not in ("0", "false", "no", "n")


def panel_token() -> str | None:
    t = (os.getenv("PANEL_TOKEN") or "").strip()
    return t or None


def check_token(provided: str | None) -> bool:
    if not require_token_enabled():
        return True

    expected = panel_token()
    if expected is None:
        # Token required but not set: every write is refused
        return False
    return hmac.compare_digest((provided or "").encode(), expected.encode())


def require_token(req: Request) -> None:
    if not require_token_enabled():
        return
    token = req.query_params.get("token") or req.headers.get("x-panel-token")
    if not check_token(token):
        raise HTTPException(status_code=401, detail="Unauthorized")

