from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Env:
    api_base: str | None
    access_token: str | None
    user_id: str | None
    admin_user_id: str | None


def _first(*names: str) -> str | None:
    for n in names:
        v = (os.getenv(n) or "").strip()
        if v:
            return v
    return None


def load_env() -> Env:
    # Loads from .env in cwd if present
    load_dotenv(override=False)

    # NEXT_PUBLIC_* names are what the web front end already ships with
    return Env(
        api_base=_first("FLUX_API_BASE", "NEXT_PUBLIC_API_BASE"),
        access_token=_first("FLUX_ACCESS_TOKEN"),
        user_id=_first("FLUX_USER_ID"),
        admin_user_id=_first("FLUX_ADMIN_USER_ID", "NEXT_PUBLIC_ADMIN_USER_ID"),
    )
