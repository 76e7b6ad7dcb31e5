"""Default engine configuration and environment loading."""

from __future__ import annotations

import os
from typing import Any

FALLBACK_API_BASE = "http://127.0.0.1:3000/api"

WAITING_TIPS = (
    "Messages are classified using AI to identify tasks automatically",
    "Your data stays private - we only analyze message content locally",
    "Keep WhatsApp open on your phone for the best experience",
)

DEFAULT_SYNC_CONFIG: dict[str, Any] = {
    "api_base": None,
    "api_token": None,
    "request_timeout": 15.0,
    "poll_interval_active": 2.0,
    "poll_interval_idle": 30.0,
    "push_retry_delay": 2.0,
    "qr_refresh_interval": 55.0,
    "hint_interval": 5.0,
    "elapsed_tick": 1.0,
    "render_qr_locally": False,
    "activity_limit": 30,
}

_FLOAT_KEYS = {
    "request_timeout": "LINKWATCH_REQUEST_TIMEOUT",
    "poll_interval_active": "LINKWATCH_POLL_ACTIVE",
    "poll_interval_idle": "LINKWATCH_POLL_IDLE",
    "push_retry_delay": "LINKWATCH_PUSH_RETRY_DELAY",
    "qr_refresh_interval": "LINKWATCH_QR_REFRESH",
    "hint_interval": "LINKWATCH_HINT_INTERVAL",
}


def resolve_api_base(raw: str | None = None) -> str:
    """Return the API root, always ending in ``/api``."""
    url = raw if raw is not None else os.getenv("LINKWATCH_API_URL")
    if not url:
        return FALLBACK_API_BASE
    url = url.rstrip("/")
    return url if url.endswith("/api") else f"{url}/api"


def config_from_env() -> dict[str, Any]:
    overrides: dict[str, Any] = {"api_base": resolve_api_base()}
    token = os.getenv("LINKWATCH_API_TOKEN")
    if token:
        overrides["api_token"] = token
    for key, env_name in _FLOAT_KEYS.items():
        raw = os.getenv(env_name)
        if raw:
            overrides[key] = float(raw)
    overrides["render_qr_locally"] = os.getenv("LINKWATCH_RENDER_QR", "0") not in {"0", "false", "False", ""}
    return overrides
