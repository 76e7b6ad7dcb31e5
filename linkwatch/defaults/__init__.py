"""Default constants and configuration values for linkwatch."""

from .config import DEFAULT_SYNC_CONFIG, WAITING_TIPS, config_from_env, resolve_api_base

__all__ = ["DEFAULT_SYNC_CONFIG", "WAITING_TIPS", "config_from_env", "resolve_api_base"]
