"""Flask bridge over one shared :class:`linkwatch.client.engine.SyncEngine`."""

from __future__ import annotations

__all__ = ["create_app", "DashboardRuntime"]


def __getattr__(name: str) -> object:
    # flask is only imported once the app is actually requested.
    if name == "create_app":
        from .server import create_app

        return create_app
    if name == "DashboardRuntime":
        from .runtime import DashboardRuntime

        return DashboardRuntime
    raise AttributeError(f"module 'tools.dashboard' has no attribute {name!r}")
