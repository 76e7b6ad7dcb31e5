"""Connection-state synchronization for linked messaging accounts."""

__version__ = "0.1.0"

__all__ = [
    "SyncEngine",
    "Reconciler",
    "ConnectionState",
    "StatusSnapshot",
    "Account",
    "parse_candidate",
    "LinkwatchError",
    "TransportError",
    "MalformedSnapshotError",
    "ActionError",
]


def __getattr__(name: str) -> object:
    """Lazy exports so importing the package does not pull in httpx/qrcode."""
    if name in {"SyncEngine", "Reconciler"}:
        from .client.engine import SyncEngine
        from .client.reconciler import Reconciler

        return {"SyncEngine": SyncEngine, "Reconciler": Reconciler}[name]

    if name in {"ConnectionState", "StatusSnapshot", "Account", "parse_candidate"}:
        from .core.snapshot import Account, ConnectionState, StatusSnapshot, parse_candidate

        return {
            "ConnectionState": ConnectionState,
            "StatusSnapshot": StatusSnapshot,
            "Account": Account,
            "parse_candidate": parse_candidate,
        }[name]

    if name in {"LinkwatchError", "TransportError", "MalformedSnapshotError", "ActionError"}:
        from .core.errors import ActionError, LinkwatchError, MalformedSnapshotError, TransportError

        return {
            "LinkwatchError": LinkwatchError,
            "TransportError": TransportError,
            "MalformedSnapshotError": MalformedSnapshotError,
            "ActionError": ActionError,
        }[name]

    raise AttributeError(f"module 'linkwatch' has no attribute {name!r}")
