"""Core value types for linkwatch."""

from .errors import ActionError, LinkwatchError, MalformedSnapshotError, TransportError
from .events import ArtifactEvent, CodeArtifact, ConnectionUpdate
from .snapshot import Account, ConnectionState, StatusSnapshot, parse_candidate

__all__ = [
    "Account",
    "ActionError",
    "ArtifactEvent",
    "CodeArtifact",
    "ConnectionState",
    "ConnectionUpdate",
    "LinkwatchError",
    "MalformedSnapshotError",
    "StatusSnapshot",
    "TransportError",
    "parse_candidate",
]
