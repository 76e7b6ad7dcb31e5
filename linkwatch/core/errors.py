"""Exception taxonomy for linkwatch."""

from __future__ import annotations


class LinkwatchError(Exception):
    """Base exception for linkwatch."""


class TransportError(LinkwatchError):
    """Raised when an HTTP or event-stream request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedSnapshotError(LinkwatchError):
    """Raised when a candidate payload cannot be turned into a snapshot."""


class ActionError(LinkwatchError):
    """Raised when a connect/disconnect/logout request is refused."""

    def __init__(self, action: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{action} failed: {message}")
        self.action = action
        self.status_code = status_code
