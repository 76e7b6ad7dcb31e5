"""Connection status snapshot value type and candidate parsing."""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from linkwatch.core.errors import MalformedSnapshotError


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    INITIALIZING = "initializing"
    QR_READY = "qr_ready"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    LOADING_CHATS = "loading_chats"
    CONNECTED = "connected"
    ERROR = "error"


TRANSITIONAL_STATES = frozenset(
    {
        ConnectionState.INITIALIZING,
        ConnectionState.QR_READY,
        ConnectionState.CONNECTING,
        ConnectionState.AUTHENTICATING,
        ConnectionState.LOADING_CHATS,
    }
)
STABLE_STATES = frozenset({ConnectionState.CONNECTED, ConnectionState.DISCONNECTED, ConnectionState.ERROR})
# An account, once linked, stays visible through a later error.
ACCOUNT_STATES = frozenset({ConnectionState.CONNECTED, ConnectionState.ERROR})

_STATE_BY_VALUE = {state.value: state for state in ConnectionState}


@dataclass(frozen=True, slots=True)
class Account:
    display_name: str
    phone_identifier: str

    def to_dict(self) -> dict[str, str]:
        return {"display_name": self.display_name, "phone_identifier": self.phone_identifier}


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """Full connection state at one instant. Replaced wholesale, never mutated."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    code_payload: str | None = None
    account: Account | None = None
    message_count: int = 0
    error_detail: str | None = None
    progress_percent: int = 0
    progress_text: str = ""
    session_started_at: float | None = None
    last_update: str | None = None

    def scoped(self) -> StatusSnapshot:
        """Return a copy with every field that is invalid for ``state`` cleared."""
        state = self.state
        return dataclasses.replace(
            self,
            code_payload=self.code_payload if state is ConnectionState.QR_READY else None,
            account=self.account if state in ACCOUNT_STATES else None,
            message_count=0 if state is ConnectionState.DISCONNECTED else self.message_count,
            error_detail=self.error_detail if state is ConnectionState.ERROR else None,
            progress_percent=self.progress_percent if state is ConnectionState.LOADING_CHATS else 0,
            progress_text=self.progress_text if state in TRANSITIONAL_STATES else "",
            session_started_at=self.session_started_at if state not in STABLE_STATES else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "code_payload": self.code_payload,
            "account": self.account.to_dict() if self.account else None,
            "message_count": self.message_count,
            "error_detail": self.error_detail,
            "progress_percent": self.progress_percent,
            "progress_text": self.progress_text,
            "session_started_at": self.session_started_at,
            "last_update": self.last_update,
        }


def parse_state(raw: object) -> ConnectionState:
    if isinstance(raw, ConnectionState):
        return raw
    if not isinstance(raw, str):
        raise MalformedSnapshotError(f"state must be a string, got {type(raw).__name__}")
    state = _STATE_BY_VALUE.get(raw.strip().lower())
    if state is None:
        raise MalformedSnapshotError(f"unknown connection state: {raw!r}")
    return state


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_count(value: object) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return max(0, int(value))
    if isinstance(value, str):
        try:
            return max(0, int(value.strip()))
        except ValueError:
            return 0
    return 0


def _as_text(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _parse_account(value: object) -> Account | None:
    if not isinstance(value, Mapping):
        return None
    name = _first(value, "name", "display_name")
    phone = _first(value, "phone", "phone_identifier")
    if name is None and phone is None:
        return None
    return Account(display_name=str(name or ""), phone_identifier=str(phone or ""))


def _parse_started_at(raw: Mapping[str, Any]) -> float | None:
    # Backend sends epoch milliseconds; the snake_case alias is epoch seconds.
    millis = raw.get("connectionStartTime")
    if isinstance(millis, (int, float)) and not isinstance(millis, bool) and millis > 0:
        return float(millis) / 1000.0
    seconds = raw.get("session_started_at")
    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) and seconds > 0:
        return float(seconds)
    return None


def parse_candidate(raw: object) -> StatusSnapshot:
    """Build an unscoped snapshot from a backend payload.

    Accepts the backend's camelCase shape (``status``, ``qrCode``, ``user``,
    ``messagesProcessed`` ...) as well as the snake_case field names of
    :class:`StatusSnapshot`. Raises :class:`MalformedSnapshotError` when the
    payload is not a mapping or carries no valid state.
    """
    if isinstance(raw, StatusSnapshot):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedSnapshotError(f"candidate must be a mapping, got {type(raw).__name__}")

    state = parse_state(_first(raw, "status", "state"))
    progress = _as_count(_first(raw, "progress", "progress_percent"))
    return StatusSnapshot(
        state=state,
        code_payload=_as_text(_first(raw, "qrCode", "code_payload")),
        account=_parse_account(_first(raw, "user", "account")),
        message_count=_as_count(_first(raw, "messagesProcessed", "message_count")),
        error_detail=_as_text(_first(raw, "error", "error_detail")),
        progress_percent=min(100, progress),
        progress_text=_as_text(_first(raw, "progressText", "progress_text")) or "",
        session_started_at=_parse_started_at(raw),
        last_update=_as_text(_first(raw, "lastUpdate", "last_update")),
    )
