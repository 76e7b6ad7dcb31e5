"""Bridge-side event log fed by the engine's snapshot and artifact streams."""

from __future__ import annotations

import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from linkwatch.core.events import ArtifactEvent, ConnectionUpdate

EventKind = Literal["connection", "artifact", "action"]


@dataclass(frozen=True, slots=True)
class BridgeEvent:
    kind: EventKind
    source: str
    detail: dict[str, Any]
    at: float = field(default_factory=time.time)

    @classmethod
    def from_update(cls, update: ConnectionUpdate) -> BridgeEvent:
        snapshot = update.snapshot
        return cls(
            kind="connection",
            source=update.source,
            detail={
                "state": snapshot.state.value,
                "previous": update.previous.state.value,
                "message_count": snapshot.message_count,
                "error": snapshot.error_detail,
            },
        )

    @classmethod
    def from_artifact(cls, event: ArtifactEvent) -> BridgeEvent:
        return cls(
            kind="artifact",
            source=event.artifact.source,
            detail={"event": event.kind, "code": event.artifact.snapshot_key[1]},
        )

    @classmethod
    def action(cls, name: str, outcome: str, error: str | None = None) -> BridgeEvent:
        detail: dict[str, Any] = {"action": name, "outcome": outcome}
        if error is not None:
            detail["error"] = error
        return cls(kind="action", source="dashboard", detail=detail)


class BridgeEventLog:
    """Keeps the newest ``max_events`` events; readable from Flask threads while the loop thread writes."""

    def __init__(self, max_events: int = 300) -> None:
        self._events: deque[tuple[int, BridgeEvent]] = deque(maxlen=max(1, int(max_events)))
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: BridgeEvent) -> int:
        with self._lock:
            seq = next(self._seq)
            self._events.append((seq, event))
            return seq

    def list_events(self, since: int = 0) -> list[dict[str, Any]]:
        with self._lock:
            items = [(seq, event) for seq, event in self._events if seq > since]
        return [
            {
                "seq": seq,
                "at": datetime.fromtimestamp(event.at, tz=timezone.utc).isoformat(),
                "kind": event.kind,
                "source": event.source,
                "detail": event.detail,
            }
            for seq, event in items
        ]
