"""Backend activity log, refreshed alongside status polls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from linkwatch.client.broadcast import Broadcast

logger = logging.getLogger(__name__)

ENTRY_TYPES = {"info", "success", "warning", "error", "message"}


class ActivitySource(Protocol):
    async def fetch_logs(self) -> list[dict[str, Any]]: ...

    async def clear_logs(self) -> None: ...


@dataclass(frozen=True, slots=True)
class ActivityEntry:
    id: str
    timestamp: str
    type: str
    title: str
    icon: str = ""
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "icon": self.icon,
            "title": self.title,
            "details": self.details,
        }


def parse_entry(raw: dict[str, Any]) -> ActivityEntry | None:
    entry_id = raw.get("id")
    title = raw.get("title")
    if entry_id is None or not isinstance(title, str):
        return None
    entry_type = raw.get("type")
    details = raw.get("details")
    return ActivityEntry(
        id=str(entry_id),
        timestamp=str(raw.get("timestamp") or ""),
        type=entry_type if entry_type in ENTRY_TYPES else "info",
        title=title,
        icon=str(raw.get("icon") or ""),
        details=details if isinstance(details, str) else None,
    )


class ActivityFeed:
    def __init__(self, source: ActivitySource, limit: int = 30) -> None:
        self.source = source
        self.limit = max(1, int(limit))
        self.updates: Broadcast[tuple[ActivityEntry, ...]] = Broadcast("activity", initial=())

    @property
    def entries(self) -> tuple[ActivityEntry, ...]:
        return self.updates.latest or ()

    async def refresh(self) -> tuple[ActivityEntry, ...]:
        raw_entries = await self.source.fetch_logs()
        parsed = [entry for entry in (parse_entry(raw) for raw in raw_entries) if entry is not None]
        skipped = len(raw_entries) - len(parsed)
        if skipped:
            logger.debug("skipped %s malformed activity entries", skipped)
        entries = tuple(parsed[: self.limit])
        await self.updates.publish(entries)
        return entries

    async def clear(self) -> None:
        await self.source.clear_logs()
        await self.updates.publish(())

    def close(self) -> None:
        self.updates.close()
