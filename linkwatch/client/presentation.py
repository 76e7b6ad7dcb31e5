"""UI-facing values derived from the canonical snapshot stream."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from linkwatch.client.broadcast import Broadcast
from linkwatch.core.events import ConnectionUpdate
from linkwatch.core.snapshot import STABLE_STATES, ConnectionState, StatusSnapshot
from linkwatch.defaults.config import WAITING_TIPS

HINT_STATES = frozenset({ConnectionState.INITIALIZING, ConnectionState.QR_READY, ConnectionState.LOADING_CHATS})


@dataclass(frozen=True, slots=True)
class PresentationView:
    state: ConnectionState
    elapsed_seconds: int
    elapsed_text: str
    hint: str | None
    hint_index: int
    progress_percent: int
    progress_text: str

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "elapsed_seconds": self.elapsed_seconds,
            "elapsed_text": self.elapsed_text,
            "hint": self.hint,
            "hint_index": self.hint_index,
            "progress_percent": self.progress_percent,
            "progress_text": self.progress_text,
        }


def format_elapsed(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}m {secs}s" if minutes > 0 else f"{secs}s"


class PresentationAdapter:
    """Elapsed-time and rotating-hint derivation.

    Read-only with respect to the engine: it consumes snapshots and publishes
    :class:`PresentationView` values, nothing flows back. Its timers are
    owned here and never touch the reconciler or the drivers.
    """

    def __init__(
        self,
        *,
        hints: Sequence[str] = WAITING_TIPS,
        hint_interval: float = 5.0,
        elapsed_tick: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.hints = tuple(hints)
        self.hint_interval = float(hint_interval)
        self.elapsed_tick = float(elapsed_tick)
        self._clock = clock
        self._snapshot = StatusSnapshot()
        self._hint_index = 0
        self._hint_task: asyncio.Task[None] | None = None
        self._elapsed_task: asyncio.Task[None] | None = None
        self.views: Broadcast[PresentationView] = Broadcast("presentation")
        self._closed = False

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._snapshot

    @property
    def hint_index(self) -> int:
        return self._hint_index

    @property
    def hints_rotating(self) -> bool:
        return self._hint_task is not None and not self._hint_task.done()

    @property
    def elapsed_running(self) -> bool:
        return self._snapshot.state not in STABLE_STATES and self._snapshot.session_started_at is not None

    def elapsed_seconds(self, now: float | None = None) -> int:
        if not self.elapsed_running:
            return 0
        now = self._clock() if now is None else now
        return max(0, int(now - self._snapshot.session_started_at))

    def current_hint(self) -> str | None:
        if self._snapshot.state not in HINT_STATES or not self.hints:
            return None
        return self.hints[self._hint_index % len(self.hints)]

    def view(self, now: float | None = None) -> PresentationView:
        elapsed = self.elapsed_seconds(now)
        return PresentationView(
            state=self._snapshot.state,
            elapsed_seconds=elapsed,
            elapsed_text=format_elapsed(elapsed),
            hint=self.current_hint(),
            hint_index=self._hint_index,
            progress_percent=self._snapshot.progress_percent,
            progress_text=self._snapshot.progress_text,
        )

    async def on_update(self, update: ConnectionUpdate) -> None:
        if self._closed:
            return
        self._snapshot = update.snapshot
        self._sync_timers()
        await self.views.publish(self.view())

    async def close(self) -> None:
        self._closed = True
        for task in (self._hint_task, self._elapsed_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._hint_task = None
        self._elapsed_task = None
        self.views.close()

    def _sync_timers(self) -> None:
        if self._snapshot.state in HINT_STATES and len(self.hints) > 1:
            if not self.hints_rotating:
                self._hint_task = asyncio.create_task(self._hint_loop(), name="linkwatch-hints")
        elif self._hint_task is not None:
            self._hint_task.cancel()
            self._hint_task = None

        if self.elapsed_running:
            if self._elapsed_task is None or self._elapsed_task.done():
                self._elapsed_task = asyncio.create_task(self._elapsed_loop(), name="linkwatch-elapsed")
        elif self._elapsed_task is not None:
            self._elapsed_task.cancel()
            self._elapsed_task = None

    async def _hint_loop(self) -> None:
        while True:
            await asyncio.sleep(self.hint_interval)
            self._hint_index = (self._hint_index + 1) % len(self.hints)
            await self.views.publish(self.view())

    async def _elapsed_loop(self) -> None:
        while True:
            await asyncio.sleep(self.elapsed_tick)
            await self.views.publish(self.view())
