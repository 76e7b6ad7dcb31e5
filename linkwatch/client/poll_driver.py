"""Periodic status pulls at a state-dependent cadence."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from linkwatch.core.snapshot import TRANSITIONAL_STATES, ConnectionState

if TYPE_CHECKING:
    from linkwatch.client.activity import ActivityFeed

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[], Awaitable[dict[str, Any]]]
CandidateSink = Callable[[object, str], None]


class PollDriver:
    """Pulls a status candidate on a timer and hands it to the reconciler.

    Transitional states poll at ``active_interval``; ``connected``,
    ``disconnected`` and ``error`` poll at ``idle_interval``. A state change
    that switches between the two wakes the pending wait so the next poll is
    scheduled at the new interval immediately.
    """

    def __init__(
        self,
        fetch: StatusFetcher,
        sink: CandidateSink,
        *,
        active_interval: float = 2.0,
        idle_interval: float = 30.0,
        activity: ActivityFeed | None = None,
        poll_on_start: bool = True,
        initial_state: ConnectionState = ConnectionState.DISCONNECTED,
    ) -> None:
        self._fetch = fetch
        self._sink = sink
        self.active_interval = float(active_interval)
        self.idle_interval = float(idle_interval)
        self.activity = activity
        self.poll_on_start = poll_on_start
        self._state = initial_state
        self._wake = asyncio.Event()
        self._immediate = False
        self._task: asyncio.Task[None] | None = None
        self._activity_task: asyncio.Task[None] | None = None
        self.polls = 0
        self.failures = 0
        self.reschedules = 0

    def interval_for(self, state: ConnectionState) -> float:
        return self.active_interval if state in TRANSITIONAL_STATES else self.idle_interval

    @property
    def current_interval(self) -> float:
        return self.interval_for(self._state)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def notify_state(self, state: ConnectionState) -> None:
        previous_interval = self.current_interval
        self._state = state
        if self.current_interval != previous_interval:
            self.reschedules += 1
            logger.debug("poll interval now %.1fs for state %s", self.current_interval, state.value)
            self._wake.set()

    def poll_now(self) -> None:
        self._immediate = True
        self._wake.set()

    async def poll_once(self) -> bool:
        self.polls += 1
        try:
            data = await self._fetch()
        except Exception as exc:
            self.failures += 1
            logger.warning("status poll failed: %s", exc)
            return False
        self._sink(data, "poll")
        self._schedule_activity_refresh()
        return True

    def _schedule_activity_refresh(self) -> None:
        # Runs beside the poll loop so a slow log endpoint never delays the next tick.
        if self.activity is None:
            return
        if self._activity_task is not None and not self._activity_task.done():
            return
        self._activity_task = asyncio.create_task(self._refresh_activity(), name="linkwatch-activity")

    async def _refresh_activity(self) -> None:
        try:
            await self.activity.refresh()
        except Exception as exc:
            logger.debug("activity refresh failed: %s", exc)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="linkwatch-poll")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        activity_task = self._activity_task
        self._activity_task = None
        if activity_task is not None:
            activity_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await activity_task

    async def _run(self) -> None:
        if self.poll_on_start:
            await self.poll_once()
        while True:
            self._wake.clear()
            if self._immediate:
                self._immediate = False
                await self.poll_once()
                continue
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.current_interval)
            except TimeoutError:
                await self.poll_once()
            # A wake without a pending poll_now means the interval class changed.
