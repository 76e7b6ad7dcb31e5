"""Server-sent status stream with fixed-delay reconnect."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager

from linkwatch.infra.sse import ServerSentEvent

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], AbstractAsyncContextManager[AsyncIterator[ServerSentEvent]]]
CandidateSink = Callable[[object, str], None]


class PushDriver:
    """Keeps exactly one event-stream connection open while running.

    When the stream errors or the server closes it, the connection is torn
    down and a new attempt starts after ``retry_delay`` seconds. There is no
    attempt ceiling: the backend coming back is the only exit.
    """

    def __init__(self, open_stream: StreamFactory, sink: CandidateSink, *, retry_delay: float = 2.0) -> None:
        self._open_stream = open_stream
        self._sink = sink
        self.retry_delay = float(retry_delay)
        self._task: asyncio.Task[None] | None = None
        self.active_connections = 0
        self.connect_attempts = 0
        self.events_received = 0
        self.events_dropped = 0
        self.retry_pending = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="linkwatch-push")

    async def stop(self) -> None:
        """Close the live connection and cancel a pending retry."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.retry_pending = False

    def handle_event(self, event: ServerSentEvent) -> None:
        if event.event != "message":
            logger.debug("ignoring %s event", event.event)
            return
        try:
            payload = json.loads(event.data)
        except ValueError:
            self.events_dropped += 1
            logger.debug("dropping undecodable stream event: %.80s", event.data)
            return
        self.events_received += 1
        self._sink(payload, "push")

    async def _run(self) -> None:
        while True:
            await self._connect_once()
            self.retry_pending = True
            logger.info("event stream reconnect in %.1fs", self.retry_delay, extra={"attempt": self.connect_attempts})
            await asyncio.sleep(self.retry_delay)
            self.retry_pending = False

    async def _connect_once(self) -> None:
        self.connect_attempts += 1
        try:
            async with self._open_stream() as events:
                self.active_connections += 1
                try:
                    async for event in events:
                        self.handle_event(event)
                finally:
                    self.active_connections -= 1
            logger.info("event stream closed by server")
        except Exception as exc:
            logger.warning("event stream failed: %s", exc)
