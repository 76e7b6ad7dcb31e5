"""Serialized merge of push and poll candidates into one canonical snapshot stream.

Candidates arrive from two independent transports with no ordering metadata.
Every candidate goes through the same four steps, one at a time, in arrival
order:

1. the state must be one of :class:`ConnectionState`, otherwise the candidate
   is dropped;
2. a zero, absent or lower ``message_count`` never overwrites the held count
   unless the candidate is ``disconnected``, and an ``error`` candidate without
   an account keeps the linked account;
3. fields that are not valid for the candidate's state are cleared;
4. the result replaces the canonical snapshot and is broadcast.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging

from linkwatch.client.broadcast import Broadcast
from linkwatch.core.errors import MalformedSnapshotError
from linkwatch.core.events import CandidateSource, ConnectionUpdate
from linkwatch.core.snapshot import ConnectionState, StatusSnapshot, parse_candidate

logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(self, initial: StatusSnapshot | None = None) -> None:
        self._current = (initial or StatusSnapshot()).scoped()
        self.updates: Broadcast[ConnectionUpdate] = Broadcast("snapshots")
        self._queue: asyncio.Queue[tuple[object, CandidateSource]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self.accepted = 0
        self.rejected = 0
        self.carried_forward = 0

    @property
    def current(self) -> StatusSnapshot:
        return self._current

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def merge(self, raw: object) -> StatusSnapshot:
        """Apply validation, anti-regression and field scoping without publishing."""
        candidate = parse_candidate(raw)
        held = self._current
        if (
            candidate.message_count < held.message_count
            and candidate.state is not ConnectionState.DISCONNECTED
        ):
            candidate = dataclasses.replace(candidate, message_count=held.message_count)
            self.carried_forward += 1
        if (
            candidate.account is None
            and held.account is not None
            and candidate.state is ConnectionState.ERROR
        ):
            candidate = dataclasses.replace(candidate, account=held.account)
        return candidate.scoped()

    async def process(self, raw: object, source: CandidateSource = "manual") -> ConnectionUpdate | None:
        try:
            snapshot = self.merge(raw)
        except MalformedSnapshotError as exc:
            self.rejected += 1
            logger.warning("dropped %s candidate: %s", source, exc, extra={"source": source})
            return None

        previous = self._current
        self._current = snapshot
        self.accepted += 1
        if snapshot.state is not previous.state:
            logger.info(
                "connection state %s -> %s (%s)",
                previous.state.value,
                snapshot.state.value,
                source,
                extra={"source": source, "state": snapshot.state.value},
            )
        update = ConnectionUpdate(snapshot=snapshot, previous=previous, source=source)
        await self.updates.publish(update)
        return update

    def submit(self, raw: object, source: CandidateSource) -> None:
        """Queue a candidate for the worker. Safe to call from any task on the loop."""
        self._queue.put_nowait((raw, source))

    async def drain(self) -> None:
        """Wait until every queued candidate has been processed."""
        await self._queue.join()

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="linkwatch-reconciler")

    async def stop(self) -> None:
        worker = self._worker
        self._worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        self.updates.close()

    async def _run(self) -> None:
        while True:
            raw, source = await self._queue.get()
            try:
                await self.process(raw, source)
            except Exception as exc:  # pragma: no cover - process already isolates subscribers
                logger.error("reconciler failed on %s candidate: %s", source, exc, exc_info=True)
            finally:
                self._queue.task_done()
