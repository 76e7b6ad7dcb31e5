"""Latest-value broadcast used for every read-only stream the engine exposes."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], Awaitable[None] | None]

_CLOSED = object()


class Broadcast(Generic[T]):
    """Fan a sequence of immutable values out to callbacks and async iterators.

    Callbacks run in subscription order inside :meth:`publish`; a failing
    callback is logged and skipped so one consumer can never stop delivery
    to the others.
    """

    def __init__(self, name: str, initial: T | None = None) -> None:
        self.name = name
        self._latest: T | None = initial
        self._callbacks: list[Subscriber[T]] = []
        self._queues: list[asyncio.Queue[object]] = []
        self._closed = False

    @property
    def latest(self) -> T | None:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)

    def subscribe(self, callback: Subscriber[T]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    async def publish(self, value: T) -> None:
        if self._closed:
            logger.debug("publish on closed broadcast %s ignored", self.name)
            return
        self._latest = value
        for callback in list(self._callbacks):
            try:
                result = callback(value)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("subscriber of %s failed: %s", self.name, exc, exc_info=True)
        for queue in list(self._queues):
            queue.put_nowait(value)

    async def stream(self, *, replay: bool = True) -> AsyncIterator[T]:
        """Iterate published values until the broadcast is closed."""
        queue: asyncio.Queue[object] = asyncio.Queue()
        if replay and self._latest is not None:
            queue.put_nowait(self._latest)
        if self._closed:
            queue.put_nowait(_CLOSED)
        self._queues.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item  # type: ignore[misc]
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._callbacks.clear()
        for queue in list(self._queues):
            queue.put_nowait(_CLOSED)
