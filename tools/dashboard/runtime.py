from __future__ import annotations

import asyncio
import atexit
import contextlib
import threading
from typing import Any

from linkwatch.client.engine import SyncEngine
from linkwatch.core.events import ArtifactEvent, ConnectionUpdate

from .state import BridgeEvent, BridgeEventLog


class DashboardRuntime:
    """Runs one SyncEngine on a private event loop thread for the Flask bridge."""

    def __init__(self, engine: SyncEngine | None = None, max_events: int = 400, **engine_config: Any) -> None:
        self._events = BridgeEventLog(max_events=max_events)
        self._loop = asyncio.new_event_loop()
        self._started = threading.Event()
        self._thread = threading.Thread(target=self._run_loop, name="linkwatch-dashboard-loop", daemon=True)
        self._thread.start()
        self._started.wait(timeout=2.0)

        self._engine_config = engine_config
        self._engine = engine
        self._engine_guard = asyncio.Lock()
        self._attached = False
        self._closed = False
        atexit.register(self.close)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._started.set()
        self._loop.run_forever()

    def _run_coro_sync(self, coro: Any) -> Any:
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return fut.result(timeout=30.0)

    @property
    def engine(self) -> SyncEngine:
        return self._run_coro_sync(self._ensure_engine_async())

    def connection_state(self) -> dict[str, Any]:
        engine = self.engine
        return engine.current.to_dict()

    def qr(self) -> dict[str, Any]:
        engine = self.engine
        artifact = engine.artifact
        return {
            "state": engine.current.state.value,
            "handle": artifact.handle if artifact else None,
            "source": artifact.source if artifact else None,
            "image_url": engine.artifact_manager.resolve(artifact) if artifact else None,
        }

    def presentation(self) -> dict[str, Any]:
        return self.engine.view().to_dict()

    def list_activity(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.engine.activity.entries]

    def list_events(self, since: int = 0) -> list[dict[str, Any]]:
        return self._events.list_events(since)

    def ensure_connected(self) -> dict[str, Any]:
        return self._run_action("connect")

    def disconnect(self) -> dict[str, Any]:
        return self._run_action("disconnect")

    def logout(self) -> dict[str, Any]:
        return self._run_action("logout")

    def _run_action(self, action: str) -> dict[str, Any]:
        self._events.record(BridgeEvent.action(action, "requested"))
        try:
            self._run_coro_sync(self._action_async(action))
        except Exception as exc:
            self._events.record(BridgeEvent.action(action, "failed", error=str(exc)))
            raise
        return self.connection_state()

    async def _action_async(self, action: str) -> None:
        engine = await self._ensure_engine_async()
        await getattr(engine, action)()

    async def _ensure_engine_async(self) -> SyncEngine:
        async with self._engine_guard:
            if self._engine is None:
                self._engine = SyncEngine(**self._engine_config)
            if not self._attached:
                self._attached = True
                self._engine.snapshots.subscribe(self._on_update)
                self._engine.artifacts.subscribe(self._on_artifact)
                await self._engine.start()
            return self._engine

    def _on_update(self, update: ConnectionUpdate) -> None:
        if update.state_changed:
            self._events.record(BridgeEvent.from_update(update))

    def _on_artifact(self, event: ArtifactEvent) -> None:
        self._events.record(BridgeEvent.from_artifact(event))

    def close(self) -> None:
        if self._closed or not self._loop.is_running():
            return
        self._closed = True
        if self._engine is not None:
            with contextlib.suppress(Exception):
                self._run_coro_sync(self._engine.stop())
        self._loop.call_soon_threadsafe(self._loop.stop)
