"""Connection-sync engine: the one owner of every driver, timer and handle."""

from __future__ import annotations

import logging
from typing import Any

from linkwatch.client.activity import ActivityFeed
from linkwatch.client.artifacts import CodeArtifactManager
from linkwatch.client.broadcast import Broadcast
from linkwatch.client.poll_driver import PollDriver
from linkwatch.client.presentation import PresentationAdapter, PresentationView
from linkwatch.client.push_driver import PushDriver, StreamFactory
from linkwatch.client.reconciler import Reconciler
from linkwatch.core.events import ArtifactEvent, CodeArtifact, ConnectionUpdate
from linkwatch.core.snapshot import StatusSnapshot
from linkwatch.defaults.config import DEFAULT_SYNC_CONFIG, resolve_api_base
from linkwatch.infra.api import ApiClient

logger = logging.getLogger(__name__)


class SyncEngine:
    """Presents one trustworthy view of the remote account link.

    Push and poll candidates are merged by the :class:`Reconciler`; the
    artifact manager and presentation adapter hang off its output. Create one
    instance, share it between UI surfaces through its broadcasts, and tear
    everything down with a single :meth:`stop`.
    """

    def __init__(
        self,
        api: ApiClient | None = None,
        *,
        stream_factory: StreamFactory | None = None,
        **config_overrides: Any,
    ) -> None:
        self.config: dict[str, Any] = {**DEFAULT_SYNC_CONFIG, **config_overrides}
        if not self.config["api_base"]:
            self.config["api_base"] = resolve_api_base()

        self._owns_api = api is None
        self.api = api or ApiClient(
            self.config["api_base"],
            token=self.config["api_token"],
            timeout=float(self.config["request_timeout"]),
        )

        self.reconciler = Reconciler()
        self.activity = ActivityFeed(self.api, limit=int(self.config["activity_limit"]))
        self.poll = PollDriver(
            self.api.fetch_status,
            self.reconciler.submit,
            active_interval=float(self.config["poll_interval_active"]),
            idle_interval=float(self.config["poll_interval_idle"]),
            activity=self.activity,
        )
        self.push = PushDriver(
            stream_factory or self.api.open_event_stream,
            self.reconciler.submit,
            retry_delay=float(self.config["push_retry_delay"]),
        )
        self.artifact_manager = CodeArtifactManager(
            self.api.fetch_qr_image,
            refresh_interval=float(self.config["qr_refresh_interval"]),
            render_locally=bool(self.config["render_qr_locally"]),
        )
        self.presenter = PresentationAdapter(
            hint_interval=float(self.config["hint_interval"]),
            elapsed_tick=float(self.config["elapsed_tick"]),
        )

        self.reconciler.updates.subscribe(self._on_update)
        self.reconciler.updates.subscribe(self.artifact_manager.on_update)
        self.reconciler.updates.subscribe(self.presenter.on_update)
        self._started = False
        self._stopped = False

    @property
    def snapshots(self) -> Broadcast[ConnectionUpdate]:
        return self.reconciler.updates

    @property
    def artifacts(self) -> Broadcast[ArtifactEvent]:
        return self.artifact_manager.events

    @property
    def presentation(self) -> Broadcast[PresentationView]:
        return self.presenter.views

    @property
    def current(self) -> StatusSnapshot:
        return self.reconciler.current

    @property
    def artifact(self) -> CodeArtifact | None:
        return self.artifact_manager.current

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    def view(self) -> PresentationView:
        return self.presenter.view()

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        logger.info("starting sync engine against %s", self.config["api_base"])
        self.reconciler.start()
        self.poll.start()
        self.push.start()

    async def stop(self) -> None:
        """Cancel every owned task and release every owned resource, in dependency order."""
        if self._stopped:
            return
        self._stopped = True
        await self.poll.stop()
        await self.push.stop()
        await self.artifact_manager.close()
        await self.presenter.close()
        await self.reconciler.stop()
        self.activity.close()
        if self._owns_api:
            await self.api.aclose()
        logger.info("sync engine stopped")

    async def connect(self) -> None:
        await self._action("connect")

    async def disconnect(self) -> None:
        await self._action("disconnect")

    async def logout(self) -> None:
        await self._action("logout")

    async def clear_activity(self) -> None:
        await self.activity.clear()

    async def _action(self, action: str) -> None:
        logger.info("requesting %s", action)
        await self.api.send_action(action)
        # The action's effect only shows up in a later snapshot; pull one now.
        self.poll.poll_now()

    async def _on_update(self, update: ConnectionUpdate) -> None:
        self.poll.notify_state(update.snapshot.state)

    async def __aenter__(self) -> SyncEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
