"""Lifecycle of the scannable pairing-code image tied to the ``qr_ready`` state."""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Callable

import qrcode

from linkwatch.client.broadcast import Broadcast
from linkwatch.core.events import ArtifactEvent, CodeArtifact, ConnectionUpdate
from linkwatch.core.snapshot import ConnectionState, StatusSnapshot

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[], Awaitable[tuple[bytes, str | None]]]

HANDLE_SCHEME = "artifact://"


def _data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def qr_svg_data_url(payload: str) -> str:
    """Render ``payload`` as a QR code and return it as an SVG ``data:`` URL."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    matrix = qr.get_matrix()
    size = len(matrix)
    # One rect per horizontal run of dark modules.
    runs: list[str] = []
    for y, row in enumerate(matrix):
        x = 0
        while x < size:
            if not row[x]:
                x += 1
                continue
            start = x
            while x < size and row[x]:
                x += 1
            runs.append(f"<rect x='{start}' y='{y}' width='{x - start}' height='1'/>")
    svg = (
        f"<svg xmlns='http://www.w3.org/2000/svg' viewBox='0 0 {size} {size}' shape-rendering='crispEdges'>"
        f"<rect width='{size}' height='{size}' fill='#fff'/>"
        f"<g fill='#000'>{''.join(runs)}</g></svg>"
    )
    return _data_url(svg.encode("utf-8"), "image/svg+xml")


class ArtifactStore:
    """Fetched image bytes addressable through ``artifact://`` handles."""

    def __init__(self) -> None:
        self._items: dict[str, tuple[bytes, str | None]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, handle: object) -> bool:
        return handle in self._items

    def put(self, data: bytes, content_type: str | None = None) -> str:
        handle = f"{HANDLE_SCHEME}{uuid.uuid4().hex}"
        self._items[handle] = (bytes(data), content_type)
        return handle

    def get(self, handle: str) -> tuple[bytes, str | None] | None:
        return self._items.get(handle)

    def release(self, handle: str) -> bool:
        return self._items.pop(handle, None) is not None

    def data_url(self, handle: str) -> str | None:
        item = self._items.get(handle)
        if item is None:
            return None
        data, content_type = item
        return _data_url(data, content_type or "image/png")


def _snapshot_key(snapshot: StatusSnapshot) -> tuple[str, str | None]:
    return (snapshot.state.value, snapshot.code_payload)


class CodeArtifactManager:
    """Issues at most one live code artifact and releases it on every replacement or state exit.

    Inline ``data:`` payloads and direct URLs are used as-is. Anything else is
    treated as an opaque reference: the image is fetched, stored behind a
    local handle and re-fetched every ``refresh_interval`` seconds while the
    state stays ``qr_ready``, ahead of the remote code's expiry.
    """

    def __init__(
        self,
        fetch_image: ImageFetcher,
        *,
        refresh_interval: float = 55.0,
        render_locally: bool = False,
        store: ArtifactStore | None = None,
    ) -> None:
        self._fetch_image = fetch_image
        self.refresh_interval = float(refresh_interval)
        self.render_locally = render_locally
        self.store = store or ArtifactStore()
        self.events: Broadcast[ArtifactEvent] = Broadcast("artifacts")
        self._current: CodeArtifact | None = None
        self._key: tuple[str, str | None] | None = None
        self._generation = 0
        self._refresh_task: asyncio.Task[None] | None = None
        self.issue_count = 0
        self.release_count = 0
        self.fetch_failures = 0
        self._closed = False

    @property
    def current(self) -> CodeArtifact | None:
        return self._current

    @property
    def live_count(self) -> int:
        return 0 if self._current is None else 1

    def resolve(self, artifact: CodeArtifact | None = None) -> str | None:
        """Return a URL a browser can display for ``artifact`` (default: the current one)."""
        artifact = artifact or self._current
        if artifact is None:
            return None
        if artifact.handle.startswith(HANDLE_SCHEME):
            return self.store.data_url(artifact.handle)
        return artifact.handle

    async def on_update(self, update: ConnectionUpdate) -> None:
        if self._closed:
            return
        snapshot = update.snapshot
        if snapshot.state is not ConnectionState.QR_READY:
            if self._key is not None or self._current is not None:
                await self._leave()
            return

        key = _snapshot_key(snapshot)
        if key == self._key:
            return
        self._key = key
        self._generation += 1
        self._cancel_refresh()

        payload = snapshot.code_payload
        if payload and payload.startswith("data:"):
            await self._issue(CodeArtifact(handle=payload, snapshot_key=key, source="inline"))
        elif payload and payload.startswith(("http://", "https://")):
            await self._issue(CodeArtifact(handle=payload, snapshot_key=key, source="url"))
        elif payload and self.render_locally:
            rendered = qr_svg_data_url(payload)
            await self._issue(
                CodeArtifact(handle=rendered, snapshot_key=key, source="rendered", content_type="image/svg+xml")
            )
        else:
            generation = self._generation
            self._refresh_task = asyncio.create_task(
                self._refresh_loop(key, generation), name="linkwatch-qr-refresh"
            )

    async def fetch_and_issue(self, key: tuple[str, str | None], generation: int) -> bool:
        try:
            data, content_type = await self._fetch_image()
        except Exception as exc:
            self.fetch_failures += 1
            logger.warning("code image fetch failed: %s", exc)
            return False
        if generation != self._generation or self._key != key:
            logger.debug("discarding code image fetched for a superseded snapshot")
            return False
        handle = self.store.put(data, content_type)
        artifact = CodeArtifact(handle=handle, snapshot_key=key, source="fetched", content_type=content_type)
        try:
            return await self._issue(artifact, generation=generation)
        except BaseException:
            # Cancelled mid-issue by a newer snapshot; the stored bytes belong to no one.
            if self._current is not artifact:
                self.store.release(handle)
            raise

    async def close(self) -> None:
        self._closed = True
        task = self._refresh_task
        self._refresh_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._key = None
        self._generation += 1
        await self._release_current()
        self.events.close()

    async def _refresh_loop(self, key: tuple[str, str | None], generation: int) -> None:
        while generation == self._generation:
            await self.fetch_and_issue(key, generation)
            await asyncio.sleep(self.refresh_interval)

    def _cancel_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def _leave(self) -> None:
        self._key = None
        self._generation += 1
        self._cancel_refresh()
        await self._release_current()

    async def _issue(self, artifact: CodeArtifact, generation: int | None = None) -> bool:
        await self._release_current()
        if generation is not None and generation != self._generation:
            # Superseded while the previous artifact was being released.
            self.store.release(artifact.handle)
            return False
        self._current = artifact
        self.issue_count += 1
        await self.events.publish(ArtifactEvent(kind="issued", artifact=artifact))
        return True

    async def _release_current(self) -> None:
        artifact = self._current
        if artifact is None:
            return
        self._current = None
        if artifact.handle.startswith(HANDLE_SCHEME):
            self.store.release(artifact.handle)
        self.release_count += 1
        await self.events.publish(ArtifactEvent(kind="released", artifact=artifact))
