# ruff: noqa: E402
"""Live connection watcher: prints every reconciled snapshot and shows pairing codes.

Usage:
    python examples/watch_connection.py

Optional env:
    LINKWATCH_API_URL=http://127.0.0.1:3000
    LINKWATCH_API_TOKEN=secret
    LINKWATCH_AUTO_START=1
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import qrcode

from linkwatch.client.engine import SyncEngine
from linkwatch.core.errors import ActionError
from linkwatch.core.events import ArtifactEvent, ConnectionUpdate
from linkwatch.core.snapshot import ConnectionState
from linkwatch.defaults.config import config_from_env
from linkwatch.infra.logger import get_logger


def _print_qr_terminal(qr_text: str) -> None:
    print("\n=== QR TERMINAL ===")
    qr = qrcode.QRCode(border=1)
    qr.add_data(qr_text)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


async def main() -> None:
    get_logger("linkwatch")
    engine = SyncEngine(**config_from_env())

    async def _on_update(update: ConnectionUpdate) -> None:
        snapshot = update.snapshot
        line = f"[{update.source}] status={snapshot.state.value} messages={snapshot.message_count}"
        if snapshot.progress_text:
            line += f" progress={snapshot.progress_percent}% ({snapshot.progress_text})"
        if snapshot.account:
            line += f" account={snapshot.account.display_name} {snapshot.account.phone_identifier}"
        if snapshot.error_detail:
            line += f" error={snapshot.error_detail}"
        print(line)
        payload = snapshot.code_payload
        if (
            update.state_changed
            and snapshot.state is ConnectionState.QR_READY
            and payload
            and not payload.startswith(("data:", "http://", "https://"))
        ):
            _print_qr_terminal(payload)

    async def _on_artifact(event: ArtifactEvent) -> None:
        handle = event.artifact.handle
        shown = handle if len(handle) <= 80 else f"{handle[:77]}..."
        print(f"[artifact] {event.kind} source={event.artifact.source} handle={shown}")

    engine.snapshots.subscribe(_on_update)
    engine.artifacts.subscribe(_on_artifact)

    async with engine:
        if os.getenv("LINKWATCH_AUTO_START", "0") not in {"0", "false", "False", ""}:
            try:
                await engine.connect()
            except ActionError as exc:
                print(f"[action] {exc}")
        print("Watching connection state. Ctrl+C to stop.")
        while True:
            await asyncio.sleep(1)


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
