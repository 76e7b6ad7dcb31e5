"""One-shot connection status check.

Usage examples:
  python scripts/status_check.py
  python scripts/status_check.py --api-url http://127.0.0.1:3000 --timeout 10

Environment fallbacks:
  LINKWATCH_API_URL
  LINKWATCH_API_TOKEN
  LINKWATCH_REQUEST_TIMEOUT
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from linkwatch.client.reconciler import Reconciler
from linkwatch.core.errors import LinkwatchError
from linkwatch.defaults.config import config_from_env, resolve_api_base
from linkwatch.infra.api import ApiClient


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch and reconcile one connection status snapshot.")
    parser.add_argument("--api-url", help="Backend base URL (``/api`` is appended when missing)")
    parser.add_argument("--token", help="Bearer token for the backend")
    parser.add_argument("--timeout", type=float, help="Request timeout seconds")
    parser.add_argument("--activity", action="store_true", help="Also print the recent activity log")
    return parser


async def _main_async() -> int:
    args = _build_parser().parse_args()
    defaults = config_from_env()
    api_base = resolve_api_base(args.api_url) if args.api_url else defaults["api_base"]
    token = args.token or defaults.get("api_token")
    timeout = float(args.timeout) if args.timeout is not None else float(defaults.get("request_timeout", 15.0))

    print(f"[status-check] api_base={api_base}")
    api = ApiClient(api_base, token=token, timeout=timeout)
    reconciler = Reconciler()
    try:
        update = await reconciler.process(await api.fetch_status(), "poll")
        if update is None:
            print("[status-check] FAILED: backend returned an unrecognised status payload")
            return 1
        print(json.dumps(update.snapshot.to_dict(), indent=2))
        if args.activity:
            for entry in await api.fetch_logs():
                print(json.dumps(entry, default=str))
    except LinkwatchError as exc:
        print(f"[status-check] FAILED: {exc}")
        return 1
    finally:
        await reconciler.stop()
        await api.aclose()
    return 0


def main() -> int:
    with contextlib.suppress(KeyboardInterrupt):
        return asyncio.run(_main_async())
    return 130


if __name__ == "__main__":
    raise SystemExit(main())
