from __future__ import annotations

import argparse
from typing import Any, Protocol

from flask import Flask, jsonify, request

from linkwatch.core.errors import ActionError
from linkwatch.defaults.config import config_from_env
from linkwatch.infra.logger import get_logger

from .runtime import DashboardRuntime


class DashboardRuntimeLike(Protocol):
    def connection_state(self) -> dict[str, Any]: ...

    def qr(self) -> dict[str, Any]: ...

    def presentation(self) -> dict[str, Any]: ...

    def list_activity(self) -> list[dict[str, Any]]: ...

    def list_events(self, since: int = 0) -> list[dict[str, Any]]: ...

    def ensure_connected(self) -> dict[str, Any]: ...

    def disconnect(self) -> dict[str, Any]: ...

    def logout(self) -> dict[str, Any]: ...


def create_app(*, testing: bool = False, runtime: DashboardRuntimeLike | None = None) -> Flask:
    app = Flask(__name__)
    app.config["TESTING"] = testing
    dashboard_runtime = runtime or DashboardRuntime(**config_from_env())
    app.config["DASHBOARD_RUNTIME"] = dashboard_runtime

    def _action(name: str, call: Any):
        try:
            state = call()
        except ActionError as exc:
            return jsonify({"error": str(exc)}), 502
        except Exception as exc:
            return jsonify({"error": f"Failed to {name}: {exc}"}), 500
        return jsonify(state)

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok", "connection": dashboard_runtime.connection_state()})

    @app.get("/api/connection")
    def connection():
        return jsonify(dashboard_runtime.connection_state())

    @app.get("/api/qr")
    def qr():
        return jsonify(dashboard_runtime.qr())

    @app.get("/api/presentation")
    def presentation():
        return jsonify(dashboard_runtime.presentation())

    @app.get("/api/activity")
    def activity():
        return jsonify({"activity": dashboard_runtime.list_activity()})

    @app.get("/api/events")
    def events():
        since = request.args.get("since", default=0, type=int)
        return jsonify({"events": dashboard_runtime.list_events(since)})

    @app.post("/api/connect")
    def connect():
        return _action("connect", dashboard_runtime.ensure_connected)

    @app.post("/api/disconnect")
    def disconnect():
        return _action("disconnect", dashboard_runtime.disconnect)

    @app.post("/api/logout")
    def logout():
        return _action("logout", dashboard_runtime.logout)

    return app


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the linkwatch connection bridge.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", default=8080, type=int)
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    get_logger("linkwatch")
    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
