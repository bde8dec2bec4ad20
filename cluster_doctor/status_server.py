"""Read-only HTTP status surface for the doctor."""

from __future__ import annotations

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Dict
from urllib.parse import parse_qs, urlsplit
import json
import logging

logger = logging.getLogger(__name__)

Provider = Callable[..., object]


class StatusHandler(BaseHTTPRequestHandler):
    """HTTP handler that serves cluster status, recent actions and health JSON."""

    def do_GET(self) -> None:  # noqa: N802
        url = urlsplit(self.path)
        routes: Dict[str, Provider] = self.server.routes  # type: ignore[attr-defined]
        provider = routes.get(url.path.rstrip("/") or "/")
        if provider is None:
            self._send(404, {"error": "not found"})
            return

        query = parse_qs(url.query)
        if url.path.startswith("/api/actions") and "limit" in query:
            try:
                limit = int(query["limit"][0])
            except ValueError:
                self._send(400, {"error": "limit must be an integer"})
                return
            self._send(200, provider(limit))
            return

        self._send(200, provider())

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(204)
        self._cors_headers()
        self.end_headers()

    def _send(self, status: int, payload: object) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self._cors_headers()
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, OPTIONS")

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("status_server %s", format % args)


class StatusServer(ThreadingHTTPServer):
    """HTTP server wrapper exposing status, actions and health callbacks."""

    daemon_threads = True

    def __init__(
        self,
        host: str,
        port: int,
        get_status: Callable[[], Dict[str, object]],
        get_actions: Callable[..., list],
        get_health: Callable[[], Dict[str, object]],
    ) -> None:
        self.routes: Dict[str, Provider] = {
            "/api/status": get_status,
            "/api/actions": get_actions,
            "/health": get_health,
            "/health/live": get_health,
            "/health/ready": get_health,
        }
        super().__init__((host, port), StatusHandler)
