"""
Inbound HTTP interface for silent-client.

Routes:
    POST /heartbeat   presence signal from a client beacon
    GET  /status      committed state and real-client liveness
    GET  /beacon.js   browser beacon script
    GET  /health      process health
    GET  /            landing page that runs the beacon

Uses Python stdlib http.server on a background thread; handlers only call
HeartbeatTracker.record_signal() and read controller state.
"""

import json
import threading
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from typing import Optional, Type
from urllib.parse import urlparse

from .controller import TransitionController
from .logging_config import get_logger
from .settings import DEFAULT_BEACON_INTERVAL, DEFAULT_HOST, DEFAULT_PORT, HEARTBEAT_PATH
from .states import AGENT_HEADER, AGENT_ORIGIN, CLIENT_ORIGIN
from .web_templates import get_beacon_js, get_index_html

log = get_logger("web")


def signal_origin(headers, body: dict) -> str:
    """Work out who sent a heartbeat from its headers and JSON body."""
    if headers.get(AGENT_HEADER):
        return AGENT_ORIGIN
    origin = body.get("origin") if isinstance(body, dict) else None
    if origin == AGENT_ORIGIN:
        return AGENT_ORIGIN
    return CLIENT_ORIGIN


class SilentClientHandler(BaseHTTPRequestHandler):
    """HTTP request handler bound to one TransitionController.

    Use handler_for() to get a subclass with the controller attached.
    """

    controller: Optional[TransitionController] = None
    beacon_interval: float = DEFAULT_BEACON_INTERVAL

    def do_GET(self) -> None:
        """Handle GET requests."""
        path = urlparse(self.path).path

        if path == "/status":
            self._send_json(self.controller.status())
        elif path == "/health":
            self._send_json({"ok": True, "loops": self.controller.loop_count})
        elif path == "/beacon.js":
            self._send_text(
                get_beacon_js(HEARTBEAT_PATH, self.beacon_interval),
                "application/javascript",
            )
        elif path == "/" or path == "/index.html":
            self._send_text(get_index_html(), "text/html; charset=utf-8")
        else:
            self._send_json({"success": False, "error": "Not Found"}, status=404)

    def do_POST(self) -> None:
        """Handle POST requests."""
        path = urlparse(self.path).path
        if path != HEARTBEAT_PATH:
            self._send_json({"success": False, "error": "Not Found"}, status=404)
            return

        body = self._read_json_body()
        if body is None:
            return  # Error already sent

        try:
            self.controller.tracker.record_signal(signal_origin(self.headers, body))
            self._send_json({"success": True, "ghosting": self.controller.is_ghosting})
        except Exception as e:
            self._send_json({"success": False, "error": f"Internal error: {e}"}, status=500)

    def _read_json_body(self) -> Optional[dict]:
        """Read and parse JSON body from request. Returns None on error."""
        try:
            content_length = int(self.headers.get("Content-Length", 0) or 0)
        except ValueError:
            content_length = -1
        if content_length < 0:
            self._send_json({"success": False, "error": "Invalid Content-Length"}, status=400)
            return None
        if content_length == 0:
            return {}
        try:
            raw = self.rfile.read(content_length)
            data = json.loads(raw.decode("utf-8")) if raw.strip() else {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._send_json({"success": False, "error": f"Invalid JSON body: {e}"}, status=400)
            return None
        return data if isinstance(data, dict) else {}

    def _send_json(self, data: dict, status: int = 200) -> None:
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(body)

    def _send_text(self, text: str, content_type: str) -> None:
        body = text.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        """Heartbeats and status polls are too chatty to log."""
        if args and len(args) >= 2:
            status = str(args[1])
            request_line = str(args[0])
            if status.startswith("2") and (HEARTBEAT_PATH in request_line or "/status" in request_line):
                return
        log.debug(format % args if args else format)


def handler_for(
    controller: TransitionController,
    beacon_interval: float = DEFAULT_BEACON_INTERVAL,
) -> Type[SilentClientHandler]:
    """Create a handler class bound to controller."""
    return type(
        "BoundSilentClientHandler",
        (SilentClientHandler,),
        {"controller": controller, "beacon_interval": beacon_interval},
    )


class WebServer:
    """Runs the HTTP interface on a daemon thread."""

    def __init__(
        self,
        controller: TransitionController,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        beacon_interval: float = DEFAULT_BEACON_INTERVAL,
    ):
        self.controller = controller
        self.host = host
        self.port = port
        self.beacon_interval = beacon_interval
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Optional[tuple]:
        return self._server.server_address if self._server else None

    def start(self) -> None:
        """Bind and start serving (idempotent).

        Raises:
            OSError: If the port can't be bound
        """
        if self._thread is not None and self._thread.is_alive():
            return
        self._server = ThreadingHTTPServer(
            (self.host, self.port), handler_for(self.controller, self.beacon_interval)
        )
        self._server.daemon_threads = True
        bound_host, bound_port = self._server.server_address[:2]
        self.port = bound_port
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="SilentClientWebServer", daemon=True
        )
        self._thread.start()
        log.info(f"Listening on http://{bound_host}:{bound_port}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._server = None
        self._thread = None

