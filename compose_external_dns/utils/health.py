"""
Health check module for Compose-External-DNS.

This module provides health check and metrics endpoints for monitoring the
application.
"""

import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from typing import Callable, Dict, Optional


class HealthStatus:
    """
    Outcome of the most recent synchronisation cycles.

    Written from the event loop and read from the health server thread.
    """

    def __init__(self, is_running: Optional[Callable[[], bool]] = None):
        """
        Initialize a HealthStatus.

        Args:
            is_running: Reports whether synchronisation is scheduled
        """
        self.is_running = is_running or (lambda: True)
        self._lock = threading.Lock()
        self.last_success: Optional[float] = None
        self.last_error: Optional[str] = None
        self.last_summary = None
        self.failures = 0

    def record_success(self, summary) -> None:
        with self._lock:
            self.last_success = time.time()
            self.last_error = None
            self.last_summary = summary

    def record_failure(self, error: BaseException) -> None:
        with self._lock:
            self.last_error = str(error)
            self.failures += 1

    def is_healthy(self) -> bool:
        with self._lock:
            return self.is_running() and self.last_error is None

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            summary = self.last_summary
            return {
                "running": self.is_running(),
                "last_success": self.last_success,
                "last_error": self.last_error,
                "failures": self.failures,
                "added": summary.added if summary else 0,
                "updated": summary.updated if summary else 0,
                "deleted": summary.deleted if summary else 0,
                "unchanged": summary.unchanged if summary else 0,
            }


class HealthCheckHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for health check endpoints.
    """

    status: HealthStatus = None

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger("compose-external-dns.health")
        super().__init__(*args, **kwargs)

    def do_GET(self):
        """
        Handle GET requests.
        """
        if self.path == "/health":
            self._handle_health_check()
        elif self.path == "/metrics":
            self._handle_metrics()
        else:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")

    def _handle_health_check(self):
        snapshot = self.status.snapshot()
        healthy = self.status.is_healthy()

        self.send_response(200 if healthy else 503)
        self.send_header("Content-type", "application/json")
        self.end_headers()

        response = {"status": "healthy" if healthy else "unhealthy", **snapshot}
        self.wfile.write(json.dumps(response).encode())

    def _handle_metrics(self):
        snapshot = self.status.snapshot()

        self.send_response(200)
        self.send_header("Content-type", "text/plain")
        self.end_headers()

        metrics = [
            "# HELP compose_external_dns_up Whether synchronisation is scheduled",
            "# TYPE compose_external_dns_up gauge",
            f"compose_external_dns_up {int(bool(snapshot['running']))}",
            "# HELP compose_external_dns_last_sync_success Whether the last synchronisation succeeded",
            "# TYPE compose_external_dns_last_sync_success gauge",
            f"compose_external_dns_last_sync_success {int(snapshot['last_error'] is None)}",
            "# HELP compose_external_dns_sync_failures_total Failed synchronisations",
            "# TYPE compose_external_dns_sync_failures_total counter",
            f"compose_external_dns_sync_failures_total {snapshot['failures']}",
            "# HELP compose_external_dns_entries Entries touched by the last synchronisation",
            "# TYPE compose_external_dns_entries gauge",
        ]
        for change in ("added", "updated", "deleted", "unchanged"):
            metrics.append(
                f'compose_external_dns_entries{{change="{change}"}} {snapshot[change]}'
            )

        self.wfile.write(("\n".join(metrics) + "\n").encode())

    def log_message(self, format, *args):
        """
        Override log_message to use the application logger.
        """
        self.logger.debug(format % args)


class HealthCheckServer:
    """
    HTTP server for health check endpoints.
    """

    def __init__(self, status: HealthStatus, host: str = "0.0.0.0", port: int = 8080):
        """
        Initialize a HealthCheckServer.

        Args:
            status: Status reported by the endpoints
            host: Host to bind to
            port: Port to bind to
        """
        self.status = status
        self.host = host
        self.port = port
        self.server = None
        self.thread = None
        self.logger = logging.getLogger("compose-external-dns.health")

    def start(self):
        """
        Start the health check server.
        """
        handler = type("BoundHealthCheckHandler", (HealthCheckHandler,), {"status": self.status})
        self.server = HTTPServer((self.host, self.port), handler)
        self.thread = Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        self.logger.info(f"Health check: {self.host}:{self.port}/health")

    def stop(self):
        """
        Stop the health check server.
        """
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.logger.info("Health check server stopped")
