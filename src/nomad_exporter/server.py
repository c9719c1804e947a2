"""
HTTP exposition for the exporter.

    /metrics  one scrape of the cluster, text or OpenMetrics format
    /health   200 if the leader endpoint answers, 503 otherwise

Scrapes are serialized: a second /metrics request waits for the one
in flight instead of fanning out against the cluster in parallel.
"""

from __future__ import annotations

import logging
import threading
from http.server import ThreadingHTTPServer
from typing import Iterator

from prometheus_client import CollectorRegistry, MetricsHandler
from prometheus_client.metrics_core import Metric

from nomad_exporter.collector.exporter import NomadExporter

log = logging.getLogger(__name__)

INDEX_PAGE = b"""<html>
<head><title>Nomad Exporter</title></head>
<body>
<h1>Nomad Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
<p><a href="/health">Health</a></p>
</body>
</html>
"""


class SerializedCollector:
    """Registry adapter that lets only one scrape run at a time."""

    def __init__(self, exporter: NomadExporter):
        self._exporter = exporter
        self._lock = threading.Lock()

    def describe(self) -> Iterator[Metric]:
        return self._exporter.describe()

    def collect(self) -> Iterator[Metric]:
        with self._lock:
            families = self._exporter.scrape()
        return iter(families)


def build_registry(exporter: NomadExporter) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(SerializedCollector(exporter))
    return registry


class _ExporterHandler(MetricsHandler):
    """MetricsHandler for /metrics (OpenMetrics negotiation, gzip, name[]
    filtering) with /health and an index page alongside."""

    exporter: NomadExporter

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path == "/metrics":
            super().do_GET()
        elif path == "/health":
            if self.exporter.probe():
                self._send(200, b"OK\n", "text/plain")
            else:
                self._send(503, b"Nomad leader unreachable\n", "text/plain")
        elif path == "/":
            self._send(200, INDEX_PAGE, "text/html")
        else:
            self._send(404, b"not found\n", "text/plain")

    def _send(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


def make_server(exporter: NomadExporter, host: str = "0.0.0.0", port: int = 9172) -> ThreadingHTTPServer:
    handler = type("ExporterHandler", (_ExporterHandler,), {
        "exporter": exporter,
        "registry": build_registry(exporter),
    })
    return ThreadingHTTPServer((host, port), handler)


def serve_forever(exporter: NomadExporter, host: str = "0.0.0.0", port: int = 9172):
    server = make_server(exporter, host, port)
    log.info("Listening on http://%s:%d/metrics", host, server.server_address[1])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("Shutting down")
    finally:
        server.server_close()
        exporter.close()
