"""
Fake Nomad HTTP API for testing without a cluster.

    python -m nomad_exporter.mock.fake_nomad_server
    nomad-exporter --address http://127.0.0.1:4646 show
"""

from __future__ import annotations

import json
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from nomad_exporter.mock.generator import MockCluster


def _routes(cluster: MockCluster) -> List[Tuple[re.Pattern, Callable[..., Any]]]:
    return [
        (re.compile(r"^/v1/status/leader$"), lambda q: cluster.leader_address),
        (re.compile(r"^/v1/status/peers$"), lambda q: cluster.servers),
        (re.compile(r"^/v1/nodes$"), lambda q: cluster.node_list()),
        (re.compile(r"^/v1/node/([^/]+)$"), lambda q, node_id: cluster.node(node_id)),
        (re.compile(r"^/v1/node/([^/]+)/allocations$"), lambda q, node_id: cluster.node_allocations(node_id)),
        (re.compile(r"^/v1/client/stats$"), lambda q: cluster.node_stats(q.get("node_id", [""])[0])),
        (re.compile(r"^/v1/allocations$"), lambda q: cluster.allocation_list()),
        (re.compile(r"^/v1/allocation/([^/]+)$"), lambda q, alloc_id: cluster.allocation(alloc_id)),
        (re.compile(r"^/v1/client/allocation/([^/]+)/stats$"), lambda q, alloc_id: cluster.allocation_stats(alloc_id)),
        (re.compile(r"^/v1/evaluations$"), lambda q: cluster.evaluations),
        (re.compile(r"^/v1/deployments$"), lambda q: cluster.deployments),
        (re.compile(r"^/v1/jobs$"), lambda q: cluster.job_list()),
        (re.compile(r"^/v1/agent/self$"), lambda q: cluster.agent_self()),
    ]


class _NomadHandler(BaseHTTPRequestHandler):
    cluster: MockCluster = MockCluster()
    # Query string of the most recent request, for tests to inspect
    last_query: Dict[str, List[str]] = {}
    last_headers: Dict[str, str] = {}

    def do_GET(self):
        parts = urlsplit(self.path)
        query = parse_qs(parts.query, keep_blank_values=True)
        type(self).last_query = query
        type(self).last_headers = dict(self.headers.items())

        for pattern, handler in _routes(self.cluster):
            match = pattern.match(parts.path)
            if not match:
                continue
            payload = handler(query, *match.groups())
            if payload is None:
                self._send(404, b"not found", "text/plain")
            else:
                self._send(200, json.dumps(payload).encode(), "application/json")
            return

        self._send(404, b"no such endpoint", "text/plain")

    def _send(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


def make_server(
    host: str = "127.0.0.1",
    port: int = 4646,
    cluster: Optional[MockCluster] = None,
) -> ThreadingHTTPServer:
    """Build a server bound to a fresh handler class, so each instance has its own cluster."""
    handler = type("NomadHandler", (_NomadHandler,), {
        "cluster": cluster or MockCluster(),
        "last_query": {},
        "last_headers": {},
    })
    return ThreadingHTTPServer((host, port), handler)


def start_in_thread(server: ThreadingHTTPServer) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


def run_fake_server(host: str = "127.0.0.1", port: int = 4646):
    server = make_server(host, port)
    print(f"Fake Nomad API running at http://{host}:{port}/v1/")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
