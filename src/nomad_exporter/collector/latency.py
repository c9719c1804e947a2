"""
Latency instrumentation for control-plane calls.

    with latency.time("fetch_nodes"):
        nodes = api.list_nodes()

Durations go into summaries that live for the whole process; a failed
call is still timed.
"""

from __future__ import annotations

from typing import Iterator

from prometheus_client.metrics_core import Metric

from nomad_exporter.metrics import Accumulators


class LatencyRecorder:

    def __init__(self, accumulators: Accumulators):
        self._api = accumulators.api_latency
        self._node = accumulators.api_node_latency

    def time(self, query: str):
        return self._api.labels(query).time()

    def time_node(self, node: str, query: str):
        return self._node.labels(query, node).time()

    def collect(self) -> Iterator[Metric]:
        yield from self._api.collect()
        yield from self._node.collect()
