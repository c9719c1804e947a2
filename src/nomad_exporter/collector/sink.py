"""Per-scrape output stream. Written from many threads at once."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from nomad_exporter.metrics import MetricDesc


class ScrapeSink:

    def __init__(self):
        self._lock = threading.Lock()
        self._gauges: Dict[str, GaugeMetricFamily] = {}
        self._order: List[Metric] = []

    def gauge(self, desc: MetricDesc, value: float, *label_values: str):
        if len(label_values) != len(desc.labels):
            raise ValueError(
                f"{desc.name} takes {len(desc.labels)} labels, got {len(label_values)}"
            )
        with self._lock:
            family = self._gauges.get(desc.name)
            if family is None:
                family = desc.family()
                self._gauges[desc.name] = family
                self._order.append(family)
            family.add_metric(list(label_values), float(value))

    def extend(self, metrics: Iterable[Metric]):
        """Append already-built families, e.g. a flushed accumulator."""
        metrics = list(metrics)
        with self._lock:
            self._order.extend(metrics)

    def families(self) -> List[Metric]:
        with self._lock:
            return list(self._order)
