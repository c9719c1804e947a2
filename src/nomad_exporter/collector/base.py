"""
Base sub-collector interface.

A scrape is a fixed sequence of sub-collectors (nodes, allocations,
peers, ...). Each one reads what it needs from the shared
ScrapeContext and writes into its sink. Raising CollectionError stops
the rest of the scrape.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, QueryOptions
from nomad_exporter.collector.errors import CollectionError  # noqa: F401
from nomad_exporter.collector.inventory import NodeInventory
from nomad_exporter.collector.latency import LatencyRecorder
from nomad_exporter.collector.sink import ScrapeSink
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import Accumulators

log = logging.getLogger(__name__)


@dataclass
class ScrapeContext:
    """Everything a sub-collector may touch during one scrape."""

    api: NomadAPI
    config: ExporterConfig
    inventory: NodeInventory
    sink: ScrapeSink
    accumulators: Accumulators
    latency: LatencyRecorder
    should_read: bool
    options: QueryOptions = DEFAULT_QUERY_OPTIONS

    def api_failed(self, operation: str, message: str):
        """Record a per-entity failure. The scrape carries on."""
        log.warning("%s", message)
        self.accumulators.client_errors.labels(operation).inc()


class SubCollector(ABC):
    """Interface for every stage of the scrape after the inventory."""

    @abstractmethod
    def name(self) -> str:
        """Operation name used for latency and logging."""
        ...

    @abstractmethod
    def enabled(self, config: ExporterConfig) -> bool:
        ...

    @abstractmethod
    def collect(self, ctx: ScrapeContext) -> None:
        """Run this stage. Raises CollectionError to abort the scrape."""
        ...
