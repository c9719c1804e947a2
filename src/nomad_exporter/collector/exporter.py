"""
Scrape orchestrator.

NomadExporter is a prometheus_client custom collector. Each collect()
runs one full scrape:

    leader check -> node inventory -> nodes, allocations, peers,
    self, jobs, eval, deployment

The first stage that raises CollectionError ends the scrape; what was
gathered until then is still returned, along with the latency
summaries. Scrapes are not serialized here, callers do that.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence

from prometheus_client.metrics_core import Metric

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, NomadAPIError
from nomad_exporter.collector import default_collectors
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.collector.gate import StalenessGate
from nomad_exporter.collector.inventory import fetch_nodes
from nomad_exporter.collector.latency import LatencyRecorder
from nomad_exporter.collector.sink import ScrapeSink
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import CLUSTER_LEADER, SCRAPE_GAUGES, UP, Accumulators

log = logging.getLogger(__name__)


class NomadExporter:

    def __init__(
        self,
        api: NomadAPI,
        config: Optional[ExporterConfig] = None,
        collectors: Optional[Sequence[SubCollector]] = None,
    ):
        self.api = api
        self.config = (config or ExporterConfig()).validate()
        self.accumulators = Accumulators()
        self.latency = LatencyRecorder(self.accumulators)
        self.gate = StalenessGate(api, allow_stale_reads=self.config.allow_stale_reads)
        self.collectors = list(collectors) if collectors is not None else default_collectors()
        self.last_error: Optional[CollectionError] = None

    def describe(self) -> Iterator[Metric]:
        """Catalog only. Lets the registry check names without scraping."""
        for desc in SCRAPE_GAUGES:
            yield desc.family()
        yield from self.accumulators.describe()

    def collect(self) -> Iterator[Metric]:
        yield from self.scrape()

    def scrape(self) -> List[Metric]:
        sink = ScrapeSink()
        self.last_error = None
        try:
            self._scrape(sink)
        except CollectionError as e:
            self.last_error = e
            log.error("Scrape aborted: %s", e)
        finally:
            # Latency is reported even when the scrape stopped early
            sink.extend(self.latency.collect())
        return sink.families()

    def _scrape(self, sink: ScrapeSink):
        try:
            with self.latency.time("leader"):
                is_leader = self.gate.check()
        except CollectionError:
            sink.gauge(UP, 0)
            raise

        sink.gauge(UP, 1)
        sink.gauge(CLUSTER_LEADER, 1 if is_leader else 0)

        try:
            self._run_stages(sink)
        finally:
            sink.extend(self.accumulators.client_errors.collect())

    def _run_stages(self, sink: ScrapeSink):
        inventory = fetch_nodes(self.api, self.latency, DEFAULT_QUERY_OPTIONS)

        ctx = ScrapeContext(
            api=self.api,
            config=self.config,
            inventory=inventory,
            sink=sink,
            accumulators=self.accumulators,
            latency=self.latency,
            should_read=self.gate.should_read_metrics(),
            options=DEFAULT_QUERY_OPTIONS,
        )
        if not ctx.should_read:
            log.debug("Not the leader and stale reads are off, skipping cluster-wide reads")

        for collector in self.collectors:
            if not collector.enabled(self.config):
                continue
            with self.latency.time(collector.name()):
                collector.collect(ctx)

    def probe(self) -> bool:
        """Cheap liveness check: can we reach the leader endpoint at all?"""
        try:
            leader = self.api.leader()
        except NomadAPIError as e:
            log.warning("Health probe failed: %s", e)
            return False
        log.debug("Health probe ok, leader is %s", leader)
        return True

    def close(self):
        self.api.close()
