"""Server-side state: raft peers, the agent's own raft stats, job count."""

from __future__ import annotations

import logging
from typing import Optional

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import CLUSTER_SERVERS, JOBS_TOTAL, RAFT_FIELDS

log = logging.getLogger(__name__)

# Spellings Go's strconv.ParseBool accepts; Nomad renders stats with it
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(value: Optional[str]) -> Optional[bool]:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def parse_float(value: Optional[str]) -> Optional[float]:
    """Strict decimal parse: no padding or digit separators, unlike float()."""
    if value is None or value != value.strip() or "_" in value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class PeerCollector(SubCollector):

    def name(self) -> str:
        return "peers"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.peer_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        if not ctx.should_read:
            return
        try:
            peers = ctx.api.peers()
        except NomadAPIError as e:
            raise CollectionError("peers", "failed to get peer metrics", e) from e
        ctx.sink.gauge(CLUSTER_SERVERS, len(peers))


class SelfCollector(SubCollector):
    """Raft stats of the agent we talk to. Runs on followers too."""

    def name(self) -> str:
        return "self"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.serf_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        try:
            agent = ctx.api.agent_self()
        except NomadAPIError as e:
            raise CollectionError("self", "failed to get self metrics", e) from e

        if parse_bool(agent.stat("nomad", "server")) is not True:
            raise CollectionError("self", "the queried agent is not a server")

        try:
            datacenter = ctx.api.agent_datacenter()
        except NomadAPIError as e:
            raise CollectionError("self", "unable to fetch the datacenter", e) from e
        try:
            node_name = ctx.api.agent_node_name()
        except NomadAPIError as e:
            raise CollectionError("self", "unable to fetch the node name", e) from e

        for key, desc in RAFT_FIELDS:
            value = parse_float(agent.stat("raft", key))
            if value is None:
                log.debug("Raft stat %s is not numeric: %r", key, agent.stat("raft", key))
                continue
            ctx.sink.gauge(desc, value, datacenter, node_name)


class JobCollector(SubCollector):

    def name(self) -> str:
        return "jobs"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.job_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        if not ctx.should_read:
            return
        try:
            jobs = ctx.api.list_jobs(ctx.options)
        except NomadAPIError as e:
            raise CollectionError("jobs", "could not get jobs", e) from e
        log.debug("Collected job metrics for %d jobs", len(jobs))
        ctx.sink.gauge(JOBS_TOTAL, len(jobs))
