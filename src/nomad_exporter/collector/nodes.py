"""
Per-node metrics.

Every node in the inventory gets a presence and a readiness gauge.
Ready, supported nodes additionally get capacity/allocated/used
gauges, which cost three API calls each, so those fetches go through
a bounded pool.
"""

from __future__ import annotations

import logging
import math

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.collector.base import ScrapeContext, SubCollector
from nomad_exporter.collector.pool import BoundedExecutor
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import (
    MIB,
    NODE_ALLOCATED_CPU,
    NODE_ALLOCATED_MEMORY,
    NODE_INFO,
    NODE_RESOURCE_CPU,
    NODE_RESOURCE_DISK,
    NODE_RESOURCE_IOPS,
    NODE_RESOURCE_MEMORY,
    NODE_USED_CPU,
    NODE_USED_MEMORY,
    SERF_LAN_MEMBERS,
    SERF_LAN_MEMBER_STATUS,
)
from nomad_exporter.models import CLIENT_STATUS_RUNNING, NodeStub

log = logging.getLogger(__name__)


def _bool_label(value: bool) -> str:
    return "true" if value else "false"


class NodeCollector(SubCollector):

    def name(self) -> str:
        return "nodes"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.node_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        ctx.sink.gauge(SERF_LAN_MEMBERS, len(ctx.inventory))
        log.debug("Node list has %d nodes", len(ctx.inventory))

        fetch_detail = ctx.should_read and ctx.config.allocation_stats_metrics

        with BoundedExecutor(ctx.config.concurrency, name="node-detail") as pool:
            for node in ctx.inventory.values():
                # Baseline gauges never wait on the pool
                self._emit_baseline(ctx, node)

                if not fetch_detail:
                    continue
                if not ctx.inventory.is_ready(node.id):
                    log.debug("Skipping node detail for %s because it is %s", node.name, node.status)
                    continue
                if not ctx.inventory.is_supported(node.id):
                    continue
                pool.submit(self._collect_detail, ctx, node)

        log.debug("Done waiting for node metrics")

    def _emit_baseline(self, ctx: ScrapeContext, node: NodeStub):
        drain = _bool_label(node.drain)
        ctx.sink.gauge(
            NODE_INFO, 1,
            node.node_class, node.datacenter, drain, node.name,
            node.id, node.scheduling_eligibility, node.status, node.version,
        )
        ready = 1 if ctx.inventory.is_ready(node.id) else 0
        ctx.sink.gauge(
            SERF_LAN_MEMBER_STATUS, ready,
            node.node_class, node.datacenter, node.name, node.id, drain,
        )

    def _collect_detail(self, ctx: ScrapeContext, node: NodeStub):
        log.debug("Fetching node %s", node.name)
        try:
            with ctx.latency.time_node(node.name, "fetch_node"):
                info = ctx.api.node_info(node.id, ctx.options)
        except NomadAPIError as e:
            ctx.api_failed("fetch_node", f"Failed to get node {node.name} info: {e}")
            return

        try:
            with ctx.latency.time_node(info.name, "get_running_allocs"):
                allocs = ctx.api.node_allocations(info.id, ctx.options)
        except NomadAPIError as e:
            ctx.api_failed("get_running_allocs", f"Failed to get node {info.name} running allocs: {e}")
            return

        running = [a for a in allocs if a.client_status == CLIENT_STATUS_RUNNING]
        allocated_cpu = sum(a.resources.cpu for a in running)
        allocated_memory = sum(a.resources.memory_mb for a in running)

        labels = (info.name, info.datacenter)
        ctx.sink.gauge(NODE_RESOURCE_MEMORY, info.resources.memory_mb * MIB, *labels)
        ctx.sink.gauge(NODE_ALLOCATED_MEMORY, allocated_memory * MIB, *labels)
        ctx.sink.gauge(NODE_ALLOCATED_CPU, allocated_cpu, *labels)
        ctx.sink.gauge(NODE_RESOURCE_CPU, info.resources.cpu, *labels)
        ctx.sink.gauge(NODE_RESOURCE_IOPS, info.resources.iops, *labels)
        ctx.sink.gauge(NODE_RESOURCE_DISK, info.resources.disk_mb * MIB, *labels)

        try:
            with ctx.latency.time_node(info.name, "get_stats"):
                stats = ctx.api.node_stats(info.id, ctx.options)
        except NomadAPIError as e:
            ctx.api_failed("get_stats", f"Failed to get node {info.name} stats: {e}")
            return

        ctx.sink.gauge(NODE_USED_MEMORY, stats.memory_used, *labels)
        ctx.sink.gauge(NODE_USED_CPU, math.floor(stats.cpu_ticks_consumed), *labels)
