"""
Allocation and task metrics.

The allocation list is fetched once. Every allocation on a ready,
supported node that is meant to be running is then fetched in full
(and, when running, its resource stats) on a bounded pool. The status
and task counters are reset first, so allocations that went away
since the last scrape leave nothing behind.
"""

from __future__ import annotations

import logging

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.collector.pool import BoundedExecutor
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import (
    ALLOCATION_CPU_PERCENT,
    ALLOCATION_CPU_REQUIRED,
    ALLOCATION_CPU_SYSTEM_MODE,
    ALLOCATION_CPU_THROTTLED,
    ALLOCATION_CPU_TICKS,
    ALLOCATION_CPU_USER_MODE,
    ALLOCATION_MEMORY,
    ALLOCATION_MEMORY_REQUIRED,
    MIB,
    TASK_CPU_PERCENT,
    TASK_CPU_TOTAL_TICKS,
    TASK_MEMORY_RSS,
    collect_all,
)
from nomad_exporter.models import (
    CLIENT_STATUS_RUNNING,
    DESIRED_STATUS_RUN,
    Allocation,
    AllocationStub,
)

log = logging.getLogger(__name__)


class AllocationCollector(SubCollector):

    def name(self) -> str:
        return "allocations"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.allocation_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        acc = ctx.accumulators
        acc.allocation.clear()
        acc.tasks.clear()
        acc.allocation_zombies.set(0)

        if not ctx.should_read:
            return

        try:
            with ctx.latency.time("get_allocations"):
                stubs = ctx.api.list_allocations(ctx.options)
        except NomadAPIError as e:
            raise CollectionError("allocations", "could not get allocations", e) from e

        with BoundedExecutor(ctx.config.allocation_concurrency, name="alloc-detail") as pool:
            for stub in stubs:
                pool.submit(self._collect_one, ctx, stub)

        ctx.sink.extend(collect_all(acc.allocation_metrics()))

    def _collect_one(self, ctx: ScrapeContext, stub: AllocationStub):
        node = ctx.inventory.get(stub.node_id)
        if node is None:
            log.debug("Allocation %s doesn't have a node associated. Skipping", stub.id)
            ctx.accumulators.allocation_zombies.inc()
            return

        if not ctx.inventory.is_ready(stub.node_id):
            log.debug("Skipping allocation %s on node %s because it is %s",
                      stub.name, node.name, node.status)
            return
        if not ctx.inventory.is_supported(stub.node_id):
            log.debug("Skipping allocation %s on node %s because it runs version %s",
                      stub.name, node.name, node.version)
            return
        if stub.desired_status != DESIRED_STATUS_RUN:
            log.debug("Skipping allocation %s because it's not desired to be run", stub.name)
            return

        try:
            with ctx.latency.time("get_allocation_info"):
                alloc = ctx.api.allocation_info(stub.id, ctx.options)
        except NomadAPIError as e:
            ctx.api_failed("get_allocation_info", f"Failed to get allocation {stub.id}: {e}")
            return

        job = alloc.job
        job_version = str(job.version)
        ctx.accumulators.allocation.labels(
            alloc.client_status, job.type, alloc.job_id, job_version, alloc.task_group, node.name,
        ).inc()
        for state in alloc.task_states.values():
            ctx.accumulators.tasks.labels(state, job.type, node.name).inc()

        # Only running allocations have stats worth reading
        if stub.client_status != CLIENT_STATUS_RUNNING:
            return

        try:
            with ctx.latency.time_node(node.name, "get_allocation_stats"):
                stats = ctx.api.allocation_stats(alloc, ctx.options)
        except NomadAPIError as e:
            ctx.api_failed("get_allocation_stats", f"Failed to get allocation {alloc.id} stats: {e}")
            return

        labels = (job.name, job_version, alloc.task_group, alloc.id, job.region, node.datacenter, node.name)
        self._emit_usage(ctx, alloc, stats.usage, labels)

        for task_name, usage in stats.tasks.items():
            task_labels = labels + (task_name,)
            ctx.sink.gauge(TASK_CPU_PERCENT, usage.cpu_percent, *task_labels)
            ctx.sink.gauge(TASK_CPU_TOTAL_TICKS, usage.cpu_total_ticks, *task_labels)
            ctx.sink.gauge(TASK_MEMORY_RSS, usage.memory_rss, *task_labels)

    @staticmethod
    def _emit_usage(ctx: ScrapeContext, alloc: Allocation, usage, labels):
        ctx.sink.gauge(ALLOCATION_CPU_PERCENT, usage.cpu_percent, *labels)
        ctx.sink.gauge(ALLOCATION_CPU_THROTTLED, usage.cpu_throttled_time, *labels)
        ctx.sink.gauge(ALLOCATION_MEMORY, usage.memory_rss, *labels)
        ctx.sink.gauge(ALLOCATION_CPU_TICKS, usage.cpu_total_ticks, *labels)
        ctx.sink.gauge(ALLOCATION_CPU_USER_MODE, usage.cpu_user_mode, *labels)
        ctx.sink.gauge(ALLOCATION_CPU_SYSTEM_MODE, usage.cpu_system_mode, *labels)
        ctx.sink.gauge(ALLOCATION_MEMORY_REQUIRED, alloc.resources.memory_mb * MIB, *labels)
        ctx.sink.gauge(ALLOCATION_CPU_REQUIRED, alloc.resources.cpu, *labels)
