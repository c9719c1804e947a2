"""
Core metric definitions for the Nomad exporter.

Every series the exporter can produce is declared here with a stable
name and an ordered label tuple. Per-scrape gauges are built fresh
from these descriptors on every scrape; the label-keyed accumulators
live in `Accumulators` and are owned by one exporter instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from prometheus_client import Counter, Gauge, Summary
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

NAMESPACE = "nomad"

MIB = 1024 * 1024


@dataclass(frozen=True)
class MetricDesc:
    name: str
    documentation: str
    labels: Tuple[str, ...] = ()

    def family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


def _desc(name: str, documentation: str, *labels: str) -> MetricDesc:
    return MetricDesc(f"{NAMESPACE}_{name}", documentation, labels)


# -- Scrape state --
UP = _desc("up", "Whether the last query of Nomad was successful.")
CLUSTER_LEADER = _desc("cluster_leader", "Whether the queried agent is the cluster leader.")
CLUSTER_SERVERS = _desc("cluster_servers", "How many peers (servers) are in the Raft cluster.")
JOBS_TOTAL = _desc("jobs_total", "How many jobs are there in the cluster.")

# -- Nodes --
NODE_LABELS = ("node", "datacenter")

SERF_LAN_MEMBERS = _desc("serf_lan_members", "How many members are in the cluster.")
SERF_LAN_MEMBER_STATUS = _desc(
    "serf_lan_member_status", "Describe member state.",
    "class", "datacenter", "node", "node_id", "drain",
)
NODE_INFO = _desc(
    "node_info", "Node information.",
    "class", "datacenter", "drain", "node", "node_id", "scheduling_eligibility", "status", "version",
)
NODE_RESOURCE_MEMORY = _desc("node_resource_memory_bytes", "Amount of allocatable memory the node has in bytes", *NODE_LABELS)
NODE_ALLOCATED_MEMORY = _desc("node_allocated_memory_bytes", "Amount of memory allocated to tasks on the node in bytes.", *NODE_LABELS)
NODE_USED_MEMORY = _desc("node_used_memory_bytes", "Amount of memory used on the node in bytes.", *NODE_LABELS)
NODE_RESOURCE_CPU = _desc("node_resource_cpu_megahertz", "Amount of allocatable CPU the node has in MHz", *NODE_LABELS)
NODE_RESOURCE_IOPS = _desc("node_resource_iops", "Amount of allocatable IOPS the node has.", *NODE_LABELS)
NODE_RESOURCE_DISK = _desc("node_resource_disk_bytes", "Amount of allocatable disk bytes the node has.", *NODE_LABELS)
NODE_ALLOCATED_CPU = _desc("node_allocated_cpu_megahertz", "Amount of allocated CPU on the node in MHz.", *NODE_LABELS)
NODE_USED_CPU = _desc("node_used_cpu_megahertz", "Amount of CPU used on the node in MHz.", *NODE_LABELS)

# -- Raft --
RAFT_LABELS = ("datacenter", "node")

RAFT_APPLIED_INDEX = _desc("raft_applied_index", "Raft applied index.", *RAFT_LABELS)
RAFT_COMMIT_INDEX = _desc("raft_commit_index", "Raft commit index.", *RAFT_LABELS)
RAFT_FSM_PENDING = _desc("raft_fsm_pending", "Raft FSM pending.", *RAFT_LABELS)
RAFT_LAST_LOG_INDEX = _desc("raft_last_log_index", "Raft last log index.", *RAFT_LABELS)
RAFT_LAST_SNAPSHOT_INDEX = _desc("raft_last_snapshot_index", "Raft last snapshot index.", *RAFT_LABELS)
RAFT_NUM_PEERS = _desc("raft_num_peers", "Raft number of peers.", *RAFT_LABELS)

# Raft stat key -> series, in the order they are read
RAFT_FIELDS = (
    ("applied_index", RAFT_APPLIED_INDEX),
    ("commit_index", RAFT_COMMIT_INDEX),
    ("last_log_index", RAFT_LAST_LOG_INDEX),
    ("fsm_pending", RAFT_FSM_PENDING),
    ("last_snapshot_index", RAFT_LAST_SNAPSHOT_INDEX),
    ("num_peers", RAFT_NUM_PEERS),
)

# -- Allocations and tasks --
ALLOCATION_LABELS = ("job", "job_version", "task_group", "alloc_id", "region", "datacenter", "node")
TASK_LABELS = ALLOCATION_LABELS + ("task",)

ALLOCATION_MEMORY = _desc("allocation_memory_rss_bytes", "Allocation memory usage.", *ALLOCATION_LABELS)
ALLOCATION_MEMORY_REQUIRED = _desc("allocation_memory_rss_required_bytes", "Allocation memory required.", *ALLOCATION_LABELS)
ALLOCATION_CPU_REQUIRED = _desc("allocation_cpu_required", "Allocation CPU Required.", *ALLOCATION_LABELS)
ALLOCATION_CPU_PERCENT = _desc("allocation_cpu_percent", "Allocation CPU usage.", *ALLOCATION_LABELS)
ALLOCATION_CPU_TICKS = _desc("allocation_cpu_ticks", "Allocation CPU Ticks usage.", *ALLOCATION_LABELS)
ALLOCATION_CPU_USER_MODE = _desc("allocation_cpu_user_mode", "Allocation CPU user mode.", *ALLOCATION_LABELS)
ALLOCATION_CPU_SYSTEM_MODE = _desc("allocation_cpu_system_mode", "Allocation CPU system mode.", *ALLOCATION_LABELS)
ALLOCATION_CPU_THROTTLED = _desc("allocation_cpu_throttle_time", "Allocation throttled CPU.", *ALLOCATION_LABELS)

TASK_CPU_PERCENT = _desc("task_cpu_percent", "Task CPU usage percent.", *TASK_LABELS)
TASK_CPU_TOTAL_TICKS = _desc("task_cpu_total_ticks", "Task CPU total ticks.", *TASK_LABELS)
TASK_MEMORY_RSS = _desc("task_memory_rss_bytes", "Task memory RSS usage in bytes.", *TASK_LABELS)

# Everything built per scrape, for describe()
SCRAPE_GAUGES = (
    UP, CLUSTER_LEADER, CLUSTER_SERVERS, JOBS_TOTAL,
    SERF_LAN_MEMBERS, SERF_LAN_MEMBER_STATUS, NODE_INFO,
    NODE_RESOURCE_MEMORY, NODE_ALLOCATED_MEMORY, NODE_USED_MEMORY,
    NODE_RESOURCE_CPU, NODE_RESOURCE_IOPS, NODE_RESOURCE_DISK,
    NODE_ALLOCATED_CPU, NODE_USED_CPU,
    RAFT_APPLIED_INDEX, RAFT_COMMIT_INDEX, RAFT_FSM_PENDING,
    RAFT_LAST_LOG_INDEX, RAFT_LAST_SNAPSHOT_INDEX, RAFT_NUM_PEERS,
    ALLOCATION_MEMORY, ALLOCATION_MEMORY_REQUIRED, ALLOCATION_CPU_REQUIRED,
    ALLOCATION_CPU_PERCENT, ALLOCATION_CPU_TICKS, ALLOCATION_CPU_USER_MODE,
    ALLOCATION_CPU_SYSTEM_MODE, ALLOCATION_CPU_THROTTLED,
    TASK_CPU_PERCENT, TASK_CPU_TOTAL_TICKS, TASK_MEMORY_RSS,
)

DEPLOYMENT_TASK_GROUP_LABELS = ("status", "job_id", "job_version", "task_group", "promoted", "auto_revert")


class Accumulators:
    """Label-keyed series that are reset and refilled on every scrape.

    These are real prometheus_client metrics (thread-safe increments),
    created with registry=None so that each exporter instance owns its
    own set and nothing leaks into the global registry.
    """

    def __init__(self):
        self.allocation = Counter(
            f"{NAMESPACE}_allocation", "Allocation labeled with runtime information. Exposed as nomad_allocation_total (formerly nomad_allocation).",
            ["status", "job_type", "job_id", "job_version", "task_group", "node"],
            registry=None,
        )
        self.allocation_zombies = Gauge(
            f"{NAMESPACE}_allocation_zombies", "Allocations whose node is no longer in the cluster.",
            registry=None,
        )
        self.tasks = Counter(
            f"{NAMESPACE}_tasks", "The number of tasks. Exposed as nomad_tasks_total (formerly nomad_tasks).",
            ["state", "job_type", "node"],
            registry=None,
        )
        self.evals = Counter(
            f"{NAMESPACE}_evals", "The number of evaluations. Exposed as nomad_evals_total (formerly nomad_evals).",
            ["status"],
            registry=None,
        )
        self.deployments = Counter(
            f"{NAMESPACE}_deployments", "The number of deployments. Exposed as nomad_deployments_total (formerly nomad_deployments).",
            ["status", "job_id", "job_version"],
            registry=None,
        )
        self.deployment_desired_canaries = self._task_group_gauge(
            "desired_canaries", "the number of desired canaries for the task group")
        self.deployment_desired_total = self._task_group_gauge(
            "desired_total", "the number of desired allocs for the task group")
        self.deployment_placed_allocs = self._task_group_gauge(
            "placed_allocs", "the number of placed allocs for the task group")
        self.deployment_healthy_allocs = self._task_group_gauge(
            "healthy_allocs", "the number of healthy allocs for the task group")
        self.deployment_unhealthy_allocs = self._task_group_gauge(
            "unhealthy_allocs", "the number of unhealthy allocs for the task group")

        # Not reset per scrape: these accumulate for the life of the process
        self.client_errors = Counter(
            f"{NAMESPACE}_client_errors", "Number of errors returned by the Nomad API.",
            ["operation"],
            registry=None,
        )
        self.api_latency = Summary(
            f"{NAMESPACE}_api_latency_seconds", "Latency of calls to the Nomad API.",
            ["query"],
            registry=None,
        )
        self.api_node_latency = Summary(
            f"{NAMESPACE}_api_node_latency_seconds", "Latency of node-scoped calls to the Nomad API.",
            ["query", "node"],
            registry=None,
        )

    @staticmethod
    def _task_group_gauge(name: str, what: str) -> Gauge:
        return Gauge(
            f"{NAMESPACE}_deployment_task_group_{name}", f"Deployment: {what}.",
            list(DEPLOYMENT_TASK_GROUP_LABELS),
            registry=None,
        )

    def allocation_metrics(self) -> Tuple:
        return (self.allocation, self.tasks, self.allocation_zombies)

    def deployment_metrics(self) -> Tuple:
        return (
            self.deployments,
            self.deployment_desired_canaries,
            self.deployment_desired_total,
            self.deployment_placed_allocs,
            self.deployment_healthy_allocs,
            self.deployment_unhealthy_allocs,
        )

    def all_metrics(self) -> Tuple:
        return (
            self.allocation_metrics()
            + (self.evals,)
            + self.deployment_metrics()
            + (self.client_errors, self.api_latency, self.api_node_latency)
        )

    def describe(self) -> Iterator[Metric]:
        for metric in self.all_metrics():
            yield from metric.describe()


def collect_all(metrics: Iterable) -> Iterator[Metric]:
    for metric in metrics:
        yield from metric.collect()
