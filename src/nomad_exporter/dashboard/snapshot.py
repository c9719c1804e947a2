"""
Condensed view of one scrape, for humans.

The exporter hands back raw metric families; this folds them into the
handful of numbers the terminal views show.
"""

from __future__ import annotations

from collections import Counter as Tally
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from prometheus_client.metrics_core import Metric
from prometheus_client.samples import Sample


@dataclass
class NodeRow:
    name: str
    datacenter: str
    node_class: str
    status: str
    version: str
    drain: bool
    eligibility: str
    memory_used_bytes: Optional[float] = None
    memory_total_bytes: Optional[float] = None
    cpu_used_mhz: Optional[float] = None
    cpu_total_mhz: Optional[float] = None


@dataclass
class ScrapeSnapshot:
    timestamp: datetime
    up: bool
    is_leader: bool
    cluster_servers: Optional[int] = None
    jobs_total: Optional[int] = None
    nodes: List[NodeRow] = field(default_factory=list)
    allocations: Dict[str, int] = field(default_factory=dict)
    tasks: Dict[str, int] = field(default_factory=dict)
    evals: Dict[str, int] = field(default_factory=dict)
    deployments: Dict[str, int] = field(default_factory=dict)
    zombies: int = 0
    client_errors: int = 0
    # query -> mean seconds
    latency: Dict[str, float] = field(default_factory=dict)
    raft_applied_index: Optional[float] = None
    error: Optional[str] = None

    @property
    def nodes_ready(self) -> int:
        return sum(1 for node in self.nodes if node.status == "ready")

    @property
    def allocations_running(self) -> int:
        return self.allocations.get("running", 0)

    def summary(self) -> dict:
        """Flat dict for JSON output."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "up": self.up,
            "leader": self.is_leader,
            "cluster_servers": self.cluster_servers,
            "jobs_total": self.jobs_total,
            "nodes_total": len(self.nodes),
            "nodes_ready": self.nodes_ready,
            "allocations": dict(self.allocations),
            "tasks": dict(self.tasks),
            "evals": dict(self.evals),
            "deployments": dict(self.deployments),
            "allocation_zombies": self.zombies,
            "client_errors": self.client_errors,
            "latency_ms": {query: round(seconds * 1000, 3) for query, seconds in self.latency.items()},
            "error": self.error,
        }

    @classmethod
    def from_families(
        cls,
        families: Iterable[Metric],
        timestamp: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> "ScrapeSnapshot":
        samples = [s for family in families for s in family.samples]

        snapshot = cls(
            timestamp=timestamp or datetime.now(),
            up=_first(samples, "nomad_up") == 1,
            is_leader=_first(samples, "nomad_cluster_leader") == 1,
            error=error,
        )

        servers = _first(samples, "nomad_cluster_servers")
        snapshot.cluster_servers = int(servers) if servers is not None else None
        jobs = _first(samples, "nomad_jobs_total")
        snapshot.jobs_total = int(jobs) if jobs is not None else None
        snapshot.raft_applied_index = _first(samples, "nomad_raft_applied_index")

        snapshot.allocations = _tally(samples, "nomad_allocation_total", "status")
        snapshot.tasks = _tally(samples, "nomad_tasks_total", "state")
        snapshot.evals = _tally(samples, "nomad_evals_total", "status")
        snapshot.deployments = _tally(samples, "nomad_deployments_total", "status")
        snapshot.zombies = int(_first(samples, "nomad_allocation_zombies") or 0)
        snapshot.client_errors = int(sum(s.value for s in _named(samples, "nomad_client_errors_total")))
        snapshot.latency = _mean_latency(samples)
        snapshot.nodes = _node_rows(samples)
        return snapshot


def _named(samples: Iterable[Sample], name: str) -> Iterator[Sample]:
    return (s for s in samples if s.name == name)


def _first(samples: Iterable[Sample], name: str) -> Optional[float]:
    for sample in _named(samples, name):
        return sample.value
    return None


def _tally(samples: Iterable[Sample], name: str, label: str) -> Dict[str, int]:
    counts: Tally = Tally()
    for sample in _named(samples, name):
        counts[sample.labels.get(label, "")] += int(sample.value)
    return dict(counts)


def _mean_latency(samples: List[Sample]) -> Dict[str, float]:
    sums = {s.labels["query"]: s.value for s in _named(samples, "nomad_api_latency_seconds_sum")}
    counts = {s.labels["query"]: s.value for s in _named(samples, "nomad_api_latency_seconds_count")}
    return {query: sums[query] / counts[query] for query in sums if counts.get(query)}


def _node_rows(samples: List[Sample]) -> List[NodeRow]:
    def by_node(name: str) -> Dict[str, float]:
        return {s.labels["node"]: s.value for s in _named(samples, name)}

    mem_used = by_node("nomad_node_used_memory_bytes")
    mem_total = by_node("nomad_node_resource_memory_bytes")
    cpu_used = by_node("nomad_node_used_cpu_megahertz")
    cpu_total = by_node("nomad_node_resource_cpu_megahertz")

    rows = []
    for sample in _named(samples, "nomad_node_info"):
        labels = sample.labels
        node = labels["node"]
        rows.append(NodeRow(
            name=node,
            datacenter=labels["datacenter"],
            node_class=labels["class"],
            status=labels["status"],
            version=labels["version"],
            drain=labels["drain"] == "true",
            eligibility=labels["scheduling_eligibility"],
            memory_used_bytes=mem_used.get(node),
            memory_total_bytes=mem_total.get(node),
            cpu_used_mhz=cpu_used.get(node),
            cpu_total_mhz=cpu_total.get(node),
        ))
    rows.sort(key=lambda row: row.name)
    return rows
