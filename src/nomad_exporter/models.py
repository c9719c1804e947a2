"""
Cluster entities as returned by the Nomad HTTP API.

Each model is built from the raw JSON shape with `from_api`. Nomad
omits fields freely between versions, so anything missing falls back
to a zero value instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


NODE_STATUS_READY = "ready"
DESIRED_STATUS_RUN = "run"
CLIENT_STATUS_RUNNING = "running"


@dataclass
class Resources:
    cpu: int = 0          # MHz
    memory_mb: int = 0
    disk_mb: int = 0
    iops: int = 0

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "Resources":
        data = data or {}
        return cls(
            cpu=int(data.get("CPU") or 0),
            memory_mb=int(data.get("MemoryMB") or 0),
            disk_mb=int(data.get("DiskMB") or 0),
            iops=int(data.get("IOPS") or 0),
        )

    @classmethod
    def from_node_resources(cls, data: Optional[Dict[str, Any]]) -> "Resources":
        """Newer agents report capacity under NodeResources only."""
        data = data or {}
        return cls(
            cpu=int((data.get("Cpu") or {}).get("CpuShares") or 0),
            memory_mb=int((data.get("Memory") or {}).get("MemoryMB") or 0),
            disk_mb=int((data.get("Disk") or {}).get("DiskMB") or 0),
        )


@dataclass
class NodeStub:
    """One row of the node list. This is what the inventory holds."""

    id: str
    name: str = ""
    node_class: str = ""
    datacenter: str = ""
    version: str = ""
    status: str = ""
    drain: bool = False
    scheduling_eligibility: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NodeStub":
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            node_class=data.get("NodeClass", ""),
            datacenter=data.get("Datacenter", ""),
            version=data.get("Version", ""),
            status=data.get("Status", ""),
            drain=bool(data.get("Drain", False)),
            scheduling_eligibility=data.get("SchedulingEligibility", ""),
        )


@dataclass
class Node:
    id: str
    name: str = ""
    datacenter: str = ""
    resources: Resources = field(default_factory=Resources)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Node":
        if data.get("Resources"):
            resources = Resources.from_api(data["Resources"])
        else:
            resources = Resources.from_node_resources(data.get("NodeResources"))
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            datacenter=data.get("Datacenter", ""),
            resources=resources,
        )


@dataclass
class NodeStats:
    memory_used: int = 0               # bytes
    cpu_ticks_consumed: float = 0.0    # MHz

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NodeStats":
        return cls(
            memory_used=int((data.get("Memory") or {}).get("Used") or 0),
            cpu_ticks_consumed=float(data.get("CPUTicksConsumed") or 0.0),
        )


@dataclass
class Job:
    id: str = ""
    name: str = ""
    type: str = ""
    version: int = 0
    region: str = ""

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "Job":
        data = data or {}
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            type=data.get("Type", ""),
            version=int(data.get("Version") or 0),
            region=data.get("Region", ""),
        )


@dataclass
class JobStub:
    id: str
    name: str = ""
    type: str = ""
    status: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "JobStub":
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            type=data.get("Type", ""),
            status=data.get("Status", ""),
        )


@dataclass
class AllocationStub:
    id: str
    name: str = ""
    node_id: str = ""
    job_id: str = ""
    task_group: str = ""
    desired_status: str = ""
    client_status: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AllocationStub":
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            node_id=data.get("NodeID", ""),
            job_id=data.get("JobID", ""),
            task_group=data.get("TaskGroup", ""),
            desired_status=data.get("DesiredStatus", ""),
            client_status=data.get("ClientStatus", ""),
        )


@dataclass
class Allocation:
    id: str
    name: str = ""
    node_id: str = ""
    job_id: str = ""
    task_group: str = ""
    desired_status: str = ""
    client_status: str = ""
    job: Job = field(default_factory=Job)
    resources: Resources = field(default_factory=Resources)
    task_states: Dict[str, str] = field(default_factory=dict)  # task name -> state

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Allocation":
        states = data.get("TaskStates") or {}
        return cls(
            id=data.get("ID", ""),
            name=data.get("Name", ""),
            node_id=data.get("NodeID", ""),
            job_id=data.get("JobID", ""),
            task_group=data.get("TaskGroup", ""),
            desired_status=data.get("DesiredStatus", ""),
            client_status=data.get("ClientStatus", ""),
            job=Job.from_api(data.get("Job")),
            resources=Resources.from_api(data.get("Resources")),
            task_states={name: (s or {}).get("State", "") for name, s in states.items()},
        )


@dataclass
class ResourceUsage:
    cpu_percent: float = 0.0
    cpu_throttled_time: float = 0.0
    cpu_total_ticks: float = 0.0
    cpu_user_mode: float = 0.0
    cpu_system_mode: float = 0.0
    memory_rss: int = 0

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "ResourceUsage":
        data = data or {}
        cpu = data.get("CpuStats") or {}
        mem = data.get("MemoryStats") or {}
        return cls(
            cpu_percent=float(cpu.get("Percent") or 0.0),
            cpu_throttled_time=float(cpu.get("ThrottledTime") or 0),
            cpu_total_ticks=float(cpu.get("TotalTicks") or 0.0),
            cpu_user_mode=float(cpu.get("UserMode") or 0.0),
            cpu_system_mode=float(cpu.get("SystemMode") or 0.0),
            memory_rss=int(mem.get("RSS") or 0),
        )


@dataclass
class AllocationStats:
    usage: ResourceUsage = field(default_factory=ResourceUsage)
    tasks: Dict[str, ResourceUsage] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AllocationStats":
        tasks = data.get("Tasks") or {}
        return cls(
            usage=ResourceUsage.from_api(data.get("ResourceUsage")),
            tasks={
                name: ResourceUsage.from_api((t or {}).get("ResourceUsage"))
                for name, t in tasks.items()
            },
        )


@dataclass
class Evaluation:
    id: str
    status: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Evaluation":
        return cls(id=data.get("ID", ""), status=data.get("Status", ""))


@dataclass
class DeploymentTaskGroup:
    promoted: bool = False
    auto_revert: bool = False
    desired_canaries: int = 0
    desired_total: int = 0
    placed_allocs: int = 0
    healthy_allocs: int = 0
    unhealthy_allocs: int = 0

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "DeploymentTaskGroup":
        data = data or {}
        return cls(
            promoted=bool(data.get("Promoted", False)),
            auto_revert=bool(data.get("AutoRevert", False)),
            desired_canaries=int(data.get("DesiredCanaries") or 0),
            desired_total=int(data.get("DesiredTotal") or 0),
            placed_allocs=int(data.get("PlacedAllocs") or 0),
            healthy_allocs=int(data.get("HealthyAllocs") or 0),
            unhealthy_allocs=int(data.get("UnhealthyAllocs") or 0),
        )


@dataclass
class Deployment:
    id: str
    job_id: str = ""
    job_version: int = 0
    status: str = ""
    task_groups: Dict[str, DeploymentTaskGroup] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Deployment":
        groups = data.get("TaskGroups") or {}
        return cls(
            id=data.get("ID", ""),
            job_id=data.get("JobID", ""),
            job_version=int(data.get("JobVersion") or 0),
            status=data.get("Status", ""),
            task_groups={name: DeploymentTaskGroup.from_api(g) for name, g in groups.items()},
        )


@dataclass
class AgentSelf:
    stats: Dict[str, Dict[str, str]] = field(default_factory=dict)
    datacenter: str = ""
    node_name: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AgentSelf":
        member = data.get("member") or {}
        config = data.get("config") or {}
        return cls(
            stats=data.get("stats") or {},
            datacenter=(member.get("Tags") or {}).get("dc") or config.get("Datacenter", ""),
            node_name=member.get("Name") or config.get("NodeName", ""),
        )

    def stat(self, section: str, key: str) -> Optional[str]:
        return (self.stats.get(section) or {}).get(key)


def parse_list(model, payload: Any) -> List[Any]:
    """Build a list of models from a JSON array. `null` counts as empty."""
    return [model.from_api(item) for item in (payload or [])]
