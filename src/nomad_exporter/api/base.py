"""
Base control-plane interface.

The collection engine only ever talks to a NomadAPI. This keeps it
decoupled from where the cluster state actually comes from (a real
Nomad agent over HTTP, the mock cluster, a scripted test double).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from nomad_exporter.models import (
    AgentSelf,
    Allocation,
    AllocationStats,
    AllocationStub,
    Deployment,
    Evaluation,
    JobStub,
    Node,
    NodeStats,
    NodeStub,
)


@dataclass(frozen=True)
class QueryOptions:
    """Read options applied to every list/info/stats call."""

    allow_stale: bool = True
    wait_time: float = 0.001  # seconds

    def params(self) -> Dict[str, str]:
        params = {}
        if self.allow_stale:
            params["stale"] = "true"
        if self.wait_time:
            params["wait"] = f"{max(1, int(self.wait_time * 1000))}ms"
        return params


DEFAULT_QUERY_OPTIONS = QueryOptions()


class NomadAPIError(Exception):
    """Raised when a control-plane call fails for any reason."""

    def __init__(self, path: str, message: str, status_code: Optional[int] = None):
        self.path = path
        self.status_code = status_code
        detail = f"{path}: {message}"
        if status_code is not None:
            detail = f"{path}: HTTP {status_code}: {message}"
        super().__init__(detail)


class NomadAPI(ABC):
    """Interface for all control-plane sources."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Configured endpoint URL, e.g. http://10.0.0.5:4646."""
        ...

    @abstractmethod
    def leader(self) -> str:
        """Raft leader as host:port."""
        ...

    @abstractmethod
    def peers(self) -> List[str]:
        ...

    @abstractmethod
    def list_nodes(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[NodeStub]:
        ...

    @abstractmethod
    def node_info(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> Node:
        ...

    @abstractmethod
    def node_allocations(
        self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[Allocation]:
        ...

    @abstractmethod
    def node_stats(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> NodeStats:
        ...

    @abstractmethod
    def list_allocations(
        self, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[AllocationStub]:
        ...

    @abstractmethod
    def allocation_info(
        self, alloc_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> Allocation:
        ...

    @abstractmethod
    def allocation_stats(
        self, alloc: Allocation, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> AllocationStats:
        ...

    @abstractmethod
    def list_evaluations(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Evaluation]:
        ...

    @abstractmethod
    def list_deployments(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Deployment]:
        ...

    @abstractmethod
    def list_jobs(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[JobStub]:
        ...

    @abstractmethod
    def agent_self(self) -> AgentSelf:
        ...

    def agent_datacenter(self) -> str:
        return self.agent_self().datacenter

    def agent_node_name(self) -> str:
        return self.agent_self().node_name

    def name(self) -> str:
        """Human-readable name for this source."""
        return f"Nomad ({self.address})"

    def close(self):
        pass
