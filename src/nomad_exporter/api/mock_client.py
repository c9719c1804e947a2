"""
Control-plane source backed by the in-process mock cluster.
Used for local development without a Nomad agent.
"""

from __future__ import annotations

from typing import Any, List, Optional

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, NomadAPIError, QueryOptions
from nomad_exporter.mock.generator import MockCluster
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
    parse_list,
)


def _found(path: str, payload: Any) -> Any:
    if payload is None:
        raise NomadAPIError(path, "not found", 404)
    return payload


class MockNomadAPI(NomadAPI):
    """Wraps the mock cluster as a standard control-plane source."""

    def __init__(self, seed: int = 42, cluster: Optional[MockCluster] = None):
        self.cluster = cluster or MockCluster(seed=seed)

    @property
    def address(self) -> str:
        return self.cluster.address

    def leader(self) -> str:
        return self.cluster.leader_address

    def peers(self) -> List[str]:
        return list(self.cluster.servers)

    def list_nodes(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[NodeStub]:
        # Read once per scrape, so this drives the simulated clock
        self.cluster.advance()
        return parse_list(NodeStub, self.cluster.node_list())

    def node_info(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> Node:
        return Node.from_api(_found(f"/v1/node/{node_id}", self.cluster.node(node_id)))

    def node_allocations(
        self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[Allocation]:
        return parse_list(Allocation, self.cluster.node_allocations(node_id))

    def node_stats(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> NodeStats:
        return NodeStats.from_api(_found("/v1/client/stats", self.cluster.node_stats(node_id)))

    def list_allocations(
        self, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[AllocationStub]:
        return parse_list(AllocationStub, self.cluster.allocation_list())

    def allocation_info(
        self, alloc_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> Allocation:
        return Allocation.from_api(_found(f"/v1/allocation/{alloc_id}", self.cluster.allocation(alloc_id)))

    def allocation_stats(
        self, alloc: Allocation, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> AllocationStats:
        path = f"/v1/client/allocation/{alloc.id}/stats"
        return AllocationStats.from_api(_found(path, self.cluster.allocation_stats(alloc.id)))

    def list_evaluations(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Evaluation]:
        return parse_list(Evaluation, self.cluster.evaluations)

    def list_deployments(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Deployment]:
        return parse_list(Deployment, self.cluster.deployments)

    def list_jobs(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[JobStub]:
        return parse_list(JobStub, self.cluster.job_list())

    def agent_self(self) -> AgentSelf:
        return AgentSelf.from_api(self.cluster.agent_self())

    def name(self) -> str:
        return f"Mock Nomad ({len(self.cluster.nodes)} clients, {len(self.cluster.servers)} servers)"
