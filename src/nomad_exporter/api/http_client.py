"""
Client for a live Nomad agent over its HTTP API (/v1/...).

Every failure mode (connection refused, non-2xx, garbage body) comes
back as NomadAPIError so callers only have one thing to catch.
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Dict, List, Optional, Union

import httpx

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, NomadAPIError, QueryOptions
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

log = logging.getLogger(__name__)


class NomadHTTPClient(NomadAPI):

    def __init__(
        self,
        address: str = "http://127.0.0.1:4646",
        token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        ca_file: Optional[str] = None,
        verify_tls: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._address = address.rstrip("/")
        headers = {"X-Nomad-Token": token} if token else {}
        verify: Union[bool, ssl.SSLContext] = verify_tls
        if verify_tls and ca_file:
            verify = ssl.create_default_context(cafile=ca_file)
        self._client = httpx.Client(
            base_url=self._address,
            headers=headers,
            timeout=timeout_seconds,
            verify=verify,
            transport=transport,
        )

    @property
    def address(self) -> str:
        return self._address

    def _get(self, path: str, options: Optional[QueryOptions] = None, **params: str) -> Any:
        query: Dict[str, str] = dict(options.params()) if options else {}
        query.update(params)
        log.debug("GET %s %s", path, query)
        try:
            response = self._client.get(path, params=query)
        except httpx.HTTPError as e:
            raise NomadAPIError(path, str(e)) from e

        if response.status_code >= 400:
            raise NomadAPIError(path, response.text.strip() or response.reason_phrase, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise NomadAPIError(path, f"invalid JSON body: {e}", response.status_code) from e

    def leader(self) -> str:
        return self._get("/v1/status/leader")

    def peers(self) -> List[str]:
        return list(self._get("/v1/status/peers") or [])

    def list_nodes(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[NodeStub]:
        return parse_list(NodeStub, self._get("/v1/nodes", options))

    def node_info(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> Node:
        return Node.from_api(self._get(f"/v1/node/{node_id}", options))

    def node_allocations(
        self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[Allocation]:
        return parse_list(Allocation, self._get(f"/v1/node/{node_id}/allocations", options))

    def node_stats(self, node_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> NodeStats:
        # Client endpoints are forwarded by the servers when node_id is set
        return NodeStats.from_api(self._get("/v1/client/stats", options, node_id=node_id))

    def list_allocations(
        self, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> List[AllocationStub]:
        return parse_list(AllocationStub, self._get("/v1/allocations", options))

    def allocation_info(
        self, alloc_id: str, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> Allocation:
        return Allocation.from_api(self._get(f"/v1/allocation/{alloc_id}", options))

    def allocation_stats(
        self, alloc: Allocation, options: QueryOptions = DEFAULT_QUERY_OPTIONS
    ) -> AllocationStats:
        return AllocationStats.from_api(self._get(f"/v1/client/allocation/{alloc.id}/stats", options))

    def list_evaluations(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Evaluation]:
        return parse_list(Evaluation, self._get("/v1/evaluations", options))

    def list_deployments(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[Deployment]:
        return parse_list(Deployment, self._get("/v1/deployments", options))

    def list_jobs(self, options: QueryOptions = DEFAULT_QUERY_OPTIONS) -> List[JobStub]:
        return parse_list(JobStub, self._get("/v1/jobs", options))

    def agent_self(self) -> AgentSelf:
        return AgentSelf.from_api(self._get("/v1/agent/self") or {})

    def close(self):
        self._client.close()
