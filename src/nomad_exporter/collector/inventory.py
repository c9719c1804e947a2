"""
Node inventory: the node list fetched once at the start of a scrape.

Every later stage asks the inventory whether a node exists and whether
it is ready, instead of re-querying. It is never mutated after
construction, so worker threads share it freely.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Iterable, Iterator, Optional, Tuple

from nomad_exporter.api.base import DEFAULT_QUERY_OPTIONS, NomadAPI, NomadAPIError, QueryOptions
from nomad_exporter.collector.errors import CollectionError
from nomad_exporter.collector.latency import LatencyRecorder
from nomad_exporter.models import NODE_STATUS_READY, NodeStub

log = logging.getLogger(__name__)

# Older clients do not expose the stats endpoints we rely on
MIN_SUPPORTED_VERSION = (0, 8, 0)

# 1.6.2, 1.7.0-beta.1, v0.9 ... the pre-release part is ignored
_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?")


def parse_version(version: str) -> Optional[Tuple[int, int, int]]:
    match = _VERSION_RE.match(version or "")
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


def supported_version(node_name: str, version: str) -> bool:
    parsed = parse_version(version)
    if parsed is None:
        log.warning("Node %s reports an unparseable version %r", node_name, version)
        return False
    if parsed < MIN_SUPPORTED_VERSION:
        log.debug("Node %s runs unsupported version %s", node_name, version)
        return False
    return True


class NodeInventory(Mapping):
    """Read-only mapping of node ID -> NodeStub."""

    def __init__(self, nodes: Iterable[NodeStub] = ()):
        self._nodes = {node.id: node for node in nodes}

    def __getitem__(self, node_id: str) -> NodeStub:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def is_ready(self, node_id: str) -> bool:
        """Absent nodes are simply not ready."""
        node = self._nodes.get(node_id)
        return node is not None and node.status == NODE_STATUS_READY

    def is_supported(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and supported_version(node.name, node.version)


def fetch_nodes(
    api: NomadAPI,
    latency: LatencyRecorder,
    options: QueryOptions = DEFAULT_QUERY_OPTIONS,
) -> NodeInventory:
    """One list call. Failure here aborts the whole scrape."""
    try:
        with latency.time("fetch_nodes"):
            nodes = api.list_nodes(options)
    except NomadAPIError as e:
        raise CollectionError("fetch_nodes", "failed to get nodes list", e) from e

    log.debug("Fetched %d nodes", len(nodes))
    return NodeInventory(nodes)
