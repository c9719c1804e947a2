"""Collection engine: the gate, the inventory and the sub-collectors."""

from typing import List

from nomad_exporter.collector.allocations import AllocationCollector
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.collector.cluster import JobCollector, PeerCollector, SelfCollector
from nomad_exporter.collector.deployments import DeploymentCollector
from nomad_exporter.collector.evaluations import EvaluationCollector
from nomad_exporter.collector.nodes import NodeCollector


def default_collectors() -> List[SubCollector]:
    """Sub-collectors in the order a scrape runs them."""
    return [
        NodeCollector(),
        AllocationCollector(),
        PeerCollector(),
        SelfCollector(),
        JobCollector(),
        EvaluationCollector(),
        DeploymentCollector(),
    ]


__all__ = [
    "CollectionError",
    "ScrapeContext",
    "SubCollector",
    "default_collectors",
]
