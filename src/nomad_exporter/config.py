"""
Exporter configuration.

Built from the CLI options in main.py; tests construct it directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_NOMAD_ADDRESS = "http://127.0.0.1:4646"
DEFAULT_LISTEN_PORT = 9172


@dataclass
class ExporterConfig:

    # Control plane
    address: str = DEFAULT_NOMAD_ADDRESS
    token: Optional[str] = None
    ca_file: Optional[str] = None
    verify_tls: bool = True
    timeout: float = 10.0

    # Exposition
    listen_address: str = "0.0.0.0"
    listen_port: int = DEFAULT_LISTEN_PORT

    # Read cluster-wide lists even when the queried agent is not the leader
    allow_stale_reads: bool = False

    # Which parts of the scrape run
    node_metrics: bool = True
    allocation_metrics: bool = True
    peer_metrics: bool = True
    serf_metrics: bool = True
    job_metrics: bool = True
    eval_metrics: bool = True
    deployment_metrics: bool = True
    # Per-node capacity/usage detail (three extra calls per ready node)
    allocation_stats_metrics: bool = True

    # Fan-out ceilings
    concurrency: int = 20
    allocation_concurrency: int = 50

    def validate(self) -> "ExporterConfig":
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.allocation_concurrency < 1:
            raise ValueError(f"allocation concurrency must be at least 1, got {self.allocation_concurrency}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        return self
