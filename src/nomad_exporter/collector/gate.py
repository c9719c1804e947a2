"""
Staleness gate: should this process read cluster-wide state?

Any server answers reads, but only the leader's answers are
authoritative. Unless stale reads are allowed, the cluster-wide
sub-collectors skip their reads when the agent we point at is a
follower.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from nomad_exporter.api.base import NomadAPI, NomadAPIError
from nomad_exporter.collector.errors import CollectionError

log = logging.getLogger(__name__)


def split_host_port(address: str) -> str:
    """Return the host part of host:port. Raises ValueError if malformed."""
    if address.startswith("["):
        end = address.find("]")
        if end == -1 or not address[end + 1:].startswith(":"):
            raise ValueError(f"{address!r} is not a [host]:port address")
        return address[1:end]

    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if ":" in host:
        raise ValueError(f"too many colons in address {address!r}")
    return host


def url_hostname(address: str) -> str:
    try:
        hostname = urlsplit(address).hostname
    except ValueError as e:
        raise ValueError(f"{address!r} can't be parsed as a url: {e}") from e
    if not hostname:
        raise ValueError(f"{address!r} has no hostname")
    return hostname


class StalenessGate:

    def __init__(self, api: NomadAPI, allow_stale_reads: bool = False):
        self._api = api
        self.allow_stale_reads = allow_stale_reads
        self._is_leader = False

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    def check(self) -> bool:
        """Recompute leadership for this scrape. Raises CollectionError."""
        self._is_leader = False
        try:
            leader = self._api.leader()
        except NomadAPIError as e:
            raise CollectionError("leader", "could not collect leader", e) from e

        log.debug("Leader is %s, client address is %s", leader, self._api.address)

        try:
            leader_host = split_host_port(leader)
        except ValueError as e:
            raise CollectionError("leader", f"leader is not a host:port but {leader!r}", e) from e

        try:
            client_host = url_hostname(self._api.address)
        except ValueError as e:
            raise CollectionError("leader", "client address is not a url", e) from e

        # urlsplit lowercases the client host; hostnames compare case-insensitively
        self._is_leader = leader_host.lower() == client_host.lower()
        return self._is_leader

    def should_read_metrics(self) -> bool:
        return self._is_leader or self.allow_stale_reads
