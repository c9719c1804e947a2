"""
Tests for the HTTP client using the fake Nomad server.

Starts the fake server in a thread on a free port, points the client
at it, and checks both the parsed models and what went over the wire.
"""

import httpx
import pytest

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.api.http_client import NomadHTTPClient
from nomad_exporter.collector.exporter import NomadExporter
from nomad_exporter.mock.fake_nomad_server import make_server, start_in_thread
from nomad_exporter.mock.generator import MockCluster


@pytest.fixture
def fake_nomad():
    server = make_server("127.0.0.1", 0, MockCluster(seed=7))
    start_in_thread(server)
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


def _client(server, **kwargs) -> NomadHTTPClient:
    return NomadHTTPClient(address=f"http://127.0.0.1:{server.server_address[1]}", **kwargs)


def test_reads_cluster_state(fake_nomad):
    client = _client(fake_nomad)
    try:
        assert client.leader() == "127.0.0.1:4647"
        assert len(client.peers()) == 3

        nodes = client.list_nodes()
        assert len(nodes) == 6
        node = client.node_info(nodes[0].id)
        assert node.resources.cpu > 0

        stubs = client.list_allocations()
        alloc = client.allocation_info(stubs[0].id)
        assert alloc.job.id == stubs[0].job_id
        assert alloc.task_states

        stats = client.allocation_stats(alloc)
        assert stats.usage.memory_rss > 0
        assert set(stats.tasks) == set(alloc.task_states)

        assert client.node_stats(nodes[0].id).memory_used > 0
        assert client.list_evaluations()
        assert client.list_jobs()
        assert client.agent_datacenter() == "dc1"
        assert client.agent_node_name() == "server-1.global"
    finally:
        client.close()


def test_sends_stale_wait_query(fake_nomad):
    client = _client(fake_nomad)
    try:
        client.list_nodes()
    finally:
        client.close()

    handler = fake_nomad.RequestHandlerClass
    assert handler.last_query["stale"] == ["true"]
    assert handler.last_query["wait"] == ["1ms"]


def test_node_stats_passes_node_id(fake_nomad):
    client = _client(fake_nomad)
    try:
        node_id = client.list_nodes()[0].id
        client.node_stats(node_id)
    finally:
        client.close()
    assert fake_nomad.RequestHandlerClass.last_query["node_id"] == [node_id]


def test_sends_token_header(fake_nomad):
    client = _client(fake_nomad, token="s3cret")
    try:
        client.leader()
    finally:
        client.close()

    headers = {k.lower(): v for k, v in fake_nomad.RequestHandlerClass.last_headers.items()}
    assert headers["x-nomad-token"] == "s3cret"


def test_not_found_is_an_api_error(fake_nomad):
    client = _client(fake_nomad)
    try:
        with pytest.raises(NomadAPIError) as exc_info:
            client.node_info("no-such-node")
    finally:
        client.close()
    assert exc_info.value.status_code == 404
    assert exc_info.value.path == "/v1/node/no-such-node"


def test_connection_error_is_an_api_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = NomadHTTPClient(transport=httpx.MockTransport(refuse))
    try:
        with pytest.raises(NomadAPIError) as exc_info:
            client.leader()
    finally:
        client.close()
    assert exc_info.value.status_code is None


def test_invalid_json_is_an_api_error():
    client = NomadHTTPClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))
    try:
        with pytest.raises(NomadAPIError):
            client.list_jobs()
    finally:
        client.close()


def test_exporter_end_to_end(fake_nomad):
    exporter = NomadExporter(_client(fake_nomad))
    try:
        families = {f.name: f for f in exporter.scrape()}
    finally:
        exporter.close()

    assert families["nomad_up"].samples[0].value == 1
    assert families["nomad_cluster_leader"].samples[0].value == 1
    assert families["nomad_serf_lan_members"].samples[0].value == 6
    assert families["nomad_allocation_zombies"].samples[0].value == 1
    assert exporter.last_error is None
