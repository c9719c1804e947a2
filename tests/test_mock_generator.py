"""Basic sanity checks for the simulated cluster."""

from nomad_exporter.api.mock_client import MockNomadAPI
from nomad_exporter.collector.exporter import NomadExporter
from nomad_exporter.mock.generator import MockCluster


def test_cluster_shape():
    cluster = MockCluster(seed=42)

    assert len(cluster.nodes) == 6
    assert len(cluster.servers) == 3
    assert {n["Status"] for n in cluster.nodes} == {"ready", "down"}
    assert any(n["Drain"] for n in cluster.nodes)
    assert any(n["Version"] == "0.7.1" for n in cluster.nodes)
    assert len(cluster.evaluations) == 15
    assert all(d["JobID"].startswith("job-") for d in cluster.deployments)


def test_has_an_orphan_allocation():
    cluster = MockCluster(seed=42)
    node_ids = {n["ID"] for n in cluster.nodes}
    orphans = [a for a in cluster.allocations if a["NodeID"] not in node_ids]
    assert len(orphans) == 1
    assert orphans[0]["ClientStatus"] == "lost"


def test_list_views_hide_detail():
    cluster = MockCluster(seed=42)
    assert "Resources" not in cluster.node_list()[0]
    assert "Resources" not in cluster.allocation_list()[0]
    assert "Job" in cluster.allocation(cluster.allocations[0]["ID"])
    assert cluster.node("missing") is None
    assert cluster.allocation_stats("missing") is None


def test_deterministic_with_same_seed():
    a = MockCluster(seed=99)
    b = MockCluster(seed=99)

    assert a.nodes == b.nodes
    assert a.allocations == b.allocations
    assert a.evaluations == b.evaluations
    assert a.deployments == b.deployments


def test_raft_indices_advance():
    cluster = MockCluster(seed=42)
    before = int(cluster.agent_self()["stats"]["raft"]["applied_index"])
    cluster.advance()
    after = int(cluster.agent_self()["stats"]["raft"]["applied_index"])
    assert after > before


def test_mock_api_parses_everything():
    api = MockNomadAPI(seed=42)
    nodes = api.list_nodes()
    assert len(nodes) == 6
    assert api.leader() == "127.0.0.1:4647"
    assert api.agent_datacenter() == "dc1"
    assert "6 clients" in api.name()


def _applied_index(api: MockNomadAPI) -> int:
    return int(api.cluster.agent_self()["stats"]["raft"]["applied_index"])


def test_clock_advances_per_scrape_not_per_health_check():
    api = MockNomadAPI(seed=42)
    exporter = NomadExporter(api)
    start = _applied_index(api)

    for _ in range(3):
        assert exporter.probe()
    assert _applied_index(api) == start

    exporter.scrape()
    after_one = _applied_index(api)
    assert after_one > start

    exporter.probe()
    assert _applied_index(api) == after_one
