"""
Tests for the scrape orchestrator: sequencing, fail-fast, and what
is reported when things go wrong.
"""

from prometheus_client import CollectorRegistry, generate_latest

from fakes import FakeNomadAPI, family_names, sample_value, samples
from nomad_exporter.collector.exporter import NomadExporter
from nomad_exporter.config import ExporterConfig
from nomad_exporter.models import Deployment, Evaluation, JobStub

LATENCY_FAMILIES = {"nomad_api_latency_seconds", "nomad_api_node_latency_seconds"}


def _cluster(**api_kwargs) -> FakeNomadAPI:
    api = FakeNomadAPI(**api_kwargs)
    api.add_node("N1", datacenter="dc1")
    api.add_node("N2", status="down")
    api.add_allocation("A1", "N1")
    api.add_allocation("A2", "N404")
    api.evaluations = [Evaluation("e1", "complete")]
    api.deployments = [Deployment("D1", job_id="web", job_version=1, status="running")]
    api.jobs = [JobStub("web")]
    return api


def _latency_count(families, query: str):
    return sample_value(families, "nomad_api_latency_seconds_count", query=query)


def test_full_scrape_as_leader():
    exporter = NomadExporter(_cluster())
    families = exporter.scrape()

    assert sample_value(families, "nomad_up") == 1
    assert sample_value(families, "nomad_cluster_leader") == 1
    assert sample_value(families, "nomad_serf_lan_members") == 2
    assert sample_value(families, "nomad_cluster_servers") == 3
    assert sample_value(families, "nomad_jobs_total") == 1
    assert sample_value(families, "nomad_allocation_total", status="running", node="N1") == 1
    assert sample_value(families, "nomad_allocation_zombies") == 1
    assert sample_value(families, "nomad_evals_total", status="complete") == 1
    assert sample_value(families, "nomad_deployments_total", job_id="web") == 1
    assert sample_value(families, "nomad_raft_applied_index") == 120
    assert exporter.last_error is None

    for query in ("leader", "fetch_nodes", "nodes", "allocations", "peers", "self", "jobs",
                  "eval", "deployment", "get_allocations", "get_allocation_info"):
        assert _latency_count(families, query) == 1, query


def test_leader_failure_reports_only_down():
    api = _cluster()
    api.fail("leader")
    exporter = NomadExporter(api)

    families = exporter.scrape()

    assert sample_value(families, "nomad_up") == 0
    assert family_names(families) == {"nomad_up"} | LATENCY_FAMILIES
    assert _latency_count(families, "leader") == 1
    assert api.calls["list_nodes"] == 0
    assert exporter.last_error.stage == "leader"


def test_inventory_failure_stops_the_scrape():
    api = _cluster()
    api.fail("list_nodes")
    families = NomadExporter(api).scrape()

    assert sample_value(families, "nomad_up") == 1
    assert "nomad_serf_lan_members" not in family_names(families)
    assert api.calls["list_allocations"] == 0
    assert _latency_count(families, "fetch_nodes") == 1


def test_failing_stage_stops_later_stages():
    api = _cluster()
    api.fail("peers")
    exporter = NomadExporter(api)

    families = exporter.scrape()

    # Earlier stages made it out
    assert sample_value(families, "nomad_serf_lan_members") == 2
    assert sample_value(families, "nomad_allocation_total", node="N1") == 1
    # Nothing after peers ran
    assert api.calls["agent_self"] == 0
    assert api.calls["list_jobs"] == 0
    assert api.calls["list_evaluations"] == 0
    assert api.calls["list_deployments"] == 0
    assert _latency_count(families, "peers") == 1
    assert exporter.last_error.stage == "peers"


def test_follower_keeps_ungated_outputs():
    api = _cluster(address="http://10.0.0.2:4646", leader="10.0.0.1:4647")
    exporter = NomadExporter(api)

    families = exporter.scrape()

    assert sample_value(families, "nomad_up") == 1
    assert sample_value(families, "nomad_cluster_leader") == 0
    # Ungated
    assert sample_value(families, "nomad_serf_lan_members") == 2
    assert sample_value(families, "nomad_node_info", node="N1") == 1
    assert sample_value(families, "nomad_raft_commit_index") == 121
    # Gated: reset but never filled
    assert samples(families, "nomad_allocation_total") == []
    assert samples(families, "nomad_evals_total") == []
    assert samples(families, "nomad_deployments_total") == []
    assert "nomad_cluster_servers" not in family_names(families)
    assert "nomad_jobs_total" not in family_names(families)
    for method in ("list_allocations", "peers", "list_jobs", "list_evaluations", "list_deployments", "node_info"):
        assert api.calls[method] == 0, method


def test_follower_with_stale_reads_reads_everything():
    api = _cluster(address="http://10.0.0.2:4646", leader="10.0.0.1:4647")
    exporter = NomadExporter(api, ExporterConfig(allow_stale_reads=True))

    families = exporter.scrape()

    assert sample_value(families, "nomad_cluster_leader") == 0
    assert sample_value(families, "nomad_jobs_total") == 1


def test_disabled_stages_are_skipped():
    api = _cluster()
    config = ExporterConfig(peer_metrics=False, serf_metrics=False, deployment_metrics=False)

    families = NomadExporter(api, config).scrape()

    assert api.calls["peers"] == 0
    assert api.calls["agent_self"] == 0
    assert api.calls["list_deployments"] == 0
    assert sample_value(families, "nomad_jobs_total") == 1
    assert _latency_count(families, "peers") is None


def test_client_errors_are_reported():
    api = _cluster()
    api.fail("allocation_stats", "A1")

    families = NomadExporter(api).scrape()

    assert sample_value(families, "nomad_client_errors_total", operation="get_allocation_stats") == 1


def test_registers_without_scraping():
    api = _cluster()
    registry = CollectorRegistry()
    registry.register(NomadExporter(api))

    assert api.calls["leader"] == 0

    text = generate_latest(registry).decode()
    assert "nomad_up 1.0" in text
    assert api.calls["leader"] == 1


def test_counter_help_names_the_exposed_series():
    api = _cluster()
    registry = CollectorRegistry()
    registry.register(NomadExporter(api))

    text = generate_latest(registry).decode()
    for old in ("nomad_allocation", "nomad_tasks", "nomad_evals", "nomad_deployments"):
        assert f"# HELP {old}_total " in text
        assert f"Exposed as {old}_total (formerly {old})." in text


def test_probe():
    api = _cluster()
    exporter = NomadExporter(api)
    assert exporter.probe() is True

    api.fail("leader")
    assert exporter.probe() is False
    # The probe never touches the rest of the cluster
    assert api.calls["list_nodes"] == 0
