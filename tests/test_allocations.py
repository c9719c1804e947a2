"""Tests for allocation and task metrics."""

import pytest

from fakes import FakeNomadAPI, family_names, make_context, sample_value, samples
from nomad_exporter.collector.allocations import AllocationCollector
from nomad_exporter.collector.errors import CollectionError
from nomad_exporter.metrics import Accumulators


def _run(api: FakeNomadAPI, accumulators=None, **kwargs):
    ctx = make_context(api, accumulators=accumulators, **kwargs)
    AllocationCollector().collect(ctx)
    return ctx.sink.families()


def test_running_allocation_on_ready_node():
    api = FakeNomadAPI()
    api.add_node("N1", datacenter="dc1")
    api.add_allocation("A1", "N1", job_id="web", job_version=3, task_group="frontend",
                       tasks={"nginx": "running", "sidecar": "running"}, cpu=500, memory_mb=256)

    families = _run(api)

    assert sample_value(families, "nomad_allocation_total", status="running", node="N1",
                        job_type="service", job_id="web", job_version="3", task_group="frontend") == 1
    assert sample_value(families, "nomad_tasks_total", state="running", job_type="service", node="N1") == 2

    alloc = {"alloc_id": "A1", "job": "web", "region": "global", "datacenter": "dc1", "node": "N1"}
    assert sample_value(families, "nomad_allocation_cpu_percent", **alloc) == 12.5
    assert sample_value(families, "nomad_allocation_memory_rss_bytes", **alloc) == 64 * 1024 * 1024
    assert sample_value(families, "nomad_allocation_cpu_required", **alloc) == 500
    assert sample_value(families, "nomad_allocation_memory_rss_required_bytes", **alloc) == 256 * 1024 * 1024
    assert sample_value(families, "nomad_task_cpu_percent", task="nginx", **alloc) == 12.5
    assert sample_value(families, "nomad_task_memory_rss_bytes", task="sidecar", **alloc) == 64 * 1024 * 1024
    assert sample_value(families, "nomad_allocation_zombies") == 0


def test_orphan_allocation_counted_once():
    api = FakeNomadAPI()
    api.add_allocation("A2", "N404")

    families = _run(api)

    assert sample_value(families, "nomad_allocation_zombies") == 1
    assert samples(families, "nomad_allocation_total") == []
    assert samples(families, "nomad_tasks_total") == []
    assert api.calls["allocation_info"] == 0


def test_allocations_on_non_ready_node_are_skipped():
    api = FakeNomadAPI()
    api.add_node("N1", status="down")
    api.add_allocation("A1", "N1")
    api.add_allocation("A2", "N1", client_status="pending")

    families = _run(api)

    assert samples(families, "nomad_allocation_total") == []
    assert samples(families, "nomad_tasks_total") == []
    assert api.calls["allocation_info"] == 0
    assert api.calls["allocation_stats"] == 0


def test_unsupported_version_and_not_desired_are_skipped():
    api = FakeNomadAPI()
    api.add_node("old", version="0.7.1")
    api.add_node("N1")
    api.add_allocation("A1", "old")
    api.add_allocation("A2", "N1", desired_status="stop")

    families = _run(api)

    assert samples(families, "nomad_allocation_total") == []
    assert sample_value(families, "nomad_allocation_zombies") == 0
    assert api.calls["allocation_info"] == 0


def test_only_running_allocations_fetch_stats():
    api = FakeNomadAPI()
    api.add_node("N1")
    api.add_allocation("A1", "N1", client_status="pending", tasks={"server": "pending"})

    families = _run(api)

    assert sample_value(families, "nomad_allocation_total", status="pending") == 1
    assert sample_value(families, "nomad_tasks_total", state="pending") == 1
    assert api.calls["allocation_stats"] == 0
    assert "nomad_allocation_cpu_percent" not in family_names(families)


def test_info_failure_skips_only_that_allocation():
    api = FakeNomadAPI()
    api.add_node("N1")
    api.add_allocation("A1", "N1", job_id="one")
    api.add_allocation("A2", "N1", job_id="two")
    api.fail("allocation_info", "A1")

    accumulators = Accumulators()
    families = _run(api, accumulators=accumulators)

    assert sample_value(families, "nomad_allocation_total", job_id="one") is None
    assert sample_value(families, "nomad_allocation_total", job_id="two") == 1
    assert sample_value(accumulators.client_errors.collect(), "nomad_client_errors_total",
                        operation="get_allocation_info") == 1


def test_stats_failure_keeps_counters():
    api = FakeNomadAPI()
    api.add_node("N1")
    api.add_allocation("A1", "N1")
    api.fail("allocation_stats", "A1")

    families = _run(api)

    assert sample_value(families, "nomad_allocation_total", status="running") == 1
    assert samples(families, "nomad_allocation_cpu_percent") == []


def test_reset_is_idempotent():
    api = FakeNomadAPI()
    api.add_node("N1")
    api.add_allocation("A1", "N1")
    api.add_allocation("A2", "N404")
    accumulators = Accumulators()

    first = _run(api, accumulators=accumulators)
    second = _run(api, accumulators=accumulators)

    for name in ("nomad_allocation_total", "nomad_tasks_total", "nomad_allocation_zombies"):
        assert [(s.labels, s.value) for s in samples(first, name)] == \
               [(s.labels, s.value) for s in samples(second, name)]
    assert sample_value(second, "nomad_allocation_zombies") == 1


def test_gated_scrape_leaves_accumulators_empty():
    api = FakeNomadAPI()
    api.add_node("N1")
    api.add_allocation("A1", "N1")
    accumulators = Accumulators()
    _run(api, accumulators=accumulators)

    families = _run(api, accumulators=accumulators, should_read=False)

    assert families == []
    assert samples(accumulators.allocation.collect(), "nomad_allocation_total") == []
    assert samples(accumulators.tasks.collect(), "nomad_tasks_total") == []
    assert sample_value(accumulators.allocation_zombies.collect(), "nomad_allocation_zombies") == 0
    assert api.calls["list_allocations"] == 1


def test_list_failure_aborts():
    api = FakeNomadAPI()
    api.fail("list_allocations")
    with pytest.raises(CollectionError):
        _run(api)


def test_allocation_fanout_respects_its_own_bound():
    api = FakeNomadAPI()
    api.add_node("N1")
    for i in range(12):
        api.add_allocation(f"A{i}", "N1")
    api.delay = 0.02

    _run(api, concurrency=50, allocation_concurrency=3)

    assert api.calls["allocation_info"] == 12
    assert api.max_in_flight["allocation_info"] <= 3
