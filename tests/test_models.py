"""Tests for building models out of Nomad API JSON."""

from nomad_exporter.models import (
    AgentSelf,
    Allocation,
    AllocationStats,
    Deployment,
    Node,
    NodeStats,
    NodeStub,
    parse_list,
)


def test_node_stub_from_api():
    stub = NodeStub.from_api({
        "ID": "abc", "Name": "client-1", "NodeClass": "compute", "Datacenter": "dc2",
        "Version": "1.6.2", "Status": "ready", "Drain": True, "SchedulingEligibility": "ineligible",
    })
    assert stub.id == "abc"
    assert stub.node_class == "compute"
    assert stub.drain is True
    assert stub.scheduling_eligibility == "ineligible"


def test_missing_fields_default_to_zero_values():
    stub = NodeStub.from_api({"ID": "abc"})
    assert stub.name == ""
    assert stub.drain is False

    alloc = Allocation.from_api({"ID": "a1"})
    assert alloc.job.version == 0
    assert alloc.resources.cpu == 0
    assert alloc.task_states == {}


def test_node_prefers_legacy_resources():
    node = Node.from_api({
        "ID": "n1",
        "Resources": {"CPU": 4000, "MemoryMB": 8192, "DiskMB": 1024, "IOPS": 5},
        "NodeResources": {"Cpu": {"CpuShares": 1}},
    })
    assert node.resources.cpu == 4000
    assert node.resources.iops == 5


def test_node_falls_back_to_node_resources():
    node = Node.from_api({
        "ID": "n1",
        "NodeResources": {
            "Cpu": {"CpuShares": 3000},
            "Memory": {"MemoryMB": 2048},
            "Disk": {"DiskMB": 512},
        },
    })
    assert node.resources.cpu == 3000
    assert node.resources.memory_mb == 2048
    assert node.resources.disk_mb == 512


def test_node_stats_from_api():
    stats = NodeStats.from_api({"CPUTicksConsumed": 1500.9, "Memory": {"Used": 4096}})
    assert stats.memory_used == 4096
    assert stats.cpu_ticks_consumed == 1500.9


def test_allocation_task_states_keep_only_state():
    alloc = Allocation.from_api({
        "ID": "a1",
        "Job": {"ID": "web", "Type": "service", "Version": 4, "Region": "global"},
        "TaskStates": {"nginx": {"State": "running", "Failed": False}, "sidecar": {"State": "pending"}},
    })
    assert alloc.job.type == "service"
    assert alloc.job.version == 4
    assert alloc.task_states == {"nginx": "running", "sidecar": "pending"}


def test_allocation_stats_per_task():
    stats = AllocationStats.from_api({
        "ResourceUsage": {"CpuStats": {"Percent": 10.5, "TotalTicks": 100}, "MemoryStats": {"RSS": 2048}},
        "Tasks": {"nginx": {"ResourceUsage": {"CpuStats": {"Percent": 4.0}, "MemoryStats": {"RSS": 1024}}}},
    })
    assert stats.usage.cpu_percent == 10.5
    assert stats.usage.memory_rss == 2048
    assert stats.tasks["nginx"].cpu_percent == 4.0
    assert stats.tasks["nginx"].cpu_total_ticks == 0.0


def test_deployment_task_groups():
    dep = Deployment.from_api({
        "ID": "D1", "JobID": "web", "JobVersion": 2, "Status": "running",
        "TaskGroups": {"TG1": {"DesiredTotal": 3, "HealthyAllocs": 2, "AutoRevert": True}},
    })
    group = dep.task_groups["TG1"]
    assert group.desired_total == 3
    assert group.healthy_allocs == 2
    assert group.auto_revert is True
    assert group.promoted is False


def test_agent_self_reads_member_record():
    agent = AgentSelf.from_api({
        "config": {"Datacenter": "fallback", "NodeName": "fallback"},
        "member": {"Name": "server-1.global", "Tags": {"dc": "dc1"}},
        "stats": {"raft": {"commit_index": "12"}},
    })
    assert agent.datacenter == "dc1"
    assert agent.node_name == "server-1.global"
    assert agent.stat("raft", "commit_index") == "12"
    assert agent.stat("raft", "missing") is None
    assert agent.stat("nomad", "server") is None


def test_agent_self_falls_back_to_config():
    agent = AgentSelf.from_api({"config": {"Datacenter": "dc9", "NodeName": "srv"}})
    assert agent.datacenter == "dc9"
    assert agent.node_name == "srv"


def test_parse_list_treats_null_as_empty():
    assert parse_list(NodeStub, None) == []
    assert [n.id for n in parse_list(NodeStub, [{"ID": "a"}, {"ID": "b"}])] == ["a", "b"]
