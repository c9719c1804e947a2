"""
Mock Nomad cluster.

Produces a fake but plausible cluster (servers, clients, jobs,
allocations, evaluations, deployments) so we can develop and test
without a real Nomad. Everything is returned in the JSON shape the
HTTP API uses, so the same data can back the in-process mock client
and the fake HTTP server.
"""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

DATACENTERS = ["dc1", "dc2"]
NODE_CLASSES = ["", "compute", "storage"]
JOB_TYPES = ["service", "batch", "system"]
EVAL_STATUSES = ["complete", "complete", "complete", "pending", "blocked", "failed"]


class MockCluster:

    def __init__(
        self,
        seed: int = 42,
        node_count: int = 6,
        job_count: int = 5,
        address: str = "http://127.0.0.1:4646",
    ):
        self._rng = random.Random(seed)
        self._tick = 0
        self.address = address
        self.leader_address = "127.0.0.1:4647"
        self.servers = ["127.0.0.1:4647", "127.0.0.2:4647", "127.0.0.3:4647"]
        self.nodes = [self._make_node(i) for i in range(node_count)]
        self.jobs = [self._make_job(i) for i in range(job_count)]
        self.allocations = self._place_allocations()
        self.evaluations = [
            {"ID": f"eval-{i:04d}", "Status": self._rng.choice(EVAL_STATUSES)}
            for i in range(job_count * 3)
        ]
        self.deployments = [self._make_deployment(job) for job in self.jobs if job["Type"] == "service"]

    # -- construction --

    def _make_node(self, i: int) -> Dict[str, Any]:
        # One node draining and one down, so filters have something to do
        status = "down" if i == 4 else "ready"
        return {
            "ID": f"node-{i:04d}-{self._rng.randrange(16 ** 6):06x}",
            "Name": f"client-{i}",
            "NodeClass": NODE_CLASSES[i % len(NODE_CLASSES)],
            "Datacenter": DATACENTERS[i % len(DATACENTERS)],
            "Version": "0.7.1" if i == 5 else "1.6.2",
            "Status": status,
            "Drain": i == 3,
            "SchedulingEligibility": "ineligible" if i == 3 else "eligible",
            "Resources": {
                "CPU": 4000 + 2000 * (i % 3),
                "MemoryMB": 8192 * (1 + i % 2),
                "DiskMB": 100 * 1024,
                "IOPS": 0,
            },
        }

    def _make_job(self, i: int) -> Dict[str, Any]:
        job_type = JOB_TYPES[i % len(JOB_TYPES)]
        return {
            "ID": f"job-{i}",
            "Name": f"job-{i}",
            "Type": job_type,
            "Status": "running",
            "Version": self._rng.randint(0, 4),
            "Region": "global",
            "TaskGroups": [f"group-{i}"],
            "Tasks": [f"task-{i}-a", f"task-{i}-b"] if i % 2 == 0 else [f"task-{i}-a"],
        }

    def _place_allocations(self) -> List[Dict[str, Any]]:
        allocs = []
        n = 0
        for job in self.jobs:
            for _ in range(self._rng.randint(1, 3)):
                node = self._rng.choice(self.nodes)
                client_status = "running" if self._rng.random() > 0.2 else "pending"
                allocs.append(self._make_alloc(n, job, node["ID"], client_status))
                n += 1

        # An allocation whose node has been garbage collected
        allocs.append(self._make_alloc(n, self.jobs[0], "node-gone", "lost"))
        return allocs

    def _make_alloc(self, n: int, job: Dict[str, Any], node_id: str, client_status: str) -> Dict[str, Any]:
        return {
            "ID": f"alloc-{n:04d}-{self._rng.randrange(16 ** 6):06x}",
            "Name": f"{job['ID']}.{job['TaskGroups'][0]}[{n}]",
            "NodeID": node_id,
            "JobID": job["ID"],
            "TaskGroup": job["TaskGroups"][0],
            "DesiredStatus": "run",
            "ClientStatus": client_status,
            "Resources": {"CPU": 250 * self._rng.randint(1, 4), "MemoryMB": 128 * self._rng.randint(1, 8)},
        }

    def _make_deployment(self, job: Dict[str, Any]) -> Dict[str, Any]:
        desired = self._rng.randint(1, 5)
        healthy = self._rng.randint(0, desired)
        return {
            "ID": f"deploy-{job['ID']}",
            "JobID": job["ID"],
            "JobVersion": job["Version"],
            "Status": "running" if healthy < desired else "successful",
            "TaskGroups": {
                job["TaskGroups"][0]: {
                    "Promoted": False,
                    "AutoRevert": True,
                    "DesiredCanaries": 0,
                    "DesiredTotal": desired,
                    "PlacedAllocs": desired,
                    "HealthyAllocs": healthy,
                    "UnhealthyAllocs": desired - healthy,
                }
            },
        }

    # -- lookups --

    def _job(self, job_id: str) -> Dict[str, Any]:
        return next(j for j in self.jobs if j["ID"] == job_id)

    def find_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        return next((n for n in self.nodes if n["ID"] == node_id), None)

    def find_allocation(self, alloc_id: str) -> Optional[Dict[str, Any]]:
        return next((a for a in self.allocations if a["ID"] == alloc_id), None)

    # -- API-shaped views --

    def advance(self):
        """Move the simulation clock forward one step."""
        self._tick += 1

    def node_list(self) -> List[Dict[str, Any]]:
        return [{k: v for k, v in n.items() if k != "Resources"} for n in self.nodes]

    def node(self, node_id: str) -> Optional[Dict[str, Any]]:
        return self.find_node(node_id)

    def node_allocations(self, node_id: str) -> List[Dict[str, Any]]:
        return [self.allocation(a["ID"]) for a in self.allocations if a["NodeID"] == node_id]

    def node_stats(self, node_id: str) -> Optional[Dict[str, Any]]:
        node = self.find_node(node_id)
        if node is None:
            return None
        cpu = node["Resources"]["CPU"]
        mem = node["Resources"]["MemoryMB"] * 1024 * 1024
        load = 0.3 + 0.2 * ((self._tick % 10) / 10) + self._rng.uniform(0, 0.2)
        return {
            "CPUTicksConsumed": cpu * load,
            "Memory": {"Used": int(mem * load), "Total": mem},
        }

    def allocation_list(self) -> List[Dict[str, Any]]:
        return [{k: v for k, v in a.items() if k != "Resources"} for a in self.allocations]

    def allocation(self, alloc_id: str) -> Optional[Dict[str, Any]]:
        stub = self.find_allocation(alloc_id)
        if stub is None:
            return None
        job = self._job(stub["JobID"])
        state = {"running": "running", "pending": "pending"}.get(stub["ClientStatus"], "dead")
        return dict(
            stub,
            Job={k: job[k] for k in ("ID", "Name", "Type", "Version", "Region")},
            TaskStates={task: {"State": state} for task in job["Tasks"]},
        )

    def allocation_stats(self, alloc_id: str) -> Optional[Dict[str, Any]]:
        stub = self.find_allocation(alloc_id)
        if stub is None:
            return None
        job = self._job(stub["JobID"])
        tasks = {}
        total_pct = 0.0
        total_rss = 0
        for task in job["Tasks"]:
            pct = self._rng.uniform(1, 60)
            rss = self._rng.randint(16, 256) * 1024 * 1024
            total_pct += pct
            total_rss += rss
            tasks[task] = {"ResourceUsage": _usage(pct, rss, self._tick)}
        return {"ResourceUsage": _usage(total_pct, total_rss, self._tick), "Tasks": tasks}

    def job_list(self) -> List[Dict[str, Any]]:
        return [{k: j[k] for k in ("ID", "Name", "Type", "Status")} for j in self.jobs]

    def agent_self(self) -> Dict[str, Any]:
        return {
            "config": {"Datacenter": "dc1", "NodeName": "server-1"},
            "member": {"Name": "server-1.global", "Tags": {"dc": "dc1", "region": "global"}},
            "stats": {
                "nomad": {"server": "true", "leader": "true"},
                "raft": {
                    "applied_index": str(1000 + self._tick * 7),
                    "commit_index": str(1000 + self._tick * 7),
                    "fsm_pending": "0",
                    "last_log_index": str(1000 + self._tick * 7),
                    "last_snapshot_index": "512",
                    "num_peers": str(len(self.servers) - 1),
                },
            },
        }


def _usage(percent: float, rss: int, tick: int) -> Dict[str, Any]:
    return {
        "CpuStats": {
            "Percent": percent,
            "ThrottledTime": 0,
            "TotalTicks": percent * 40,
            "UserMode": percent * 0.7,
            "SystemMode": percent * 0.3,
        },
        "MemoryStats": {"RSS": rss + tick * 4096},
    }
