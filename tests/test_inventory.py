"""Tests for the per-scrape node inventory."""

import pytest

from fakes import FakeNomadAPI
from nomad_exporter.collector.errors import CollectionError
from nomad_exporter.collector.inventory import NodeInventory, fetch_nodes, parse_version, supported_version
from nomad_exporter.collector.latency import LatencyRecorder
from nomad_exporter.metrics import Accumulators
from nomad_exporter.models import NodeStub


def test_parse_version():
    assert parse_version("1.6.2") == (1, 6, 2)
    assert parse_version("v0.9") == (0, 9, 0)
    assert parse_version("1.7.0-beta.1") == (1, 7, 0)
    assert parse_version("") is None
    assert parse_version("dev") is None


def test_supported_version_boundary():
    assert supported_version("n", "0.8.0")
    assert supported_version("n", "1.0.0")
    assert not supported_version("n", "0.7.1")
    assert not supported_version("n", "garbage")


def test_readiness_lookups():
    inventory = NodeInventory([
        NodeStub(id="n1", status="ready", version="1.6.2"),
        NodeStub(id="n2", status="down", version="1.6.2"),
        NodeStub(id="n3", status="ready", version="0.6.0"),
    ])
    assert len(inventory) == 3
    assert inventory.is_ready("n1")
    assert not inventory.is_ready("n2")
    assert not inventory.is_ready("missing")
    assert inventory.is_supported("n1")
    assert not inventory.is_supported("n3")
    assert not inventory.is_supported("missing")
    assert inventory["n2"].status == "down"
    assert inventory.get("missing") is None


def test_fetch_nodes_is_timed():
    api = FakeNomadAPI()
    api.add_node("n1")
    accumulators = Accumulators()

    inventory = fetch_nodes(api, LatencyRecorder(accumulators))

    assert list(inventory) == ["n1"]
    timed = [s for m in accumulators.api_latency.collect() for s in m.samples
             if s.name.endswith("_count") and s.labels["query"] == "fetch_nodes"]
    assert timed[0].value == 1


def test_fetch_nodes_failure_is_fatal():
    api = FakeNomadAPI()
    api.fail("list_nodes")
    with pytest.raises(CollectionError) as exc_info:
        fetch_nodes(api, LatencyRecorder(Accumulators()))
    assert exc_info.value.stage == "fetch_nodes"
