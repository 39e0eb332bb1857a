"""Tests for the process graph aggregator."""

import random

from winstride.data.event_parsers import parse_process_create
from winstride.data.parse_cache import default_cache
from winstride.graph.process_graph import (
    CACHE_OWNER,
    MAX_ATTRIBUTE_VALUES,
    aggregate,
    node_summary,
)


def _shape(graph):
    nodes = {(n.id, n.type, n.count) for n in graph.nodes}
    edges = {(e.id, e.source, e.target, e.type, e.count) for e in graph.edges}
    return nodes, edges


class TestProcessPass:
    def test_repeated_spawn_counts_edge_not_node(self, events):
        records = [
            events.process_create(1, "B", parent_guid="A", image="C:\\b.exe", parent_image="C:\\a.exe"),
            events.process_create(2, "C", parent_guid="A", image="C:\\c.exe", parent_image="C:\\a.exe"),
            events.process_create(3, "B", parent_guid="A", image="C:\\b.exe", parent_image="C:\\a.exe"),
        ]
        graph = aggregate(records)

        assert graph.node("B").count == 2
        assert graph.node("C").count == 1
        # A was only ever referenced as a parent
        assert graph.node("A").count == 0
        assert graph.node("A").is_stub
        assert graph.edge("spawned-A-B").count == 2
        assert graph.edge("spawned-A-C").count == 1
        assert len(graph.edges) == 2
        assert graph.edge("spawned-A-B").record_ids == [1, 3]

    def test_chain_with_one_creation_per_node(self, events):
        records = [
            events.process_create(1, "A", parent_guid="ROOT"),
            events.process_create(2, "B", parent_guid="A"),
            events.process_create(3, "C", parent_guid="A"),
            events.process_create(4, "B", parent_guid="A"),
        ]
        graph = aggregate(records)

        assert graph.node("A").count == 1
        assert graph.edge("spawned-A-B").count == 2
        assert graph.edge("spawned-A-C").count == 1

    def test_count_conservation(self, events):
        records = [
            events.process_create(1, "A", parent_guid="ROOT"),
            events.process_create(2, "B", parent_guid="A"),
            events.process_create(3, "B", parent_guid="A"),
            events.process_create(4, "", parent_guid="A"),   # no correlation id
            events.record(5, 1, event_data="{not json"),     # malformed payload
            events.network_connect(6, "B"),
        ]
        graph = aggregate(records)
        process_total = sum(n.count for n in graph.nodes_of_type("process"))
        assert process_total == 3

    def test_attributes_deduplicated_in_order(self, events):
        records = [
            events.process_create(1, "A", user="CORP\\bob", integrity="High", command_line="a.exe -x"),
            events.process_create(2, "A", user="CORP\\alice", integrity="High", command_line="a.exe -y"),
            events.process_create(3, "A", user="CORP\\bob", integrity="Medium", command_line="a.exe -x"),
        ]
        node = aggregate(records).node("A")

        assert node.users == ["CORP\\bob", "CORP\\alice"]
        assert node.integrity_levels == ["High", "Medium"]
        assert node.command_lines == ["a.exe -x", "a.exe -y"]
        assert node.record_ids == [1, 2, 3]
        assert node.max_integrity == "High"

    def test_attribute_lists_are_capped(self, events):
        records = [
            events.process_create(i, "A", command_line=f"a.exe --run {i}")
            for i in range(1, MAX_ATTRIBUTE_VALUES + 20)
        ]
        node = aggregate(records).node("A")
        assert len(node.command_lines) == MAX_ATTRIBUTE_VALUES
        assert node.count == MAX_ATTRIBUTE_VALUES + 19

    def test_stub_label_replaced_by_creation(self, events):
        records = [
            events.network_connect(1, "P", image="C:\\tools\\early.exe"),
            events.process_create(2, "P", image="C:\\tools\\real.exe"),
        ]
        node = aggregate(records).node("P")
        assert node.label == "real.exe"
        assert node.count == 1


class TestSinks:
    def test_network_nodes(self, events):
        records = [
            events.network_connect(1, "P", ip="8.8.8.8", port=53, protocol="udp"),
            events.network_connect(2, "P", ip="8.8.8.8", port=53, protocol="udp"),
            events.network_connect(3, "P", ip="1.1.1.1", port=443),
        ]
        graph = aggregate(records)

        sink = graph.node("net-8.8.8.8:53")
        assert sink.type == "network"
        assert sink.label == "8.8.8.8:53"
        assert sink.count == 2
        assert sink.protocols == ["udp"]
        assert graph.edge("connected-P-net-8.8.8.8:53").count == 2
        assert graph.edge("connected-P-net-1.1.1.1:443").count == 1
        # The process itself was never created in this window
        assert graph.node("P").count == 0
        assert graph.node("P").label == "app.exe"

    def test_file_nodes(self, events):
        records = [
            events.file_create(1, "P", target="C:\\Temp\\a.txt"),
            events.file_create(2, "P", target="C:\\Temp\\a.txt"),
        ]
        graph = aggregate(records)

        sink = graph.node("file-C:\\Temp\\a.txt")
        assert sink.type == "file"
        assert sink.label == "a.txt"
        assert sink.count == 2
        assert sink.file_paths == ["C:\\Temp\\a.txt"]
        assert graph.edge("created-P-file-C:\\Temp\\a.txt").count == 2
        assert graph.node("P").file_paths == ["C:\\Temp\\a.txt"]

    def test_records_without_guid_are_skipped(self, events):
        graph = aggregate([events.network_connect(1, ""), events.file_create(2, "")])
        assert graph.nodes == []
        assert graph.edges == []


class TestOrderIndependence:
    def test_shuffled_input_same_shape(self, events):
        records = [
            events.process_create(1, "A", parent_guid="ROOT"),
            events.process_create(2, "B", parent_guid="A"),
            events.process_create(3, "B", parent_guid="A"),
            events.process_create(4, "C", parent_guid="B", integrity="High"),
            events.network_connect(5, "C", ip="10.1.1.1", port=445),
            events.network_connect(6, "D", ip="10.1.1.1", port=445),
            events.file_create(7, "B", target="C:\\x.dll"),
            events.file_create(8, "E", target="C:\\x.dll"),
        ]
        expected = _shape(aggregate(records))

        rng = random.Random(1234)
        for _ in range(10):
            shuffled = list(records)
            rng.shuffle(shuffled)
            assert _shape(aggregate(shuffled)) == expected

    def test_previous_output_not_mutated(self, events):
        first = aggregate([events.process_create(1, "A", parent_guid="ROOT")])
        snapshot = _shape(first)
        aggregate([
            events.process_create(1, "A", parent_guid="ROOT"),
            events.process_create(2, "A", parent_guid="ROOT"),
        ])
        assert _shape(first) == snapshot


class TestHideSystemIntegrity:
    def test_system_processes_and_orphans_removed(self, events):
        records = [
            events.process_create(1, "SVC", parent_guid="ROOT", integrity="System"),
            events.process_create(2, "USR", parent_guid="ROOT", integrity="Medium"),
            events.network_connect(3, "SVC", ip="10.0.0.1", port=135),
            events.network_connect(4, "USR", ip="10.0.0.2", port=443),
            events.file_create(5, "SVC", target="C:\\Windows\\Temp\\svc.log"),
        ]
        graph = aggregate(records, hide_system_integrity=True)
        ids = {n.id for n in graph.nodes}

        assert "SVC" not in ids
        assert "net-10.0.0.1:135" not in ids
        assert "file-C:\\Windows\\Temp\\svc.log" not in ids
        assert {"USR", "ROOT", "net-10.0.0.2:443"} <= ids
        assert all("SVC" not in (e.source, e.target) for e in graph.edges)

    def test_mixed_integrity_uses_maximum(self, events):
        records = [
            events.process_create(1, "P", integrity="Medium"),
            events.process_create(2, "P", integrity="System"),
        ]
        assert aggregate(records, hide_system_integrity=True).node("P") is None
        assert aggregate(records).node("P").count == 2

    def test_shared_sink_survives(self, events):
        records = [
            events.process_create(1, "SVC", integrity="System"),
            events.process_create(2, "USR", integrity="Medium"),
            events.network_connect(3, "SVC", ip="10.0.0.9", port=80),
            events.network_connect(4, "USR", ip="10.0.0.9", port=80),
        ]
        graph = aggregate(records, hide_system_integrity=True)
        sink = graph.node("net-10.0.0.9:80")
        assert sink is not None
        assert sink.count == 1
        assert sink.record_ids == [4]
        assert [e.id for e in graph.edges] == ["connected-USR-net-10.0.0.9:80"]

    def test_sink_counts_only_visible_processes(self, events):
        records = [
            events.process_create(1, "SVC", integrity="System"),
            events.process_create(2, "USR", integrity="Medium"),
            events.network_connect(3, "SVC", ip="10.0.0.9", port=80, user="NT AUTHORITY\\SYSTEM"),
            events.network_connect(4, "SVC", ip="10.0.0.9", port=80, user="NT AUTHORITY\\SYSTEM"),
            events.network_connect(5, "USR", ip="10.0.0.9", port=80, user="CORP\\alice"),
            events.file_create(6, "SVC", target="C:\\Shared\\out.log"),
            events.file_create(7, "USR", target="C:\\Shared\\out.log"),
        ]
        graph = aggregate(records, hide_system_integrity=True)

        for sink in graph.nodes_of_type("network") + graph.nodes_of_type("file"):
            incoming = [e for e in graph.edges if e.target == sink.id]
            assert sink.count == sum(e.count for e in incoming)
            assert sorted(sink.record_ids) == sorted(r for e in incoming for r in e.record_ids)

        assert graph.node("net-10.0.0.9:80").users == ["CORP\\alice"]
        assert graph.node("file-C:\\Shared\\out.log").record_ids == [7]
        # Unfiltered view still sees every connection
        assert aggregate(records).node("net-10.0.0.9:80").count == 3


def test_node_summary(events):
    graph = aggregate([
        events.process_create(1, "B", parent_guid="A"),
        events.network_connect(2, "B"),
        events.file_create(3, "B"),
    ])
    assert node_summary(graph) == {"process": 2, "network": 1, "file": 1, "edges": 3}


def test_graph_keeps_only_current_window_parsed(events):
    records = [events.process_create(i, f"G{i}", parent_guid="ROOT") for i in range(1, 4)]
    aggregate(records)
    assert CACHE_OWNER in default_cache.owners()
    kept = parse_process_create(records[0])
    dropped = parse_process_create(records[2])

    aggregate(records[:1])

    assert parse_process_create(records[0]) is kept
    assert parse_process_create(records[2]) is not dropped
