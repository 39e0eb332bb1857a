"""
Process Graph Aggregator
========================

Builds a deduplicated process / network / file graph from Sysmon records.

Nodes are keyed by domain identifiers:

* process nodes by ProcessGuid,
* network nodes by ``net-{destination ip}:{destination port}``,
* file nodes by ``file-{target path}``.

Repeated observations of the same node or edge increment a counter instead of
adding a duplicate. A node that is only referenced (a parent process, or the
process behind a connection or file write) is created as a stub with count 0,
so the sum of process node counts equals the number of usable process-create
records.

Every call builds a fresh graph; nothing returned by a previous call is
reused or modified.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..data.event_meta import INTEGRITY_LEVELS
from ..data.event_parsers import parse_file_create, parse_network_connect, parse_process_create
from ..data.event_record import EventRecord
from ..data.parse_cache import default_cache

# Configure logger
logger = logging.getLogger(__name__)

NODE_PROCESS = 'process'
NODE_NETWORK = 'network'
NODE_FILE = 'file'

EDGE_SPAWNED = 'spawned'
EDGE_CONNECTED = 'connected'
EDGE_CREATED = 'created'

# Cap on each accumulated attribute list
MAX_ATTRIBUTE_VALUES = 50

SYSTEM_INTEGRITY = 'System'

# Parse cache owner of the records last aggregated
CACHE_OWNER = 'process-graph'


@dataclass
class AggregatedNode:
    """One deduplicated graph node."""
    id: str
    type: str
    label: str
    count: int = 0
    users: List[str] = field(default_factory=list)
    integrity_levels: List[str] = field(default_factory=list)
    full_paths: List[str] = field(default_factory=list)
    command_lines: List[str] = field(default_factory=list)
    destinations: List[str] = field(default_factory=list)
    protocols: List[str] = field(default_factory=list)
    file_paths: List[str] = field(default_factory=list)
    record_ids: List[int] = field(default_factory=list)

    def add(self, attribute: str, value: str):
        """Append ``value`` to an attribute list unless empty, known or full."""
        values = getattr(self, attribute)
        if value and value not in values and len(values) < MAX_ATTRIBUTE_VALUES:
            values.append(value)

    @property
    def max_integrity(self) -> Optional[str]:
        """Highest integrity level observed (Low < Medium < High < System)."""
        ranked = [level for level in self.integrity_levels if level in INTEGRITY_LEVELS]
        if not ranked:
            return None
        return max(ranked, key=INTEGRITY_LEVELS.index)

    @property
    def is_stub(self) -> bool:
        return self.count == 0


@dataclass
class AggregatedEdge:
    """One deduplicated graph edge."""
    id: str
    source: str
    target: str
    type: str
    count: int = 0
    record_ids: List[int] = field(default_factory=list)


@dataclass
class ProcessGraph:
    """Result of an aggregation pass."""
    nodes: List[AggregatedNode] = field(default_factory=list)
    edges: List[AggregatedEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[AggregatedNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def edge(self, edge_id: str) -> Optional[AggregatedEdge]:
        return next((edge for edge in self.edges if edge.id == edge_id), None)

    def nodes_of_type(self, node_type: str) -> List[AggregatedNode]:
        return [node for node in self.nodes if node.type == node_type]


def edge_id(edge_type: str, source: str, target: str) -> str:
    return f"{edge_type}-{source}-{target}"


def network_node_id(ip: str, port: int) -> str:
    return f"net-{ip}:{port}"


def file_node_id(path: str) -> str:
    return f"file-{path}"


class _GraphBuilder:
    """Mutable node/edge tables for a single aggregation pass."""

    def __init__(self):
        self.nodes: Dict[str, AggregatedNode] = {}
        self.edges: Dict[str, AggregatedEdge] = {}
        # Process ids whose network/file activity is left out
        self.hidden: Set[str] = set()

    def node(self, node_id: str, node_type: str, label: str) -> AggregatedNode:
        node = self.nodes.get(node_id)
        if node is None:
            node = AggregatedNode(id=node_id, type=node_type, label=label)
            self.nodes[node_id] = node
        elif not node.label and label:
            node.label = label
        return node

    def link(self, edge_type: str, source: str, target: str, record_id: int):
        key = edge_id(edge_type, source, target)
        edge = self.edges.get(key)
        if edge is None:
            edge = AggregatedEdge(id=key, source=source, target=target, type=edge_type)
            self.edges[key] = edge
        edge.count += 1
        edge.record_ids.append(record_id)

    def add_process_create(self, record: EventRecord):
        proc = parse_process_create(record)
        if proc is None or not proc.process_guid:
            return

        node = self.node(proc.process_guid, NODE_PROCESS, proc.image_name)
        if node.is_stub and proc.image_name:
            # A real creation event names the process better than any reference to it
            node.label = proc.image_name
        node.count += 1
        node.record_ids.append(record.id)
        node.add('users', proc.user)
        node.add('integrity_levels', proc.integrity_level)
        node.add('full_paths', proc.image)
        node.add('command_lines', proc.command_line)

        if proc.parent_process_guid:
            parent = self.node(proc.parent_process_guid, NODE_PROCESS, proc.parent_image_name)
            if parent.is_stub:
                parent.add('full_paths', proc.parent_image)
                parent.add('command_lines', proc.parent_command_line)
            self.link(EDGE_SPAWNED, parent.id, node.id, record.id)

    def add_network_connect(self, record: EventRecord):
        net = parse_network_connect(record)
        if net is None or not net.process_guid:
            return
        if net.process_guid in self.hidden:
            return

        endpoint = f"{net.destination_ip}:{net.destination_port}"
        sink = self.node(network_node_id(net.destination_ip, net.destination_port), NODE_NETWORK, endpoint)
        sink.count += 1
        sink.record_ids.append(record.id)
        sink.add('destinations', net.destination_hostname or endpoint)
        sink.add('protocols', net.protocol)
        sink.add('users', net.user)

        proc = self.node(net.process_guid, NODE_PROCESS, net.image_name)
        if proc.is_stub:
            proc.add('full_paths', net.image)
            proc.add('users', net.user)
        proc.add('destinations', endpoint)
        proc.add('protocols', net.protocol)
        self.link(EDGE_CONNECTED, proc.id, sink.id, record.id)

    def add_file_create(self, record: EventRecord):
        created = parse_file_create(record)
        if created is None or not created.process_guid or not created.target_filename:
            return
        if created.process_guid in self.hidden:
            return

        sink = self.node(file_node_id(created.target_filename), NODE_FILE, created.target_basename)
        sink.count += 1
        sink.record_ids.append(record.id)
        sink.add('file_paths', created.target_filename)
        sink.add('users', created.user)

        proc = self.node(created.process_guid, NODE_PROCESS, created.image_name)
        if proc.is_stub:
            proc.add('full_paths', created.image)
            proc.add('users', created.user)
        proc.add('file_paths', created.target_filename)
        self.link(EDGE_CREATED, proc.id, sink.id, record.id)

    def build(self) -> ProcessGraph:
        return ProcessGraph(nodes=list(self.nodes.values()), edges=list(self.edges.values()))


def _hide_system(graph: ProcessGraph, hidden: Set[str]) -> ProcessGraph:
    # Sinks reached only through hidden processes were never added
    edges = [edge for edge in graph.edges if edge.source not in hidden and edge.target not in hidden]
    nodes = [node for node in graph.nodes if node.id not in hidden]
    logger.debug(f"Hid {len(hidden)} System-integrity processes")
    return ProcessGraph(nodes=nodes, edges=edges)


def aggregate(records: Iterable[EventRecord], hide_system_integrity: bool = False) -> ProcessGraph:
    """
    Aggregate Sysmon records into a process graph.

    With ``hide_system_integrity`` the network and file passes skip activity of
    hidden processes, so sink counts, record ids and attributes only reflect
    the processes that stay visible.

    Args:
        records: Filtered Sysmon records
        hide_system_integrity: Drop processes whose highest observed integrity
            level is System, with their edges and any sink only they touched

    Returns:
        ProcessGraph
    """
    records = list(records)
    default_cache.retain(records, owner=CACHE_OWNER)
    builder = _GraphBuilder()

    # One pass per record type so process nodes are populated before sinks reference them
    for record in records:
        builder.add_process_create(record)
    if hide_system_integrity:
        builder.hidden = {
            node.id for node in builder.nodes.values()
            if node.type == NODE_PROCESS and node.max_integrity == SYSTEM_INTEGRITY
        }
    for record in records:
        builder.add_network_connect(record)
    for record in records:
        builder.add_file_create(record)

    graph = builder.build()
    if builder.hidden:
        graph = _hide_system(graph, builder.hidden)
    return graph


def node_summary(graph: ProcessGraph) -> Dict[str, int]:
    """Node counts per type plus the edge count."""
    summary = {NODE_PROCESS: 0, NODE_NETWORK: 0, NODE_FILE: 0}
    for node in graph.nodes:
        summary[node.type] = summary.get(node.type, 0) + 1
    summary['edges'] = len(graph.edges)
    return summary
