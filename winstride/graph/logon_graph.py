"""
Logon Graph Aggregator
======================

Builds a user / machine graph from Security log records.

Every record whose payload names a ``TargetUserName`` contributes one logon:

* user nodes are keyed by ``user:{lowercased account name}``,
* machine nodes by ``machine:{lowercased machine name}``,
* edges by user, machine, event id and logon type, so a failed network
  logon and a successful interactive logon between the same pair stay
  separate edges.

Edge attributes (ip, port, process, workstation) follow the most recent
event on the edge. Like the process graph, every call builds a fresh graph.
"""

import datetime
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..data.event_meta import LOGON_TYPE_LABELS, SECURITY_EVENT_LABELS
from ..data.event_parsers import LogonData, parse_logon_data
from ..data.event_record import EventRecord
from ..data.parse_cache import default_cache
from ..utils.timestamp_parser import TimestampParser

# Configure logger
logger = logging.getLogger(__name__)

NODE_USER = 'user'
NODE_MACHINE = 'machine'

FAILED_LOGON_EVENT = 4625

PRIVILEGED_USERS = {'Administrator', 'ADMINISTRATOR', 'admin', 'ADMIN'}

# Parse cache owner of the records last aggregated
CACHE_OWNER = 'logon-graph'


@dataclass
class LogonNode:
    """A user account or a machine."""
    id: str
    label: str
    type: str
    privileged: bool = False
    logon_count: int = 0
    failed_count: int = 0
    success_count: int = 0
    connected_count: int = 0
    auth_packages: List[str] = field(default_factory=list)
    had_admin_session: bool = False
    last_ip: str = ''
    last_seen: str = ''


@dataclass
class LogonEdge:
    """All logons of one user on one machine sharing event id and logon type."""
    id: str
    source: str
    target: str
    event_id: int
    logon_type: int
    logon_type_label: str
    first_seen: str
    last_seen: str
    ip_address: str = '-'
    ip_port: str = ''
    subject_user_name: str = ''
    subject_domain_name: str = ''
    target_domain_name: str = ''
    auth_package: str = ''
    logon_process: str = ''
    workstation_name: str = ''
    process_name: str = ''
    key_length: int = -1
    elevated_token: bool = False
    failure_status: str = ''
    failure_sub_status: str = ''
    logon_count: int = 0
    record_ids: List[int] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.event_id == FAILED_LOGON_EVENT


@dataclass
class LogonGraph:
    """Result of a logon aggregation pass."""
    nodes: List[LogonNode] = field(default_factory=list)
    edges: List[LogonEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[LogonNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def edge(self, edge_id: str) -> Optional[LogonEdge]:
        return next((edge for edge in self.edges if edge.id == edge_id), None)

    def nodes_of_type(self, node_type: str) -> List[LogonNode]:
        return [node for node in self.nodes if node.type == node_type]

    def edges_of(self, node_id: str) -> List[LogonEdge]:
        """Edges touching a node, for the detail panel."""
        return [edge for edge in self.edges if node_id in (edge.source, edge.target)]


def user_node_id(name: str) -> str:
    return f"user:{name.lower()}"


def machine_node_id(name: str) -> str:
    return f"machine:{name.lower()}"


def logon_edge_id(user_id: str, machine_id: str, event_id: int, logon_type: int) -> str:
    return f"{user_id}->{machine_id}::{event_id}::{logon_type}"


def edge_label(event_id: int, logon_type: int) -> str:
    """
    Human-readable edge label, e.g. "Failed Logon (Network)".

    The logon type is only appended for logon and failed logon events.
    """
    base = SECURITY_EVENT_LABELS.get(event_id, f"Event {event_id}")
    if event_id in (4624, FAILED_LOGON_EVENT) and logon_type in LOGON_TYPE_LABELS:
        return f"{base} ({LOGON_TYPE_LABELS[logon_type]})"
    return base


def _sort_time(value: str) -> datetime.datetime:
    return TimestampParser.parse_timestamp(value) or datetime.datetime.min


def _is_newer(candidate: str, current: str) -> bool:
    if not current:
        return bool(candidate)
    return _sort_time(candidate) > _sort_time(current)


class _LogonGraphBuilder:
    """Mutable node/edge tables for a single aggregation pass."""

    def __init__(self):
        self.nodes: Dict[str, LogonNode] = {}
        self.edges: Dict[str, LogonEdge] = {}
        self.neighbours: Dict[str, Set[str]] = {}

    def node(self, node_id: str, label: str, node_type: str, privileged: bool) -> LogonNode:
        node = self.nodes.get(node_id)
        if node is None:
            node = LogonNode(id=node_id, label=label, type=node_type, privileged=privileged)
            self.nodes[node_id] = node
            self.neighbours[node_id] = set()
        return node

    @staticmethod
    def _count(node: LogonNode, logon: LogonData, failed: bool):
        node.logon_count += 1
        if failed:
            node.failed_count += 1
        else:
            node.success_count += 1
        if logon.auth_package and logon.auth_package not in node.auth_packages:
            node.auth_packages.append(logon.auth_package)

    def add(self, record: EventRecord):
        logon = parse_logon_data(record)
        if logon is None or not logon.target_user_name:
            return

        failed = record.event_id == FAILED_LOGON_EVENT
        time_created = record.time_created

        user = self.node(user_node_id(logon.target_user_name), logon.target_user_name,
                         NODE_USER, logon.target_user_name in PRIVILEGED_USERS)
        self._count(user, logon, failed)
        if logon.elevated_token:
            user.had_admin_session = True
        if logon.ip_address and logon.ip_address != '-' and _is_newer(time_created, user.last_seen):
            user.last_ip = logon.ip_address
            user.last_seen = time_created

        machine = self.node(machine_node_id(record.machine_name), record.machine_name, NODE_MACHINE, False)
        self._count(machine, logon, failed)
        if _is_newer(time_created, machine.last_seen):
            machine.last_seen = time_created

        self.neighbours[user.id].add(machine.id)
        self.neighbours[machine.id].add(user.id)
        self.link(user.id, machine.id, record, logon)

    def link(self, user_id: str, machine_id: str, record: EventRecord, logon: LogonData):
        key = logon_edge_id(user_id, machine_id, record.event_id, logon.logon_type)
        time_created = record.time_created
        edge = self.edges.get(key)
        if edge is None:
            edge = LogonEdge(
                id=key,
                source=user_id,
                target=machine_id,
                event_id=record.event_id,
                logon_type=logon.logon_type,
                logon_type_label=edge_label(record.event_id, logon.logon_type),
                first_seen=time_created,
                last_seen=time_created,
                ip_address=logon.ip_address,
                ip_port=logon.ip_port,
                subject_user_name=logon.subject_user_name,
                subject_domain_name=logon.subject_domain_name,
                target_domain_name=logon.target_domain_name,
                auth_package=logon.auth_package,
                logon_process=logon.logon_process,
                workstation_name=logon.workstation_name,
                process_name=logon.process_name,
                key_length=logon.key_length,
                elevated_token=logon.elevated_token,
                failure_status=logon.failure_status,
                failure_sub_status=logon.failure_sub_status,
            )
            self.edges[key] = edge

        edge.logon_count += 1
        edge.record_ids.append(record.id)
        if _is_newer(time_created, edge.last_seen):
            edge.last_seen = time_created
            # Details follow the most recent event
            if logon.ip_address and logon.ip_address != '-':
                edge.ip_address = logon.ip_address
            if logon.ip_port:
                edge.ip_port = logon.ip_port
            if logon.process_name:
                edge.process_name = logon.process_name
            if logon.workstation_name:
                edge.workstation_name = logon.workstation_name
            if logon.elevated_token:
                edge.elevated_token = True
        if _sort_time(time_created) < _sort_time(edge.first_seen):
            edge.first_seen = time_created

    def build(self) -> LogonGraph:
        for node_id, node in self.nodes.items():
            node.connected_count = len(self.neighbours[node_id])
        return LogonGraph(nodes=list(self.nodes.values()), edges=list(self.edges.values()))


def aggregate_logons(records: Iterable[EventRecord]) -> LogonGraph:
    """
    Aggregate Security records into a user / machine logon graph.

    Records without a target user (or with an unreadable payload) are
    skipped.

    Args:
        records: Filtered Security records

    Returns:
        LogonGraph
    """
    records = list(records)
    default_cache.retain(records, owner=CACHE_OWNER)
    builder = _LogonGraphBuilder()
    for record in records:
        builder.add(record)

    graph = builder.build()
    logger.debug(f"Logon graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges "
                 f"from {len(records)} records")
    return graph


def logon_summary(graph: LogonGraph) -> Dict[str, int]:
    """Node counts per type, privileged users and the edge count."""
    return {
        NODE_USER: len(graph.nodes_of_type(NODE_USER)),
        NODE_MACHINE: len(graph.nodes_of_type(NODE_MACHINE)),
        'privileged': sum(1 for node in graph.nodes if node.privileged),
        'edges': len(graph.edges),
    }
