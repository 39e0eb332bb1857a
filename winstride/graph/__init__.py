"""
Graph aggregation of Sysmon process, network and file activity, and of
Security log logons between users and machines.
"""

from .logon_graph import (
    LogonEdge,
    LogonGraph,
    LogonNode,
    aggregate_logons,
    logon_summary,
)
from .process_graph import (
    MAX_ATTRIBUTE_VALUES,
    AggregatedEdge,
    AggregatedNode,
    ProcessGraph,
    aggregate,
    node_summary,
)

__all__ = [
    'MAX_ATTRIBUTE_VALUES',
    'AggregatedEdge',
    'AggregatedNode',
    'LogonEdge',
    'LogonGraph',
    'LogonNode',
    'ProcessGraph',
    'aggregate',
    'aggregate_logons',
    'logon_summary',
    'node_summary',
]
