"""
Sysmon module: process creation (1), network connection (3) and file
creation (11).
"""

from typing import Any, Dict

from .base import ModuleDefinition, default_time_start, event_dimension, machine_dimension
from ..data.event_meta import (
    INTEGRITY_LEVELS,
    SYSMON_EVENT_LABELS,
    SYSMON_FILE_CREATE,
    SYSMON_NETWORK_CONNECT,
    SYSMON_PROCESS_CREATE,
)
from ..data.event_parsers import (
    parse_file_create,
    parse_network_connect,
    parse_process_create,
    sysmon_image_name,
    sysmon_user,
)
from ..data.event_record import EventRecord
from ..data.filter_pipeline import EventFilters, FilterDimension
from ..data.filter_state import select_only
from ..data.search_engine import ColumnDef

DEFAULT_EVENT_IDS = (SYSMON_PROCESS_CREATE, SYSMON_NETWORK_CONNECT, SYSMON_FILE_CREATE)

DETAIL_PREVIEW_CHARS = 80
HASH_PREVIEW_CHARS = 40


def _detail(record: EventRecord) -> str:
    if record.event_id == SYSMON_PROCESS_CREATE:
        proc = parse_process_create(record)
        return proc.command_line[:DETAIL_PREVIEW_CHARS] if proc else ''
    if record.event_id == SYSMON_NETWORK_CONNECT:
        net = parse_network_connect(record)
        return f"→{net.destination_ip}:{net.destination_port}" if net else ''
    if record.event_id == SYSMON_FILE_CREATE:
        created = parse_file_create(record)
        return created.target_basename if created else ''
    return ''


def _process_attr(record: EventRecord, attr: str, limit: int = 0) -> str:
    proc = parse_process_create(record)
    if not proc:
        return ''
    value = getattr(proc, attr)
    return value[:limit] if limit else value


COLUMNS = [
    ColumnDef('severity', 'Risk', lambda e: e.id,
              flex=0.7, min_width=60, search_keys=('risk',)),
    ColumnDef('type', 'Type', lambda e: e.event_id,
              flex=1.5, min_width=150, search_keys=('event', 'eventid')),
    ColumnDef('process', 'Process', sysmon_image_name,
              flex=2, min_width=130, search_keys=('image',)),
    ColumnDef('detail', 'Detail', _detail,
              flex=4, min_width=200, search_keys=('command', 'cmd', 'commandline')),
    ColumnDef('user', 'User', sysmon_user, flex=2, min_width=120),
    ColumnDef('integrity', 'Integrity', lambda e: _process_attr(e, 'integrity_level'),
              default_visible=False, flex=1, min_width=80),
    ColumnDef('machine', 'Machine', lambda e: e.machine_name,
              flex=1.5, min_width=110, search_keys=('host',)),
    ColumnDef('time', 'Time', lambda e: e.time_created, flex=1, min_width=90),
    ColumnDef('parent', 'Parent', lambda e: _process_attr(e, 'parent_image_name'),
              default_visible=False, flex=1.5, min_width=110),
    ColumnDef('hashes', 'Hashes', lambda e: _process_attr(e, 'hashes', HASH_PREVIEW_CHARS),
              sortable=False, default_visible=False, flex=3, min_width=200),
]

DIMENSIONS = [
    event_dimension(SYSMON_EVENT_LABELS),
    machine_dimension(),
    FilterDimension('Process', 'process_filters', sysmon_image_name),
    # Only process-create records carry an integrity level
    FilterDimension('Integrity', 'integrity_filters', lambda e: _process_attr(e, 'integrity_level'),
                    fixed_universe=tuple(INTEGRITY_LEVELS), observed=False),
    FilterDimension('User', 'user_filters', sysmon_user),
]


def default_filters() -> EventFilters:
    return EventFilters(
        event_filters=select_only(DEFAULT_EVENT_IDS),
        time_start=default_time_start(),
    )


def extra_fields(record: EventRecord, severity_label: str = '') -> Dict[str, str]:
    """Network and file fields that have no column of their own."""
    net = parse_network_connect(record)
    created = parse_file_create(record)
    destination = net.destination_ip if net else ''
    target = created.target_filename if created else ''
    return {
        'risk': severity_label,
        'severity': severity_label,
        'label': SYSMON_EVENT_LABELS.get(record.event_id, ''),
        'ip': destination,
        'destination': destination,
        'dst': destination,
        'port': str(net.destination_port) if net else '',
        'protocol': net.protocol if net else '',
        'file': target,
        'path': target,
    }


def json_mapper(record: EventRecord) -> Dict[str, Any]:
    """Export shape of one Sysmon record."""
    return {
        'id': record.id,
        'eventId': record.event_id,
        'eventLabel': SYSMON_EVENT_LABELS.get(record.event_id),
        'machineName': record.machine_name,
        'timeCreated': record.time_created,
        'process': sysmon_image_name(record),
        'detail': _detail(record),
        'user': sysmon_user(record),
    }


MODULE = ModuleDefinition(
    name='sysmon',
    title='Sysmon',
    log_name='Microsoft-Windows-Sysmon/Operational',
    storage_key='winstride:sysmonFilters',
    columns_storage_key='winstride:sysmonColumns',
    event_labels=SYSMON_EVENT_LABELS,
    columns=COLUMNS,
    dimensions=DIMENSIONS,
    default_filters=default_filters,
    extra_fields=extra_fields,
    json_mapper=json_mapper,
    event_id_column_key='type',
    export_prefix='winstride-sysmon',
)
