"""
PowerShell operational log module: command execution (4103) and script
block logging (4104).
"""

from typing import Any, Dict

from .base import ModuleDefinition, default_time_start, event_dimension, machine_dimension
from ..data.event_meta import POWERSHELL_EVENT_LABELS
from ..data.event_parsers import parse_command_execution, parse_script_block
from ..data.event_record import EventRecord
from ..data.filter_pipeline import EventFilters
from ..data.filter_state import select_only
from ..data.search_engine import ColumnDef

DEFAULT_EVENT_IDS = (4103, 4104)

# Characters of script text shown in the list / exported
COMMAND_PREVIEW_CHARS = 80
EXPORT_PREVIEW_CHARS = 200


def _command(record: EventRecord) -> str:
    if record.event_id == 4104:
        block = parse_script_block(record)
        return block.script_block_text[:COMMAND_PREVIEW_CHARS] if block else ''
    cmd = parse_command_execution(record)
    return cmd.command_name if cmd else ''


def _path(record: EventRecord) -> str:
    if record.event_id == 4104:
        block = parse_script_block(record)
        return block.path if block else ''
    cmd = parse_command_execution(record)
    return cmd.script_name if cmd else ''


COLUMNS = [
    ColumnDef('eventId', 'Event ID', lambda e: e.event_id,
              flex=1.5, min_width=160, search_keys=('event', 'eventid', 'id')),
    ColumnDef('level', 'Level', lambda e: e.level or '', flex=1, min_width=100),
    ColumnDef('command', 'Command / Script', _command,
              flex=4, min_width=200, search_keys=('cmd', 'script')),
    ColumnDef('path', 'Path', _path, flex=2, min_width=120, search_keys=('file',)),
    ColumnDef('machine', 'Machine', lambda e: e.machine_name,
              flex=1.5, min_width=110, search_keys=('host',)),
    ColumnDef('time', 'Time', lambda e: e.time_created, flex=1, min_width=90),
]

DIMENSIONS = [
    event_dimension(POWERSHELL_EVENT_LABELS),
    machine_dimension(),
]


def default_filters() -> EventFilters:
    return EventFilters(
        event_filters=select_only(DEFAULT_EVENT_IDS),
        time_start=default_time_start(),
    )


def extra_fields(record: EventRecord, severity_label: str = '') -> Dict[str, str]:
    """Full script text and command context, searchable beyond the column previews."""
    fields = {
        'label': POWERSHELL_EVENT_LABELS.get(record.event_id, ''),
        'risk': severity_label,
        'severity': severity_label,
    }
    block = parse_script_block(record)
    if block:
        fields['script'] = block.script_block_text
        fields['keywords'] = ' '.join(block.suspicious_matches)
    cmd = parse_command_execution(record)
    if cmd:
        fields.update({
            'payload': cmd.payload,
            'user': cmd.user,
            'type': cmd.command_type,
            'hostapp': cmd.host_application,
        })
    return fields


def json_mapper(record: EventRecord) -> Dict[str, Any]:
    """Export shape of one PowerShell record."""
    if record.event_id == 4104:
        block = parse_script_block(record)
        command = block.script_block_text[:EXPORT_PREVIEW_CHARS] if block else None
        path = block.path if block else None
    else:
        cmd = parse_command_execution(record)
        command = cmd.command_name if cmd else None
        path = cmd.script_name if cmd else None
    return {
        'id': record.id,
        'eventId': record.event_id,
        'eventLabel': POWERSHELL_EVENT_LABELS.get(record.event_id),
        'level': record.level,
        'machineName': record.machine_name,
        'timeCreated': record.time_created,
        'command': command,
        'path': path,
    }


MODULE = ModuleDefinition(
    name='powershell',
    title='PowerShell',
    log_name='Microsoft-Windows-PowerShell/Operational',
    storage_key='winstride:psFilters',
    columns_storage_key='winstride:psColumns',
    event_labels=POWERSHELL_EVENT_LABELS,
    columns=COLUMNS,
    dimensions=DIMENSIONS,
    default_filters=default_filters,
    extra_fields=extra_fields,
    json_mapper=json_mapper,
    event_id_column_key='eventId',
    export_prefix='winstride-powershell',
)
