"""
Security log module: logon, logoff and account-management events.
"""

import re
from typing import Any, Dict, List

from .base import ModuleDefinition, default_time_start, event_dimension, machine_dimension
from ..data.event_meta import LOGON_TYPE_LABELS, SECURITY_EVENT_LABELS
from ..data.event_parsers import parse_logon_data
from ..data.event_record import EventRecord
from ..data.filter_pipeline import EventFilters, FilterDimension
from ..data.filter_state import select_only
from ..data.search_engine import ColumnDef

DEFAULT_EVENT_IDS = (4624, 4625, 4634)

SYSTEM_ACCOUNTS = {
    'SYSTEM', 'LOCAL SERVICE', 'NETWORK SERVICE', 'ANONYMOUS LOGON',
    'DefaultAccount', 'WDAGUtilityAccount', 'Guest', '-',
    'DefaultAppPool', 'IUSR', 'sshd', 'krbtgt',
}

SYSTEM_ACCOUNT_PATTERNS = [
    re.compile(r'\$$'),                     # machine accounts: DESKTOP-01$
    re.compile(r'^DWM-\d+$'),               # Desktop Window Manager
    re.compile(r'^UMFD-\d+$'),              # User Mode Font Driver
    re.compile(r'^IUSR'),
    re.compile(r'^DefaultAppPool', re.I),
    re.compile(r'^\.NET', re.I),
    re.compile(r'^ASPNET', re.I),
    re.compile(r'^IIS[ _]?APPPOOL', re.I),
    re.compile(r'^MSSQL', re.I),
    re.compile(r'^SQLServer', re.I),
    re.compile(r'^NT SERVICE\\', re.I),
    re.compile(r'^NT AUTHORITY', re.I),
    re.compile(r'^healthmailbox', re.I),
]

# Status value meaning "no failure"
_NO_STATUS = '0x0'


def is_system_account(name: str) -> bool:
    """True for machine, service and other non-human account names."""
    if name in SYSTEM_ACCOUNTS:
        return True
    return any(pattern.search(name) for pattern in SYSTEM_ACCOUNT_PATTERNS)


def _logon_field(record: EventRecord, attr: str, default: Any = '') -> Any:
    parsed = parse_logon_data(record)
    return getattr(parsed, attr) if parsed else default


def _ip(record: EventRecord) -> str:
    ip = _logon_field(record, 'ip_address')
    return ip if ip and ip != '-' else ''


def _process(record: EventRecord) -> str:
    name = _logon_field(record, 'process_name')
    return name if name and name != '-' else ''


def _failure_statuses(record: EventRecord) -> List[str]:
    parsed = parse_logon_data(record)
    if not parsed:
        return []
    return [status for status in (parsed.failure_status, parsed.failure_sub_status)
            if status and status != _NO_STATUS]


def _logon_type(record: EventRecord):
    logon_type = _logon_field(record, 'logon_type', -1)
    return logon_type if logon_type >= 0 else None


def _is_machine_account(record: EventRecord) -> bool:
    user = _logon_field(record, 'target_user_name')
    return bool(user) and is_system_account(user)


COLUMNS = [
    ColumnDef('eventId', 'Event ID', lambda e: e.event_id,
              flex=2, min_width=150, search_keys=('event', 'eventid', 'id')),
    ColumnDef('level', 'Level', lambda e: e.level or '', flex=1, min_width=90),
    ColumnDef('user', 'User', lambda e: _logon_field(e, 'target_user_name'),
              flex=2, min_width=120, search_keys=('target',)),
    ColumnDef('machine', 'Machine', lambda e: e.machine_name,
              flex=2, min_width=120, search_keys=('host',)),
    ColumnDef('logonType', 'Logon Type', lambda e: _logon_field(e, 'logon_type_label'),
              flex=1.2, min_width=100, search_keys=('logon', 'type')),
    ColumnDef('ip', 'IP', _ip, default_visible=False,
              flex=1.5, min_width=110, search_keys=('address',)),
    ColumnDef('time', 'Time', lambda e: e.time_created, flex=1.2, min_width=100),
]

DIMENSIONS = [
    event_dimension(SECURITY_EVENT_LABELS),
    machine_dimension(),
    FilterDimension('User', 'user_filters', lambda e: _logon_field(e, 'target_user_name')),
    FilterDimension('Logon Type', 'logon_type_filters', _logon_type,
                    fixed_universe=tuple(LOGON_TYPE_LABELS), observed=False),
    FilterDimension('IP', 'ip_filters', _ip),
    FilterDimension('Auth Package', 'auth_package_filters', lambda e: _logon_field(e, 'auth_package')),
    FilterDimension('Process', 'process_filters', _process),
    FilterDimension('Failure Status', 'failure_status_filters', _failure_statuses),
]


def default_filters() -> EventFilters:
    return EventFilters(
        event_filters=select_only(DEFAULT_EVENT_IDS),
        time_start=default_time_start(),
        hide_machine_accounts=True,
    )


def extra_fields(record: EventRecord, severity_label: str = '') -> Dict[str, str]:
    """Searchable fields that have no column of their own."""
    parsed = parse_logon_data(record)
    label = SECURITY_EVENT_LABELS.get(record.event_id, '')
    fields = {
        'event': f"{record.event_id} {label}".strip(),
        'label': label,
        'risk': severity_label,
        'severity': severity_label,
    }
    if parsed:
        fields.update({
            'domain': parsed.target_domain_name,
            'subject': parsed.subject_user_name,
            'port': parsed.ip_port,
            'auth': parsed.auth_package,
            'package': parsed.auth_package,
            'process': parsed.process_name,
            'workstation': parsed.workstation_name,
            'status': f"{parsed.failure_status} {parsed.failure_sub_status}".strip(),
            'failure': f"{parsed.failure_status} {parsed.failure_sub_status}".strip(),
            'elevated': 'yes' if parsed.elevated_token else 'no',
            'admin': 'yes' if parsed.elevated_token else 'no',
        })
    return fields


def json_mapper(record: EventRecord) -> Dict[str, Any]:
    """Export shape of one Security record."""
    parsed = parse_logon_data(record)
    return {
        'id': record.id,
        'eventId': record.event_id,
        'eventLabel': SECURITY_EVENT_LABELS.get(record.event_id),
        'level': record.level,
        'machineName': record.machine_name,
        'timeCreated': record.time_created,
        'user': parsed.target_user_name if parsed else None,
        'logonType': parsed.logon_type_label if parsed else None,
        'ipAddress': parsed.ip_address if parsed else None,
    }


MODULE = ModuleDefinition(
    name='security',
    title='Security',
    log_name='Security',
    storage_key='winstride:graphFilters',
    columns_storage_key='winstride:listColumns',
    event_labels=SECURITY_EVENT_LABELS,
    columns=COLUMNS,
    dimensions=DIMENSIONS,
    default_filters=default_filters,
    extra_fields=extra_fields,
    json_mapper=json_mapper,
    event_id_column_key='eventId',
    export_prefix='winstride-events',
    is_machine_account=_is_machine_account,
)
