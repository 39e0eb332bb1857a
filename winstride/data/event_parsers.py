"""
Event payload parsers.

``eventData`` holds the XML-derived JSON rendering of a Windows event:

    {"Event": {"EventData": {"Data": [{"@Name": "Image", "#text": "C:\\\\..."}, ...]}}}

The parsers below decode it into typed shapes for the Security, PowerShell
and Sysmon event ids the viewer understands. They never raise: a missing or
malformed payload yields ``None`` ("no parsed data"), and every caller treats
that as an empty contribution. Results are memoized in the shared parse cache.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .event_meta import (
    ELEVATED_TOKEN_YES,
    LOGON_TYPE_LABELS,
    SUSPICIOUS_KEYWORDS,
    SYSMON_FILE_CREATE,
    SYSMON_NETWORK_CONNECT,
    SYSMON_PROCESS_CREATE,
)
from .event_record import EventRecord
from .parse_cache import default_cache
from ..utils.error_handler import PayloadParseError

# Configure logger
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Parsed shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessCreate:
    """Sysmon event 1."""
    image: str
    image_name: str
    command_line: str
    user: str
    process_guid: str
    process_id: int
    parent_process_guid: str
    parent_image: str
    parent_image_name: str
    parent_command_line: str
    integrity_level: str
    hashes: str
    current_directory: str
    logon_id: str


@dataclass(frozen=True)
class NetworkConnect:
    """Sysmon event 3."""
    image: str
    image_name: str
    source_ip: str
    source_port: int
    destination_ip: str
    destination_hostname: str
    destination_port: int
    protocol: str
    initiated: bool
    user: str
    process_guid: str


@dataclass(frozen=True)
class FileCreate:
    """Sysmon event 11."""
    image: str
    image_name: str
    target_filename: str
    target_basename: str
    user: str
    process_guid: str
    creation_utc_time: str


@dataclass(frozen=True)
class ScriptBlock:
    """PowerShell event 4104."""
    script_block_text: str
    script_block_id: str
    path: str
    message_number: int
    message_total: int
    is_suspicious: bool
    suspicious_matches: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommandExecution:
    """PowerShell event 4103."""
    command_name: str
    command_type: str
    script_name: str
    user: str
    host_application: str
    payload: str


@dataclass(frozen=True)
class LogonData:
    """Security log logon/account event data."""
    target_user_name: str
    target_domain_name: str
    subject_user_name: str
    subject_domain_name: str
    logon_type: int
    logon_type_label: str
    ip_address: str
    ip_port: str
    auth_package: str
    logon_process: str
    workstation_name: str
    process_name: str
    key_length: int
    elevated_token: bool
    failure_status: str
    failure_sub_status: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def decode_event_data(record: EventRecord) -> List[Any]:
    """
    Decode a record's payload into its ``Data`` item list.

    Raises:
        PayloadParseError: If the payload is missing, not JSON, or has no Data
    """
    if not record.event_data:
        raise PayloadParseError("Record has no eventData", record.id)

    try:
        parsed = json.loads(record.event_data)
    except (TypeError, ValueError) as e:
        raise PayloadParseError(f"eventData is not valid JSON: {e}", record.id) from e

    if not isinstance(parsed, dict):
        raise PayloadParseError("eventData is not an object", record.id)

    event_obj = parsed.get('Event') or parsed
    event_data = event_obj.get('EventData') if isinstance(event_obj, dict) else None
    if not isinstance(event_data, dict):
        raise PayloadParseError("eventData has no EventData section", record.id)

    data = event_data.get('Data')
    if not data:
        raise PayloadParseError("EventData has no Data items", record.id)
    if not isinstance(data, list):
        data = [data]
    return data


def get_data_array(record: EventRecord) -> Optional[List[Any]]:
    """Return the ``Data`` item list of a record, or None if it cannot be decoded."""
    try:
        return decode_event_data(record)
    except PayloadParseError as e:
        logger.debug(f"Record {record.id}: {e.message}")
        return None


def get_data_field(data_array: List[Any], field_name: str) -> str:
    """Return the text of the ``Data`` item named ``field_name``, or ``""``."""
    if not isinstance(data_array, list):
        return ''
    for item in data_array:
        if isinstance(item, dict) and item.get('@Name') == field_name:
            value = item.get('#text')
            return '' if value is None else str(value)
    return ''


def basename(path: str) -> str:
    """Last component of a Windows or POSIX path."""
    parts = path.replace('\\', '/').split('/')
    return parts[-1] or path


def find_suspicious_keywords(text: str) -> List[str]:
    """Scan script text for watch-list keywords (case-insensitive)."""
    lower = text.lower()
    return [kw for kw in SUSPICIOUS_KEYWORDS if kw.lower() in lower]


def _to_int(text: str, default: int) -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Sysmon
# ---------------------------------------------------------------------------

def _parse_process_create(record: EventRecord) -> Optional[ProcessCreate]:
    data = get_data_array(record)
    if data is None:
        return None

    image = get_data_field(data, 'Image')
    parent_image = get_data_field(data, 'ParentImage')
    return ProcessCreate(
        image=image,
        image_name=basename(image),
        command_line=get_data_field(data, 'CommandLine'),
        user=get_data_field(data, 'User'),
        process_guid=get_data_field(data, 'ProcessGuid'),
        process_id=_to_int(get_data_field(data, 'ProcessId'), 0),
        parent_process_guid=get_data_field(data, 'ParentProcessGuid'),
        parent_image=parent_image,
        parent_image_name=basename(parent_image),
        parent_command_line=get_data_field(data, 'ParentCommandLine'),
        integrity_level=get_data_field(data, 'IntegrityLevel'),
        hashes=get_data_field(data, 'Hashes'),
        current_directory=get_data_field(data, 'CurrentDirectory'),
        logon_id=get_data_field(data, 'LogonId'),
    )


def parse_process_create(record: EventRecord) -> Optional[ProcessCreate]:
    """Parse Sysmon Event 1 (Process Creation)."""
    if record.event_id != SYSMON_PROCESS_CREATE:
        return None
    return default_cache.get_or_parse('process_create', record, _parse_process_create)


def _parse_network_connect(record: EventRecord) -> Optional[NetworkConnect]:
    data = get_data_array(record)
    if data is None:
        return None

    image = get_data_field(data, 'Image')
    return NetworkConnect(
        image=image,
        image_name=basename(image),
        source_ip=get_data_field(data, 'SourceIp'),
        source_port=_to_int(get_data_field(data, 'SourcePort'), 0),
        destination_ip=get_data_field(data, 'DestinationIp'),
        destination_hostname=get_data_field(data, 'DestinationHostname'),
        destination_port=_to_int(get_data_field(data, 'DestinationPort'), 0),
        protocol=get_data_field(data, 'Protocol'),
        initiated=get_data_field(data, 'Initiated') == 'true',
        user=get_data_field(data, 'User'),
        process_guid=get_data_field(data, 'ProcessGuid'),
    )


def parse_network_connect(record: EventRecord) -> Optional[NetworkConnect]:
    """Parse Sysmon Event 3 (Network Connection)."""
    if record.event_id != SYSMON_NETWORK_CONNECT:
        return None
    return default_cache.get_or_parse('network_connect', record, _parse_network_connect)


def _parse_file_create(record: EventRecord) -> Optional[FileCreate]:
    data = get_data_array(record)
    if data is None:
        return None

    image = get_data_field(data, 'Image')
    target = get_data_field(data, 'TargetFilename')
    return FileCreate(
        image=image,
        image_name=basename(image),
        target_filename=target,
        target_basename=basename(target),
        user=get_data_field(data, 'User'),
        process_guid=get_data_field(data, 'ProcessGuid'),
        creation_utc_time=get_data_field(data, 'CreationUtcTime'),
    )


def parse_file_create(record: EventRecord) -> Optional[FileCreate]:
    """Parse Sysmon Event 11 (File Creation)."""
    if record.event_id != SYSMON_FILE_CREATE:
        return None
    return default_cache.get_or_parse('file_create', record, _parse_file_create)


def sysmon_image_name(record: EventRecord) -> str:
    """Image name of the acting process for any supported Sysmon event."""
    parsed = parse_process_create(record) or parse_network_connect(record) or parse_file_create(record)
    return parsed.image_name if parsed else ''


def sysmon_user(record: EventRecord) -> str:
    """User of the acting process for any supported Sysmon event."""
    parsed = parse_process_create(record) or parse_network_connect(record) or parse_file_create(record)
    return parsed.user if parsed else ''


# ---------------------------------------------------------------------------
# PowerShell
# ---------------------------------------------------------------------------

def _parse_script_block(record: EventRecord) -> Optional[ScriptBlock]:
    data = get_data_array(record)
    if data is None:
        return None

    text = get_data_field(data, 'ScriptBlockText')
    return ScriptBlock(
        script_block_text=text,
        script_block_id=get_data_field(data, 'ScriptBlockId'),
        path=get_data_field(data, 'Path'),
        message_number=_to_int(get_data_field(data, 'MessageNumber') or '1', 1),
        message_total=_to_int(get_data_field(data, 'MessageTotal') or '1', 1),
        is_suspicious=record.level == 'Warning',
        suspicious_matches=find_suspicious_keywords(text),
    )


def parse_script_block(record: EventRecord) -> Optional[ScriptBlock]:
    """Parse PowerShell Event 4104 (Script Block Logging)."""
    if record.event_id != 4104:
        return None
    return default_cache.get_or_parse('script_block', record, _parse_script_block)


def _parse_command_execution(record: EventRecord) -> Optional[CommandExecution]:
    data = get_data_array(record)
    if data is None:
        return None

    # ContextInfo is a block of "Key = Value" lines
    context = {}
    for line in get_data_field(data, 'ContextInfo').split('\n'):
        key, sep, value = line.partition('=')
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key and value:
            context[key] = value

    return CommandExecution(
        command_name=context.get('Command Name', ''),
        command_type=context.get('Command Type', ''),
        script_name=context.get('Script Name', ''),
        user=context.get('User', ''),
        host_application=context.get('Host Application', ''),
        payload=get_data_field(data, 'Payload'),
    )


def parse_command_execution(record: EventRecord) -> Optional[CommandExecution]:
    """Parse PowerShell Event 4103 (Pipeline / Command Execution)."""
    if record.event_id != 4103:
        return None
    return default_cache.get_or_parse('command_execution', record, _parse_command_execution)


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------

def _parse_logon_data(record: EventRecord) -> Optional[LogonData]:
    data = get_data_array(record)
    if data is None:
        return None

    logon_type_str = get_data_field(data, 'LogonType')
    logon_type = _to_int(logon_type_str, -1) if logon_type_str else -1
    if logon_type in LOGON_TYPE_LABELS:
        logon_type_label = LOGON_TYPE_LABELS[logon_type]
    else:
        logon_type_label = f"Type {logon_type}" if logon_type >= 0 else ''
    key_length_str = get_data_field(data, 'KeyLength')

    return LogonData(
        target_user_name=get_data_field(data, 'TargetUserName'),
        target_domain_name=get_data_field(data, 'TargetDomainName'),
        subject_user_name=get_data_field(data, 'SubjectUserName'),
        subject_domain_name=get_data_field(data, 'SubjectDomainName'),
        logon_type=logon_type,
        logon_type_label=logon_type_label,
        ip_address=get_data_field(data, 'IpAddress') or '-',
        ip_port=get_data_field(data, 'IpPort'),
        auth_package=get_data_field(data, 'AuthenticationPackageName'),
        logon_process=get_data_field(data, 'LogonProcessName'),
        workstation_name=get_data_field(data, 'WorkstationName'),
        process_name=get_data_field(data, 'ProcessName'),
        key_length=_to_int(key_length_str, -1) if key_length_str else -1,
        elevated_token=get_data_field(data, 'ElevatedToken') == ELEVATED_TOKEN_YES,
        failure_status=get_data_field(data, 'Status'),
        failure_sub_status=get_data_field(data, 'SubStatus'),
    )


def parse_logon_data(record: EventRecord) -> Optional[LogonData]:
    """Parse the EventData of a Security log record."""
    return default_cache.get_or_parse('logon_data', record, _parse_logon_data)
