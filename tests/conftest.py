"""Shared fixtures for WinStride tests."""

import json
from datetime import timedelta

import pytest
from PyQt5.QtCore import QCoreApplication

from winstride.data.event_record import EventRecord
from winstride.data.parse_cache import default_cache
from winstride.utils.timestamp_parser import TimestampParser


# ── Payload builders ──────────────────────────────────────────────────


def data_payload(fields: dict) -> str:
    """Render ``fields`` the way the event API serializes EventData."""
    items = [{"@Name": name, "#text": value} for name, value in fields.items()]
    return json.dumps({"Event": {"EventData": {"Data": items}}})


class EventFactory:
    """Builds EventRecords with realistic payloads.

    Records get descending timestamps by id (id 1 is the newest), matching
    the server's ``timeCreated desc`` ordering when listed by ascending id.
    """

    def __init__(self):
        self.now = TimestampParser.utc_now()

    def time_for(self, record_id: int) -> str:
        return TimestampParser.to_iso(self.now - timedelta(minutes=record_id))

    def record(self, record_id, event_id, fields=None, level="Information",
               machine="WS01", time_created=None, event_data=None):
        if event_data is None and fields is not None:
            event_data = data_payload(fields)
        return EventRecord(
            id=record_id,
            event_id=event_id,
            machine_name=machine,
            time_created=time_created or self.time_for(record_id),
            level=level,
            event_data=event_data,
        )

    # Sysmon

    def process_create(self, record_id, guid, parent_guid="", image="C:\\Windows\\System32\\cmd.exe",
                       parent_image="C:\\Windows\\explorer.exe", user="CORP\\alice",
                       integrity="Medium", command_line=None, **kwargs):
        fields = {
            "ProcessGuid": guid,
            "ProcessId": "4242",
            "Image": image,
            "CommandLine": command_line if command_line is not None else image,
            "User": user,
            "IntegrityLevel": integrity,
            "ParentProcessGuid": parent_guid,
            "ParentImage": parent_image,
            "ParentCommandLine": parent_image,
            "Hashes": "SHA256=ABCDEF0123456789",
        }
        return self.record(record_id, 1, fields, **kwargs)

    def network_connect(self, record_id, guid, ip="10.0.0.5", port=443,
                        image="C:\\Program Files\\app\\app.exe", user="CORP\\alice",
                        protocol="tcp", hostname="", **kwargs):
        fields = {
            "ProcessGuid": guid,
            "Image": image,
            "User": user,
            "Protocol": protocol,
            "Initiated": "true",
            "SourceIp": "192.168.1.10",
            "SourcePort": "50123",
            "DestinationIp": ip,
            "DestinationHostname": hostname,
            "DestinationPort": str(port),
        }
        return self.record(record_id, 3, fields, **kwargs)

    def file_create(self, record_id, guid, target="C:\\Temp\\dropper.ps1",
                    image="C:\\Windows\\System32\\WindowsPowerShell\\v1.0\\powershell.exe",
                    user="CORP\\alice", **kwargs):
        fields = {
            "ProcessGuid": guid,
            "Image": image,
            "TargetFilename": target,
            "User": user,
            "CreationUtcTime": "2026-02-17 10:00:00.000",
        }
        return self.record(record_id, 11, fields, **kwargs)

    # PowerShell

    def script_block(self, record_id, text="Get-Process", path="", level="Verbose", **kwargs):
        fields = {
            "MessageNumber": "1",
            "MessageTotal": "1",
            "ScriptBlockText": text,
            "ScriptBlockId": f"block-{record_id}",
            "Path": path,
        }
        return self.record(record_id, 4104, fields, level=level, **kwargs)

    def command_execution(self, record_id, command="Get-ChildItem", script="", user="CORP\\alice",
                          payload="CommandInvocation(Get-ChildItem)", **kwargs):
        context = "\n".join([
            "        Severity = Informational",
            "        Host Application = powershell.exe -NoProfile",
            f"        Command Name = {command}",
            "        Command Type = Cmdlet",
            f"        Script Name = {script}",
            f"        User = {user}",
        ])
        fields = {"ContextInfo": context, "UserData": "", "Payload": payload}
        return self.record(record_id, 4103, fields, **kwargs)

    # Security

    def logon(self, record_id, event_id=4624, user="alice", logon_type="2", ip="10.0.0.7",
              auth_package="Kerberos", process="C:\\Windows\\System32\\svchost.exe",
              status="", sub_status="", elevated="%%1843", **kwargs):
        fields = {
            "SubjectUserName": "WS01$",
            "SubjectDomainName": "CORP",
            "TargetUserName": user,
            "TargetDomainName": "CORP",
            "LogonType": logon_type,
            "LogonProcessName": "User32",
            "AuthenticationPackageName": auth_package,
            "WorkstationName": "WS01",
            "KeyLength": "0",
            "ProcessName": process,
            "IpAddress": ip,
            "IpPort": "0",
            "ElevatedToken": elevated,
        }
        if status:
            fields["Status"] = status
        if sub_status:
            fields["SubStatus"] = sub_status
        return self.record(record_id, event_id, fields, **kwargs)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def events():
    """Factory for sample event records."""
    return EventFactory()


@pytest.fixture(autouse=True)
def clear_parse_cache():
    """Keep memoized parse results from leaking between tests."""
    default_cache.clear()
    yield
    default_cache.clear()


@pytest.fixture(scope="session")
def qapp():
    """A QCoreApplication for tests that create QObjects and QTimers."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app
