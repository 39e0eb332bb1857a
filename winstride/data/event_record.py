"""
Event record model.

Records arrive from the event API as JSON objects with camelCase keys. They are
frozen once built so that parse caches keyed on record identity stay valid.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..utils.error_handler import RecordFormatError
from ..utils.timestamp_parser import TimestampParser


@dataclass(frozen=True)
class EventRecord:
    """A single Windows event-log entry as served by the event API."""
    id: int
    event_id: int
    machine_name: str
    time_created: str
    level: Optional[str] = None
    event_data: Optional[str] = None
    log_name: str = ""

    # API key -> field name
    _KEY_MAP = {
        'id': 'id',
        'eventId': 'event_id',
        'event_id': 'event_id',
        'machineName': 'machine_name',
        'machine_name': 'machine_name',
        'timeCreated': 'time_created',
        'time_created': 'time_created',
        'level': 'level',
        'eventData': 'event_data',
        'event_data': 'event_data',
        'logName': 'log_name',
        'log_name': 'log_name',
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventRecord':
        """
        Build a record from an API payload.

        Args:
            data: Dictionary with camelCase (API) or snake_case keys

        Returns:
            EventRecord

        Raises:
            RecordFormatError: If ``id`` or ``eventId`` is missing or not an integer
        """
        fields: Dict[str, Any] = {}
        for key, value in data.items():
            name = cls._KEY_MAP.get(key)
            if name is not None:
                fields[name] = value

        try:
            record_id = int(fields['id'])
            event_id = int(fields['event_id'])
        except (KeyError, TypeError, ValueError) as e:
            raise RecordFormatError(f"Invalid event payload ({e})", data) from e

        return cls(
            id=record_id,
            event_id=event_id,
            machine_name=str(fields.get('machine_name') or ''),
            time_created=str(fields.get('time_created') or ''),
            level=fields.get('level'),
            event_data=fields.get('event_data'),
            log_name=str(fields.get('log_name') or ''),
        )

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> List['EventRecord']:
        """Build records from a page of API payloads."""
        return [cls.from_dict(item) for item in items]

    @property
    def timestamp(self) -> Optional[datetime.datetime]:
        """``time_created`` as a naive UTC datetime, or None if unparseable."""
        return TimestampParser.parse_timestamp(self.time_created)

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the API's camelCase shape."""
        return {
            'id': self.id,
            'eventId': self.event_id,
            'logName': self.log_name,
            'machineName': self.machine_name,
            'level': self.level,
            'timeCreated': self.time_created,
            'eventData': self.event_data,
        }
