"""
Column sort for event lists.
"""

import logging
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, List, Optional, Sequence, Union

from .event_record import EventRecord
from .search_engine import ColumnDef

# Configure logger
logger = logging.getLogger(__name__)

# Column whose values follow the server's ``timeCreated desc`` ordering
TIME_COLUMN_KEY = 'time'

ValueOverride = Callable[[str, EventRecord], Any]


class SortDirection(str, Enum):
    """Sort direction of the active column."""
    ASC = 'asc'
    DESC = 'desc'
    NONE = 'none'


def next_sort_direction(current: Optional[SortDirection]) -> SortDirection:
    """Header click cycle: none -> asc -> desc -> none."""
    if current is None or current == SortDirection.NONE:
        return SortDirection.ASC
    if current == SortDirection.ASC:
        return SortDirection.DESC
    return SortDirection.NONE


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_values(a: Any, b: Any) -> int:
    """Numeric compare when both are numbers, else case-sensitive string compare."""
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    sa, sb = str(a), str(b)
    return (sa > sb) - (sa < sb)


def sort_events(records: Sequence[EventRecord],
                columns: Sequence[ColumnDef],
                key: str,
                direction: Union[SortDirection, str, None],
                value_override: Optional[ValueOverride] = None,
                server_ordered_desc: bool = False) -> Sequence[EventRecord]:
    """
    Sort records by a column.

    Ties keep their input order in both directions.

    Args:
        records: Records to sort
        columns: Column definitions of the active module
        key: Column key to sort by
        direction: Sort direction; NONE returns ``records`` itself
        value_override: Optional ``(key, record) -> value``; a None result falls
            back to the column accessor
        server_ordered_desc: True when ``records`` is known to be ordered by
            time descending, enables the reverse-only path for the time column

    Returns:
        Sorted list, or ``records`` unchanged when no sort applies
    """
    direction = SortDirection(direction) if direction else SortDirection.NONE
    if direction == SortDirection.NONE:
        return records

    column = next((col for col in columns if col.key == key), None)
    if column is None:
        logger.debug(f"Unknown sort column '{key}', leaving order unchanged")
        return records

    if key == TIME_COLUMN_KEY and server_ordered_desc:
        if direction == SortDirection.DESC:
            return records
        return list(reversed(records))

    def resolve(record: EventRecord) -> Any:
        if value_override is not None:
            value = value_override(key, record)
            if value is not None:
                return value
        return column.value_of(record)

    values = [resolve(record) for record in records]
    order = sorted(
        range(len(values)),
        key=cmp_to_key(lambda i, j: compare_values(values[i], values[j])),
        reverse=direction == SortDirection.DESC,
    )
    return [records[i] for i in order]
