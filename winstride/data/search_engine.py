"""
Column-driven free-text search.

Query syntax:
 - Plain text:      ``admin``                  substring match on every column value and extra field
 - Field queries:   ``user:admin``             match on a column key, label or search alias
 - Quoted values:   ``user:"john doe"``
 - Multiple terms:  ``user:admin ip:192.168``  all terms must match (AND)

Field names come from the module's column definitions plus any extra fields
(values not shown as columns, such as a severity label). Matching is a
case-insensitive substring test on the string form of each value, so numeric
and time columns are matched textually, not by range. A field prefix that
names no known field is treated as plain text, which keeps old saved queries
working.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .event_record import EventRecord

# Configure logger
logger = logging.getLogger(__name__)

CellValue = Union[str, int, float]
ExtraFields = Callable[[EventRecord], Dict[str, str]]

# Whitespace-separated terms; a double-quoted run stays inside its term
_TERM_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')


@dataclass(frozen=True)
class ColumnDef:
    """Definition of one list column."""
    key: str
    label: str
    get_value: Callable[[EventRecord], CellValue]
    sortable: bool = True
    default_visible: bool = True
    flex: float = 1.0
    min_width: int = 80
    search_keys: Tuple[str, ...] = ()

    def value_of(self, record: EventRecord) -> CellValue:
        """Cell value for ``record``; an accessor failure yields ``""``."""
        try:
            value = self.get_value(record)
        except Exception as e:
            logger.debug(f"Column '{self.key}' failed on record {record.id}: {e}")
            return ''
        return '' if value is None else value

    def field_names(self) -> List[str]:
        """Lower-cased names this column answers to in ``field:value`` terms."""
        names = [self.key.lower(), self.label.lower()]
        names.extend(alias.lower() for alias in self.search_keys)
        return names


def tokenize_query(query: str) -> List[str]:
    """Split a query into terms, keeping quoted runs together."""
    if not query:
        return []
    return _TERM_RE.findall(query)


def _strip_quotes(text: str) -> str:
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


class _RecordFields:
    """Searchable view of one record: named fields plus a combined text blob."""

    __slots__ = ('fields', 'text')

    def __init__(self, record: EventRecord, columns: Sequence[ColumnDef],
                 extra_fields: Optional[ExtraFields]):
        self.fields: Dict[str, List[str]] = {}
        parts: List[str] = []

        for col in columns:
            value = str(col.value_of(record)).lower()
            parts.append(value)
            for name in col.field_names():
                self.fields.setdefault(name, []).append(value)

        if extra_fields is not None:
            try:
                extras = extra_fields(record) or {}
            except Exception as e:
                logger.debug(f"Extra fields failed on record {record.id}: {e}")
                extras = {}
            for name, raw in extras.items():
                value = '' if raw is None else str(raw).lower()
                parts.append(value)
                self.fields.setdefault(name.lower(), []).append(value)

        self.text = ' '.join(parts)

    def matches_term(self, term: str) -> bool:
        colon_idx = term.find(':')
        if colon_idx > 0:
            field_name = term[:colon_idx].lower()
            values = self.fields.get(field_name)
            if values is not None:
                wanted = _strip_quotes(term[colon_idx + 1:]).lower()
                return any(wanted in value for value in values)
        return _strip_quotes(term).lower() in self.text


def matches_search(record: EventRecord, query: str, columns: Sequence[ColumnDef],
                   extra_fields: Optional[ExtraFields] = None) -> bool:
    """
    Decide whether ``record`` satisfies every term of ``query``.

    Args:
        record: Record to test
        query: Raw query text
        columns: Column definitions of the active module
        extra_fields: Optional callable returning additional named fields

    Returns:
        bool: True if all terms match (an empty query always matches)
    """
    terms = tokenize_query(query)
    if not terms:
        return True
    view = _RecordFields(record, columns, extra_fields)
    return all(view.matches_term(term) for term in terms)


def apply_search(records: Iterable[EventRecord], query: str, columns: Sequence[ColumnDef],
                 extra_fields: Optional[ExtraFields] = None) -> List[EventRecord]:
    """
    Filter records by a search query, preserving order.

    Args:
        records: Records to filter
        query: Raw query text
        columns: Column definitions of the active module
        extra_fields: Optional callable returning additional named fields

    Returns:
        List of matching records
    """
    terms = tokenize_query(query)
    if not terms:
        return list(records)
    return [
        record for record in records
        if all(_RecordFields(record, columns, extra_fields).matches_term(term) for term in terms)
    ]
