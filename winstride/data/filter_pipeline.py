"""
Filter Pipeline
===============

Client-side recompute pipeline for one module's event list:

    raw records -> filters -> search -> severity predicate -> sort

Every stage is a plain synchronous pass over the current record set and keeps
the input order, so a server-ordered (time descending) stream is still
time-ordered when it reaches the sort stage. The pipeline is re-run by the
host whenever records, filters, search text or sort state change.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from .event_record import EventRecord
from .filter_state import (
    FilterState,
    active_filter_count,
    deserialize_mapping,
    effective_set,
    serialize_mapping,
)
from .search_engine import apply_search
from .sort_engine import SortDirection, sort_events
from ..utils.error_handler import StateStoreError
from ..utils.timestamp_parser import TimestampParser

# Configure logger
logger = logging.getLogger(__name__)

LEVEL_ALL = 'all'
LEVEL_WARNING_ONLY = 'warning-only'
LEVEL_FILTERS = (LEVEL_ALL, LEVEL_WARNING_ONLY)

# Mapping attributes whose keys are event ids / logon type numbers
_INT_KEYED = ('event_filters', 'logon_type_filters')


@dataclass(frozen=True)
class EventFilters:
    """
    Complete filter state of one module's event list.

    Instances are immutable; use ``replace`` to publish a changed copy so
    that listeners can detect changes by comparison.
    """
    event_filters: Dict[int, FilterState] = field(default_factory=dict)
    time_start: str = ''
    time_end: str = ''
    machine_filters: Dict[str, FilterState] = field(default_factory=dict)
    user_filters: Dict[str, FilterState] = field(default_factory=dict)
    process_filters: Dict[str, FilterState] = field(default_factory=dict)
    integrity_filters: Dict[str, FilterState] = field(default_factory=dict)
    logon_type_filters: Dict[int, FilterState] = field(default_factory=dict)
    ip_filters: Dict[str, FilterState] = field(default_factory=dict)
    auth_package_filters: Dict[str, FilterState] = field(default_factory=dict)
    failure_status_filters: Dict[str, FilterState] = field(default_factory=dict)
    level_filter: str = LEVEL_ALL
    hide_machine_accounts: bool = False

    MAPPING_FIELDS = (
        'event_filters', 'machine_filters', 'user_filters', 'process_filters',
        'integrity_filters', 'logon_type_filters', 'ip_filters',
        'auth_package_filters', 'failure_status_filters',
    )

    def replace(self, **changes) -> 'EventFilters':
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def mapping(self, name: str) -> Dict[Any, FilterState]:
        """Return the tri-state mapping stored under attribute ``name``."""
        if name not in self.MAPPING_FIELDS:
            raise KeyError(f"Unknown filter mapping: {name}")
        return getattr(self, name)

    def active_count(self) -> int:
        """Number of non-neutral dimension entries (event types excluded)."""
        return sum(
            active_filter_count(getattr(self, name))
            for name in self.MAPPING_FIELDS if name != 'event_filters'
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot."""
        data: Dict[str, Any] = {name: serialize_mapping(getattr(self, name)) for name in self.MAPPING_FIELDS}
        data.update({
            'time_start': self.time_start,
            'time_end': self.time_end,
            'level_filter': self.level_filter,
            'hide_machine_accounts': self.hide_machine_accounts,
        })
        return data

    @classmethod
    def from_dict(cls, data: Any, defaults: 'EventFilters') -> 'EventFilters':
        """
        Rebuild filters from a ``to_dict`` snapshot.

        ``event_filters``, ``time_start`` and ``time_end`` are required; any
        other missing or malformed field takes its value from ``defaults``.

        Raises:
            StateStoreError: If the snapshot is not a usable filter object
        """
        if not isinstance(data, dict):
            raise StateStoreError("Saved filters are not an object")
        if not isinstance(data.get('event_filters'), list):
            raise StateStoreError("Saved filters have no event selection")
        if not isinstance(data.get('time_start'), str) or not isinstance(data.get('time_end'), str):
            raise StateStoreError("Saved filters have no time range")

        changes: Dict[str, Any] = {
            'time_start': data['time_start'],
            'time_end': data['time_end'],
        }
        for name in cls.MAPPING_FIELDS:
            if name in data:
                key_type = int if name in _INT_KEYED else str
                changes[name] = deserialize_mapping(data[name], key_type)

        level = data.get('level_filter')
        if level in LEVEL_FILTERS:
            changes['level_filter'] = level
        hide = data.get('hide_machine_accounts')
        if isinstance(hide, bool):
            changes['hide_machine_accounts'] = hide

        return defaults.replace(**changes)


@dataclass(frozen=True)
class FilterDimension:
    """
    One tri-state filter dimension of a module.

    Args:
        name: Display name
        attribute: ``EventFilters`` attribute holding the mapping
        extract: Returns the record's value, a sequence of values, or
            None/"" when the record has no value for this dimension
        fixed_universe: Candidate values that always exist
        observed: Also add every value seen in the records to the universe
    """
    name: str
    attribute: str
    extract: Callable[[EventRecord], Any]
    fixed_universe: Tuple[Hashable, ...] = ()
    observed: bool = True

    def values_of(self, record: EventRecord) -> List[Hashable]:
        """Non-empty values of ``record`` for this dimension."""
        raw = self.extract(record)
        if raw is None or raw == '':
            return []
        if isinstance(raw, (list, tuple, set)):
            return [value for value in raw if value is not None and value != '']
        return [raw]


def _value_sort_key(value: Hashable):
    return (isinstance(value, str), value)


def available_values(records: Iterable[EventRecord], dimension: FilterDimension) -> List[Hashable]:
    """
    Sorted distinct candidate values of a dimension.

    Args:
        records: Record stream the universe is derived from
        dimension: Filter dimension

    Returns:
        Sorted list of candidate values
    """
    values: Set[Hashable] = set(dimension.fixed_universe)
    if dimension.observed:
        for record in records:
            values.update(dimension.values_of(record))
    return sorted(values, key=_value_sort_key)


class SeverityIntegration:
    """
    Extension point for an external severity/detection engine.

    The default implementation classifies nothing: empty labels, every record
    passes, no sort override. Subclasses override any of the three hooks.
    """

    def label(self, record: EventRecord) -> str:
        """Severity label used by ``risk:``/``severity:`` searches."""
        return ''

    def predicate(self, record: EventRecord) -> bool:
        """Extra filter applied after search."""
        return True

    def sort_value(self, key: str, record: EventRecord) -> Any:
        """Sort value override for column ``key``; None falls back to the column."""
        return None


def _parse_bound(value: str):
    if not value:
        return None
    bound = TimestampParser.parse_timestamp(value)
    if bound is None:
        logger.warning(f"Ignoring unparseable time bound: {value!r}")
    return bound


def _in_time_range(record: EventRecord, start, end) -> bool:
    if start is None and end is None:
        return True
    ts = record.timestamp
    if ts is None:
        return True
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


def apply_filters(records: Sequence[EventRecord],
                  filters: EventFilters,
                  dimensions: Sequence[FilterDimension],
                  severity: Optional[SeverityIntegration] = None,
                  is_machine_account: Optional[Callable[[EventRecord], bool]] = None) -> List[EventRecord]:
    """
    Apply every filter rule of a module to a record stream.

    Dimension universes are derived from ``records`` (the unfiltered stream),
    so a stale key that matches no current value is inert. A record with no
    value for a dimension passes that dimension.

    Args:
        records: Raw record stream
        filters: Current filter state
        dimensions: The module's filter dimensions
        severity: Optional severity collaborator; its predicate runs last
        is_machine_account: Predicate used when ``hide_machine_accounts`` is set

    Returns:
        Filtered records in input order
    """
    start = _parse_bound(filters.time_start)
    end = _parse_bound(filters.time_end)

    allowed: List[Tuple[FilterDimension, Set[Hashable]]] = []
    for dimension in dimensions:
        mapping = filters.mapping(dimension.attribute)
        if not mapping:
            continue
        universe = available_values(records, dimension)
        allowed.append((dimension, effective_set(universe, mapping)))

    warning_only = filters.level_filter == LEVEL_WARNING_ONLY
    hide_accounts = filters.hide_machine_accounts and is_machine_account is not None

    result = []
    for record in records:
        if not _in_time_range(record, start, end):
            continue
        if warning_only and record.level != 'Warning':
            continue
        if hide_accounts and is_machine_account(record):
            continue
        passed = True
        for dimension, allowed_values in allowed:
            values = dimension.values_of(record)
            if values and not any(value in allowed_values for value in values):
                passed = False
                break
        if not passed:
            continue
        if severity is not None and not severity.predicate(record):
            continue
        result.append(record)
    return result


@dataclass
class PipelineResult:
    """Output of one pipeline run."""
    filtered: List[EventRecord]
    searched: List[EventRecord]
    sorted_records: Sequence[EventRecord]
    raw_count: int

    @property
    def count(self) -> int:
        return len(self.sorted_records)


def run_pipeline(records: Sequence[EventRecord],
                 module,
                 filters: EventFilters,
                 search: str = '',
                 sort_key: str = 'time',
                 sort_direction: SortDirection = SortDirection.NONE,
                 severity: Optional[SeverityIntegration] = None,
                 server_ordered_desc: bool = True) -> PipelineResult:
    """
    Run the full filter -> search -> severity -> sort pipeline for a module.

    Args:
        records: Raw record stream (as delivered, ``timeCreated desc``)
        module: ``ModuleDefinition`` supplying columns, dimensions and extra fields
        filters: Current filter state
        search: Debounced search text
        sort_key: Column key to sort by
        sort_direction: Sort direction
        severity: Optional severity collaborator
        server_ordered_desc: Whether ``records`` arrive time-descending

    Returns:
        PipelineResult
    """
    records = list(records)
    filtered = apply_filters(records, filters, module.dimensions,
                             is_machine_account=module.is_machine_account)

    def extra_fields(record: EventRecord) -> Dict[str, str]:
        label = severity.label(record) if severity is not None else ''
        return module.extra_fields(record, label)

    searched = apply_search(filtered, search, module.columns, extra_fields)
    if severity is not None:
        searched = [record for record in searched if severity.predicate(record)]

    sorted_records = sort_events(
        searched,
        module.columns,
        sort_key,
        sort_direction,
        value_override=severity.sort_value if severity is not None else None,
        server_ordered_desc=server_ordered_desc,
    )

    logger.debug(
        f"{module.name}: {len(records)} raw, {len(filtered)} filtered, "
        f"{len(searched)} after search"
    )
    return PipelineResult(filtered, searched, sorted_records, len(records))
