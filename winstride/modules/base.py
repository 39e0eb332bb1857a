"""
Module definition shared by the Security, PowerShell and Sysmon views.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

from ..data.event_record import EventRecord
from ..data.filter_pipeline import EventFilters, FilterDimension
from ..data.search_engine import ColumnDef
from ..utils.timestamp_parser import TimestampParser

# Default look-back window of a fresh filter set
DEFAULT_LOOKBACK_DAYS = 3


@dataclass(frozen=True)
class ModuleDefinition:
    """Everything the list pipeline needs to know about one event source."""
    name: str
    title: str
    log_name: str
    storage_key: str
    columns_storage_key: str
    event_labels: Mapping[int, str]
    columns: Sequence[ColumnDef]
    dimensions: Sequence[FilterDimension]
    default_filters: Callable[[], EventFilters]
    extra_fields: Callable[[EventRecord, str], Dict[str, str]]
    json_mapper: Callable[[EventRecord], Dict[str, Any]]
    event_id_column_key: str
    export_prefix: str
    is_machine_account: Optional[Callable[[EventRecord], bool]] = None

    def column(self, key: str) -> Optional[ColumnDef]:
        """Column definition for ``key``, or None."""
        return next((col for col in self.columns if col.key == key), None)

    def column_keys(self) -> List[str]:
        return [col.key for col in self.columns]

    def default_visible_columns(self) -> Set[str]:
        """Keys of the columns shown on a fresh install."""
        return {col.key for col in self.columns if col.default_visible}

    def event_label(self, event_id: int) -> str:
        return self.event_labels.get(event_id, '')

    def export_filename(self, extension: str, today: Optional[datetime.date] = None) -> str:
        """File name for an export, e.g. ``winstride-sysmon-2026-01-31.csv``."""
        today = today or TimestampParser.utc_now().date()
        return f"{self.export_prefix}-{today.isoformat()}.{extension}"


def default_time_start() -> str:
    """ISO start bound of the default look-back window."""
    return TimestampParser.days_ago_iso(DEFAULT_LOOKBACK_DAYS)


def machine_dimension() -> FilterDimension:
    return FilterDimension('Machine', 'machine_filters', lambda record: record.machine_name)


def event_dimension(event_labels: Mapping[int, str]) -> FilterDimension:
    return FilterDimension('Event', 'event_filters', lambda record: record.event_id,
                           fixed_universe=tuple(event_labels))
