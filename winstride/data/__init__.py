"""
Event data layer: records, payload parsers, the parse cache and the
filter / search / sort pipeline.
"""

from .event_record import EventRecord
from .filter_pipeline import (
    EventFilters,
    FilterDimension,
    PipelineResult,
    SeverityIntegration,
    apply_filters,
    available_values,
    run_pipeline,
)
from .filter_state import FilterState, count_visible, cycle_filter, resolve_tri_state
from .parse_cache import ParseCache, default_cache
from .search_engine import ColumnDef, apply_search, matches_search
from .sort_engine import SortDirection, next_sort_direction, sort_events

__all__ = [
    'EventRecord',
    'EventFilters',
    'FilterDimension',
    'PipelineResult',
    'SeverityIntegration',
    'apply_filters',
    'available_values',
    'run_pipeline',
    'FilterState',
    'count_visible',
    'cycle_filter',
    'resolve_tri_state',
    'ParseCache',
    'default_cache',
    'ColumnDef',
    'apply_search',
    'matches_search',
    'SortDirection',
    'next_sort_direction',
    'sort_events',
]
