"""
Event List Session for WinStride
Owns the interactive state of one module's event list and re-runs the
filter/search/sort pipeline when it changes.

State changes arrive from the UI thread as discrete input events:

- filter clicks publish a new ``EventFilters`` (mappings are never mutated)
  and recompute immediately,
- search keystrokes are debounced through a single-shot timer,
- scroll offsets are coalesced to at most one window update per frame,
- viewport resizes recompute the window immediately.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from .virtual_window import VirtualWindow
from ..config.view_state_store import (
    ViewStateStore,
    load_filters,
    load_visible_columns,
    save_filters,
    save_visible_columns,
)
from ..data.event_record import EventRecord
from ..data.filter_pipeline import (
    LEVEL_FILTERS,
    EventFilters,
    FilterDimension,
    PipelineResult,
    SeverityIntegration,
    available_values,
    run_pipeline,
)
from ..data.filter_state import FilterState, count_visible, cycle_filter, set_filter_state
from ..data.parse_cache import default_cache
from ..data.search_engine import ColumnDef
from ..data.sort_engine import TIME_COLUMN_KEY, SortDirection, next_sort_direction


class EventListSession(QObject):
    """
    Interactive list state for one module.

    The pipeline itself is synchronous and Qt-free; this class only decides
    when to run it and tells listeners what changed.
    """

    # Signals
    results_changed = pyqtSignal(int)      # number of rows after filter/search/sort
    window_changed = pyqtSignal(int, int)  # realized row range [start, end)
    filters_changed = pyqtSignal()
    columns_changed = pyqtSignal()

    ROW_HEIGHT = 40
    OVERSCAN = 10
    SEARCH_DEBOUNCE_MS = 200
    FRAME_INTERVAL_MS = 16

    def __init__(self, module, store: Optional[ViewStateStore] = None,
                 severity: Optional[SeverityIntegration] = None, parent=None):
        """
        Initialize the session and restore persisted state.

        Args:
            module: ModuleDefinition of the list
            store: View state store (in-memory if omitted)
            severity: Optional severity collaborator
            parent: Parent QObject
        """
        super().__init__(parent)

        self.logger = logging.getLogger(self.__class__.__name__)

        self.module = module
        self.store = store if store is not None else ViewStateStore()
        self.severity = severity
        # Parse cache entries of this list are kept while it holds their ids
        self.cache_owner = f"list:{module.name}"

        # Persisted state
        self.filters: EventFilters = load_filters(self.store, module)
        self.visible_columns: Set[str] = load_visible_columns(self.store, module)

        # Transient state
        self.records: List[EventRecord] = []
        self.server_ordered_desc = True
        self.search_text = ''
        self.applied_search = ''
        self.sort_key = TIME_COLUMN_KEY
        self.sort_direction = SortDirection.DESC
        self.result = PipelineResult([], [], [], 0)

        self.window = VirtualWindow(self.ROW_HEIGHT, self.OVERSCAN)
        self._pending_scroll: Optional[float] = None
        self._last_window: Optional[Tuple[int, int]] = None

        # Search debounce
        self.search_timer = QTimer(self)
        self.search_timer.setSingleShot(True)
        self.search_timer.setInterval(self.SEARCH_DEBOUNCE_MS)
        self.search_timer.timeout.connect(self._apply_search)

        # Scroll coalescing (one update per frame)
        self.frame_timer = QTimer(self)
        self.frame_timer.setSingleShot(True)
        self.frame_timer.setInterval(self.FRAME_INTERVAL_MS)
        self.frame_timer.timeout.connect(self._apply_scroll)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def set_records(self, records: Iterable[EventRecord], server_ordered_desc: bool = True):
        """
        Replace the record stream (called by the fetch layer on every refresh).

        Args:
            records: New record stream
            server_ordered_desc: Whether the stream is ordered by time descending
        """
        self.records = list(records)
        self.server_ordered_desc = server_ordered_desc
        default_cache.retain(self.records, owner=self.cache_owner)
        self.recompute()

    def close(self):
        """Stop pending timers and let the parse cache drop this list's entries."""
        self.search_timer.stop()
        self.frame_timer.stop()
        default_cache.release(self.cache_owner)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_filters(self, filters: EventFilters):
        """Publish a new filter state, persist it and recompute."""
        if filters == self.filters:
            return
        self.filters = filters
        save_filters(self.store, self.module, filters)
        self.filters_changed.emit()
        self.recompute()

    def cycle(self, attribute: str, key: Any):
        """Advance one value of a dimension: neutral -> select -> exclude -> neutral."""
        mapping = cycle_filter(self.filters.mapping(attribute), key)
        self.set_filters(self.filters.replace(**{attribute: mapping}))

    def set_state(self, attribute: str, key: Any, state: Optional[FilterState]):
        mapping = set_filter_state(self.filters.mapping(attribute), key, state)
        self.set_filters(self.filters.replace(**{attribute: mapping}))

    def clear_dimension(self, attribute: str):
        self.set_filters(self.filters.replace(**{attribute: {}}))

    def set_time_range(self, start: str, end: str = ''):
        self.set_filters(self.filters.replace(time_start=start, time_end=end))

    def set_level_filter(self, level: str):
        if level not in LEVEL_FILTERS:
            raise ValueError(f"Unknown level filter: {level}")
        self.set_filters(self.filters.replace(level_filter=level))

    def set_hide_machine_accounts(self, hide: bool):
        self.set_filters(self.filters.replace(hide_machine_accounts=hide))

    def reset_filters(self):
        """Return to the module's default filter set."""
        self.set_filters(self.module.default_filters())

    def dimension(self, attribute: str) -> FilterDimension:
        for dimension in self.module.dimensions:
            if dimension.attribute == attribute:
                return dimension
        raise KeyError(f"{self.module.name} has no filter dimension '{attribute}'")

    def available_values(self, attribute: str) -> List[Any]:
        """Candidate values of a dimension, derived from the current records."""
        return available_values(self.records, self.dimension(attribute))

    def visible_value_count(self, attribute: str) -> int:
        """How many candidate values of a dimension currently pass (for counters)."""
        return count_visible(self.available_values(attribute), self.filters.mapping(attribute))

    # ------------------------------------------------------------------
    # Search and sort
    # ------------------------------------------------------------------

    def set_search_text(self, text: str):
        """Record a keystroke; the search runs once typing pauses."""
        self.search_text = text
        self.search_timer.start()

    def flush_search(self):
        """Apply pending search text immediately (e.g. on Enter)."""
        self.search_timer.stop()
        self._apply_search()

    def _apply_search(self):
        if self.applied_search == self.search_text:
            return
        self.applied_search = self.search_text
        self.recompute()

    def toggle_sort(self, key: str):
        """Header click: cycle direction on the active column, else sort ascending."""
        column = self.module.column(key)
        if column is None or not column.sortable:
            return
        if key == self.sort_key:
            self.sort_direction = next_sort_direction(self.sort_direction)
        else:
            self.sort_key = key
            self.sort_direction = SortDirection.ASC
        self.recompute()

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def set_column_visible(self, key: str, visible: bool):
        if self.module.column(key) is None:
            return
        columns = set(self.visible_columns)
        if visible:
            columns.add(key)
        else:
            columns.discard(key)
        if columns == self.visible_columns:
            return
        self.visible_columns = columns
        save_visible_columns(self.store, self.module, columns)
        self.columns_changed.emit()

    def visible_column_defs(self) -> List[ColumnDef]:
        return [col for col in self.module.columns if col.key in self.visible_columns]

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    def set_scroll_offset(self, offset: float):
        """Queue a scroll offset; only the latest one per frame is applied."""
        self._pending_scroll = offset
        if not self.frame_timer.isActive():
            self.frame_timer.start()

    def _apply_scroll(self):
        if self._pending_scroll is None:
            return
        self.window.set_scroll_offset(self._pending_scroll)
        self._pending_scroll = None
        self._publish_window()

    def set_viewport_height(self, height: float):
        self.window.set_viewport_height(height)
        self._publish_window()

    def visible_range(self) -> Tuple[int, int]:
        return self.window.slice_for(self.result.count)

    def visible_rows(self) -> List[EventRecord]:
        return self.window.visible_rows(self.result.sorted_records)

    def _publish_window(self):
        total = self.result.count
        max_offset = max(0.0, self.window.total_extent(total) - self.window.viewport_height)
        if self.window.scroll_offset > max_offset:
            self.window.set_scroll_offset(max_offset)

        current = self.visible_range()
        if current != self._last_window:
            self._last_window = current
            self.window_changed.emit(*current)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def recompute(self):
        """Re-run the pipeline over the current records and state."""
        self.result = run_pipeline(
            self.records,
            self.module,
            self.filters,
            search=self.applied_search,
            sort_key=self.sort_key,
            sort_direction=self.sort_direction,
            severity=self.severity,
            server_ordered_desc=self.server_ordered_desc,
        )
        self.logger.debug(f"{self.module.name}: {self.result.count} of {self.result.raw_count} records shown")
        self.results_changed.emit(self.result.count)
        self._publish_window()

    def export_records(self) -> Tuple[List[EventRecord], Callable[[EventRecord], Dict[str, Any]]]:
        """Rows exactly as displayed, plus the module's export field mapper."""
        return list(self.result.sorted_records), self.module.json_mapper
