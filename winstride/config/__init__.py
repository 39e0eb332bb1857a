"""
Persisted view state (filters and visible columns).
"""

from .view_state_store import (
    ViewStateStore,
    load_filters,
    load_visible_columns,
    save_filters,
    save_visible_columns,
)

__all__ = [
    'ViewStateStore',
    'load_filters',
    'load_visible_columns',
    'save_filters',
    'save_visible_columns',
]
