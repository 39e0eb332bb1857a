"""
View State Store for WinStride
Persists per-module filter state and visible columns between sessions.

The store is a flat JSON object of ``key -> string`` entries (each value is
itself a JSON document), kept in ``~/.winstride/view_state.json`` by default.
Reading never fails: a missing, empty or corrupt file is treated as empty,
and a corrupt entry falls back to the module's defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

from ..data.filter_pipeline import EventFilters
from ..utils.error_handler import StateStoreError, error_decorator, handle_error

# Configure logger
logger = logging.getLogger(__name__)


class ViewStateStore:
    """
    Durable key-value store for view state.

    With ``path=None`` the store lives in memory only.
    """

    DEFAULT_PATH = Path.home() / '.winstride' / 'view_state.json'

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            path: JSON file backing the store (optional)
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.path = str(path) if path else None
        self._entries: Dict[str, str] = {}

        if self.path and os.path.exists(self.path):
            self.load()

    @classmethod
    def open_default(cls) -> 'ViewStateStore':
        """Store backed by the per-user default file."""
        return cls(str(cls.DEFAULT_PATH))

    def load(self):
        """(Re)load entries from the backing file."""
        self._entries = {}
        if not self.path or not os.path.exists(self.path):
            return

        try:
            if os.path.getsize(self.path) == 0:
                return
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable view state file {self.path}: {e}")
            return

        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring view state file {self.path}: not a JSON object")
            return
        self._entries = {key: value for key, value in data.items() if isinstance(value, str)}

    def _write(self):
        if not self.path:
            return
        try:
            config_dir = os.path.dirname(self.path)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self._entries, f, indent=2, sort_keys=True)
        except OSError as e:
            raise StateStoreError(f"Could not write view state to {self.path}", str(e)) from e

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str):
        """
        Store ``value`` under ``key`` and flush to disk.

        Raises:
            StateStoreError: If the backing file cannot be written
        """
        self._entries[key] = value
        self._write()

    def remove(self, key: str):
        """Delete ``key`` if present and flush to disk."""
        if self._entries.pop(key, None) is not None:
            self._write()

    def keys(self):
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


@error_decorator(exception=StateStoreError,
                 message="Failed to save filters: {exception}",
                 log_level=logging.WARNING,
                 return_value=False)
def save_filters(store: ViewStateStore, module, filters: EventFilters) -> bool:
    """
    Persist a module's filter state.

    Returns:
        bool: True if saved, False if the store could not be written
    """
    store.set(module.storage_key, json.dumps(filters.to_dict()))
    return True


def load_filters(store: ViewStateStore, module) -> EventFilters:
    """
    Restore a module's filter state.

    Missing, unparseable or malformed data yields ``module.default_filters()``.

    Args:
        store: View state store
        module: ModuleDefinition whose filters to load

    Returns:
        EventFilters
    """
    defaults = module.default_filters()
    raw = store.get(module.storage_key)
    if not raw:
        return defaults

    try:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StateStoreError("Saved filters are not valid JSON", str(e)) from e
        return EventFilters.from_dict(data, defaults)
    except StateStoreError as e:
        handle_error(e, f"Discarding saved {module.name} filters", logging.WARNING, raise_exception=False)
        return defaults


@error_decorator(exception=StateStoreError,
                 message="Failed to save visible columns: {exception}",
                 log_level=logging.WARNING,
                 return_value=False)
def save_visible_columns(store: ViewStateStore, module, columns: Iterable[str]) -> bool:
    """Persist the set of visible column keys (in column order)."""
    visible = set(columns)
    ordered = [key for key in module.column_keys() if key in visible]
    store.set(module.columns_storage_key, json.dumps(ordered))
    return True


def load_visible_columns(store: ViewStateStore, module) -> Set[str]:
    """
    Restore the visible column keys of a module.

    Unknown keys are dropped; missing or malformed data yields the module's
    default visible columns.
    """
    defaults = module.default_visible_columns()
    raw = store.get(module.columns_storage_key)
    if not raw:
        return defaults

    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Discarding saved {module.name} columns: {e}")
        return defaults
    if not isinstance(data, list):
        logger.warning(f"Discarding saved {module.name} columns: not a list")
        return defaults

    known = set(module.column_keys())
    return {key for key in data if isinstance(key, str) and key in known}
