"""
Tri-state filter model.

Every filter dimension (event type, machine, user, process, integrity level,
...) is a mapping from a candidate value to ``FilterState.SELECT`` or
``FilterState.EXCLUDE``. A value with no entry is neutral.

Resolution precedence is the same for every dimension: any selection is
exclusive and silences all exclusions; otherwise exclusions remove values;
otherwise everything passes. Mappings are never mutated in place, so callers
can detect changes by comparing mappings.
"""

from enum import Enum
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Set, TypeVar

K = TypeVar('K', bound=Hashable)


class FilterState(str, Enum):
    """Explicit filter state of a single candidate value."""
    SELECT = 'select'
    EXCLUDE = 'exclude'


FilterMapping = Dict[Any, FilterState]


def _keys_in_state(all_items: Sequence[K], mapping: Mapping[K, FilterState], state: FilterState) -> List[K]:
    return [item for item in all_items if mapping.get(item) == state]


def resolve_tri_state(all_items: Sequence[K], mapping: Mapping[K, FilterState]) -> List[K]:
    """
    Resolve a tri-state mapping into the effective list of allowed items.

    Keys in ``mapping`` that are not part of ``all_items`` are inert.

    Args:
        all_items: Universe of candidate values (order is preserved)
        mapping: Filter mapping for this dimension

    Returns:
        List of allowed values
    """
    selected = _keys_in_state(all_items, mapping, FilterState.SELECT)
    if selected:
        return selected

    excluded = set(_keys_in_state(all_items, mapping, FilterState.EXCLUDE))
    if excluded:
        return [item for item in all_items if item not in excluded]

    return list(all_items)


def effective_set(all_items: Sequence[K], mapping: Mapping[K, FilterState]) -> Set[K]:
    """Set form of ``resolve_tri_state`` for membership tests."""
    return set(resolve_tri_state(all_items, mapping))


def count_visible(all_items: Sequence[K], mapping: Mapping[K, FilterState]) -> int:
    """Number of items ``resolve_tri_state`` would let through (for UI counters)."""
    selected = _keys_in_state(all_items, mapping, FilterState.SELECT)
    if selected:
        return len(selected)
    excluded = set(_keys_in_state(all_items, mapping, FilterState.EXCLUDE))
    return len(all_items) - len([item for item in all_items if item in excluded])


def cycle_filter(mapping: Mapping[K, FilterState], key: K) -> Dict[K, FilterState]:
    """
    Advance ``key`` one step: neutral -> select -> exclude -> neutral.

    Returns a new mapping; ``mapping`` itself is left untouched.
    """
    updated = dict(mapping)
    current = updated.get(key)
    if current is None:
        updated[key] = FilterState.SELECT
    elif current == FilterState.SELECT:
        updated[key] = FilterState.EXCLUDE
    else:
        del updated[key]
    return updated


def set_filter_state(mapping: Mapping[K, FilterState], key: K,
                     state: Optional[FilterState]) -> Dict[K, FilterState]:
    """Return a new mapping with ``key`` forced to ``state`` (None = neutral)."""
    updated = dict(mapping)
    if state is None:
        updated.pop(key, None)
    else:
        updated[key] = state
    return updated


def select_only(keys: Iterable[K]) -> Dict[K, FilterState]:
    """Mapping that selects exactly ``keys``."""
    return {key: FilterState.SELECT for key in keys}


def active_filter_count(mapping: Mapping[Any, FilterState]) -> int:
    """Number of non-neutral entries."""
    return len(mapping)


def serialize_mapping(mapping: Mapping[K, FilterState]) -> List[List[Any]]:
    """JSON-friendly ``[[key, state], ...]`` form."""
    return [[key, FilterState(state).value] for key, state in mapping.items()]


def deserialize_mapping(pairs: Any, key_type: type = str) -> Dict[Any, FilterState]:
    """
    Rebuild a mapping from ``serialize_mapping`` output.

    Malformed pairs, unknown states and keys that cannot be coerced to
    ``key_type`` are dropped.
    """
    mapping: Dict[Any, FilterState] = {}
    if not isinstance(pairs, list):
        return mapping

    for pair in pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            continue
        raw_key, raw_state = pair
        try:
            key = key_type(raw_key)
            state = FilterState(raw_state)
        except (TypeError, ValueError):
            continue
        mapping[key] = state
    return mapping
