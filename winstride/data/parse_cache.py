"""
Parse cache for decoded event payloads.

Decoding ``eventData`` JSON is the most expensive per-record step, and the
same record is decoded by column accessors, search, filters and the graph
builder on every recompute. Results are memoized in a side table keyed by
``(parser kind, record id, raw payload)``; a record whose payload changes is a
new key. Entries are evicted explicitly via ``retain`` when a consumer replaces
its record stream, and survive while any consumer still holds their id.
"""

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Iterable, List, Set, Tuple

from .event_record import EventRecord

_MISSING = object()

# Owner used when a caller does not name one
DEFAULT_OWNER = "default"


class ParseCache:
    """Side table of parse results keyed by record identity."""

    def __init__(self):
        """Initialize an empty cache."""
        self._entries: Dict[Tuple[str, int, Any], Any] = {}
        self._owners: Dict[Hashable, Set[int]] = {}
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _make_key(kind: str, record: EventRecord) -> Tuple[str, int, Hashable]:
        return (kind, record.id, record.event_data)

    def get_or_parse(self, kind: str, record: EventRecord, parse: Callable[[EventRecord], Any]) -> Any:
        """
        Return the cached parse result for ``record``, computing it if needed.

        ``None`` results are cached as well, so malformed payloads are only
        decoded once.

        Args:
            kind: Parser name, separates results of different parsers
            record: Record to parse
            parse: Parser function

        Returns:
            The parse result (possibly None)
        """
        key = self._make_key(kind, record)
        with self.lock:
            value = self._entries.get(key, _MISSING)
            if value is not _MISSING:
                self.hits += 1
                return value

        value = parse(record)
        with self.lock:
            self._entries[key] = value
            self.misses += 1
        return value

    def retain(self, records: Iterable[EventRecord], owner: Hashable = DEFAULT_OWNER) -> int:
        """
        Record the live ids of one owner and evict entries nobody holds.

        Each list session and graph aggregator owns the ids of the stream it
        last saw. An entry survives while any owner still holds its record
        id, so one module's refresh does not drop another module's results.

        Args:
            records: The owner's current record stream
            owner: Key of the consumer replacing its stream

        Returns:
            int: Number of evicted entries
        """
        with self.lock:
            self._owners[owner] = {record.id for record in records}
            return self._evict_unowned()

    def release(self, owner: Hashable) -> int:
        """
        Drop an owner's live ids (e.g. when its view closes).

        Returns:
            int: Number of evicted entries
        """
        with self.lock:
            if self._owners.pop(owner, None) is None:
                return 0
            return self._evict_unowned()

    def _evict_unowned(self) -> int:
        # Caller holds the lock
        live_ids: Set[int] = set()
        for ids in self._owners.values():
            live_ids |= ids
        stale = [key for key in self._entries if key[1] not in live_ids]
        for key in stale:
            del self._entries[key]
        if stale:
            self.logger.debug(f"Evicted {len(stale)} parse results")
        return len(stale)

    def owners(self) -> List[Hashable]:
        """Keys of the consumers currently holding ids."""
        with self.lock:
            return list(self._owners)

    def clear(self):
        """Clear all cached results."""
        with self.lock:
            self._entries.clear()
            self._owners.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self.lock:
            total = self.hits + self.misses
            return {
                'size': len(self._entries),
                'hits': self.hits,
                'misses': self.misses,
                'hit_rate': self.hits / total if total > 0 else 0.0,
            }


# Shared by every parser in event_parsers
default_cache = ParseCache()
