"""
Bounded per-location history logs.
"""

import threading
from collections import defaultdict, deque
from typing import Deque, Dict, Generic, List, Optional, TypeVar

from .locations import location_key

T = TypeVar('T')


class LocationHistory(Generic[T]):
    """
    Append-only log per location, capped at `limit` entries each.

    When a location's log is full the oldest entry is dropped. A limit of
    None keeps everything.
    """

    def __init__(self, limit: Optional[int] = 1000):
        if limit is not None and limit < 1:
            raise ValueError("history limit must be positive or None")
        self.limit = limit
        self._logs: Dict[str, Deque[T]] = defaultdict(lambda: deque(maxlen=self.limit))
        self._lock = threading.Lock()

    def append(self, location: str, item: T) -> None:
        with self._lock:
            self._logs[location_key(location)].append(item)

    def items(self, location: str, limit: Optional[int] = None) -> List[T]:
        """Entries oldest first; with `limit`, only the newest `limit`."""
        with self._lock:
            log = self._logs.get(location_key(location))
            entries = list(log) if log else []
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def count(self, location: str) -> int:
        with self._lock:
            log = self._logs.get(location_key(location))
            return len(log) if log else 0
