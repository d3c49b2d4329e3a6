"""Bounded LRU cache for processed census files."""

import threading
from collections import OrderedDict
from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')


class LRUCache(Generic[T]):
    """Thread-safe LRU cache keyed by file id."""

    def __init__(self, max_size: int = 100):
        """
        Initialize LRU cache.

        Args:
            max_size: Maximum number of processed files kept in memory
        """
        self._items: "OrderedDict[str, T]" = OrderedDict()
        self.max_size = max_size
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            if key not in self._items:
                return None
            self._items.move_to_end(key)
            return self._items[key]

    def set(self, key: str, value: T) -> None:
        with self._lock:
            if key in self._items:
                self._items.move_to_end(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def pop(self, key: str) -> Optional[T]:
        with self._lock:
            return self._items.pop(key, None)

    def keys(self) -> List[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._items.keys())

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._items
