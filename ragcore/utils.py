"""Shared helpers."""

import logging
import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LRUCache(Generic[T]):
    """Thread-safe least-recently-used cache with a fixed capacity."""

    def __init__(self, maxsize: int = 1000):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self._data: OrderedDict[str, T] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key)
            return self._data[key]

    def put(self, key: str, value: T) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            elif len(self._data) >= self.maxsize:
                evicted, _ = self._data.popitem(last=False)
                logger.debug(f"Evicted cache entry: {evicted}")
            self._data[key] = value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
