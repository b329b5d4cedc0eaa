from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Dict, Hashable, Optional


log = logging.getLogger(__name__)


class TileCache:
    """
    Bounded in-memory store of encoded tiles, keyed by TileKey.

    Eviction is FIFO: once `capacity` is exceeded the oldest *inserted* key is
    dropped, regardless of how recently it was read. Overwriting a key keeps its
    original position.

    All operations take a single lock. Two concurrent misses on the same key may
    both render; the second put simply overwrites an identical value.
    """
    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self._items: "OrderedDict[Hashable, bytes]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # -------- public API --------

    def get(self, key: Hashable) -> Optional[bytes]:
        with self._lock:
            data = self._items.get(key)
            if data is None:
                self._misses += 1
            else:
                self._hits += 1
            return data

    def put(self, key: Hashable, data: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(data)
            while len(self._items) > self.capacity:
                old, _ = self._items.popitem(last=False)
                self._evictions += 1
                log.debug("Evicted tile %s", old)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def keys(self):
        with self._lock:
            return list(self._items.keys())

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._items),
                "capacity": self.capacity,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items
