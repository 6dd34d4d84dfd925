"""Short-lived TTL cache scoped to one export run.

The caller constructs one ``ExportCache`` per export and hands it to the
price source and the fetch orchestrator. Nothing is kept at module level,
so two exports never see each other's data.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

DEFAULT_TTL = 30 * 60.0
MAX_ENTRIES = 50


def build_cache_key(source: str, wallet: str, *parts: object) -> str:
    """``source:wallet:part1:part2``; source is case-folded, the wallet kept as given."""
    tail = ":".join("" if part is None else str(part).strip() for part in parts)
    return f"{source.strip().lower()}:{wallet.strip()}:{tail}"


class ExportCache:
    """Thread-safe TTL cache with least-recently-used eviction."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                self.misses += 1
                return default
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value, or call ``loader`` once and cache its result.

        The loader runs outside the lock; two threads racing on the same key
        may both load, and the later result wins.
        """
        sentinel = object()
        value = self.get(key, sentinel)
        if value is not sentinel:
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
