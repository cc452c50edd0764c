"""
Capped-size, time-to-live in-process cache.

Instances are created by the caller and injected where needed (no module-level state), so
tests get isolated caches and can drive expiry with a fake clock.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Cache entries for ``ttl_seconds``; when more than ``max_size`` entries are held the
    least recently used one is dropped.
    """

    def __init__(self, max_size: int = 32, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self.max_size = int(max_size)
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def evict(self, key: Optional[Hashable] = None) -> int:
        """
        Remove one key, or every expired entry when key is None.

        Returns:
            Number of entries removed
        """
        if key is not None:
            return 1 if self._entries.pop(key, None) is not None else 0
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def get_or_build(self, key: Hashable, builder: Callable[[], V]) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = builder()
        self.set(key, value)
        return value
