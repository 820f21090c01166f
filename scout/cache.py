# cache.py – Cache mémoire avec TTL (un par process, pas de coordination)

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """
    Process-scoped key/value cache.

    An entry is valid while ``now - inserted_at < ttl``. Stale entries read as
    absent but stay in place until the next ``set`` for the same key overwrites
    them.
    """

    def __init__(self, ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, inserted_at = entry
        if self._clock() - inserted_at < self.ttl:
            return value
        return None

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (value, self._clock())

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        """Number of stored entries, stale ones included."""
        return len(self._store)
