from __future__ import annotations

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple, TypeVar

T = TypeVar("T")


class TtlCache:
    """Read-through cache whose entries expire ``ttl`` seconds after they were built.

    Two callers missing at the same time both build; the later assignment wins.
    Builders are pure functions of on-disk data, so either value is correct.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get_or_build(self, key: Hashable, ttl: float, builder: Callable[[], T]) -> T:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and now - entry[0] < ttl:
            return entry[1]
        value = builder()
        self._entries[key] = (self._clock(), value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
