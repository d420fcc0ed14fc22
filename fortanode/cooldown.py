"""Per-key operation counting with cool-down periods."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Hashable, Optional, Union

# Counters whose cool-down ended longer ago than this are dropped by cleanup().
_IDLE_EXPIRY_SECONDS = 3600.0


@dataclass
class _Counter:
    count: int = 1
    ends_at: Optional[float] = None


class Cooldown:
    """Tracks operations by key and tells when a key should be cooling down.

    After ``threshold`` further operations on a key, the key cools down for
    ``cooldown_duration`` seconds. Call :meth:`cleanup` periodically to drop
    inactive counters.
    """

    def __init__(
        self,
        threshold: int,
        cooldown_duration: Union[float, timedelta],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if isinstance(cooldown_duration, timedelta):
            cooldown_duration = cooldown_duration.total_seconds()
        self._threshold = threshold
        self._duration = float(cooldown_duration)
        self._clock = clock
        self._counters: Dict[Hashable, _Counter] = {}
        self._lock = threading.Lock()

    def should_cool_down(self, key: Hashable) -> bool:
        """Count one operation for ``key`` and tell whether it should cool down."""
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                self._counters[key] = _Counter()
                return False
            now = self._clock()
            if counter.ends_at is not None and now < counter.ends_at:
                return True
            if counter.count >= self._threshold:
                counter.ends_at = now + self._duration
                counter.count = 0
                return True
            counter.count += 1
            return False

    def cleanup(self) -> None:
        """Drop counters whose cool-down ended more than an hour ago."""
        with self._lock:
            now = self._clock()
            stale = [
                key
                for key, counter in self._counters.items()
                if counter.ends_at is None or now - counter.ends_at > _IDLE_EXPIRY_SECONDS
            ]
            for key in stale:
                del self._counters[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)