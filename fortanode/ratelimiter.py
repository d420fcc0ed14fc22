"""Per-client token-bucket rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

# Limiters not used for longer than this are dropped by cleanup().
_IDLE_EXPIRY_SECONDS = 600.0


@dataclass
class _Bucket:
    tokens: float
    updated: float
    last_reservation: float


class RateLimiter:
    """Limits each client to ``rate`` events per second with bursts of ``burst``."""

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("non-positive rate limiter arg")
        self._rate = float(rate)
        self._burst = burst
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def exceeds_limit(self, client_id: str) -> bool:
        """Take one event for ``client_id`` and tell whether the limit was hit."""
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(client_id)
            if bucket is None:
                bucket = _Bucket(tokens=float(self._burst), updated=now, last_reservation=now)
                self._buckets[client_id] = bucket
            bucket.last_reservation = now
            elapsed = max(0.0, now - bucket.updated)
            bucket.tokens = min(float(self._burst), bucket.tokens + elapsed * self._rate)
            bucket.updated = now
            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return False
            return True

    def cleanup(self) -> None:
        """Drop limiters of clients inactive for more than ten minutes."""
        with self._lock:
            now = self._clock()
            stale = [
                client_id
                for client_id, bucket in self._buckets.items()
                if now - bucket.last_reservation > _IDLE_EXPIRY_SECONDS
            ]
            for client_id in stale:
                del self._buckets[client_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)