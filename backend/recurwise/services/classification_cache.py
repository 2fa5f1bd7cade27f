"""
In-memory cache and daily call quota for pattern classification.

Both are shared by every run that uses the same classifier instance, so
access goes through a lock.
"""

import threading
from datetime import datetime, timedelta, timezone, date
from typing import Callable, Dict, Optional, Tuple

from recurwise.schemas.classification import ClassificationRequest, ClassificationResult


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(request: ClassificationRequest) -> str:
    """merchant|category|frequency|rounded amount, lowercased."""
    parts = [
        request.merchant_name or "unknown",
        request.category_name or "unknown",
        request.frequency_type.value,
        str(round(request.average_amount)),
    ]
    return "|".join(parts).lower()


class ClassificationCache:
    """TTL cache of AI classification results keyed by pattern shape."""

    def __init__(
        self,
        ttl_minutes: int = 60 * 24,
        clock: Callable[[], datetime] = utc_now
    ):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock
        self._entries: Dict[str, Tuple[ClassificationResult, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[ClassificationResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, stored_at = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return result

    def put(self, key: str, result: ClassificationResult) -> None:
        with self._lock:
            self._entries[key] = (result, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DailyQuota:
    """Counter of provider calls per UTC calendar day."""

    def __init__(self, max_daily_calls: int, clock: Callable[[], datetime] = utc_now):
        self.max_daily_calls = max_daily_calls
        self._clock = clock
        self._day: date = clock().date()
        self._used = 0
        self._lock = threading.Lock()

    def _roll_over(self) -> None:
        today = self._clock().date()
        if today != self._day:
            self._day = today
            self._used = 0

    def try_acquire(self) -> bool:
        """Reserve one call. Returns False once today's budget is spent."""
        with self._lock:
            self._roll_over()
            if self._used >= self.max_daily_calls:
                return False
            self._used += 1
            return True

    def stats(self) -> Dict[str, int]:
        with self._lock:
            self._roll_over()
            return {
                "used": self._used,
                "max": self.max_daily_calls,
                "remaining": max(0, self.max_daily_calls - self._used),
            }
