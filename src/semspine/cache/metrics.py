"""In-process counters for the classification cache."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class CacheMetrics:
    """Hit/miss/save counters shared by every user of one cache instance.

    ``hit_rate`` is a percentage, 0 when nothing has been looked up yet.
    """

    hits: int = 0
    misses: int = 0
    saves: int = 0
    skipped_curated: int = 0
    errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_save(self) -> None:
        with self._lock:
            self.saves += 1

    def record_skipped_curated(self) -> None:
        with self._lock:
            self.skipped_curated += 1

    def record_error(self) -> None:
        with self._lock:
            self.errors += 1

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return round(self.hits / lookups * 100, 2) if lookups else 0.0

    def reset(self) -> None:
        with self._lock:
            self.hits = self.misses = self.saves = self.skipped_curated = self.errors = 0

    def to_dict(self) -> dict[str, float | int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "saves": self.saves,
            "skipped_curated": self.skipped_curated,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
        }
