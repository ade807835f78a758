"""Small, dependency-free statistics used by the anomaly checks.

All functions are total: empty or degenerate input returns 0 rather than
raising, and the checks treat a 0 spread as "nothing to compare against".
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values: Sequence[float], avg: float | None = None) -> float:
    """Sample standard deviation (n - 1); 0 with fewer than two values."""
    if len(values) < 2:
        return 0.0
    avg = mean(values) if avg is None else avg
    return math.sqrt(sum((v - avg) ** 2 for v in values) / (len(values) - 1))


def zscore(value: float, avg: float, sd: float) -> float:
    if sd == 0:
        return 0.0
    return (value - avg) / sd


@dataclass(frozen=True)
class IQRBounds:
    q1: float
    q3: float

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1

    def upper(self, k: float) -> float:
        return self.q3 + k * self.iqr

    def lower(self, k: float) -> float:
        return self.q1 - k * self.iqr


def iqr_bounds(values: Sequence[float]) -> IQRBounds:
    """Rank-based quartiles: ``q1 = s[mid // 2]``, ``q3 = s[(n + mid) // 2]``."""
    if not values:
        return IQRBounds(0.0, 0.0)
    ordered = sorted(values)
    n = len(ordered)
    mid = n // 2
    return IQRBounds(q1=ordered[mid // 2], q3=ordered[(n + mid) // 2])
