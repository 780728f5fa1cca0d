"""
Running statistic: count, sum, min and max of the samples seen so far.

Instances are immutable. Every fold returns a new object, which is what
lets ConcurrentAccumulator publish a statistic through a single
reference swap without readers ever seeing a half-applied update.

Non-finite samples are folded as given, nothing is clamped:
  - +/-inf propagates into sum and lands in min/max as usual.
  - NaN makes sum NaN. min/max use Python's min()/max(), so a NaN
    only sticks when it arrives first in the interval.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RunningStatistic:
    """Aggregate of the samples folded into one interval."""
    count: int = 0
    sum: float = 0.0
    min: float = 0.0
    max: float = 0.0

    @property
    def is_zero(self) -> bool:
        return self.count == 0

    @property
    def mean(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.sum / self.count

    def add_sample(self, value: float) -> "RunningStatistic":
        """Return a statistic that also covers ``value``."""
        value = float(value)
        if self.count == 0:
            return RunningStatistic(count=1, sum=value, min=value, max=value)
        return RunningStatistic(
            count=self.count + 1,
            sum=self.sum + value,
            min=min(self.min, value),
            max=max(self.max, value),
        )

    def combine(self, other: "RunningStatistic") -> "RunningStatistic":
        """Merge two statistics into one covering the union of their samples."""
        if other.count == 0:
            return self
        if self.count == 0:
            return other
        return RunningStatistic(
            count=self.count + other.count,
            sum=self.sum + other.sum,
            min=min(self.min, other.min),
            max=max(self.max, other.max),
        )


class NoData:
    """Sentinel for an interval without samples."""

    _instance: Optional["NoData"] = None

    def __new__(cls) -> "NoData":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DATA"


ZERO = RunningStatistic()

# Handed to the conversion rule instead of ZERO so the backend receives a
# single 0-valued point and keeps the series out of "insufficient data".
NO_DATA = NoData()
