"""
Concurrent accumulator: many producer threads, one consuming task.

CPython exposes no compare-and-swap instruction, so AtomicReference
provides the equivalent primitive: a single reference whose
compare_and_set / get_and_set are serialized by a private lock held
only for the pointer comparison and assignment. The fold itself
(RunningStatistic.add_sample) runs outside that lock, and a producer
that lost the race simply retries against the fresh value.

Reset is a get_and_set(ZERO). A sample racing with it either lands in
the value being extracted or in the fresh ZERO, never both, never
neither.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from services.aggregation_service.statistic import ZERO, RunningStatistic

T = TypeVar("T")


class AtomicReference(Generic[T]):
    """Single mutable slot with identity-based compare-and-set."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> T:
        return self._value

    def compare_and_set(self, expected: T, new: T) -> bool:
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True

    def get_and_set(self, new: T) -> T:
        with self._lock:
            previous = self._value
            self._value = new
            return previous


class ConcurrentAccumulator:
    """Lock-free-style running statistic shared by producer threads."""

    __slots__ = ("_current",)

    def __init__(self) -> None:
        self._current: AtomicReference[RunningStatistic] = AtomicReference(ZERO)

    def sample(self, value: float) -> None:
        while True:
            prev = self._current.get()
            nxt = prev.add_sample(value)
            if self._current.compare_and_set(prev, nxt):
                return

    def extract_and_reset(self) -> RunningStatistic:
        """Swap in ZERO and return what was accumulated before the swap."""
        return self._current.get_and_set(ZERO)

    def peek(self) -> RunningStatistic:
        return self._current.get()
