"""
Namespaced work queue between aggregation tasks and the publisher.

Multi-producer / single-consumer. Producers append under a short lock,
the consumer swaps the whole buffer out in one step, so an entry is
handed out exactly once: it is either in the buffer that was cut or in
the fresh one that follows.

The queue is unbounded. Growth is limited by the aggregation
intervals (one dump per metric per interval), and a slow publisher
must never push back on the timer threads.
"""

from __future__ import annotations

import threading
from typing import Generic, Iterable, List, Tuple, TypeVar

T = TypeVar("T")


class NamespacedWorkQueue(Generic[T]):
    """Thread-safe buffer of (namespace, item) pairs with atomic drain."""

    def __init__(self) -> None:
        self._items: List[Tuple[str, T]] = []
        self._lock = threading.Lock()

    def enqueue(self, namespace: str, item: T) -> None:
        with self._lock:
            self._items.append((namespace, item))

    def enqueue_all(self, namespace: str, items: Iterable[T]) -> None:
        batch = [(namespace, item) for item in items]
        if not batch:
            return
        with self._lock:
            self._items.extend(batch)

    def drain(self) -> List[Tuple[str, T]]:
        """Remove and return everything enqueued so far."""
        with self._lock:
            drained, self._items = self._items, []
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
