"""
Fixed-rate scheduler driving aggregation dumps and publish cycles.

Architecture decisions:
  1. One daemon timer thread owns a heap of (next_run, seq, task) and
     sleeps on a Condition until the earliest deadline or a wake-up.
  2. Callbacks run on a small ThreadPoolExecutor (1 worker by default).
     Dumps and publishes are short, so one thread keeps up with many
     metrics and the timer thread never blocks on a slow callback.
  3. Fixed rate: the next run is the previous *scheduled* time plus the
     interval. A run never overlaps with itself; if it overruns, the
     next one starts immediately afterwards instead of piling up.
  4. A callback that raises is logged and rescheduled. Only cancel()
     or shutdown() stop a task.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Callable, List, Optional, Set, Tuple, Union

from utils.logger import get_logger

_log = get_logger(__name__)

Interval = Union[float, int, timedelta]


class SchedulerShutdownError(RuntimeError):
    """Raised when scheduling on a scheduler that has been shut down."""


def _to_seconds(value: Interval) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class ScheduledTask:
    """Handle to a repeating callback. Cancelling is best-effort."""

    def __init__(
        self,
        scheduler: "PeriodicScheduler",
        callback: Callable[[], None],
        interval: float,
        first_run: float,
        name: str,
    ) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._interval = interval
        self._next_run = first_run
        self._name = name
        self._cancelled = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._runs = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def runs(self) -> int:
        """Number of completed callback invocations."""
        return self._runs

    def cancel(self) -> bool:
        """Stop future runs. Returns False if already cancelled."""
        if self._cancelled.is_set():
            return False
        self._cancelled.set()
        self._scheduler._wake()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is in flight. True if idle within timeout."""
        return self._idle.wait(timeout)

    def _run(self) -> None:
        try:
            if not self._cancelled.is_set():
                self._callback()
        except Exception:
            _log.exception("scheduled_callback_failed", task=self._name)
        finally:
            self._runs += 1
            self._idle.set()
            if not self._cancelled.is_set():
                self._next_run = max(self._next_run + self._interval, time.monotonic())
                self._scheduler._push(self)


class PeriodicScheduler:
    """Runs callbacks at a fixed rate on a small worker pool."""

    def __init__(self, workers: int = 1, name: str = "metrics-scheduler") -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._name = name
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name)
        self._heap: List[Tuple[float, int, ScheduledTask]] = []
        self._tasks: Set[ScheduledTask] = set()
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._shutdown = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def schedule_at_fixed_rate(
        self,
        callback: Callable[[], None],
        interval: Interval,
        initial_delay: Optional[Interval] = None,
        name: Optional[str] = None,
    ) -> ScheduledTask:
        """Run ``callback`` every ``interval``, first after ``initial_delay``."""
        period = _to_seconds(interval)
        if period <= 0:
            raise ValueError("interval must be positive")
        delay = period if initial_delay is None else _to_seconds(initial_delay)
        if delay < 0:
            raise ValueError("initial_delay must not be negative")

        task = ScheduledTask(
            self,
            callback,
            period,
            time.monotonic() + delay,
            name or getattr(callback, "__qualname__", "task"),
        )
        with self._cond:
            if self._shutdown:
                raise SchedulerShutdownError(f"scheduler {self._name} is shut down")
            self._tasks.add(task)
            heapq.heappush(self._heap, (task._next_run, next(self._seq), task))
            self._ensure_thread()
            self._cond.notify()
        return task

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Cancel every task and release the worker threads. Irreversible."""
        with self._cond:
            if self._shutdown:
                return
            self._shutdown = True
            tasks = list(self._tasks)
            self._heap.clear()
            self._cond.notify_all()

        for task in tasks:
            task._cancelled.set()

        if wait and timeout is not None:
            deadline = time.monotonic() + timeout
            for task in tasks:
                if not task.wait(max(0.0, deadline - time.monotonic())):
                    _log.warning("scheduler_shutdown_timeout", task=task.name, timeout=timeout)
            self._executor.shutdown(wait=False, cancel_futures=True)
        else:
            self._executor.shutdown(wait=wait, cancel_futures=True)

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        _log.info("scheduler_shutdown", scheduler=self._name, tasks=len(tasks))

    # ── internals ───────────────────────────────────────────

    def _ensure_thread(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._loop, name=f"{self._name}-timer", daemon=True
            )
            self._thread.start()

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify()

    def _push(self, task: ScheduledTask) -> None:
        with self._cond:
            if self._shutdown:
                return
            if task.cancelled:
                self._tasks.discard(task)
                return
            heapq.heappush(self._heap, (task._next_run, next(self._seq), task))
            self._cond.notify()

    def _loop(self) -> None:
        with self._cond:
            while not self._shutdown:
                if not self._heap:
                    self._cond.wait()
                    continue
                run_at, _, task = self._heap[0]
                if task.cancelled:
                    heapq.heappop(self._heap)
                    self._tasks.discard(task)
                    continue
                delay = run_at - time.monotonic()
                if delay > 0:
                    self._cond.wait(delay)
                    continue
                heapq.heappop(self._heap)
                task._idle.clear()
                try:
                    self._executor.submit(task._run)
                except RuntimeError:
                    task._idle.set()
                    _log.warning("scheduler_submit_rejected", task=task.name)
