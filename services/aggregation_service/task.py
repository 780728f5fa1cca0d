"""
Aggregation task, one per registered metric.

Producers call sample() from any thread; the scheduler calls dump()
every aggregation interval. A dump extracts the interval's statistic,
converts it to backend data points stamped with the dump time, and
enqueues them for the publisher under the metric's namespace.

A dump never raises into the scheduler: a failed interval is logged
and the next one starts from fresh samples.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Generator, Iterable, Protocol, Union

from services.aggregation_service.accumulator import ConcurrentAccumulator
from services.aggregation_service.conversion import DataPointConverter
from services.aggregation_service.statistic import NO_DATA, RunningStatistic
from utils.logger import get_logger
from utils.timing import timed

_log = get_logger(__name__)


class TaskState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class DataPointSink(Protocol):
    def enqueue_all(self, namespace: str, items: Iterable[Any]) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AggregationTask:
    """Aggregates samples for one metric and dumps them on a fixed interval."""

    def __init__(
        self,
        namespace: str,
        name: str,
        converter: DataPointConverter,
        sink: DataPointSink,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._namespace = namespace
        self._name = name
        self._converter = converter
        self._sink = sink
        self._clock = clock
        self._accumulator = ConcurrentAccumulator()
        self._state = TaskState.CREATED
        self._handle = None
        self._lock = threading.Lock()

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is TaskState.RUNNING

    @property
    def pending(self) -> RunningStatistic:
        """Statistic accumulated since the last dump."""
        return self._accumulator.peek()

    # ── lifecycle ───────────────────────────────────────────

    def start(self, scheduler: Any, interval: Union[timedelta, float]) -> "AggregationTask":
        """Arm the periodic dump on ``scheduler``. A task starts once."""
        with self._lock:
            if self._state is not TaskState.CREATED:
                raise RuntimeError(f"aggregation task is {self._state.value}, cannot start")
            self._handle = scheduler.schedule_at_fixed_rate(
                self.dump,
                interval,
                interval,
                name=f"aggregate:{self._namespace}:{self._name}",
            )
            self._state = TaskState.RUNNING

        _log.info(
            "aggregation_started",
            namespace=self._namespace,
            metric=self._name,
            interval_seconds=interval.total_seconds() if isinstance(interval, timedelta) else interval,
        )
        return self

    def stop(self) -> None:
        """Cancel future dumps. An in-flight dump is allowed to finish."""
        with self._lock:
            if self._state is TaskState.STOPPED:
                return
            self._state = TaskState.STOPPED
            handle, self._handle = self._handle, None

        if handle is not None:
            try:
                handle.cancel()
            except Exception:
                _log.exception("aggregation_stop_failed", namespace=self._namespace, metric=self._name)
        _log.info("aggregation_stopped", namespace=self._namespace, metric=self._name)

    # ── producers ───────────────────────────────────────────

    def sample(self, value: float) -> None:
        """Fold one sample into the current interval. Never raises."""
        try:
            self._accumulator.sample(value)
        except (TypeError, ValueError, ArithmeticError) as e:
            _log.warning(
                "aggregation_sample_rejected",
                namespace=self._namespace,
                metric=self._name,
                error=str(e),
            )

    sample_value = sample

    @contextmanager
    def timed(self) -> Generator[dict, None, None]:
        """Sample the elapsed milliseconds of the enclosed block."""
        with timed(sink=self.sample) as t:
            yield t

    # ── consumer ────────────────────────────────────────────

    def dump(self) -> None:
        """Extract, convert and enqueue this interval's statistic."""
        try:
            stat = self._accumulator.extract_and_reset()
            now = self._clock()
            if stat.is_zero:
                # one 0-valued point keeps the series out of "insufficient data"
                points = self._converter.convert(NO_DATA, now)
            else:
                points = self._converter.convert(stat, now)
            self._sink.enqueue_all(self._namespace, points)
        except Exception:
            _log.exception("aggregation_dump_failed", namespace=self._namespace, metric=self._name)
