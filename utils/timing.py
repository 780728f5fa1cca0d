"""
Elapsed-time measurement for sampling latencies.

We use time.perf_counter_ns() (monotonic, nanosecond) instead of
time.time() because wall-clock time can jump on NTP sync and a
negative latency sample would corrupt an aggregation interval.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from utils.logger import get_logger

_log = get_logger(__name__)


@contextmanager
def timed(
    label: Optional[str] = None,
    sink: Optional[Callable[[float], None]] = None,
) -> Generator[dict, None, None]:
    """
    Context manager that measures elapsed time in milliseconds.

    Usage:
        with timed(sink=latency_task.sample):
            handle(request)

        with timed("publish_cycle") as t:
            publisher.publish()
        print(t["ms"])

    The dict is populated *after* the block finishes. The sink receives
    the elapsed milliseconds even when the block raises.
    """
    result: dict = {}
    start = time.perf_counter_ns()
    try:
        yield result
    finally:
        elapsed_ns = time.perf_counter_ns() - start
        result["ns"] = elapsed_ns
        result["ms"] = elapsed_ns / 1_000_000
        if sink is not None:
            sink(result["ms"])
        if label:
            _log.debug(label, latency_ms=round(result["ms"], 3))
