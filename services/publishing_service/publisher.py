"""
Metrics publisher: periodically ships queued data points in batches.

Architecture decisions:
  1. Two timer tiers. Aggregation tasks dump into the shared queue every
     aggregation interval; the publisher drains it on its own, usually
     coarser, interval. Aggregating for 1 minute but publishing every 5
     means fuller batches and fewer API calls.
  2. Data points carry their dump timestamp, so a delayed publish still
     reports collection time.
  3. Each drain is grouped by namespace and split into batches of at
     most batch_limit (20 for PutMetricData). Each batch is one client
     call bound to one namespace.
  4. Fire-and-forget: a failed batch is logged and dropped, never
     retried. Other batches and namespaces in the same cycle still go
     out, and the next cycle runs on schedule.
  5. The publisher is an explicitly constructed object passed to every
     builder.start(), not a module global. It owns the queue and the
     scheduler both timer tiers run on.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from configs.settings import get_settings
from services.aggregation_service.work_queue import NamespacedWorkQueue
from services.publishing_service.client import PublishingClient
from services.scheduling_service.scheduler import PeriodicScheduler
from utils.logger import get_logger
from utils.timing import timed

_log = get_logger(__name__)


@dataclass
class PublishReport:
    """Outcome of one publish cycle."""
    namespaces: int = 0
    points_published: int = 0
    points_dropped: int = 0
    batches_sent: int = 0
    batches_failed: int = 0


class MetricsPublisher:
    """Drains the shared work queue and forwards batches to the backend."""

    def __init__(
        self,
        interval: Union[timedelta, float],
        client: PublishingClient,
        scheduler: Any,
        batch_limit: int = 20,
    ) -> None:
        if batch_limit < 1:
            raise ValueError("batch_limit must be >= 1")
        self._interval = interval if isinstance(interval, timedelta) else timedelta(seconds=interval)
        self._client = client
        self._scheduler = scheduler
        self._batch_limit = batch_limit
        self._queue: NamespacedWorkQueue[Any] = NamespacedWorkQueue()

        self._lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._stopped = False
        self._shut_down = False
        self._totals = PublishReport()
        self._cycles = 0

        self._handle = scheduler.schedule_at_fixed_rate(
            self.publish, self._interval, self._interval, name="publish"
        )
        _log.info(
            "publisher_started",
            interval_seconds=self._interval.total_seconds(),
            batch_limit=batch_limit,
        )

    @classmethod
    def start(
        cls,
        interval: Optional[Union[timedelta, float]] = None,
        client: Optional[PublishingClient] = None,
        scheduler: Any = None,
        batch_limit: Optional[int] = None,
    ) -> "MetricsPublisher":
        """Start a publisher, filling unset arguments from settings.

        ``interval`` is intentionally independent of the aggregation
        interval; see the module docstring.
        """
        cfg = get_settings()
        if client is None:
            from services.cloudwatch_service.client import CloudWatchPublishingClient

            client = CloudWatchPublishingClient()
        if scheduler is None:
            scheduler = PeriodicScheduler(
                workers=cfg.metrics_scheduler_workers, name="metrics-aggregator"
            )
        return cls(
            interval if interval is not None else cfg.metrics_publish_interval_seconds,
            client,
            scheduler,
            batch_limit if batch_limit is not None else cfg.metrics_batch_limit,
        )

    # ── wiring for aggregation tasks ────────────────────────

    @property
    def scheduler(self) -> Any:
        return self._scheduler

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def enqueue(self, namespace: str, item: Any) -> None:
        self._queue.enqueue(namespace, item)

    def enqueue_all(self, namespace: str, items: Iterable[Any]) -> None:
        self._queue.enqueue_all(namespace, items)

    # ── publishing ──────────────────────────────────────────

    def publish(self) -> PublishReport:
        """Drain the queue and send everything in as few calls as possible."""
        report = PublishReport()
        with timed("metrics_publish_cycle"):
            try:
                by_namespace: Dict[str, List[Any]] = {}
                for namespace, item in self._queue.drain():
                    by_namespace.setdefault(namespace, []).append(item)
                report.namespaces = len(by_namespace)

                for namespace, items in by_namespace.items():
                    for start in range(0, len(items), self._batch_limit):
                        self._send(namespace, items[start:start + self._batch_limit], report)
            except Exception:
                _log.exception("metrics_publish_cycle_failed")

        self._record(report)
        return report

    def _send(self, namespace: str, batch: List[Any], report: PublishReport) -> None:
        try:
            self._client.put_metric_data(namespace, batch)
        except Exception as e:
            report.batches_failed += 1
            report.points_dropped += len(batch)
            _log.error(
                "metrics_publish_failed",
                namespace=namespace,
                count=len(batch),
                error=str(e),
                exc_info=True,
            )
            return
        report.batches_sent += 1
        report.points_published += len(batch)
        _log.info("metrics_published", namespace=namespace, count=len(batch))

    def _record(self, report: PublishReport) -> None:
        with self._stats_lock:
            self._cycles += 1
            self._totals.namespaces += report.namespaces
            self._totals.points_published += report.points_published
            self._totals.points_dropped += report.points_dropped
            self._totals.batches_sent += report.batches_sent
            self._totals.batches_failed += report.batches_failed

    @property
    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            totals = asdict(self._totals)
            totals.pop("namespaces")
            return {"cycles": self._cycles, "queued": len(self._queue), **totals}

    # ── lifecycle ───────────────────────────────────────────

    def stop(self) -> Any:
        """Publish whatever is queued, then cancel the publish timer.

        Idempotent: later calls neither publish nor raise. Returns the
        timer handle so callers can wait for an in-flight cycle.
        """
        with self._lock:
            if self._stopped:
                return self._handle
            self._stopped = True
            _log.info("publisher_stopping")
            self.publish()
            try:
                self._handle.cancel()
            except Exception:
                _log.exception("publisher_stop_failed")
            return self._handle

    def shutdown(self, grace_seconds: Optional[float] = None) -> None:
        """Stop, give in-flight work a bounded grace period, release the scheduler.

        Irreversible. Aggregation tasks armed on the same scheduler stop
        dumping as well.
        """
        if grace_seconds is None:
            grace_seconds = get_settings().metrics_shutdown_grace_seconds

        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True

        _log.info("publisher_shutting_down", grace_seconds=grace_seconds)
        try:
            try:
                handle = self.stop()
                if not handle.wait(grace_seconds):
                    _log.warning("publisher_shutdown_grace_expired", grace_seconds=grace_seconds)
            finally:
                self._scheduler.shutdown(wait=True, timeout=grace_seconds)
        except Exception:
            _log.exception("publisher_shutdown_failed")
