"""
Unit tests for MetricsPublisher: batching, namespace grouping,
failure isolation, stop/shutdown idempotence and settings defaults.
"""
import os
import sys
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.publishing_service.publisher import MetricsPublisher

from conftest import ManualScheduler, RecordingClient


@pytest.fixture()
def publisher(scheduler, client):
    return MetricsPublisher(interval=timedelta(minutes=5), client=client, scheduler=scheduler)


class TestScheduling:
    def test_publish_timer_armed_at_interval(self, publisher, scheduler):
        (handle,) = scheduler.handles
        assert handle.name == "publish"
        assert handle.interval == timedelta(minutes=5)
        assert handle.initial_delay == timedelta(minutes=5)

    def test_numeric_interval_is_seconds(self, scheduler, client):
        MetricsPublisher(interval=90, client=client, scheduler=scheduler)
        assert scheduler.handles[0].interval == timedelta(seconds=90)

    def test_timer_fire_publishes(self, publisher, scheduler, client):
        publisher.enqueue("ns", {"v": 1})
        scheduler.tick()
        assert client.calls == [("ns", [{"v": 1}])]

    def test_invalid_batch_limit(self, scheduler, client):
        with pytest.raises(ValueError):
            MetricsPublisher(interval=60, client=client, scheduler=scheduler, batch_limit=0)


class TestBatching:
    def test_45_points_split_20_20_5(self, publisher, client):
        publisher.enqueue_all("ns", range(45))
        report = publisher.publish()
        assert [len(batch) for _, batch in client.calls] == [20, 20, 5]
        assert [item for _, batch in client.calls for item in batch] == list(range(45))
        assert report.batches_sent == 3
        assert report.points_published == 45

    def test_exact_multiple(self, publisher, client):
        publisher.enqueue_all("ns", range(40))
        publisher.publish()
        assert [len(b) for _, b in client.calls] == [20, 20]

    def test_batches_never_mix_namespaces(self, publisher, client):
        for i in range(25):
            publisher.enqueue("A" if i % 2 else "B", i)
        publisher.publish()
        for namespace, batch in client.calls:
            expected_parity = 1 if namespace == "A" else 0
            assert all(i % 2 == expected_parity for i in batch)
        assert sorted(ns for ns, _ in client.calls) == ["A", "B"]

    def test_empty_queue_makes_no_calls(self, publisher, client):
        report = publisher.publish()
        assert client.calls == []
        assert report.namespaces == 0

    def test_queue_drained_once(self, publisher, client):
        publisher.enqueue("ns", 1)
        publisher.publish()
        publisher.publish()
        assert len(client.calls) == 1

    def test_custom_batch_limit(self, scheduler, client):
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler, batch_limit=3)
        p.enqueue_all("ns", range(7))
        p.publish()
        assert [len(b) for _, b in client.calls] == [3, 3, 1]


class TestFailureIsolation:
    def test_failed_namespace_does_not_block_others(self, scheduler):
        client = RecordingClient(fail_namespaces={"bad"})
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        p.enqueue("bad", 1)
        p.enqueue("good", 2)
        report = p.publish()
        assert client.calls == [("good", [2])]
        assert report.batches_failed == 1
        assert report.points_dropped == 1
        assert report.batches_sent == 1

    def test_failed_batch_is_dropped_not_retried(self, scheduler):
        client = RecordingClient(fail_namespaces={"bad"})
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        p.enqueue("bad", 1)
        p.publish()
        client.fail_namespaces.clear()
        p.publish()
        assert client.calls == []

    def test_failure_in_one_batch_keeps_later_batches(self, scheduler):
        client = MagicMock()
        client.put_metric_data.side_effect = [RuntimeError("throttled"), None, None]
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        p.enqueue_all("ns", range(45))
        report = p.publish()
        assert client.put_metric_data.call_count == 3
        assert report.batches_failed == 1
        assert report.batches_sent == 2

    def test_next_cycle_runs_after_failure(self, scheduler):
        client = RecordingClient(fail_namespaces={"ns"})
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        p.enqueue("ns", 1)
        scheduler.tick()
        client.fail_namespaces.clear()
        p.enqueue("ns", 2)
        scheduler.tick()
        assert client.calls == [("ns", [2])]
        assert p.stats["cycles"] == 2
        assert p.stats["batches_failed"] == 1

    def test_drain_failure_is_contained(self, publisher):
        with patch.object(publisher._queue, "drain", side_effect=RuntimeError("boom")):
            report = publisher.publish()
        assert report.batches_sent == 0


class TestStats:
    def test_cumulative_counters(self, publisher):
        publisher.enqueue_all("ns", range(21))
        publisher.publish()
        publisher.enqueue("other", 0)
        stats = publisher.stats
        assert stats == {
            "cycles": 1,
            "queued": 1,
            "points_published": 21,
            "points_dropped": 0,
            "batches_sent": 2,
            "batches_failed": 0,
        }


class TestLifecycle:
    def test_stop_publishes_pending_then_cancels(self, publisher, scheduler, client):
        publisher.enqueue("ns", 1)
        publisher.stop()
        assert client.calls == [("ns", [1])]
        assert scheduler.handles[0].cancelled
        assert publisher.is_stopped

    def test_stop_twice_does_not_double_publish(self, publisher, client):
        publisher.enqueue("ns", 1)
        publisher.stop()
        publisher.enqueue("ns", 2)
        publisher.stop()
        assert client.calls == [("ns", [1])]

    def test_stop_survives_cancel_failure(self, scheduler, client):
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        scheduler.handles[0].cancel = MagicMock(side_effect=RuntimeError("cannot cancel"))
        p.stop()
        assert p.is_stopped

    def test_shutdown_after_stop_is_safe(self, publisher, scheduler, client):
        publisher.enqueue("ns", 1)
        publisher.stop()
        publisher.shutdown(grace_seconds=0.1)
        assert len(client.calls) == 1
        assert scheduler.shutdown_calls == 1

    def test_shutdown_twice(self, publisher, scheduler):
        publisher.shutdown(grace_seconds=0.1)
        publisher.shutdown(grace_seconds=0.1)
        assert scheduler.shutdown_calls == 1

    def test_shutdown_releases_scheduler_even_if_stop_fails(self, scheduler, client):
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        with patch.object(p, "stop", side_effect=RuntimeError("stuck")):
            p.shutdown(grace_seconds=0.1)
        assert scheduler.shutdown_calls == 1

    def test_shutdown_warns_when_grace_expires(self, scheduler, client):
        p = MetricsPublisher(interval=60, client=client, scheduler=scheduler)
        scheduler.handles[0].wait = MagicMock(return_value=False)
        p.shutdown(grace_seconds=0.01)
        scheduler.handles[0].wait.assert_called_once_with(0.01)
        assert scheduler.shutdown_calls == 1


class TestStartFromSettings:
    def test_defaults_from_settings(self, client):
        scheduler = ManualScheduler()
        p = MetricsPublisher.start(client=client, scheduler=scheduler)
        assert scheduler.handles[0].interval == timedelta(seconds=60)
        p.enqueue_all("ns", range(21))
        p.publish()
        assert [len(b) for _, b in client.calls] == [20, 1]

    def test_default_client_and_scheduler(self):
        with patch("services.cloudwatch_service.client.create_cloudwatch_client") as factory:
            p = MetricsPublisher.start(interval=60)
        try:
            factory.assert_called_once_with()
            p.enqueue("ns", {"MetricName": "x", "Value": 1.0})
            p.publish()
            factory.return_value.put_metric_data.assert_called_once_with(
                Namespace="ns", MetricData=[{"MetricName": "x", "Value": 1.0}]
            )
        finally:
            p.shutdown(grace_seconds=1.0)
        assert p.scheduler.is_shutdown
