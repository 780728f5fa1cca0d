"""
Shared fixtures: a manually driven scheduler and a recording client.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


class ManualHandle:
    """Timer handle that only fires when the test says so."""

    def __init__(self, callback, interval, initial_delay, name):
        self.callback = callback
        self.interval = interval
        self.initial_delay = initial_delay
        self.name = name
        self.cancelled = False
        self.cancel_calls = 0

    def cancel(self):
        self.cancel_calls += 1
        already = self.cancelled
        self.cancelled = True
        return not already

    def wait(self, timeout=None):
        return True

    def fire(self):
        if not self.cancelled:
            self.callback()


class ManualScheduler:
    """Stands in for PeriodicScheduler; tick() fires every live timer once."""

    def __init__(self):
        self.handles = []
        self.shutdown_calls = 0

    def schedule_at_fixed_rate(self, callback, interval, initial_delay=None, name=None):
        handle = ManualHandle(callback, interval, initial_delay, name)
        self.handles.append(handle)
        return handle

    def shutdown(self, wait=True, timeout=None):
        self.shutdown_calls += 1
        for h in self.handles:
            h.cancelled = True

    def named(self, prefix):
        return [h for h in self.handles if (h.name or "").startswith(prefix)]

    def tick(self, prefix=""):
        for h in self.named(prefix):
            h.fire()


class RecordingClient:
    """Publishing client that records batches and can fail per namespace."""

    def __init__(self, fail_namespaces=()):
        self.calls = []
        self.fail_namespaces = set(fail_namespaces)

    def put_metric_data(self, namespace, batch):
        if namespace in self.fail_namespaces:
            raise ConnectionError(f"backend unavailable for {namespace}")
        self.calls.append((namespace, list(batch)))


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def client():
    return RecordingClient()


@pytest.fixture()
def fresh_settings(monkeypatch):
    """Clear the cached Settings so env changes in the test take effect."""
    from configs.settings import get_settings

    for var in ("AWS_REGION", "AWS_ENDPOINT_URL", "METRICS_AGGREGATION_INTERVAL_SECONDS"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
