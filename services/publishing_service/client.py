"""
Publishing client contract: what the publisher needs from a backend.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable


@runtime_checkable
class PublishingClient(Protocol):
    def put_metric_data(self, namespace: str, batch: Sequence[Any]) -> None:
        """Deliver one batch bound to one namespace. May raise; never retried."""
        ...
