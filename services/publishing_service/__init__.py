"""
Batched delivery of aggregated data points to the metrics backend.
"""

from services.publishing_service.client import PublishingClient
from services.publishing_service.publisher import MetricsPublisher, PublishReport

__all__ = ["PublishingClient", "MetricsPublisher", "PublishReport"]
