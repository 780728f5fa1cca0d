"""
CloudWatch backend: units, dimensions, statistic-set conversion and the
boto3-backed publishing client.
"""

from services.cloudwatch_service.models import Dimension, StandardUnit
from services.cloudwatch_service.datum import (
    CW_PUT_METRIC_DATA_BATCH_LIMIT,
    StatisticSetConverter,
)
from services.cloudwatch_service.client import (
    CloudWatchPublishingClient,
    create_cloudwatch_client,
)

__all__ = [
    "Dimension",
    "StandardUnit",
    "CW_PUT_METRIC_DATA_BATCH_LIMIT",
    "StatisticSetConverter",
    "CloudWatchPublishingClient",
    "create_cloudwatch_client",
]
