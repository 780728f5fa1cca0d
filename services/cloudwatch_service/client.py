"""
Thin wrapper over boto3 put_metric_data for CloudWatch publishing.

Architecture decisions:
  1. One boto3 client serves every namespace; the namespace is passed
     per call, so a batch is always bound to exactly one namespace.
  2. No retries here. botocore's own retry policy applies to a single
     call; anything that still fails is the publisher's to log and drop.
  3. Credentials follow the standard boto3 chain (env, profile, IAM
     role). Region and endpoint come from settings so LocalStack works
     without code changes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from configs.settings import get_settings
from utils.logger import get_logger

_log = get_logger(__name__)


def create_cloudwatch_client(
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> Any:
    """Create a boto3 CloudWatch client from settings (overridable)."""
    import boto3

    cfg = get_settings()
    kwargs: Dict[str, Any] = {"region_name": region or cfg.aws_region}
    endpoint = endpoint_url or cfg.aws_endpoint_url
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    return boto3.client("cloudwatch", **kwargs)


class CloudWatchPublishingClient:
    """Sends one batch of MetricData entries to one namespace."""

    def __init__(self, boto_client: Any = None) -> None:
        self._client = boto_client if boto_client is not None else create_cloudwatch_client()

    def put_metric_data(self, namespace: str, batch: Sequence[Dict[str, Any]]) -> None:
        self._client.put_metric_data(Namespace=namespace, MetricData=list(batch))
        _log.debug("cloudwatch_put_metric_data", namespace=namespace, count=len(batch))
