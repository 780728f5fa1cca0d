"""
Centralized configuration: loaded once at process startup.

Why a single settings module?
  - Publisher, scheduler and CloudWatch client read the same env vars.
  - Pydantic validates types at import time so we fail fast on bad config.
  - No scattered os.getenv() calls across the codebase.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Immutable, validated library settings from environment."""

    # ── Aggregation ─────────────────────────────────────────
    metrics_aggregation_interval_seconds: float = Field(
        default=60.0, ge=60, description="Default interval for new aggregator builders"
    )

    # ── Publishing ──────────────────────────────────────────
    metrics_publish_interval_seconds: float = Field(
        default=60.0, gt=0, description="How often queued data points are shipped"
    )
    metrics_batch_limit: int = Field(
        default=20, ge=1, le=20, description="Max data points per PutMetricData call"
    )
    metrics_shutdown_grace_seconds: float = Field(
        default=3.0, ge=0, description="How long shutdown waits for an in-flight publish"
    )

    # ── Scheduler ───────────────────────────────────────────
    metrics_scheduler_workers: int = Field(
        default=1, ge=1, description="Worker threads running timer callbacks"
    )

    # ── AWS ─────────────────────────────────────────────────
    aws_region: str = Field(default="us-east-1")
    aws_endpoint_url: Optional[str] = Field(
        default=None, description="Custom CloudWatch endpoint (LocalStack/testing)"
    )

    # ── Logging ─────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton accessor: parsed once and cached for the process lifetime.
    Import this wherever you need config:
        from configs.settings import get_settings
        cfg = get_settings()
    """
    return Settings()
