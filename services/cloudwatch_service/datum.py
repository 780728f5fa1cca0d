"""
CloudWatch conversion rule: RunningStatistic -> PutMetricData entries.

Architecture decisions:
  1. A non-empty statistic is sent as a StatisticSet (SampleCount, Sum,
     Minimum, Maximum) so CloudWatch can still derive Average and the
     other statistics from the pre-aggregated interval.
  2. Fan-out: one dimensionless entry plus one entry per configured
     dimension set, all sharing the same values and timestamp.
  3. An idle interval becomes a single dimensionless Value=0 entry. It
     keeps alarms on the series out of INSUFFICIENT_DATA without
     polluting every dimension combination.
  4. The timestamp is the dump time, so data published late still lands
     on the interval it was collected in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Sequence

from services.aggregation_service.conversion import StatisticOrNoData
from services.aggregation_service.statistic import RunningStatistic
from services.cloudwatch_service.models import Dimension, StandardUnit

# http://docs.aws.amazon.com/AmazonCloudWatch/latest/DeveloperGuide/cloudwatch_limits.html
CW_PUT_METRIC_DATA_BATCH_LIMIT = 20


class StatisticSetConverter:
    """Builds MetricData dicts for one metric name/unit/dimension layout."""

    def __init__(
        self,
        metric_name: str,
        unit: StandardUnit = StandardUnit.NONE,
        dimension_sets: Sequence[Sequence[Dimension]] = (),
    ) -> None:
        if not metric_name:
            raise ValueError("metric_name must not be empty")
        if any(len(ds) == 0 for ds in dimension_sets):
            raise ValueError("dimension sets must not be empty")
        self._metric_name = metric_name
        self._unit = StandardUnit(unit)
        # dimensionless entry always goes first
        self._dimension_sets: List[List[Dict[str, str]]] = [[]] + [
            [d.to_boto() for d in ds] for ds in dimension_sets
        ]

    @property
    def metric_name(self) -> str:
        return self._metric_name

    @property
    def fan_out(self) -> int:
        """Entries produced for a non-empty statistic."""
        return len(self._dimension_sets)

    def convert(self, value: StatisticOrNoData, timestamp: datetime) -> List[Dict[str, Any]]:
        if not isinstance(value, RunningStatistic) or value.is_zero:
            return [
                {
                    "MetricName": self._metric_name,
                    "Timestamp": timestamp,
                    "Value": 0.0,
                    "Unit": self._unit.value,
                }
            ]

        statistic_values = {
            "SampleCount": float(value.count),
            "Sum": value.sum,
            "Minimum": value.min,
            "Maximum": value.max,
        }
        data = []
        for dims in self._dimension_sets:
            datum: Dict[str, Any] = {
                "MetricName": self._metric_name,
                "Timestamp": timestamp,
                "StatisticValues": dict(statistic_values),
                "Unit": self._unit.value,
            }
            if dims:
                datum["Dimensions"] = [dict(d) for d in dims]
            data.append(datum)
        return data
