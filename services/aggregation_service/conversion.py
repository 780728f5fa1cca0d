"""
Conversion rule contract: turns an interval's statistic into backend
data points.

The aggregation task owns no formatting logic. It hands the converter
either a non-empty RunningStatistic or the NO_DATA sentinel plus the
dump timestamp, and enqueues whatever comes back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence, Union, runtime_checkable

from services.aggregation_service.statistic import RunningStatistic, NoData

StatisticOrNoData = Union[RunningStatistic, NoData]


@runtime_checkable
class DataPointConverter(Protocol):
    def convert(self, value: StatisticOrNoData, timestamp: datetime) -> Sequence[Any]:
        """Return zero or more data points for one dump."""
        ...
