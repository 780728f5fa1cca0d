"""
Per-metric aggregation: running statistics, the concurrent accumulator,
the namespaced work queue, and the aggregation task and its builder.
"""

from services.aggregation_service.statistic import NO_DATA, ZERO, NoData, RunningStatistic
from services.aggregation_service.accumulator import AtomicReference, ConcurrentAccumulator
from services.aggregation_service.work_queue import NamespacedWorkQueue
from services.aggregation_service.conversion import DataPointConverter, StatisticOrNoData
from services.aggregation_service.task import AggregationTask, TaskState
from services.aggregation_service.builder import (
    AggregatorBuilder,
    AggregatorConfigError,
)

__all__ = [
    "NO_DATA",
    "ZERO",
    "NoData",
    "RunningStatistic",
    "AtomicReference",
    "ConcurrentAccumulator",
    "NamespacedWorkQueue",
    "DataPointConverter",
    "StatisticOrNoData",
    "AggregationTask",
    "TaskState",
    "AggregatorBuilder",
    "AggregatorConfigError",
]
