"""
Aggregator builder: immutable, incrementally configured metric template.

Every with_*/add_*/enter_* call returns a new builder, so a partially
filled template can be shared and specialized:

    latency = (
        AggregatorBuilder()
        .enter_metric_namespace("MyService")
        .with_unit(StandardUnit.MILLISECONDS)
    )
    search = latency.enter_metric_namespace("Search").with_metric_name("Latency")
    task = search.start(publisher)

Arguments are validated on each call. Name and namespace are only
required by start(), which is the single place a missing piece of
configuration surfaces, synchronously, as AggregatorConfigError.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Iterable, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from configs.settings import get_settings
from services.aggregation_service.conversion import DataPointConverter
from services.aggregation_service.task import AggregationTask, DataPointSink
from services.cloudwatch_service.models import Dimension, StandardUnit

# Finer intervals buy no extra resolution in CloudWatch graphs.
MIN_INTERVAL = timedelta(minutes=1)

DimensionLike = Union[Dimension, Tuple[str, str]]


class AggregatorConfigError(ValueError):
    """Required aggregator configuration is missing."""


class AggregationPublisher(DataPointSink, Protocol):
    """What start() binds a task to: a data point sink that owns a scheduler."""

    @property
    def scheduler(self) -> Any: ...


def _dimension(d: DimensionLike) -> Dimension:
    if isinstance(d, Dimension):
        return d
    name, value = d
    return Dimension(name=name, value=value)


def _dimension_set(ds: Iterable[DimensionLike]) -> Tuple[Dimension, ...]:
    dims = tuple(_dimension(d) for d in ds)
    if not dims:
        # a dimensionless point is always published anyway
        raise ValueError("dimensions must not be empty")
    return dims


def _default_interval() -> timedelta:
    return timedelta(seconds=get_settings().metrics_aggregation_interval_seconds)


class AggregatorBuilder(BaseModel):
    """Configuration for one aggregated metric."""

    model_config = ConfigDict(frozen=True)

    metric_name: Optional[str] = None
    metric_namespace: Optional[str] = None
    unit: StandardUnit = StandardUnit.NONE
    dimensions: Tuple[Tuple[Dimension, ...], ...] = ()
    interval: timedelta = Field(default_factory=_default_interval)

    # constructor-path checks; with_* validate their own arguments
    @field_validator("metric_name", "metric_namespace")
    @classmethod
    def _check_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("dimensions", mode="before")
    @classmethod
    def _check_dimension_sets(cls, v: Any) -> Tuple[Tuple[Dimension, ...], ...]:
        return tuple(_dimension_set(ds) for ds in v)

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, v: timedelta) -> timedelta:
        if v < MIN_INTERVAL:
            raise ValueError("interval must be at least 1 minute")
        return v

    def with_metric_name(self, name: str) -> "AggregatorBuilder":
        """Name of the aggregated metric."""
        if not name:
            raise ValueError("name must not be empty")
        return self.model_copy(update={"metric_name": name})

    def with_metric_namespace(self, namespace: str) -> "AggregatorBuilder":
        """Full namespace, replacing any previous one. See enter_metric_namespace()."""
        if not namespace:
            raise ValueError("namespace must not be empty")
        return self.model_copy(update={"metric_namespace": namespace})

    def enter_metric_namespace(self, namespace: str) -> "AggregatorBuilder":
        """Nest ``namespace`` under the current one: ``"<current> / <namespace>"``."""
        if not namespace:
            raise ValueError("namespace must not be empty")
        if self.metric_namespace is None:
            nested = namespace
        else:
            nested = f"{self.metric_namespace} / {namespace}"
        return self.model_copy(update={"metric_namespace": nested})

    def with_unit(self, unit: Union[StandardUnit, str]) -> "AggregatorBuilder":
        return self.model_copy(update={"unit": StandardUnit(unit)})

    def with_interval(self, interval: Union[timedelta, float]) -> "AggregatorBuilder":
        """Aggregation interval (timedelta or seconds), must exceed 1 minute."""
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=float(interval))
        if interval <= MIN_INTERVAL:
            raise ValueError("interval must be greater than 1 minute")
        return self.model_copy(update={"interval": interval})

    def with_dimensions(self, dimension_sets: Iterable[Iterable[DimensionLike]]) -> "AggregatorBuilder":
        """All dimension combinations for this metric.

        A dimensionless point is always submitted alongside these.
        """
        sets = tuple(_dimension_set(ds) for ds in dimension_sets)
        return self.model_copy(update={"dimensions": sets})

    def add_dimensions(self, *dimensions: DimensionLike) -> "AggregatorBuilder":
        """Additive version of with_dimensions(): appends one dimension set."""
        new_set = _dimension_set(dimensions)
        return self.model_copy(update={"dimensions": self.dimensions + (new_set,)})

    def start(
        self,
        publisher: AggregationPublisher,
        converter: Optional[DataPointConverter] = None,
    ) -> AggregationTask:
        """Create the aggregation task, bind it to ``publisher`` and start dumping."""
        if self.metric_namespace is None:
            raise AggregatorConfigError(
                "Please call with_metric_namespace() to give metric a namespace!"
            )
        if self.metric_name is None:
            raise AggregatorConfigError("Please call with_metric_name() to give metric a name!")

        if converter is None:
            from services.cloudwatch_service.datum import StatisticSetConverter

            converter = StatisticSetConverter(self.metric_name, self.unit, self.dimensions)

        task = AggregationTask(
            namespace=self.metric_namespace,
            name=self.metric_name,
            converter=converter,
            sink=publisher,
        )
        return task.start(publisher.scheduler, self.interval)
