"""Metric sources consumed by rules.

Fetching and parsing data is the job of the host application; this module
only defines the contract rules rely on together with two in-memory metric
kinds and the registry that announces them.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Protocol, Sequence, runtime_checkable

import numpy as np

from .dates import to_datetime
from .errors import MetricValueError
from .signals import Signals

__all__ = [
    "AGGREGATIONS",
    "Metric",
    "MetricKind",
    "MetricRegistry",
    "SeriesMetric",
    "TableMetric",
]

logger = logging.getLogger(__name__)

_UID_COUNTER = itertools.count(1)

AGGREGATIONS = frozenset(
    {"current", "first", "min", "max", "avg", "total", "count", "delta", "diff", "range", "last_time"}
)


class MetricKind(str, Enum):
    SERIES = "series"
    TABLE = "table"


@runtime_checkable
class Metric(Protocol):
    uid: str
    name: str
    kind: MetricKind

    def get_value(self, aggregation: str, column: str | None = None) -> Any: ...


def _next_uid(prefix: str) -> str:
    return f"{prefix}-{next(_UID_COUNTER)}"


def _timestamp(ts: Any) -> float | None:
    """Epoch milliseconds of ``ts``; ``None`` when it is not a usable time."""

    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return float(ts)
    moment = to_datetime(ts)
    if moment is None:
        return None
    return moment.timestamp() * 1000.0


class SeriesMetric:
    """Time series of ``(timestamp_ms, value)`` datapoints."""

    kind = MetricKind.SERIES

    def __init__(self, name: str, datapoints: Iterable[Sequence[Any]] = ()) -> None:
        self.uid = _next_uid("series")
        self.name = name
        self.datapoints: list[tuple[float | None, Any]] = [
            (_timestamp(ts), value) for ts, value in datapoints
        ]

    def __repr__(self) -> str:
        return f"SeriesMetric({self.name!r}, points={len(self.datapoints)})"

    def update(self, datapoints: Iterable[Sequence[Any]]) -> None:
        self.datapoints = [(_timestamp(ts), value) for ts, value in datapoints]

    def _numeric(self) -> np.ndarray:
        values = [value for _ts, value in self.datapoints if value is not None]
        try:
            array = np.asarray(values, dtype=float)
        except (TypeError, ValueError) as exc:
            raise MetricValueError(f"series '{self.name}' holds non numeric values") from exc
        return array[np.isfinite(array)]

    def get_value(self, aggregation: str, column: str | None = None) -> Any:
        if aggregation not in AGGREGATIONS:
            raise MetricValueError(f"unknown aggregation '{aggregation}'")
        if not self.datapoints:
            raise MetricValueError(f"series '{self.name}' has no datapoints")
        if aggregation == "current":
            return self.datapoints[-1][1]
        if aggregation == "first":
            return self.datapoints[0][1]
        if aggregation == "last_time":
            last_time = self.datapoints[-1][0]
            if last_time is None:
                raise MetricValueError(f"series '{self.name}' has no usable time for its last datapoint")
            return last_time
        if aggregation == "count":
            return len(self.datapoints)
        values = self._numeric()
        if values.size == 0:
            raise MetricValueError(f"series '{self.name}' has no finite values")
        if aggregation == "min":
            return float(values.min())
        if aggregation == "max":
            return float(values.max())
        if aggregation == "avg":
            return float(values.mean())
        if aggregation == "total":
            return float(values.sum())
        if aggregation == "range":
            return float(values.max() - values.min())
        if aggregation == "diff":
            return float(values[-1] - values[0])
        # delta: sum of increases, counter resets restart from the new value
        steps = np.diff(values)
        return float(np.where(steps >= 0, steps, values[1:]).sum())


class TableMetric:
    """Table result identified by its query ``ref_id``."""

    kind = MetricKind.TABLE

    def __init__(self, ref_id: str, rows: Iterable[Mapping[str, Any]] = ()) -> None:
        self.uid = _next_uid("table")
        self.name = ref_id
        self.rows: list[dict[str, Any]] = [dict(row) for row in rows]

    def __repr__(self) -> str:
        return f"TableMetric({self.name!r}, rows={len(self.rows)})"

    def update(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self.rows = [dict(row) for row in rows]

    def column(self, column: str) -> SeriesMetric:
        points = []
        for index, row in enumerate(self.rows):
            if column not in row:
                raise MetricValueError(f"table '{self.name}' has no column '{column}'")
            points.append((row.get("time", index), row[column]))
        return SeriesMetric(f"{self.name}.{column}", points)

    def get_value(self, aggregation: str, column: str | None = None) -> Any:
        if column is None:
            raise MetricValueError(f"table '{self.name}' needs a column")
        return self.column(column).get_value(aggregation)


class MetricRegistry:
    """Announce metric creation and deletion to interested rules."""

    SIGNALS = ("metric_created", "metric_deleted")

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self.signals = Signals(self.SIGNALS)

    def __iter__(self) -> Iterator[Metric]:
        return iter(list(self._metrics.values()))

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, metric: object) -> bool:
        return getattr(metric, "uid", None) in self._metrics

    def add(self, metric: Metric) -> Metric:
        self._metrics[metric.uid] = metric
        logger.debug(
            "Metric created.",
            extra={"event": "metrics.created", "metric": metric.name, "kind": metric.kind.value},
        )
        self.signals.emit("metric_created", metric)
        return metric

    def remove(self, metric: Metric) -> None:
        if self._metrics.pop(metric.uid, None) is None:
            return
        self.signals.emit("metric_deleted", metric)

    def find(self, name: str) -> Metric | None:
        for metric in self._metrics.values():
            if metric.name == name:
                return metric
        return None

    def clear(self) -> None:
        for metric in list(self._metrics.values()):
            self.remove(metric)
