from __future__ import annotations

import pytest

from cellstyle.errors import MetricValueError
from cellstyle.metrics import Metric, MetricKind, MetricRegistry, SeriesMetric, TableMetric

from tests.helpers import build_series


@pytest.mark.parametrize(
    ("aggregation", "expected"),
    [
        ("current", 20),
        ("first", 10),
        ("min", 10.0),
        ("max", 30.0),
        ("avg", 20.0),
        ("total", 60.0),
        ("count", 3),
        ("range", 20.0),
        ("diff", 10.0),
        ("last_time", 2000.0),
    ],
)
def test_series_aggregations(aggregation: str, expected: float) -> None:
    assert build_series("cpu", 10, 30, 20).get_value(aggregation) == expected


def test_delta_restarts_after_counter_reset() -> None:
    assert build_series("requests", 10, 30, 5, 15).get_value("delta") == 35.0


def test_numeric_aggregations_skip_missing_values() -> None:
    series = SeriesMetric("cpu", [(0, 10), (1, None), (2, float("nan")), (3, 30)])
    assert series.get_value("avg") == 20.0
    assert series.get_value("count") == 4


def test_series_errors() -> None:
    with pytest.raises(MetricValueError):
        SeriesMetric("empty").get_value("current")
    with pytest.raises(MetricValueError):
        build_series("cpu", 1).get_value("median")
    with pytest.raises(MetricValueError):
        SeriesMetric("state", [(0, "up")]).get_value("max")
    with pytest.raises(MetricValueError):
        SeriesMetric("gaps", [(0, None)]).get_value("min")


def test_table_values_come_from_a_column() -> None:
    table = TableMetric("B", [{"time": 0, "load": 10}, {"time": 1000, "load": 40}])
    assert table.kind is MetricKind.TABLE
    assert table.get_value("max", "load") == 40.0
    assert table.get_value("last_time", "load") == 1000.0
    with pytest.raises(MetricValueError):
        table.get_value("max")
    with pytest.raises(MetricValueError):
        table.get_value("max", "missing")


def test_series_accepts_iso_timestamps() -> None:
    series = SeriesMetric("deploy", [("2024-01-01T00:00:00Z", 1), ("1970-01-01T00:00:02+00:00", 3)])
    assert series.datapoints[0][0] == 1_704_067_200_000.0
    assert series.get_value("last_time") == 2000.0
    assert series.get_value("max") == 3.0


def test_unusable_timestamp_only_fails_last_time() -> None:
    series = SeriesMetric("cpu", [(0, 10), ("not a time", 20)])
    assert series.get_value("current") == 20
    with pytest.raises(MetricValueError):
        series.get_value("last_time")


def test_table_time_column_may_hold_iso_strings() -> None:
    table = TableMetric("A", [{"time": "2024-01-01T00:00:00Z", "v": 10}])
    assert table.get_value("max", "v") == 10.0
    assert table.get_value("last_time", "v") == 1_704_067_200_000.0


def test_metrics_satisfy_protocol() -> None:
    assert isinstance(build_series("cpu", 1), Metric)
    assert isinstance(TableMetric("A"), Metric)


def test_registry_announces_creation_and_deletion() -> None:
    registry = MetricRegistry()
    events: list[tuple[str, str]] = []
    registry.signals.connect("metric_created", events, lambda m: events.append(("created", m.name)))
    registry.signals.connect("metric_deleted", events, lambda m: events.append(("deleted", m.name)))

    cpu = registry.add(build_series("cpu", 1))
    mem = registry.add(build_series("mem", 2))
    assert registry.find("mem") is mem
    assert cpu in registry and len(registry) == 2

    registry.remove(cpu)
    registry.remove(cpu)
    registry.clear()
    assert events == [("created", "cpu"), ("created", "mem"), ("deleted", "cpu"), ("deleted", "mem")]
    assert list(registry) == []
