from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cellstyle.colors import interpolate_color
from cellstyle.errors import MetricValueError, RuleConfigurationError, UnconfiguredScaleError
from cellstyle.metrics import MetricRegistry, SeriesMetric, TableMetric
from cellstyle.properties import ColorKey
from cellstyle.rule import MAPPING_NONE, MAPPING_RANGES, Rule, RuleData
from cellstyle.thresholds import ValueType

from tests.helpers import build_cell, build_rule, build_series


def test_value_inside_second_band_resolves_level_one_orange() -> None:
    rule = build_rule()
    assert rule.index_for_value(65) == 1
    assert rule.level_for_value(65) == 1
    assert rule.color_for_value(65) == "orange"


def test_value_in_base_band_is_most_severe() -> None:
    rule = build_rule()
    assert rule.index_for_value(10) == 0
    assert rule.level_for_value(10) == 2
    assert rule.color_for_value(10) == "red"


def test_gradient_interpolates_inside_band() -> None:
    rule = build_rule(gradient=True)
    assert rule.color_for_value(65) == interpolate_color("orange", "green", 0.5)
    # first and last bands keep their flat colour
    assert rule.color_for_value(10) == "red"
    assert rule.color_for_value(95) == "green"


def test_unresolvable_values_give_level_minus_one() -> None:
    rule = build_rule()
    assert rule.level_for_value(None) == -1
    assert rule.level_for_value("n/a") == -1
    assert rule.level_for_value(float("nan")) == -1
    assert rule.color_for_value(None) is None
    assert rule.get_threshold_level(90) == 0


@pytest.mark.parametrize("invert", [False, True])
def test_level_and_index_are_inverse(invert: bool) -> None:
    rule = build_rule(invert=invert)
    for index in range(len(rule.thresholds)):
        assert rule.index_for_level(rule.level_for_index(index)) == index
    assert rule.level_for_index(-1) == -1
    with pytest.raises(IndexError):
        rule.index_for_level(3)


def test_inverted_rule_ranks_base_band_lowest() -> None:
    rule = build_rule(invert=True)
    assert rule.level_for_value(10) == 0
    assert rule.level_for_value(90) == 2
    assert rule.color_for_level(2) == "green"


def test_invert_thresholds_flips_direction_and_colours() -> None:
    rule = build_rule()
    rule.invert_thresholds()
    assert rule.data.invert is True
    assert [threshold.color for threshold in rule.thresholds] == ["green", "orange", "red"]
    assert [threshold.value for threshold in rule.thresholds] == [0, 50, 80]
    assert rule.level_for_value(10) == 0
    assert rule.color_for_value(10) == "green"


def test_inverting_thresholds_twice_restores_level_mapping() -> None:
    rule = build_rule()
    samples = [-5, 10, 50, 65, 80, 95]
    levels = [rule.level_for_value(value) for value in samples]
    colours = [rule.color_for_value(value) for value in samples]

    rule.invert_thresholds()
    assert [rule.level_for_value(value) for value in samples] != levels
    rule.invert_thresholds()

    assert rule.data.invert is False
    assert [threshold.color for threshold in rule.thresholds] == ["red", "orange", "green"]
    assert [rule.level_for_value(value) for value in samples] == levels
    assert [rule.color_for_value(value) for value in samples] == colours


def test_empty_scale_raises_unconfigured_error() -> None:
    rule = build_rule(thresholds=())
    with pytest.raises(UnconfiguredScaleError) as excinfo:
        rule.level_for_value(10)
    assert excinfo.value.value_type == "number"
    with pytest.raises(UnconfiguredScaleError):
        rule.color_for_value(10)


def test_default_rule_has_three_band_scales_for_every_type() -> None:
    rule = Rule()
    for value_type in ValueType:
        assert len(rule.scales[value_type]) == 3
    assert rule.level_for_value(65) == 1


def test_string_scale_keeps_last_match() -> None:
    rule = build_rule(
        type="string",
        thresholds=(("red", "/.*/"), ("orange", "*disk*"), ("green", "*")),
    )
    assert rule.value_type is ValueType.STRING
    assert rule.index_for_value("disk full") == 2
    assert rule.level_for_value("disk full") == 0


def test_date_scale_compares_against_now() -> None:
    now = datetime(2024, 5, 10, tzinfo=timezone.utc)
    rule = build_rule(type="date", thresholds=(("red", "0d"), ("orange", "-1d"), ("green", "-1w")))
    recent = datetime(2024, 5, 9, 12, tzinfo=timezone.utc)
    assert rule.index_for_value(recent, now=now) == 2


def test_threshold_edits_announce_changes() -> None:
    rule = build_rule()
    seen: list[Rule] = []
    rule.signals.connect("rule_changed", seen, seen.append)
    rule.add_threshold(0)
    assert rule.thresholds[1].value == 25
    rule.remove_threshold(1)
    rule.clone_threshold(2)
    rule.invert_colors()
    rule.set_value_type("string")
    assert len(seen) == 5
    assert rule.value_type is ValueType.STRING


def test_from_mapping_rejects_unknown_options() -> None:
    with pytest.raises(RuleConfigurationError, match="colour"):
        Rule.from_mapping({"alias": "x", "colour": "red"})
    with pytest.raises(RuleConfigurationError):
        Rule.from_mapping({"alias": "x", "aggregation": "median"})
    with pytest.raises(RuleConfigurationError):
        Rule.from_mapping({"alias": "x", "shapes": [{"pattern": "a", "style": "background"}]})


def test_from_mapping_round_trips_through_as_dict() -> None:
    rule = build_rule(
        overlay_icon=True,
        texts=[{"pattern": "srv-1", "text_replace": "as"}],
        value_maps=[{"value": "0", "text": "idle"}],
        range_maps=[{"from": 0, "to": 10, "text": "low"}],
    )
    payload = rule.as_dict()
    assert payload["alias"] == "cpu"
    assert payload["shapes"][0]["style"] == ColorKey.FILL.value
    assert payload["range_maps"] == [{"from": 0, "to": 10, "text": "low", "hidden": False}]
    payload.pop("thresholds", None)
    clone = Rule.from_mapping(payload)
    assert clone.as_dict() == payload
    assert clone.uid != rule.uid


def test_formatted_value_uses_unit_and_maps() -> None:
    rule = build_rule(value_maps=[{"value": "0", "text": "idle"}])
    assert rule.formatted_value(65.0) == "65.00"
    assert rule.formatted_value(0.0) == "idle"
    assert rule.formatted_value(None) == "-"
    assert rule.formatted_value("abc") == "null"

    rule.data.mapping_type = MAPPING_RANGES
    rule.add_range_map(0, 10, "low")
    assert rule.formatted_value(5) == "low"
    assert rule.formatted_value(50) == "50.00"

    rule.data.mapping_type = MAPPING_NONE
    assert rule.formatted_value(5) == "5.00"


def test_formatted_value_for_strings_and_dates() -> None:
    text_rule = build_rule(type="string", thresholds=(("red", "/.*/"),))
    assert text_rule.formatted_value(None) == "null"
    assert text_rule.formatted_value("up") == "up"
    date_rule = build_rule(type="date", thresholds=(("red", "0d"),), date_format="YYYY-MM-DD")
    assert date_rule.formatted_value(0) == "1970-01-01"


def test_value_for_metric_aggregates_series_and_tables() -> None:
    rule = build_rule(aggregation="max")
    assert rule.value_for_metric(build_series("cpu", 10, 95, 40)) == 95.0

    table_rule = build_rule(metric_type="table", ref_id="B", column="load")
    table = TableMetric("B", [{"load": 10}, {"load": 90}])
    assert table_rule.value_for_metric(table) == 90.0


def test_value_for_metric_rejects_unusable_values() -> None:
    rule = build_rule()
    with pytest.raises(MetricValueError):
        rule.value_for_metric(SeriesMetric("cpu", [(0, "busy")]))
    with pytest.raises(MetricValueError):
        rule.value_for_metric(SeriesMetric("cpu"))

    text_rule = build_rule(type="string", thresholds=(("red", "/.*/"),))
    assert text_rule.value_for_metric(SeriesMetric("cpu", [(0, ["a", "b"])])) == "a, b"


def test_metric_membership_follows_registry() -> None:
    registry = MetricRegistry()
    rule = build_rule()
    updates: list[Rule] = []
    rule.signals.connect("rule_updated", updates, updates.append)
    existing = registry.add(build_series("cpu.user", 1))
    rule.bind_metrics(registry)
    assert rule.metrics == (existing,)

    added = registry.add(build_series("cpu.system", 2))
    registry.add(build_series("mem.used", 3))
    assert rule.metrics == (existing, added)

    registry.remove(existing)
    assert rule.metrics == (added,)
    assert len(updates) == 3

    rule.free()
    assert rule.metrics == ()
    assert not registry.signals.is_connected("metric_created", rule)


def test_table_rule_matches_by_ref_id() -> None:
    rule = build_rule(metric_type="table", ref_id="B", column="load")
    assert rule.match_metric(TableMetric("B"))
    assert not rule.match_metric(TableMetric("A"))
    assert not rule.match_metric(build_series("cpu"))


def test_match_cell_and_gates() -> None:
    rule = build_rule(overlay_icon=True, tooltip=True, tooltip_on="wc")
    assert rule.match_cell(build_cell("srv-1"))
    assert not rule.match_cell(build_cell("srv-2"))
    assert rule.to_iconize(1) and not rule.to_iconize(0)
    assert rule.to_tooltipize(1) and not rule.to_tooltipize(0)
    assert not build_rule().to_tooltipize(2)


def test_aggregate_keeps_most_severe_until_window_resets() -> None:
    rule = build_rule()
    assert rule.aggregate.offer(1, 65.0, "65", "orange")
    assert not rule.aggregate.offer(0, 90.0, "90", "green")
    assert rule.aggregate.offer(1, 70.0, "70", "orange")
    assert (rule.highest_level, rule.highest_value, rule.highest_color) == (1, 70.0, "orange")
    rule.begin_aggregation_window()
    assert rule.highest_level == -1
    assert rule.highest_formatted_value == ""


def test_rule_data_validates_fields() -> None:
    with pytest.raises(RuleConfigurationError):
        RuleData(value_type="colour")
    with pytest.raises(RuleConfigurationError):
        RuleData(tp_direction="diagonal")
    with pytest.raises(RuleConfigurationError):
        RuleData(metric_type="logs")
