from __future__ import annotations

import pytest

from cellstyle.metrics import MetricRegistry
from cellstyle.registry import RuleRegistry
from cellstyle.rule import Rule

from tests.helpers import build_rule, build_series


class _Recorder:
    def __init__(self, registry: RuleRegistry) -> None:
        self.events: list[tuple[str, str]] = []
        for name in RuleRegistry.SIGNALS:
            registry.signals.connect(name, self, self._callback(name))

    def _callback(self, name: str):
        def record(rule: Rule) -> None:
            self.events.append((name, rule.alias))

        return record


def test_rules_are_numbered_in_registry_order() -> None:
    registry = RuleRegistry([build_rule("a"), {"alias": "b"}])
    registry.add_rule(build_rule("c"), index=0)
    assert [rule.alias for rule in registry] == ["c", "a", "b"]
    assert [rule.order for rule in registry] == [0, 1, 2]
    assert len(registry) == 3


def test_get_finds_rules_by_uid_or_alias() -> None:
    rule = build_rule("cpu")
    registry = RuleRegistry([rule])
    assert registry.get(rule.uid) is rule
    assert registry.get("cpu") is rule
    assert registry.get("missing") is None
    with pytest.raises(LookupError):
        registry.index_of(build_rule("other"))


def test_lifecycle_signals_are_emitted() -> None:
    registry = RuleRegistry()
    recorder = _Recorder(registry)
    rule = registry.add_rule(build_rule("cpu"))
    rule.change()
    rule.update()
    registry.reorder(rule, 0)
    registry.remove_rule(rule)
    assert recorder.events == [
        ("rule_created", "cpu"),
        ("rule_changed", "cpu"),
        ("rule_updated", "cpu"),
        ("rule_changed", "cpu"),
        ("rule_deleted", "cpu"),
    ]
    assert rule not in registry


def test_removed_rule_is_freed_and_detached() -> None:
    registry = RuleRegistry()
    rule = registry.add_rule(build_rule("cpu"))
    freed: list[Rule] = []
    rule.signals.connect("rule_freed", freed, freed.append)
    registry.remove_rule(rule)
    assert freed == [rule]
    assert not rule.signals.is_connected("rule_changed", registry)


def test_reorder_moves_rule_and_renumbers() -> None:
    first, second, third = build_rule("a"), build_rule("b"), build_rule("c")
    registry = RuleRegistry([first, second, third])
    registry.reorder(third, 0)
    assert registry.rules == (third, first, second)
    assert third.order == 0 and second.order == 2


def test_rules_bind_to_shared_metrics() -> None:
    metrics = MetricRegistry()
    metrics.add(build_series("cpu.load", 1))
    registry = RuleRegistry([build_rule("cpu")], metrics=metrics)
    rule = registry.get("cpu")
    assert [metric.name for metric in rule.metrics] == ["cpu.load"]
    registry.clear()
    assert len(registry) == 0
    assert not metrics.signals.is_connected("metric_created", rule)


def test_begin_aggregation_window_resets_every_rule() -> None:
    registry = RuleRegistry([build_rule("a"), build_rule("b")])
    for rule in registry:
        rule.aggregate.offer(2, 1.0, "1", "red")
    registry.begin_aggregation_window()
    assert all(rule.highest_level == -1 for rule in registry)
