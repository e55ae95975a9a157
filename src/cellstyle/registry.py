"""Authoritative, ordered list of styling rules."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .metrics import MetricRegistry
from .rule import Rule
from .signals import Signals

__all__ = ["RuleRegistry"]

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Own the rules and relay their lifecycle to the cells that use them.

    Evaluation follows the registry order, which is the tie-break order for
    equal-level writes.
    """

    SIGNALS = ("rule_created", "rule_changed", "rule_updated", "rule_deleted")

    def __init__(
        self,
        rules: Iterable[Rule | Mapping[str, Any]] = (),
        *,
        metrics: MetricRegistry | None = None,
    ) -> None:
        self.metrics = metrics
        self.signals = Signals(self.SIGNALS)
        self._rules: list[Rule] = []
        for rule in rules:
            self.add_rule(rule)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule: object) -> bool:
        return any(candidate is rule for candidate in self._rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def get(self, key: str) -> Rule | None:
        """Return the rule whose uid or alias is ``key``."""

        for rule in self._rules:
            if rule.uid == key:
                return rule
        for rule in self._rules:
            if rule.alias == key:
                return rule
        return None

    def index_of(self, rule: Rule) -> int:
        for index, candidate in enumerate(self._rules):
            if candidate is rule:
                return index
        raise LookupError(f"rule '{rule.alias}' is not registered")

    def add_rule(self, rule: Rule | Mapping[str, Any], index: int | None = None) -> Rule:
        if not isinstance(rule, Rule):
            rule = Rule.from_mapping(rule)
        if index is None:
            self._rules.append(rule)
        else:
            self._rules.insert(index, rule)
        self._renumber()
        rule.signals.connect("rule_changed", self, self._forward("rule_changed"))
        rule.signals.connect("rule_updated", self, self._forward("rule_updated"))
        if self.metrics is not None:
            rule.bind_metrics(self.metrics)
        logger.debug(
            "Rule registered.",
            extra={"event": "registry.rule_created", "rule": rule.alias, "order": rule.order},
        )
        self.signals.emit("rule_created", rule)
        return rule

    def remove_rule(self, rule: Rule) -> None:
        index = self.index_of(rule)
        del self._rules[index]
        self._renumber()
        rule.signals.disconnect("rule_changed", self)
        rule.signals.disconnect("rule_updated", self)
        self.signals.emit("rule_deleted", rule)
        rule.free()

    def reorder(self, rule: Rule, position: int) -> None:
        """Move ``rule`` to ``position`` in the evaluation order."""

        index = self.index_of(rule)
        self._rules.insert(max(0, position), self._rules.pop(index))
        self._renumber()
        self.signals.emit("rule_changed", rule)

    def clear(self) -> None:
        for rule in list(self._rules):
            self.remove_rule(rule)

    def begin_aggregation_window(self) -> None:
        """Reset the cross-cycle aggregate of every rule."""

        for rule in self._rules:
            rule.begin_aggregation_window()

    def _renumber(self) -> None:
        for order, rule in enumerate(self._rules):
            rule.order = order

    def _forward(self, name: str):
        def relay(rule: Rule) -> None:
            self.signals.emit(name, rule)

        return relay
