"""Per-cell orchestration of rules, metrics and property groups.

One :class:`CellState` decorates one cell. A cycle runs in three steps:

* :meth:`CellState.init_cycle` prepares every property group;
* :meth:`CellState.set_cycle` scores every bound rule against every metric
  it matches and offers the outcomes to the groups;
* :meth:`CellState.apply_cycle` commits the winners and reverts the values
  that stopped matching.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from string import Template
from typing import TYPE_CHECKING, Any, Mapping

from .errors import MetricValueError, RuleConfigurationError
from .properties import (
    EventGroup,
    IconGroup,
    LinkGroup,
    PropertyGroup,
    ShapeGroup,
    TextGroup,
    TooltipGroup,
)
from .signals import Signals

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .backend import CellBackend
    from .metrics import Metric
    from .registry import RuleRegistry
    from .rule import Rule

__all__ = ["CellState", "substitute"]

logger = logging.getLogger(__name__)

_UID_COUNTER = itertools.count(1)

LABEL_KEY = "label"
LINK_KEY = "link"
ICON_KEY = "icon"
TOOLTIP_KEY = "tooltip"


def substitute(text: Any, variables: Mapping[str, Any]) -> Any:
    """Expand ``${name}`` placeholders of ``text``; other values pass through."""

    if not isinstance(text, str) or "$" not in text:
        return text
    return Template(text).safe_substitute({key: "" if value is None else value for key, value in variables.items()})


class CellState:
    """Reconcile the rules bound to one cell onto its property groups."""

    SIGNALS = ("state_initialized", "state_updated", "state_freed")
    REGISTRY_HANDLERS = ("rule_created", "rule_changed", "rule_updated", "rule_deleted")

    def __init__(self, cell: "CellBackend", registry: "RuleRegistry | None" = None) -> None:
        self.uid = f"state-{next(_UID_COUNTER)}"
        self.cell = cell
        self.registry = registry
        self.shape = ShapeGroup(cell)
        self.tooltip = TooltipGroup(cell)
        self.icon = IconGroup(cell)
        self.event = EventGroup(cell)
        self.text = TextGroup(cell)
        self.link = LinkGroup(cell)
        self.groups: tuple[PropertyGroup, ...] = (
            self.shape,
            self.tooltip,
            self.icon,
            self.event,
            self.text,
            self.link,
        )
        self.signals = Signals(self.SIGNALS)
        self.global_level = -1
        self.highest_value: Any = None
        self.highest_formatted_value = ""
        self.matched_rules: list[str] = []
        self.matched_metrics: list[str] = []
        self._rules: dict[str, "Rule"] = {}
        self._status: dict[str, Any] = {}
        self._matched = False
        self._changed = False
        self._in_cycle = False
        if registry is not None:
            for name in self.REGISTRY_HANDLERS:
                registry.signals.connect(name, self, getattr(self, f"_on_{name}"))
            for rule in registry:
                self.update_rule(rule)
        self.signals.emit("state_initialized", self)

    def __repr__(self) -> str:
        return f"CellState(cell={self.cell.cell_id!r}, level={self.global_level}, rules={len(self._rules)})"

    # ------------------------------------------------------------------
    # Rule binding
    # ------------------------------------------------------------------
    @property
    def rules(self) -> tuple["Rule", ...]:
        """Bound rules in evaluation order."""

        if self.registry is None:
            return tuple(self._rules.values())
        ordered = [rule for rule in self.registry if rule.uid in self._rules]
        ordered.extend(rule for rule in self._rules.values() if rule not in self.registry)
        return tuple(ordered)

    def has_rule(self, rule: "Rule") -> bool:
        return rule.uid in self._rules

    def add_rule(self, rule: "Rule") -> None:
        self._rules[rule.uid] = rule

    def update_rule(self, rule: "Rule") -> None:
        """Bind ``rule`` when one of its maps targets the cell, unbind it otherwise."""

        if rule.match_cell(self.cell):
            self._rules[rule.uid] = rule
        else:
            self._rules.pop(rule.uid, None)

    def remove_rule(self, rule: "Rule") -> None:
        self._rules.pop(rule.uid, None)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def level(self) -> int:
        return self.global_level

    def is_matched(self) -> bool:
        return self._matched

    def level_text(self) -> str:
        return "" if self.global_level == -1 else str(self.global_level)

    def status(self, key: str) -> str:
        """Last value written for ``key`` this cycle, else the cell style value."""

        value = self._status.get(key)
        if value is not None:
            return value
        style = self.cell.get_style(key)
        value = "" if style is None else style
        self._status[key] = value
        return value

    def has_status(self, key: str) -> bool:
        return key in self._status

    def as_dict(self) -> dict[str, Any]:
        return {
            "cell": self.cell.cell_id,
            "level": self.global_level,
            "highest_value": self.highest_value,
            "highest_formatted_value": self.highest_formatted_value,
            "matched_rules": list(self.matched_rules),
            "matched_metrics": list(self.matched_metrics),
        }

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------
    def init_cycle(self) -> "CellState":
        for group in self.groups:
            group.prepare()
        self._status.clear()
        self.global_level = -1
        self.highest_value = None
        self.highest_formatted_value = ""
        self.matched_rules = []
        self.matched_metrics = []
        self._matched = False
        self._in_cycle = True
        return self

    def set_cycle(self, rule: "Rule | None" = None) -> "CellState":
        """Score ``rule`` (every bound rule when ``None``) without touching the cell."""

        rules = self.rules if rule is None else (rule,)
        for current in rules:
            if current.is_hidden():
                continue
            for metric in current.metrics:
                try:
                    self._score(current, metric)
                except MetricValueError as exc:
                    logger.warning(
                        "Metric value unusable; no property written.",
                        extra={
                            "event": "state.metric_value_error",
                            "cell": self.cell.cell_id,
                            "rule": current.alias,
                            "metric": metric.name,
                            "error": str(exc),
                        },
                    )
                except RuleConfigurationError:
                    logger.exception(
                        "Rule configuration error; rule skipped for this cell.",
                        extra={
                            "event": "state.rule_configuration_error",
                            "cell": self.cell.cell_id,
                            "rule": current.alias,
                        },
                    )
                    break
        return self

    def _score(self, rule: "Rule", metric: "Metric") -> None:
        value = rule.value_for_metric(metric)
        level = rule.level_for_value(value)
        if level == -1:
            raise MetricValueError(f"value {value!r} resolves to no threshold")
        formatted = rule.formatted_value(value)
        color = rule.color_for_value(value)
        variables = {
            "rule": rule.alias,
            "metric": metric.name,
            "value": value,
            "formatted": formatted,
            "level": level,
            "color": color,
            "date": datetime.now(tz=timezone.utc).isoformat(timespec="seconds"),
        }

        matched = False
        accepted = False

        cell_value = rule.cell_value("shape", self.cell)
        shape_targeted = False
        for shape_map in rule.matching_maps("shape", cell_value):
            shape_targeted = True
            if shape_map.is_eligible(level):
                matched = True
                accepted |= self._write(self.shape, shape_map.style.value, color, level)
        if shape_targeted:
            if rule.to_tooltipize(level):
                accepted |= self._write(self.tooltip, TOOLTIP_KEY, True, level)
                self.tooltip.set_tooltip(rule, metric, color, formatted, self.cell.get_metadatas())
            if rule.to_iconize(level):
                accepted |= self._write(self.icon, ICON_KEY, True, level)

        cell_value = rule.cell_value("text", self.cell)
        for text_map in rule.matching_maps("text", cell_value):
            if text_map.is_eligible(level):
                matched = True
                label = text_map.replace_text(
                    self.text.match_value(LABEL_KEY), substitute(formatted, variables)
                )
                accepted |= self._write(self.text, LABEL_KEY, label, level)

        cell_value = rule.cell_value("event", self.cell)
        for event_map in rule.matching_maps("event", cell_value):
            if event_map.is_eligible(level):
                matched = True
                value_text = substitute(event_map.value, variables)
                accepted |= self._write(self.event, event_map.style.value, value_text, level)

        cell_value = rule.cell_value("link", self.cell)
        for link_map in rule.matching_maps("link", cell_value):
            if link_map.is_eligible(level):
                matched = True
                url = substitute(link_map.get_link(), variables)
                accepted |= self._write(self.link, LINK_KEY, url, level)

        if not matched:
            return
        self._matched = True
        if rule.alias not in self.matched_rules:
            self.matched_rules.append(rule.alias)
        if metric.name not in self.matched_metrics:
            self.matched_metrics.append(metric.name)
        if accepted and level > self.global_level:
            self.global_level = level
            self.highest_value = value
            self.highest_formatted_value = formatted
        rule.aggregate.offer(level, value, formatted, color)

    def _write(self, group: PropertyGroup, key: str, value: Any, level: int) -> bool:
        if group.set(key, value, level):
            self._status[key] = value
            return True
        return False

    def apply_cycle(self) -> "CellState":
        """Commit the cycle to the cell."""

        if self._matched or self._changed:
            self._changed = True
            for group in self.groups:
                group.apply()
        self._in_cycle = False
        logger.debug(
            "Cell state applied.",
            extra={
                "event": "state.applied",
                "cell": self.cell.cell_id,
                "level": self.global_level,
                "rules": len(self.matched_rules),
            },
        )
        self.signals.emit("state_updated", self)
        return self

    async def async_apply_cycle(self) -> "CellState":
        return self.apply_cycle()

    def reset(self) -> "CellState":
        """Restore every property of the cell to its default."""

        for group in self.groups:
            group.reset()
        self._status.clear()
        self.global_level = -1
        self.highest_value = None
        self.highest_formatted_value = ""
        self.matched_rules = []
        self.matched_metrics = []
        self._matched = False
        self._changed = False
        self._in_cycle = False
        return self

    def free(self) -> None:
        self.reset()
        if self.registry is not None:
            for name in self.REGISTRY_HANDLERS:
                self.registry.signals.disconnect(name, self)
        self._rules.clear()
        self.signals.emit("state_freed", self)
        self.signals.clear()

    # ------------------------------------------------------------------
    # Registry notifications
    # ------------------------------------------------------------------
    def _on_rule_created(self, rule: "Rule") -> None:
        self.update_rule(rule)

    def _on_rule_changed(self, rule: "Rule") -> None:
        self.update_rule(rule)

    def _on_rule_updated(self, rule: "Rule") -> None:
        # Outside a cycle the next full cycle scores the rule anyway.
        if self._in_cycle and self.has_rule(rule):
            self.set_cycle(rule)

    def _on_rule_deleted(self, rule: "Rule") -> None:
        self.remove_rule(rule)
