"""Styling rules: threshold resolution, formatting and property maps.

A :class:`Rule` selects metrics by pattern, resolves each metric value to a
severity level and a colour through its active :class:`ThresholdScale`, and
lists the property maps that decide which cells the outcome is written to.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Sequence

from .errors import MetricValueError, RuleConfigurationError, UnconfiguredScaleError
from .formatting import DEFAULT_DATE_FORMAT, format_date, format_number
from .mapping import (
    EventMap,
    LinkMap,
    MapOptions,
    PropertyMap,
    RangeMap,
    ShapeMap,
    TextMap,
    ValueMap,
    level_gate,
)
from .metrics import AGGREGATIONS, MetricKind
from .patterns import match_pattern
from .signals import Signals
from .thresholds import Threshold, ThresholdScale, ValueType, coerce_number

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .backend import CellBackend
    from .metrics import Metric, MetricRegistry

__all__ = ["MAP_KINDS", "Rule", "RuleAggregate", "RuleData"]

logger = logging.getLogger(__name__)

_UID_COUNTER = itertools.count(1)

MAP_KINDS: Mapping[str, type[PropertyMap]] = {
    "shape": ShapeMap,
    "text": TextMap,
    "link": LinkMap,
    "event": EventMap,
}

# Mapping type selecting how string values are rewritten for display.
MAPPING_NONE, MAPPING_VALUES, MAPPING_RANGES = 0, 1, 2


@dataclass
class RuleData:
    """Plain configuration of a rule."""

    alias: str = "rule"
    order: int = 0
    pattern: str = ".*"
    hidden: bool = False
    value_type: ValueType = ValueType.NUMBER
    metric_type: str = MetricKind.SERIES.value
    ref_id: str = "A"
    column: str | None = None
    aggregation: str = "current"
    unit: str = "short"
    decimals: int | None = 2
    date_format: str = DEFAULT_DATE_FORMAT
    invert: bool = False
    gradient: bool = False
    mapping_type: int = MAPPING_VALUES
    overlay_icon: bool = False
    tooltip: bool = False
    tooltip_label: str = ""
    tooltip_colors: bool = False
    tooltip_on: str = "a"
    tp_direction: str = "v"
    tp_metadata: bool = False
    tp_graph: bool = False
    tp_graph_type: str = "line"
    tp_graph_size: str = "100%"
    tp_graph_low: float | None = None
    tp_graph_high: float | None = None
    tp_graph_scale: str = "linear"

    def __post_init__(self) -> None:
        self.value_type = ValueType.coerce(self.value_type)
        if self.metric_type not in {kind.value for kind in MetricKind}:
            raise RuleConfigurationError(f"unknown metric type '{self.metric_type}'")
        if self.aggregation not in AGGREGATIONS:
            raise RuleConfigurationError(f"unknown aggregation '{self.aggregation}'")
        if self.tp_direction not in {"v", "h"}:
            raise RuleConfigurationError(f"unknown tooltip direction '{self.tp_direction}'")
        # Fail early on malformed gates.
        level_gate(self.tooltip_on, 0)

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["value_type"] = self.value_type.value
        return payload


@dataclass
class RuleAggregate:
    """Most severe outcome seen since the last aggregation window began."""

    highest_level: int = -1
    highest_color: str | None = None
    highest_value: Any = None
    highest_formatted_value: str = ""

    def offer(self, level: int, value: Any, formatted_value: str, color: str | None) -> bool:
        if level < self.highest_level:
            return False
        self.highest_level = level
        self.highest_value = value
        self.highest_formatted_value = formatted_value
        self.highest_color = color
        return True

    def reset(self) -> None:
        self.highest_level = -1
        self.highest_color = None
        self.highest_value = None
        self.highest_formatted_value = ""


class Rule:
    """Named condition mapping metric values to levels, colours and cells."""

    SIGNALS = ("rule_changed", "rule_updated", "rule_freed")

    def __init__(
        self,
        data: RuleData | None = None,
        *,
        scales: Mapping[ValueType | str, ThresholdScale] | None = None,
        options: Mapping[str, MapOptions] | None = None,
    ) -> None:
        self.uid = f"rule-{next(_UID_COUNTER)}"
        self.data = data if data is not None else RuleData()
        self.scales: dict[ValueType, ThresholdScale] = {
            value_type: ThresholdScale.default(value_type) for value_type in ValueType
        }
        for value_type, scale in (scales or {}).items():
            value_type = ValueType.coerce(value_type)
            if scale.value_type is not value_type:
                raise RuleConfigurationError(
                    f"{scale.value_type.value} scale given for {value_type.value} thresholds"
                )
            self.scales[value_type] = scale
        self.maps: dict[str, list[PropertyMap]] = {kind: [] for kind in MAP_KINDS}
        self.options: dict[str, MapOptions] = {kind: MapOptions() for kind in MAP_KINDS}
        self.options.update(options or {})
        self.value_maps: list[ValueMap] = []
        self.range_maps: list[RangeMap] = []
        self.aggregate = RuleAggregate()
        self.signals = Signals(self.SIGNALS)
        self._metrics: dict[str, "Metric"] = {}
        self._metric_registry: "MetricRegistry | None" = None

    def __repr__(self) -> str:
        return f"Rule({self.data.alias!r}, type={self.data.value_type.value!r}, uid={self.uid!r})"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Rule":
        """Build a rule from a configuration mapping.

        Threshold lists live under ``thresholds`` (for the declared type) or
        under ``number_thresholds``, ``string_thresholds`` and
        ``date_thresholds``. Maps live under ``shapes``, ``texts``,
        ``links`` and ``events`` with matching ``*_options`` entries.
        """

        payload = dict(payload)
        if "type" in payload:
            payload.setdefault("value_type", payload.pop("type"))
        scale_payload = {
            value_type: payload.pop(f"{value_type.value}_thresholds", None) for value_type in ValueType
        }
        active = payload.pop("thresholds", None)
        map_payload = {kind: payload.pop(f"{kind}s", None) or [] for kind in MAP_KINDS}
        option_payload = {kind: payload.pop(f"{kind}_options", None) for kind in MAP_KINDS}
        value_maps = payload.pop("value_maps", None) or []
        range_maps = payload.pop("range_maps", None) or []

        known = {item.name for item in fields(RuleData)}
        unknown = set(payload) - known
        if unknown:
            raise RuleConfigurationError(f"unknown rule option(s): {', '.join(sorted(unknown))}")
        data = RuleData(**payload)
        if active is not None:
            scale_payload[data.value_type] = active

        scales = {
            value_type: ThresholdScale.from_list(value_type, entries)
            for value_type, entries in scale_payload.items()
            if entries is not None
        }
        options = {
            kind: MapOptions.from_mapping(entry) for kind, entry in option_payload.items() if entry
        }
        rule = cls(data, scales=scales, options=options)
        for kind, entries in map_payload.items():
            for entry in entries:
                rule.maps[kind].append(MAP_KINDS[kind].from_mapping(entry))
        for entry in value_maps:
            rule.value_maps.append(ValueMap(**dict(entry)))
        for entry in range_maps:
            entry = dict(entry)
            rule.range_maps.append(
                RangeMap(
                    start=entry.pop("from", entry.pop("start", None)),
                    stop=entry.pop("to", entry.pop("stop", None)),
                    **entry,
                )
            )
        return rule

    def as_dict(self) -> dict[str, Any]:
        payload = self.data.as_dict()
        for value_type, scale in self.scales.items():
            payload[f"{value_type.value}_thresholds"] = scale.as_list()
        for kind, maps in self.maps.items():
            payload[f"{kind}s"] = [item.as_dict() for item in maps]
            payload[f"{kind}_options"] = asdict(self.options[kind])
        payload["value_maps"] = [asdict(item) for item in self.value_maps]
        payload["range_maps"] = [
            {"from": item.start, "to": item.stop, "text": item.text, "hidden": item.hidden}
            for item in self.range_maps
        ]
        return payload

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def change(self) -> "Rule":
        """Announce a configuration change to the cells bound to this rule."""

        self.signals.emit("rule_changed", self)
        return self

    def update(self) -> "Rule":
        """Announce that the metrics of this rule changed."""

        logger.debug(
            "Rule metrics updated.",
            extra={"event": "rule.metrics_updated", "rule": self.data.alias, "metrics": len(self._metrics)},
        )
        self.signals.emit("rule_updated", self)
        return self

    def free(self) -> None:
        self.signals.emit("rule_freed", self)
        self.unbind_metrics()
        self.signals.clear()

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------
    @property
    def alias(self) -> str:
        return self.data.alias

    @property
    def order(self) -> int:
        return self.data.order

    @order.setter
    def order(self, value: int) -> None:
        self.data.order = int(value)

    @property
    def value_type(self) -> ValueType:
        return self.data.value_type

    def set_value_type(self, value_type: ValueType | str) -> "Rule":
        """Switch the active scale; the other scales keep their content."""

        self.data.value_type = ValueType.coerce(value_type)
        return self.change()

    @property
    def scale(self) -> ThresholdScale:
        return self.scales[self.data.value_type]

    @property
    def thresholds(self) -> tuple[Threshold, ...]:
        return self.scale.thresholds

    def is_hidden(self) -> bool:
        return self.data.hidden

    def hide(self) -> "Rule":
        self.data.hidden = True
        return self.change()

    def show(self) -> "Rule":
        self.data.hidden = False
        return self.change()

    @property
    def highest_level(self) -> int:
        return self.aggregate.highest_level

    @property
    def highest_color(self) -> str | None:
        return self.aggregate.highest_color

    @property
    def highest_value(self) -> Any:
        return self.aggregate.highest_value

    @property
    def highest_formatted_value(self) -> str:
        return self.aggregate.highest_formatted_value

    def begin_aggregation_window(self) -> None:
        self.aggregate.reset()

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------
    def _active_scale(self) -> ThresholdScale:
        scale = self.scale
        if len(scale) == 0:
            raise UnconfiguredScaleError(self.data.value_type.value)
        return scale

    def add_threshold(
        self, index: int | None = None, *, color: str | None = None, value: Any = None
    ) -> Threshold:
        threshold = self.scale.insert(index, color=color, value=value)
        self.change()
        return threshold

    def remove_threshold(self, index: int) -> Threshold:
        threshold = self.scale.remove(index)
        self.change()
        return threshold

    def clone_threshold(self, index: int) -> Threshold:
        threshold = self.scale.clone(index)
        self.change()
        return threshold

    def invert_colors(self) -> "Rule":
        self.scale.invert_colors()
        return self.change()

    def invert_thresholds(self) -> "Rule":
        """Flip the severity direction and reverse the colours with it."""

        self.data.invert = not self.data.invert
        self.scale.invert_colors()
        return self.change()

    def index_for_value(self, value: Any, *, now: datetime | None = None) -> int:
        return self._active_scale().index_for_value(value, now=now)

    def level_for_index(self, index: int) -> int:
        if index == -1:
            return -1
        length = len(self._active_scale())
        if not 0 <= index < length:
            raise IndexError(f"threshold index {index} out of range")
        return index if self.data.invert else length - 1 - index

    def index_for_level(self, level: int) -> int:
        if level == -1:
            return -1
        length = len(self._active_scale())
        if not 0 <= level < length:
            raise IndexError(f"level {level} out of range")
        return level if self.data.invert else length - 1 - level

    def level_for_value(self, value: Any, *, now: datetime | None = None) -> int:
        return self.level_for_index(self.index_for_value(value, now=now))

    get_threshold_level = level_for_value

    def color_for_value(self, value: Any, *, now: datetime | None = None) -> str | None:
        return self._active_scale().color_for_value(value, gradient=self.data.gradient, now=now)

    def color_for_level(self, level: int) -> str | None:
        index = self.index_for_level(level)
        if index == -1:
            return None
        return self.scale.color_for_index(index)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------
    def value_for_metric(self, metric: "Metric") -> Any:
        """Return the aggregated value of ``metric`` in the rule's domain.

        Raises :class:`MetricValueError` when the metric holds no usable value.
        """

        column = self.data.column if metric.kind is MetricKind.TABLE else None
        value = metric.get_value(self.data.aggregation, column)
        value_type = self.data.value_type
        if value_type is ValueType.NUMBER:
            number = coerce_number(value)
            if number is None:
                raise MetricValueError(f"metric '{metric.name}' value {value!r} is not a finite number")
            return number
        if isinstance(value, (list, tuple)):
            if not value:
                raise MetricValueError(f"metric '{metric.name}' returned an empty value")
            value = ", ".join(str(item) for item in value) if value_type is ValueType.STRING else value[0]
        if value is None:
            raise MetricValueError(f"metric '{metric.name}' has no value")
        return value

    def formatted_value(self, value: Any) -> str:
        value_type = self.data.value_type
        if value_type is ValueType.NUMBER:
            if value is None:
                return "-"
            if coerce_number(value) is None:
                return "null"
            return self._mapped_text(value) or format_number(value, self.data.unit, self.data.decimals)
        if value_type is ValueType.DATE:
            if value is None:
                return "-"
            return format_date(value, self.data.date_format)
        text = "null" if value is None else str(value)
        return self._mapped_text(text) or text

    def _mapped_text(self, value: Any) -> str | None:
        if self.data.mapping_type == MAPPING_VALUES:
            maps: Sequence[ValueMap | RangeMap] = self.value_maps
        elif self.data.mapping_type == MAPPING_RANGES:
            maps = self.range_maps
        else:
            return None
        for item in maps:
            if item.match(value):
                return item.formatted_text(value)
        return None

    def add_value_map(self, value: str = "", text: str = "") -> ValueMap:
        item = ValueMap(value=value, text=text)
        self.value_maps.append(item)
        self.change()
        return item

    def remove_value_map(self, index: int) -> ValueMap:
        item = self.value_maps.pop(index)
        self.change()
        return item

    def add_range_map(self, start: Any = None, stop: Any = None, text: str = "") -> RangeMap:
        item = RangeMap(start=start, stop=stop, text=text)
        self.range_maps.append(item)
        self.change()
        return item

    def remove_range_map(self, index: int) -> RangeMap:
        item = self.range_maps.pop(index)
        self.change()
        return item

    # ------------------------------------------------------------------
    # Property maps
    # ------------------------------------------------------------------
    def _add_map(self, kind: str, **kwargs: Any) -> PropertyMap:
        item = MAP_KINDS[kind](**kwargs)
        self.maps[kind].append(item)
        self.change()
        return item

    def _remove_map(self, kind: str, index: int) -> PropertyMap:
        item = self.maps[kind].pop(index)
        self.change()
        return item

    def add_shape_map(self, pattern: str = "", **kwargs: Any) -> ShapeMap:
        return self._add_map("shape", pattern=pattern, **kwargs)  # type: ignore[return-value]

    def add_text_map(self, pattern: str = "", **kwargs: Any) -> TextMap:
        return self._add_map("text", pattern=pattern, **kwargs)  # type: ignore[return-value]

    def add_link_map(self, pattern: str = "", **kwargs: Any) -> LinkMap:
        return self._add_map("link", pattern=pattern, **kwargs)  # type: ignore[return-value]

    def add_event_map(self, pattern: str = "", **kwargs: Any) -> EventMap:
        return self._add_map("event", pattern=pattern, **kwargs)  # type: ignore[return-value]

    def remove_shape_map(self, index: int) -> PropertyMap:
        return self._remove_map("shape", index)

    def remove_text_map(self, index: int) -> PropertyMap:
        return self._remove_map("text", index)

    def remove_link_map(self, index: int) -> PropertyMap:
        return self._remove_map("link", index)

    def remove_event_map(self, index: int) -> PropertyMap:
        return self._remove_map("event", index)

    @property
    def shape_maps(self) -> list[ShapeMap]:
        return self.maps["shape"]  # type: ignore[return-value]

    @property
    def text_maps(self) -> list[TextMap]:
        return self.maps["text"]  # type: ignore[return-value]

    @property
    def link_maps(self) -> list[LinkMap]:
        return self.maps["link"]  # type: ignore[return-value]

    @property
    def event_maps(self) -> list[EventMap]:
        return self.maps["event"]  # type: ignore[return-value]

    def cell_value(self, kind: str, cell: "CellBackend") -> str | None:
        """Identity of ``cell`` as seen by the ``kind`` maps."""

        return cell.identity(self.options[kind])

    def matching_maps(self, kind: str, cell_value: str | None) -> Iterator[PropertyMap]:
        options = self.options[kind]
        for item in self.maps[kind]:
            if item.match(cell_value, options):
                yield item

    def _match(self, kind: str, cell_value: str | None) -> bool:
        return next(self.matching_maps(kind, cell_value), None) is not None

    def match_shape(self, cell_value: str | None) -> bool:
        return self._match("shape", cell_value)

    def match_text(self, cell_value: str | None) -> bool:
        return self._match("text", cell_value)

    def match_link(self, cell_value: str | None) -> bool:
        return self._match("link", cell_value)

    def match_event(self, cell_value: str | None) -> bool:
        return self._match("event", cell_value)

    def match_cell(self, cell: "CellBackend") -> bool:
        """Return ``True`` when any map of the rule targets ``cell``."""

        return any(self._match(kind, self.cell_value(kind, cell)) for kind in MAP_KINDS)

    def to_iconize(self, level: int) -> bool:
        return self.data.overlay_icon and level >= 1

    def to_tooltipize(self, level: int) -> bool:
        if not self.data.tooltip and not self.data.tp_metadata:
            return False
        return level_gate(self.data.tooltip_on, level)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------
    def match_metric(self, metric: "Metric") -> bool:
        if self.data.metric_type == MetricKind.SERIES.value and metric.kind is MetricKind.SERIES:
            return match_pattern(metric.name, self.data.pattern)
        if self.data.metric_type == MetricKind.TABLE.value and metric.kind is MetricKind.TABLE:
            return metric.name == self.data.ref_id
        return False

    @property
    def metrics(self) -> tuple["Metric", ...]:
        return tuple(self._metrics.values())

    def bind_metrics(self, registry: "MetricRegistry") -> None:
        """Track the metrics of ``registry`` matched by this rule."""

        self.unbind_metrics()
        self._metric_registry = registry
        registry.signals.connect("metric_created", self, self._on_metric_created)
        registry.signals.connect("metric_deleted", self, self._on_metric_deleted)
        self.refresh_metrics(registry)

    def unbind_metrics(self) -> None:
        registry = self._metric_registry
        if registry is not None:
            registry.signals.disconnect("metric_created", self)
            registry.signals.disconnect("metric_deleted", self)
        self._metric_registry = None
        self._metrics.clear()

    def refresh_metrics(self, metrics: Iterable["Metric"]) -> None:
        """Recompute membership, e.g. after the pattern changed."""

        self._metrics = {metric.uid: metric for metric in metrics if self.match_metric(metric)}
        self.update()

    def _on_metric_created(self, metric: "Metric") -> None:
        if self.match_metric(metric):
            self._metrics[metric.uid] = metric
            self.update()

    def _on_metric_deleted(self, metric: "Metric") -> None:
        if self._metrics.pop(metric.uid, None) is not None:
            self.update()
