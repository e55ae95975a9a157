"""Property groups: the reconciler bound to concrete families of effects.

Each group only supplies how to read a default from the cell, how to commit
a value and how to revert it. Keys of the shape and event groups form
closed enumerations, so an unsupported key is rejected when a rule is
configured rather than when the effect is applied.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

from .errors import EffectError, RuleConfigurationError, UnknownPropertyKeyError
from .reconciler import KeyedReconciler
from .tooltip import TooltipGraph, TooltipMetric, TooltipPayload

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .backend import CellBackend
    from .metrics import Metric
    from .rule import Rule

__all__ = [
    "ColorKey",
    "EventGroup",
    "EventKey",
    "IconGroup",
    "LinkGroup",
    "PropertyGroup",
    "ShapeGroup",
    "TextGroup",
    "TooltipGroup",
]

PropertyGroup = KeyedReconciler


class ColorKey(str, Enum):
    """Style slots a shape map may colour."""

    FILL = "fillColor"
    STROKE = "strokeColor"
    FONT = "fontColor"
    GRADIENT = "gradientColor"
    LABEL_BACKGROUND = "labelBackgroundColor"
    LABEL_BORDER = "labelBorderColor"
    IMAGE_BACKGROUND = "imageBackground"
    IMAGE_BORDER = "imageBorder"

    @classmethod
    def coerce(cls, value: "ColorKey | str") -> "ColorKey":
        try:
            return cls(value)
        except ValueError:
            raise RuleConfigurationError(f"unknown colour style '{value}'") from None


class EventKey(str, Enum):
    """Generic properties an event map may drive."""

    TEXT = "text"
    TOOLTIP_METADATA = "tpMetadata"
    TOOLTIP_TEXT = "tpText"
    VISIBILITY = "visibility"
    FOLD = "fold"
    HEIGHT = "height"
    WIDTH = "width"
    SIZE = "size"
    BLINK = "blink"
    # Animated style properties
    OPACITY = "opacity"
    FILL_OPACITY = "fillOpacity"
    STROKE_OPACITY = "strokeOpacity"
    TEXT_OPACITY = "textOpacity"
    FONT_SIZE = "fontSize"
    STROKE_WIDTH = "strokeWidth"
    ROTATION = "rotation"
    ARC_SIZE = "arcSize"
    # Plain style properties
    SHAPE = "shape"
    DASHED = "dashed"
    FONT_STYLE = "fontStyle"
    ROUNDED = "rounded"
    SHADOW = "shadow"
    GLASS = "glass"
    FLIP_H = "flipH"
    FLIP_V = "flipV"
    IMAGE = "image"
    ALIGN = "align"
    VERTICAL_ALIGN = "verticalAlign"
    GRADIENT_DIRECTION = "gradientDirection"

    @classmethod
    def coerce(cls, value: "EventKey | str") -> "EventKey":
        try:
            return cls(value)
        except ValueError:
            raise RuleConfigurationError(f"unknown event property '{value}'") from None

    @property
    def is_animated_style(self) -> bool:
        return self in ANIMATED_STYLE_DEFAULTS

    @property
    def is_plain_style(self) -> bool:
        return self in _PLAIN_STYLE_KEYS


ANIMATED_STYLE_DEFAULTS: Mapping[EventKey, Any] = {
    EventKey.OPACITY: 100,
    EventKey.FILL_OPACITY: 100,
    EventKey.STROKE_OPACITY: 100,
    EventKey.TEXT_OPACITY: 100,
    EventKey.FONT_SIZE: 11,
    EventKey.STROKE_WIDTH: 1,
    EventKey.ROTATION: 0,
    EventKey.ARC_SIZE: 10,
}

_PLAIN_STYLE_KEYS = frozenset(
    {
        EventKey.SHAPE,
        EventKey.DASHED,
        EventKey.FONT_STYLE,
        EventKey.ROUNDED,
        EventKey.SHADOW,
        EventKey.GLASS,
        EventKey.FLIP_H,
        EventKey.FLIP_V,
        EventKey.IMAGE,
        EventKey.ALIGN,
        EventKey.VERTICAL_ALIGN,
        EventKey.GRADIENT_DIRECTION,
    }
)


def _none_if_null(value: Any) -> Any:
    if value is None or value == "null":
        return None
    return value


class ShapeGroup(KeyedReconciler):
    """Colour keys, applied with an animated transition."""

    name = "shape"

    def set(self, key: str, value: Any, level: int) -> bool:
        return super().set(ColorKey.coerce(key).value, value, level)

    def read_default(self, key: str) -> Any:
        return self.cell.get_default_style(key)

    def apply_effect(self, key: str, value: Any) -> None:
        self.cell.animate_color(key, value)

    def revert_effect(self, key: str, value: Any) -> None:
        self.cell.restore_style(key)


class TextGroup(KeyedReconciler):
    name = "text"

    def read_default(self, key: str) -> Any:
        return self.cell.get_label()

    def apply_effect(self, key: str, value: Any) -> None:
        self.cell.set_label(value)

    def revert_effect(self, key: str, value: Any) -> None:
        self.cell.restore_label()


class LinkGroup(KeyedReconciler):
    name = "link"

    def read_default(self, key: str) -> Any:
        return self.cell.get_default_link()

    def apply_effect(self, key: str, value: Any) -> None:
        self.cell.set_link(value)

    def revert_effect(self, key: str, value: Any) -> None:
        self.cell.restore_link()


class IconGroup(KeyedReconciler):
    """Boolean ``icon`` key driving a warning overlay."""

    name = "icon"
    OVERLAY_TEXT = "WARNING/ERROR"

    def read_default(self, key: str) -> Any:
        return False

    def apply_effect(self, key: str, value: Any) -> None:
        # Overlay is already on the cell when the previous cycle applied it.
        if value is True and not self.is_changed(key):
            self.cell.add_overlay(self.OVERLAY_TEXT)

    def revert_effect(self, key: str, value: Any) -> None:
        self.cell.remove_overlay()


class TooltipGroup(KeyedReconciler):
    """Boolean ``tooltip`` gate and the payload built during evaluation."""

    name = "tooltip"

    def __init__(self, cell: "CellBackend") -> None:
        super().__init__(cell)
        self.payload: TooltipPayload | None = None
        self.register("tooltip", False)
        cell.enable_tooltip(False)

    def set_tooltip(
        self,
        rule: "Rule",
        metric: "Metric",
        color: str | None,
        formatted_value: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> TooltipPayload:
        """Add one metric line (and the cell metadata) to the pending payload."""

        if self.payload is None:
            self.payload = TooltipPayload()
        data = rule.data
        if data.tooltip:
            label = data.tooltip_label
            if not label:
                label = metric.name if data.metric_type == "series" else data.column
            line_color = color if data.tooltip_colors else None
            line = self.payload.add_metric(
                TooltipMetric(
                    label=label,
                    value=formatted_value,
                    color=line_color,
                    direction=data.tp_direction,
                )
            )
            if data.tp_graph:
                line.graph = TooltipGraph(
                    graph_type=data.tp_graph_type,
                    color=line_color,
                    column=data.column,
                    metric=metric.name,
                    size=data.tp_graph_size,
                    low=data.tp_graph_low,
                    high=data.tp_graph_high,
                    scale=data.tp_graph_scale,
                )
        if data.tp_metadata and metadata is not None:
            self.payload.set_metadata(metadata)
        self.payload.touch()
        return self.payload

    def apply_effect(self, key: str, value: Any) -> None:
        if value is True and self.payload is not None and not self.payload.is_empty():
            self.cell.enable_tooltip(True)
            self.cell.set_tooltip(self.payload)

    def revert_effect(self, key: str, value: Any) -> None:
        self.cell.enable_tooltip(False)

    def prepare(self) -> None:
        super().prepare()
        self.payload = None


class EventGroup(KeyedReconciler):
    """Generic style, geometry, visibility, folding and blink properties."""

    name = "event"

    def __init__(self, cell: "CellBackend") -> None:
        super().__init__(cell)
        self.geometry = cell.default_geometry()
        # metadata names written through tpMetadata, with the value they replaced
        self._metadata_originals: dict[str, Any] = {}
        self._setters: dict[EventKey, Callable[[EventKey, Any], None]] = {
            EventKey.TEXT: self._set_text,
            EventKey.TOOLTIP_METADATA: self._set_tooltip_metadata,
            EventKey.TOOLTIP_TEXT: self._set_tooltip_text,
            EventKey.VISIBILITY: self._set_visibility,
            EventKey.FOLD: self._set_fold,
            EventKey.HEIGHT: self._set_height,
            EventKey.WIDTH: self._set_width,
            EventKey.SIZE: self._set_size,
            EventKey.BLINK: self._set_blink,
        }
        self._getters: dict[EventKey, Callable[[EventKey], Any]] = {
            EventKey.TEXT: lambda _key: self.cell.get_label(),
            EventKey.TOOLTIP_METADATA: lambda _key: None,
            EventKey.TOOLTIP_TEXT: lambda _key: self.cell.get_metadata("tooltip"),
            EventKey.VISIBILITY: lambda _key: "0" if self.cell.is_hidden() else "1",
            EventKey.FOLD: lambda _key: "0" if self.cell.is_collapsed() else "1",
            EventKey.HEIGHT: lambda _key: self.geometry.height,
            EventKey.WIDTH: lambda _key: self.geometry.width,
            EventKey.SIZE: lambda _key: 100,
            EventKey.BLINK: lambda _key: self.cell.is_blinking(),
        }

    @staticmethod
    def _key(key: str) -> EventKey:
        try:
            return EventKey(key)
        except ValueError:
            raise UnknownPropertyKeyError(f"unknown event property '{key}'") from None

    def set(self, key: str, value: Any, level: int) -> bool:
        return super().set(self._key(key).value, value, level)

    def read_default(self, key: str) -> Any:
        event_key = self._key(key)
        getter = self._getters.get(event_key)
        if getter is not None:
            return getter(event_key)
        return self.cell.get_style(event_key.value)

    def apply_effect(self, key: str, value: Any) -> None:
        self._dispatch(self._key(key), _none_if_null(value))

    def revert_effect(self, key: str, value: Any) -> None:
        self._dispatch(self._key(key), _none_if_null(value))

    def _dispatch(self, key: EventKey, value: Any) -> None:
        setter = self._setters.get(key)
        if setter is not None:
            setter(key, value)
        elif key.is_animated_style:
            self._set_animated_style(key, value)
        elif key.is_plain_style:
            self.cell.set_style(key.value, value)
        else:  # pragma: no cover - every key has a handler
            raise UnknownPropertyKeyError(f"no handler for event property '{key.value}'")

    # Handlers ---------------------------------------------------------------
    def _set_text(self, key: EventKey, value: Any) -> None:
        self.cell.set_label(None if value is None else str(value))

    def _set_tooltip_metadata(self, key: EventKey, value: Any) -> None:
        if value is None:
            self._restore_metadata()
            return
        name, sep, payload = str(value).partition("@")
        self._restore_metadata(keep=name)
        self._metadata_originals.setdefault(name, self.cell.get_metadata(name))
        self.cell.set_metadata(name, payload if sep else None)

    def _restore_metadata(self, keep: str | None = None) -> None:
        for name in [name for name in self._metadata_originals if name != keep]:
            self.cell.set_metadata(name, self._metadata_originals.pop(name))

    def _set_tooltip_text(self, key: EventKey, value: Any) -> None:
        text = None if value is None or str(value) == "" else str(value)
        self.cell.set_metadata("tooltip", text)

    def _set_visibility(self, key: EventKey, value: Any) -> None:
        flag = str(value)
        if flag == "0":
            self.cell.hide(True)
        elif flag == "1":
            self.cell.hide(False)

    def _set_fold(self, key: EventKey, value: Any) -> None:
        flag = str(value)
        if flag == "0":
            self.cell.collapse(True)
        elif flag == "1":
            self.cell.collapse(False)

    def _set_height(self, key: EventKey, value: Any) -> None:
        if value is None:
            return
        width = self.target_value(EventKey.WIDTH.value)
        self.ack(EventKey.WIDTH.value)
        self.cell.animate_size(_as_float(width), _as_float(value))

    def _set_width(self, key: EventKey, value: Any) -> None:
        if value is None:
            return
        height = self.target_value(EventKey.HEIGHT.value)
        self.ack(EventKey.HEIGHT.value)
        self.cell.animate_size(_as_float(value), _as_float(height))

    def _set_size(self, key: EventKey, value: Any) -> None:
        self.cell.animate_zoom(100.0 if value is None else _as_float(value))

    def _set_blink(self, key: EventKey, value: Any) -> None:
        enabled = bool(value) and str(value).lower() not in {"0", "false"}
        self.cell.blink(value, enabled)

    def _set_animated_style(self, key: EventKey, value: Any) -> None:
        begin = self.cell.get_style(key.value)
        if begin is None:
            begin = ANIMATED_STYLE_DEFAULTS[key]
        self.cell.animate_style(key.value, value, begin)


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise EffectError(f"expected a number, got {value!r}") from None
