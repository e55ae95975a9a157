"""Builders shared by the rule, state and engine tests."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from cellstyle.backend import MemoryCell
from cellstyle.metrics import SeriesMetric
from cellstyle.reconciler import KeyedReconciler
from cellstyle.rule import Rule
from cellstyle.thresholds import ThresholdScale, ValueType

TRAFFIC_LIGHT = (("red", 0), ("orange", 50), ("green", 80))


def build_number_scale(entries: Iterable[tuple[str, float]]) -> ThresholdScale:
    return ThresholdScale.from_list(ValueType.NUMBER, [{"color": c, "value": v} for c, v in entries])


def traffic_light_scale() -> ThresholdScale:
    return build_number_scale(TRAFFIC_LIGHT)


def build_rule(
    alias: str = "cpu",
    *,
    pattern: str = "cpu.*",
    thresholds: Sequence[tuple[str, Any]] = TRAFFIC_LIGHT,
    shapes: Sequence[Mapping[str, Any]] = ({"pattern": "srv-1"},),
    **options: Any,
) -> Rule:
    payload: dict[str, Any] = {
        "alias": alias,
        "pattern": pattern,
        "unit": "none",
        "thresholds": [{"color": color, "value": value} for color, value in thresholds],
        "shapes": list(shapes),
    }
    payload.update(options)
    return Rule.from_mapping(payload)


def build_cell(cell_id: str = "srv-1", **fields: Any) -> MemoryCell:
    fields.setdefault("style", {"fillColor": "#ffffff"})
    return MemoryCell(cell_id=cell_id, **fields)


def build_series(name: str = "cpu", *values: float) -> SeriesMetric:
    return SeriesMetric(name, [(1_000 * index, value) for index, value in enumerate(values)])


class RecordingReconciler(KeyedReconciler):
    """Reconciler whose effects are appended to ``effects``."""

    name = "recording"

    def __init__(self, defaults: Mapping[str, Any] | None = None, fail_on: Iterable[str] = ()) -> None:
        super().__init__(cell=None)  # type: ignore[arg-type]
        self.defaults = dict(defaults or {})
        self.fail_on = set(fail_on)
        self.effects: list[tuple[str, str, Any]] = []

    def read_default(self, key: str) -> Any:
        return self.defaults.get(key, f"default-{key}")

    def apply_effect(self, key: str, value: Any) -> None:
        if key in self.fail_on:
            raise RuntimeError(f"backend rejected {key}")
        self.effects.append(("apply", key, value))

    def revert_effect(self, key: str, value: Any) -> None:
        self.effects.append(("revert", key, value))
