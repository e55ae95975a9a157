"""Ordered threshold scales for numeric, string and date values.

A :class:`ThresholdScale` holds the severity boundaries of one value domain.
Index ``0`` is the base entry: it always matches and acts as a catch-all
floor. The remaining entries are assumed to be sorted by ascending domain
value; this is not validated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Iterator, Mapping, Sequence

from .colors import interpolate_color, ratio_for_value, value_for_ratio
from .dates import resolve_reference, to_datetime
from .errors import RuleConfigurationError
from .patterns import match_pattern

__all__ = [
    "DEFAULT_COLORS",
    "DateThreshold",
    "NumberThreshold",
    "StringThreshold",
    "Threshold",
    "ThresholdScale",
    "ValueType",
    "coerce_number",
]


class ValueType(str, Enum):
    """Value domains a rule can evaluate."""

    NUMBER = "number"
    STRING = "string"
    DATE = "date"

    @classmethod
    def coerce(cls, value: "ValueType | str") -> "ValueType":
        try:
            return cls(value)
        except ValueError as exc:
            raise RuleConfigurationError(f"unknown value type '{value}'") from exc


DEFAULT_COLORS: tuple[str, str, str] = (
    "rgba(245, 54, 54, 0.9)",
    "rgba(237, 129, 40, 0.89)",
    "rgba(50, 172, 45, 0.97)",
)

_DEFAULT_VALUES: Mapping[ValueType, tuple[Any, Any, Any]] = {
    ValueType.NUMBER: (0, 50, 80),
    ValueType.STRING: ("/.*/", "/.*warning.*/", "/.*(success|ok).*/"),
    ValueType.DATE: ("0d", "-1d", "-1w"),
}


def coerce_number(value: Any) -> float | None:
    """Return ``value`` as a finite float, or ``None`` when it is not one."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass(eq=False)
class Threshold:
    """One severity boundary: a colour, a comparison value and a comparator."""

    color: str
    value: Any
    hidden: bool = False
    comparator: str = "ge"

    value_type: ClassVar[ValueType]
    comparators: ClassVar[frozenset[str]] = frozenset({"ge"})

    def __post_init__(self) -> None:
        if self.comparator not in self.comparators:
            raise RuleConfigurationError(
                f"comparator '{self.comparator}' is not valid for {self.value_type.value} thresholds"
            )

    def set_color(self, color: str) -> "Threshold":
        self.color = color
        return self

    def set_value(self, value: Any) -> "Threshold":
        self.value = value
        return self

    def hide(self) -> "Threshold":
        self.hidden = True
        return self

    def show(self) -> "Threshold":
        self.hidden = False
        return self

    def match(self, value: Any) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError

    def as_dict(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "value": self.value,
            "hidden": self.hidden,
            "comparator": self.comparator,
        }

    def copy(self) -> "Threshold":
        return type(self)(**self.as_dict())


@dataclass(eq=False)
class NumberThreshold(Threshold):
    value: float = 0.0

    value_type: ClassVar[ValueType] = ValueType.NUMBER
    comparators: ClassVar[frozenset[str]] = frozenset({"ge", "gt"})

    def match(self, value: Any) -> bool:
        number = coerce_number(value)
        bound = coerce_number(self.value)
        if number is None or bound is None:
            return False
        if self.comparator == "gt":
            return number > bound
        return number >= bound


@dataclass(eq=False)
class StringThreshold(Threshold):
    value: str = "/.*/"
    comparator: str = "pattern"

    value_type: ClassVar[ValueType] = ValueType.STRING
    comparators: ClassVar[frozenset[str]] = frozenset({"pattern", "eq"})

    def match(self, value: Any) -> bool:
        if value is None:
            return False
        if self.comparator == "eq":
            return str(value) == str(self.value)
        return match_pattern(str(value), str(self.value), enable_regex=False)


@dataclass(eq=False)
class DateThreshold(Threshold):
    """Date boundary; ``value`` is an ISO date or a duration such as ``-1d``."""

    value: str = "0d"

    value_type: ClassVar[ValueType] = ValueType.DATE

    def match(self, value: Any, now: datetime | None = None) -> bool:
        moment = to_datetime(value)
        reference = resolve_reference(self.value, now)
        if moment is None or reference is None:
            return False
        return moment >= reference


_THRESHOLD_TYPES: Mapping[ValueType, type[Threshold]] = {
    ValueType.NUMBER: NumberThreshold,
    ValueType.STRING: StringThreshold,
    ValueType.DATE: DateThreshold,
}


class ThresholdScale:
    """Ordered sequence of thresholds for one value domain."""

    def __init__(
        self,
        value_type: ValueType | str,
        thresholds: Sequence[Threshold] = (),
    ) -> None:
        self.value_type = ValueType.coerce(value_type)
        self._threshold_cls = _THRESHOLD_TYPES[self.value_type]
        self._thresholds: list[Threshold] = []
        for threshold in thresholds:
            self._check(threshold)
            self._thresholds.append(threshold)

    @classmethod
    def default(cls, value_type: ValueType | str) -> "ThresholdScale":
        """Return the three-band red/orange/green scale for ``value_type``."""

        scale = cls(value_type)
        for index, (color, value) in enumerate(
            zip(DEFAULT_COLORS, _DEFAULT_VALUES[scale.value_type])
        ):
            scale.insert(index, color=color, value=value)
        return scale

    @classmethod
    def from_list(
        cls, value_type: ValueType | str, payload: Sequence[Mapping[str, Any] | Sequence[Any]]
    ) -> "ThresholdScale":
        """Build a scale from ``[{"color": ..., "value": ...}, ...]`` or pairs."""

        scale = cls(value_type)
        for entry in payload:
            if isinstance(entry, Mapping):
                fields = {key: entry[key] for key in ("color", "value", "hidden", "comparator") if key in entry}
            else:
                color, value = entry
                fields = {"color": color, "value": value}
            scale._thresholds.append(scale._threshold_cls(**fields))
        return scale

    def _check(self, threshold: Threshold) -> None:
        if not isinstance(threshold, self._threshold_cls):
            raise RuleConfigurationError(
                f"{type(threshold).__name__} cannot be stored in a {self.value_type.value} scale"
            )

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._thresholds)

    def __iter__(self) -> Iterator[Threshold]:
        return iter(self._thresholds)

    def __getitem__(self, index: int) -> Threshold:
        return self._thresholds[index]

    def __repr__(self) -> str:
        return f"ThresholdScale({self.value_type.value!r}, {self._thresholds!r})"

    @property
    def thresholds(self) -> tuple[Threshold, ...]:
        return tuple(self._thresholds)

    def index_of(self, threshold: Threshold) -> int:
        for index, candidate in enumerate(self._thresholds):
            if candidate is threshold:
                return index
        return -1

    def as_list(self) -> list[dict[str, Any]]:
        return [threshold.as_dict() for threshold in self._thresholds]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def insert(
        self,
        index: int | None = None,
        *,
        color: str | None = None,
        value: Any = None,
    ) -> Threshold:
        """Insert a threshold right after position ``index``.

        Without an explicit colour or value the new entry takes the midpoint
        between ``self[index]`` and ``self[index + 1]``; at the end of the
        scale it clones ``self[index]``. ``index=None`` appends. On an empty
        scale the entry becomes the base.
        """

        length = len(self._thresholds)
        if length == 0:
            fields: dict[str, Any] = {"color": color if color is not None else DEFAULT_COLORS[0]}
            if value is not None:
                fields["value"] = value
            threshold = self._threshold_cls(**fields)
            self._thresholds.append(threshold)
            return threshold

        if index is None or index > length - 1:
            index = length - 1
        if index < 0:
            reference = self._thresholds[0]
            following = None
            position = 0
        else:
            reference = self._thresholds[index]
            following = self._thresholds[index + 1] if index + 1 < length else None
            position = index + 1

        threshold = reference.copy()
        if color is None:
            color = (
                interpolate_color(reference.color, following.color, 0.5)
                if following is not None
                else reference.color
            )
        if value is None:
            value = reference.value
            if following is not None and self.value_type is ValueType.NUMBER:
                begin = coerce_number(reference.value)
                end = coerce_number(following.value)
                if begin is not None and end is not None:
                    value = value_for_ratio(begin, end, 0.5)
        threshold.set_color(color)
        threshold.set_value(value)
        self._thresholds.insert(position, threshold)
        return threshold

    def clone(self, index: int) -> Threshold:
        """Duplicate ``self[index]`` right after itself."""

        source = self._thresholds[index]
        threshold = source.copy()
        self._thresholds.insert(index + 1, threshold)
        return threshold

    def remove(self, index: int) -> Threshold:
        return self._thresholds.pop(index)

    def clear(self) -> None:
        self._thresholds.clear()

    def invert_colors(self) -> None:
        """Reverse the colour order while keeping every boundary value."""

        colors = [threshold.color for threshold in reversed(self._thresholds)]
        for threshold, color in zip(self._thresholds, colors):
            threshold.set_color(color)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def index_for_value(self, value: Any, *, now: datetime | None = None) -> int:
        """Return the index of the threshold selected by ``value``.

        Numeric scales stop at the first visible threshold that does not
        match, yielding the tightest lower bound of a sorted scale. String
        and date scales scan every entry and keep the last match in list
        order. Returns ``-1`` for an empty scale or an unrepresentable value.
        """

        if not self._thresholds or value is None:
            return -1
        if self.value_type is ValueType.NUMBER:
            if coerce_number(value) is None:
                return -1
            return self._scan_sorted(value)
        if self.value_type is ValueType.DATE:
            if to_datetime(value) is None:
                return -1
            return self._scan_all(value, now=now)
        return self._scan_all(value)

    def _scan_sorted(self, value: Any) -> int:
        index = 0
        for position in range(1, len(self._thresholds)):
            threshold = self._thresholds[position]
            if threshold.hidden:
                continue
            if not threshold.match(value):
                break
            index = position
        return index

    def _scan_all(self, value: Any, *, now: datetime | None = None) -> int:
        index = 0
        for position in range(1, len(self._thresholds)):
            threshold = self._thresholds[position]
            if threshold.hidden:
                continue
            if isinstance(threshold, DateThreshold):
                matched = threshold.match(value, now)
            else:
                matched = threshold.match(value)
            if matched:
                index = position
        return index

    def color_for_index(self, index: int) -> str:
        return self._thresholds[index].color

    def color_for_value(
        self, value: Any, *, gradient: bool = False, now: datetime | None = None
    ) -> str | None:
        """Flat band colour, or the interpolated colour when ``gradient`` is set.

        Gradients only apply to numeric scales and never to the first or last
        band, whose colours are returned as they are.
        """

        index = self.index_for_value(value, now=now)
        if index == -1:
            return None
        threshold = self._thresholds[index]
        if (
            not gradient
            or self.value_type is not ValueType.NUMBER
            or index == 0
            or index == len(self._thresholds) - 1
        ):
            return threshold.color
        following = self._thresholds[index + 1]
        begin = coerce_number(threshold.value)
        end = coerce_number(following.value)
        number = coerce_number(value)
        if begin is None or end is None or number is None:
            return threshold.color
        ratio = ratio_for_value(begin, end, number)
        return interpolate_color(threshold.color, following.color, ratio)
