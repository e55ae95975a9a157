"""Property maps binding rules to cells, and value/range text maps.

Property maps decide *which* cells a rule touches (pattern match against
the cell identity selected by :class:`MapOptions`) and *when* it touches
them (the level gate of :meth:`PropertyMap.is_eligible`).
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar, Mapping

from .errors import RuleConfigurationError
from .patterns import match_pattern
from .properties import ColorKey, EventKey
from .thresholds import coerce_number

__all__ = [
    "EventMap",
    "LinkMap",
    "MapOptions",
    "PropertyMap",
    "RangeMap",
    "ShapeMap",
    "TextMap",
    "ValueMap",
    "level_gate",
]

# Level gates: never, always, warning or critical, critical only.
_GATES: Mapping[str, int | None] = {"n": None, "a": -1, "wc": 1, "co": 2}

TEXT_REPLACE_MODES = frozenset({"content", "pattern", "as", "anl"})


def level_gate(gate: str | int, level: int) -> bool:
    """Return ``True`` when ``level`` passes ``gate``.

    ``gate`` is one of ``n``, ``a``, ``wc``, ``co`` or an integer minimum
    level.
    """

    if isinstance(gate, bool):
        raise RuleConfigurationError(f"invalid level gate {gate!r}")
    if isinstance(gate, int):
        return level >= gate
    try:
        minimum = _GATES[gate]
    except KeyError:
        number = coerce_number(gate)
        if number is None:
            raise RuleConfigurationError(f"invalid level gate {gate!r}") from None
        return level >= number
    if minimum is None:
        return False
    return level >= minimum


@dataclass
class MapOptions:
    """Select which cell attribute the map patterns are matched against.

    ``ident_by_prop`` is ``id``, ``value`` (the label) or ``metadata``, in
    which case ``metadata`` names the metadata key.
    """

    ident_by_prop: str = "id"
    metadata: str = ""
    enable_regex: bool = True

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "MapOptions":
        if not payload:
            return cls()
        return cls(
            ident_by_prop=str(payload.get("ident_by_prop", "id")),
            metadata=str(payload.get("metadata", "")),
            enable_regex=bool(payload.get("enable_regex", True)),
        )


@dataclass
class PropertyMap:
    pattern: str = ""
    hidden: bool = False

    kind: ClassVar[str] = ""
    gate_attribute: ClassVar[str] = ""

    def match(self, cell_value: str | None, options: MapOptions) -> bool:
        if self.hidden or not self.pattern:
            return False
        return match_pattern(cell_value, self.pattern, options.enable_regex)

    def is_eligible(self, level: int) -> bool:
        return level_gate(getattr(self, self.gate_attribute), level)

    def hide(self) -> None:
        self.hidden = True

    def show(self) -> None:
        self.hidden = False

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if isinstance(payload.get("style"), Enum):
            payload["style"] = payload["style"].value
        return payload

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "PropertyMap":
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(payload) - known
        if unknown:
            raise RuleConfigurationError(
                f"unknown {cls.kind} map option(s): {', '.join(sorted(unknown))}"
            )
        return cls(**dict(payload))


@dataclass
class ShapeMap(PropertyMap):
    style: ColorKey = ColorKey.FILL
    colorize_on: str | int = "a"

    kind: ClassVar[str] = "shape"
    gate_attribute: ClassVar[str] = "colorize_on"

    def __post_init__(self) -> None:
        self.style = ColorKey.coerce(self.style)


@dataclass
class TextMap(PropertyMap):
    textize_on: str | int = "a"
    text_replace: str = "content"
    text_pattern: str = "/.*/"

    kind: ClassVar[str] = "text"
    gate_attribute: ClassVar[str] = "textize_on"

    def __post_init__(self) -> None:
        if self.text_replace not in TEXT_REPLACE_MODES:
            raise RuleConfigurationError(f"unknown text replace mode '{self.text_replace}'")

    def replace_text(self, current: str | None, formatted: str) -> str:
        """Combine the current label and the formatted metric value."""

        current = "" if current is None else str(current)
        if self.text_replace == "content":
            return formatted
        if self.text_replace == "as":
            return f"{current} {formatted}"
        if self.text_replace == "anl":
            return f"{current}\n{formatted}"
        pattern = self.text_pattern
        if len(pattern) >= 2 and pattern.startswith("/") and pattern.rfind("/") > 0:
            pattern = pattern[1 : pattern.rfind("/")]
        try:
            return re.sub(pattern, formatted.replace("\\", "\\\\"), current)
        except re.error as exc:
            raise RuleConfigurationError(f"invalid text pattern '{self.text_pattern}'") from exc


@dataclass
class LinkMap(PropertyMap):
    link_on: str | int = "a"
    link_url: str = ""
    link_params: bool = False

    kind: ClassVar[str] = "link"
    gate_attribute: ClassVar[str] = "link_on"

    def get_link(self, params: Mapping[str, Any] | None = None) -> str:
        if not self.link_params or not params:
            return self.link_url
        separator = "&" if "?" in self.link_url else "?"
        query = "&".join(f"{key}={value}" for key, value in params.items())
        return f"{self.link_url}{separator}{query}"


@dataclass
class EventMap(PropertyMap):
    event_on: str | int = "a"
    style: EventKey = EventKey.SHAPE
    value: str = ""

    kind: ClassVar[str] = "event"
    gate_attribute: ClassVar[str] = "event_on"

    def __post_init__(self) -> None:
        self.style = EventKey.coerce(self.style)


@dataclass
class ValueMap:
    """Replace a string value by a display text."""

    value: str = ""
    text: str = ""
    hidden: bool = False

    def match(self, value: Any) -> bool:
        if self.hidden or value is None:
            return False
        if self.value == "null":
            return str(value) in {"null", "None"}
        number, expected = coerce_number(value), coerce_number(self.value)
        if number is not None and expected is not None:
            return number == expected
        return str(value) == str(self.value)

    def formatted_text(self, value: Any) -> str:
        return self.text if self.text else str(value)


@dataclass
class RangeMap:
    """Replace a numeric value inside ``[start, stop]`` by a display text."""

    start: float | None = None
    stop: float | None = None
    text: str = ""
    hidden: bool = False

    def match(self, value: Any) -> bool:
        if self.hidden:
            return False
        number = coerce_number(value)
        if number is None:
            return False
        lower = coerce_number(self.start)
        upper = coerce_number(self.stop)
        if lower is not None and number < lower:
            return False
        if upper is not None and number > upper:
            return False
        return lower is not None or upper is not None

    def formatted_text(self, value: Any) -> str:
        return self.text if self.text else str(value)
