"""Rendering backend contract and an in-memory reference cell.

Property groups never paint anything themselves: every effect goes through
the :class:`CellBackend` protocol. :class:`MemoryCell` implements it over
plain Python state and records each mutation, which is what the command
line tool and the tests use.
"""

from __future__ import annotations

import copy
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .mapping import MapOptions
    from .tooltip import TooltipPayload

__all__ = [
    "CALL_HISTORY",
    "CellBackend",
    "Geometry",
    "MemoryCell",
    "format_style",
    "parse_style",
]

# Number of recent calls a MemoryCell keeps.
CALL_HISTORY = 256


def parse_style(style: str | None) -> dict[str, str]:
    """Parse a ``key=value;key=value`` style string.

    Bare tokens without ``=`` (a shape name in first position, usually) are
    stored under the ``shape`` key.
    """

    result: dict[str, str] = {}
    if not style:
        return result
    for token in style.split(";"):
        token = token.strip()
        if not token:
            continue
        key, sep, value = token.partition("=")
        if sep:
            result[key.strip()] = value.strip()
        else:
            result.setdefault("shape", key)
    return result


def format_style(style: Mapping[str, Any]) -> str:
    return "".join(f"{key}={value};" for key, value in style.items() if value is not None)


@dataclass(frozen=True)
class Geometry:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@runtime_checkable
class CellBackend(Protocol):
    """Mutations and queries the property groups need from a diagram cell."""

    cell_id: str

    def identity(self, options: "MapOptions") -> str | None: ...

    # Style
    def get_style(self, key: str) -> str | None: ...
    def get_default_style(self, key: str) -> str | None: ...
    def set_style(self, key: str, value: Any) -> None: ...
    def restore_style(self, key: str) -> None: ...
    def animate_color(self, key: str, value: str | None) -> None: ...
    def animate_style(self, key: str, value: Any, begin: Any) -> None: ...

    # Label and link
    def get_label(self) -> str | None: ...
    def set_label(self, value: str | None) -> None: ...
    def restore_label(self) -> None: ...
    def get_default_link(self) -> str | None: ...
    def set_link(self, value: str | None) -> None: ...
    def restore_link(self) -> None: ...

    # Decorations
    def add_overlay(self, text: str) -> None: ...
    def remove_overlay(self) -> None: ...
    def enable_tooltip(self, enabled: bool = True) -> None: ...
    def set_tooltip(self, payload: "TooltipPayload | None") -> None: ...

    # Metadata
    def get_metadata(self, key: str) -> Any: ...
    def set_metadata(self, key: str, value: Any) -> None: ...
    def get_metadatas(self) -> Mapping[str, Any]: ...

    # Visibility, folding, geometry and blinking
    def is_hidden(self) -> bool: ...
    def hide(self, hidden: bool = True) -> None: ...
    def is_collapsed(self) -> bool: ...
    def collapse(self, collapsed: bool = True) -> None: ...
    def default_geometry(self) -> Geometry: ...
    def animate_size(self, width: float | None, height: float | None) -> None: ...
    def animate_zoom(self, percent: float) -> None: ...
    def is_blinking(self) -> bool: ...
    def blink(self, value: Any, enabled: bool = True) -> None: ...


@dataclass
class MemoryCell:
    """In-memory :class:`CellBackend` that records the most recent calls it receives."""

    cell_id: str
    label: str | None = None
    link: str | None = None
    style: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    geometry: Geometry = field(default_factory=Geometry)
    hidden: bool = False
    collapsed: bool = False
    vertex: bool = True

    overlays: list[str] = field(default_factory=list, init=False)
    tooltip_enabled: bool = field(default=False, init=False)
    tooltip: Any = field(default=None, init=False)
    blinking: Any = field(default=False, init=False)
    calls: deque[tuple[str, tuple[Any, ...]]] = field(
        default_factory=lambda: deque(maxlen=CALL_HISTORY), init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._original_label = self.label
        self._original_link = self.link
        self._original_style = dict(self.style)
        self._original_geometry = self.geometry

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MemoryCell":
        style = payload.get("style", {})
        if isinstance(style, str):
            style = parse_style(style)
        geometry = payload.get("geometry") or {}
        return cls(
            cell_id=str(payload["id"]),
            label=payload.get("label"),
            link=payload.get("link"),
            style=dict(style),
            metadata=dict(payload.get("metadata", {})),
            geometry=Geometry(**geometry) if isinstance(geometry, Mapping) else Geometry(),
            hidden=bool(payload.get("hidden", False)),
            collapsed=bool(payload.get("collapsed", False)),
            vertex=bool(payload.get("vertex", True)),
        )

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def snapshot(self) -> dict[str, Any]:
        """Return the visible state of the cell as plain data."""

        tooltip = self.tooltip.as_dict() if hasattr(self.tooltip, "as_dict") else self.tooltip
        return {
            "id": self.cell_id,
            "label": self.label,
            "link": self.link,
            "style": dict(self.style),
            "metadata": copy.deepcopy(self.metadata),
            "geometry": {
                "x": self.geometry.x,
                "y": self.geometry.y,
                "width": self.geometry.width,
                "height": self.geometry.height,
            },
            "hidden": self.hidden,
            "collapsed": self.collapsed,
            "overlays": list(self.overlays),
            "tooltip": tooltip if self.tooltip_enabled else None,
            "blinking": self.blinking,
        }

    def identity(self, options: "MapOptions") -> str | None:
        if options.ident_by_prop == "value":
            return self.label
        if options.ident_by_prop == "metadata":
            value = self.metadata.get(options.metadata)
            return None if value is None else str(value)
        return self.cell_id

    # Style ------------------------------------------------------------------
    def get_style(self, key: str) -> str | None:
        return self.style.get(key)

    def get_default_style(self, key: str) -> str | None:
        return self._original_style.get(key)

    def set_style(self, key: str, value: Any) -> None:
        self._record("set_style", key, value)
        if value is None:
            self.style.pop(key, None)
        else:
            self.style[key] = str(value)

    def restore_style(self, key: str) -> None:
        self._record("restore_style", key)
        original = self._original_style.get(key)
        if original is None:
            self.style.pop(key, None)
        else:
            self.style[key] = original

    def animate_color(self, key: str, value: str | None) -> None:
        self._record("animate_color", key, value)
        if value is None:
            self.style.pop(key, None)
        else:
            self.style[key] = value

    def animate_style(self, key: str, value: Any, begin: Any) -> None:
        self._record("animate_style", key, value, begin)
        if value is None:
            self.style.pop(key, None)
        else:
            self.style[key] = str(value)

    # Label and link -----------------------------------------------------------
    def get_label(self) -> str | None:
        return self.label

    def set_label(self, value: str | None) -> None:
        self._record("set_label", value)
        self.label = value

    def restore_label(self) -> None:
        self._record("restore_label")
        self.label = self._original_label

    def get_default_link(self) -> str | None:
        return self._original_link

    def set_link(self, value: str | None) -> None:
        self._record("set_link", value)
        self.link = value

    def restore_link(self) -> None:
        self._record("restore_link")
        self.link = self._original_link

    # Decorations --------------------------------------------------------------
    def add_overlay(self, text: str) -> None:
        self._record("add_overlay", text)
        if text not in self.overlays:
            self.overlays.append(text)

    def remove_overlay(self) -> None:
        self._record("remove_overlay")
        self.overlays.clear()

    def enable_tooltip(self, enabled: bool = True) -> None:
        self._record("enable_tooltip", enabled)
        self.tooltip_enabled = enabled
        if not enabled:
            self.tooltip = None

    def set_tooltip(self, payload: "TooltipPayload | None") -> None:
        self._record("set_tooltip", payload)
        self.tooltip = payload

    # Metadata -----------------------------------------------------------------
    def get_metadata(self, key: str) -> Any:
        return self.metadata.get(key)

    def set_metadata(self, key: str, value: Any) -> None:
        self._record("set_metadata", key, value)
        if value is None:
            self.metadata.pop(key, None)
        else:
            self.metadata[key] = value

    def get_metadatas(self) -> Mapping[str, Any]:
        return dict(self.metadata)

    # Visibility, folding, geometry and blinking -------------------------------
    def is_hidden(self) -> bool:
        return self.hidden

    def hide(self, hidden: bool = True) -> None:
        self._record("hide", hidden)
        self.hidden = hidden

    def is_collapsed(self) -> bool:
        return self.collapsed

    def collapse(self, collapsed: bool = True) -> None:
        self._record("collapse", collapsed)
        self.collapsed = collapsed

    def default_geometry(self) -> Geometry:
        return self._original_geometry

    def animate_size(self, width: float | None, height: float | None) -> None:
        self._record("animate_size", width, height)
        base = self._original_geometry
        self.geometry = Geometry(
            x=self.geometry.x,
            y=self.geometry.y,
            width=base.width if width is None else float(width),
            height=base.height if height is None else float(height),
        )

    def animate_zoom(self, percent: float) -> None:
        self._record("animate_zoom", percent)
        base = self._original_geometry
        factor = float(percent) / 100.0
        self.geometry = Geometry(
            x=self.geometry.x,
            y=self.geometry.y,
            width=base.width * factor,
            height=base.height * factor,
        )

    def is_blinking(self) -> bool:
        return bool(self.blinking)

    def blink(self, value: Any, enabled: bool = True) -> None:
        self._record("blink", value, enabled)
        self.blinking = value if enabled else False
