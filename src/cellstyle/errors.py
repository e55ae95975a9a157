"""Exception hierarchy shared by the rule engine and the property groups."""

from __future__ import annotations

__all__ = [
    "CellStyleError",
    "ColorError",
    "EffectError",
    "MetricValueError",
    "RuleConfigurationError",
    "UnconfiguredScaleError",
    "UnknownPropertyKeyError",
]


class CellStyleError(Exception):
    """Base class for every error raised by :mod:`cellstyle`."""


class RuleConfigurationError(CellStyleError, ValueError):
    """Raised when a rule references an unknown value type or option."""


class UnconfiguredScaleError(RuleConfigurationError):
    """Raised when a level or colour is requested from an empty scale."""

    def __init__(self, value_type: str) -> None:
        super().__init__(f"threshold scale for value type '{value_type}' is empty")
        self.value_type = value_type


class UnknownPropertyKeyError(CellStyleError, KeyError):
    """Raised when a property group receives a key it cannot handle."""

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""


class MetricValueError(CellStyleError, LookupError):
    """Raised when a metric cannot produce a value for an aggregation."""


class EffectError(CellStyleError, RuntimeError):
    """Raised by a rendering backend that rejects a property commit."""


class ColorError(CellStyleError, ValueError):
    """Raised when a colour string cannot be parsed."""
