"""Conditional styling of diagram cells driven by metric thresholds.

Rules resolve metric values to severity levels and colours through ordered
threshold scales; cell states reconcile the outcomes of every rule onto the
visual properties of one cell, most severe value first.
"""

from ._version import __version__
from .backend import CellBackend, MemoryCell
from .config_loader import load_cells, load_metrics, load_rules
from .engine import StylingEngine
from .errors import (
    CellStyleError,
    ColorError,
    EffectError,
    MetricValueError,
    RuleConfigurationError,
    UnconfiguredScaleError,
    UnknownPropertyKeyError,
)
from .metrics import MetricRegistry, SeriesMetric, TableMetric
from .reconciler import KeyedReconciler, KeyPhase
from .registry import RuleRegistry
from .rule import Rule, RuleAggregate, RuleData
from .state import CellState
from .thresholds import ThresholdScale, ValueType

__all__ = [
    "CellBackend",
    "CellState",
    "CellStyleError",
    "ColorError",
    "EffectError",
    "KeyPhase",
    "KeyedReconciler",
    "MemoryCell",
    "MetricRegistry",
    "MetricValueError",
    "Rule",
    "RuleAggregate",
    "RuleConfigurationError",
    "RuleData",
    "RuleRegistry",
    "SeriesMetric",
    "StylingEngine",
    "TableMetric",
    "ThresholdScale",
    "UnconfiguredScaleError",
    "UnknownPropertyKeyError",
    "ValueType",
    "__version__",
    "load_cells",
    "load_metrics",
    "load_rules",
]
