"""Convenience re-exports for test helpers."""

from __future__ import annotations

from .builders import (
    RecordingReconciler,
    build_cell,
    build_number_scale,
    build_rule,
    build_series,
    traffic_light_scale,
)

__all__ = [
    "RecordingReconciler",
    "build_cell",
    "build_number_scale",
    "build_rule",
    "build_series",
    "traffic_light_scale",
]
