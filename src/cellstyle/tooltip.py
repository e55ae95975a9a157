"""Tooltip payloads attached to cells by the tooltip property group."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

__all__ = ["TooltipGraph", "TooltipMetric", "TooltipPayload"]


@dataclass
class TooltipGraph:
    graph_type: str = "line"
    color: str | None = None
    column: str | None = None
    metric: str | None = None
    size: str = "100%"
    low: float | None = None
    high: float | None = None
    scale: str = "linear"


@dataclass
class TooltipMetric:
    label: str
    value: str
    color: str | None = None
    direction: str = "v"
    graph: TooltipGraph | None = None


@dataclass
class TooltipPayload:
    """Metric lines, optional cell metadata and the time of the last update."""

    metrics: list[TooltipMetric] = field(default_factory=list)
    metadata: Mapping[str, Any] | None = None
    updated_at: datetime | None = None

    def is_empty(self) -> bool:
        return not self.metrics and not self.metadata

    def add_metric(self, metric: TooltipMetric) -> TooltipMetric:
        self.metrics.append(metric)
        return metric

    def set_metadata(self, metadata: Mapping[str, Any]) -> None:
        self.metadata = dict(metadata)

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or datetime.now(tz=timezone.utc)

    def as_dict(self) -> dict[str, Any]:
        return {
            "metrics": [
                {
                    "label": metric.label,
                    "value": metric.value,
                    "color": metric.color,
                    "direction": metric.direction,
                    "graph": None if metric.graph is None else dict(vars(metric.graph)),
                }
                for metric in self.metrics
            ],
            "metadata": None if self.metadata is None else dict(self.metadata),
            "updated_at": None if self.updated_at is None else self.updated_at.isoformat(),
        }
