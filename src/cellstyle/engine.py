"""High level driver running reconciliation cycles over a set of cells."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .backend import CellBackend
from .metrics import MetricRegistry, SeriesMetric, TableMetric
from .registry import RuleRegistry
from .rule import Rule
from .state import CellState

__all__ = ["StylingEngine"]

logger = logging.getLogger(__name__)


class StylingEngine:
    """Own one :class:`CellState` per cell and run full refresh cycles.

    A refresh begins a new aggregation window on every rule, opens a cycle on
    every cell, scores the bound rules and finally applies the results.
    """

    def __init__(
        self,
        rules: RuleRegistry | Iterable[Rule | Mapping[str, Any]] = (),
        metrics: MetricRegistry | None = None,
        cells: Iterable[CellBackend] = (),
    ) -> None:
        self.metrics = metrics if metrics is not None else MetricRegistry()
        if isinstance(rules, RuleRegistry):
            self.rules = rules
            if rules.metrics is None:
                rules.metrics = self.metrics
                for rule in rules:
                    rule.bind_metrics(self.metrics)
        else:
            self.rules = RuleRegistry(rules, metrics=self.metrics)
        self.states: dict[str, CellState] = {}
        self.cycles = 0
        for cell in cells:
            self.add_cell(cell)

    def add_cell(self, cell: CellBackend) -> CellState:
        state = self.states.get(cell.cell_id)
        if state is None:
            state = CellState(cell, self.rules)
            self.states[cell.cell_id] = state
        return state

    def remove_cell(self, cell_id: str) -> None:
        state = self.states.pop(cell_id, None)
        if state is not None:
            state.free()

    def get_state(self, cell_id: str) -> CellState | None:
        return self.states.get(cell_id)

    def update_metrics(self, values: Mapping[str, Sequence[Any]]) -> None:
        """Replace metric data by name, creating missing metrics.

        Sequences of mappings are table rows, anything else is a list of
        ``(timestamp_ms, value)`` datapoints.
        """

        for name, data in values.items():
            rows = list(data)
            is_table = bool(rows) and all(isinstance(row, Mapping) for row in rows)
            metric = self.metrics.find(name)
            if metric is None:
                metric = TableMetric(name, rows) if is_table else SeriesMetric(name, rows)
                self.metrics.add(metric)
            else:
                metric.update(rows)  # type: ignore[attr-defined]

    def _begin(self, values: Mapping[str, Sequence[Any]] | None) -> list[CellState]:
        if values:
            self.update_metrics(values)
        self.rules.begin_aggregation_window()
        states = list(self.states.values())
        for state in states:
            state.init_cycle()
        for state in states:
            state.set_cycle()
        return states

    def _finish(self) -> dict[str, Any]:
        self.cycles += 1
        logger.info(
            "Refresh cycle complete.",
            extra={"event": "engine.refresh", "cycle": self.cycles, "cells": len(self.states)},
        )
        return self.summary()

    def refresh(self, values: Mapping[str, Sequence[Any]] | None = None) -> dict[str, Any]:
        """Run one complete cycle and return :meth:`summary`."""

        for state in self._begin(values):
            state.apply_cycle()
        return self._finish()

    async def arefresh(self, values: Mapping[str, Sequence[Any]] | None = None) -> dict[str, Any]:
        """Variant of :meth:`refresh` scheduling the apply step on the event loop."""

        states = self._begin(values)
        await asyncio.gather(*(state.async_apply_cycle() for state in states))
        return self._finish()

    def summary(self) -> dict[str, Any]:
        cells = []
        for state in self.states.values():
            entry = state.as_dict()
            snapshot = getattr(state.cell, "snapshot", None)
            if callable(snapshot):
                entry["snapshot"] = snapshot()
            cells.append(entry)
        return {
            "cycle": self.cycles,
            "cells": cells,
            "rules": [
                {
                    "alias": rule.alias,
                    "order": rule.order,
                    "metrics": [metric.name for metric in rule.metrics],
                    "highest_level": rule.highest_level,
                    "highest_color": rule.highest_color,
                    "highest_value": rule.highest_value,
                    "highest_formatted_value": rule.highest_formatted_value,
                }
                for rule in self.rules
            ],
        }

    def close(self) -> None:
        for cell_id in list(self.states):
            self.remove_cell(cell_id)
        self.rules.clear()
