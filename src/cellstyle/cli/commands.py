"""Handlers behind the ``cellstyle`` sub-commands."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Mapping

from ..config_loader import load_cells, load_metrics, load_rules
from ..engine import StylingEngine
from ..errors import CellStyleError, RuleConfigurationError
from ..metrics import MetricRegistry
from ..thresholds import ValueType, coerce_number
from .errors import CliError

__all__ = ["handle_evaluate", "handle_levels", "render_payload"]


def render_payload(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=False, default=str)


def _load(loader, path, kind: str):
    try:
        return loader(path)
    except (OSError, CellStyleError) as exc:
        if isinstance(exc, FileNotFoundError):
            message = f"{kind} file not found: {path}"
        else:
            message = f"cannot load {kind} file {path}: {exc}"
        raise CliError.from_exception(exc, message, context={"path": path}) from exc


def handle_evaluate(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    if namespace.cycles < 1:
        raise CliError("--cycles must be at least 1", category="usage", context={"cycles": namespace.cycles})
    rules = _load(load_rules, namespace.rules, "rules")
    cells = _load(load_cells, namespace.cells, "cells")
    metrics = _load(load_metrics, namespace.metrics, "metrics")

    registry = MetricRegistry()
    for metric in metrics:
        registry.add(metric)
    engine = StylingEngine(rules, registry, cells)
    summary: Mapping[str, Any] = {}
    try:
        for _ in range(namespace.cycles):
            if namespace.use_async:
                summary = asyncio.run(engine.arefresh())
            else:
                summary = engine.refresh()
    except CellStyleError as exc:
        raise CliError.from_exception(exc) from exc
    return render_payload(summary)


def handle_levels(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    rules = _load(load_rules, namespace.rules, "rules")
    results = []
    for rule in rules:
        value: Any = namespace.value
        if rule.value_type is ValueType.NUMBER:
            value = coerce_number(value)
        try:
            index = rule.index_for_value(value)
            entry = {
                "rule": rule.alias,
                "index": index,
                "level": rule.level_for_index(index),
                "color": rule.color_for_value(value),
                "formatted": rule.formatted_value(value),
            }
        except RuleConfigurationError as exc:
            entry = {"rule": rule.alias, "error": str(exc)}
        results.append(entry)
    return render_payload(results)
