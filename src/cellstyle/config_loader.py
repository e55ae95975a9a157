"""Load rule definitions, cell snapshots and metric snapshots from disk.

YAML (``.yaml``, ``.yml`` and ``.json``, JSON being a YAML subset) and TOML
files are accepted. Every document is either a list or a mapping holding
the list under ``rules``, ``cells`` or ``metrics``.
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from pathlib import Path
from typing import Any, Mapping

import yaml

from .backend import MemoryCell
from .configuration import tomllib
from .errors import RuleConfigurationError
from .metrics import Metric, SeriesMetric, TableMetric
from .registry import RuleRegistry
from .rule import Rule

__all__ = ["load_cells", "load_document", "load_metrics", "load_registry", "load_rules"]

_YAML_SUFFIXES = frozenset({".yaml", ".yml", ".json"})


def load_document(path: str | Path) -> Any:
    """Decode ``path`` according to its suffix."""

    candidate = Path(path).expanduser()
    if not candidate.is_file():
        raise FileNotFoundError(candidate)
    suffix = candidate.suffix.lower()
    if suffix == ".toml":
        with candidate.open("rb") as handle:
            try:
                return tomllib.load(handle)
            except tomllib.TOMLDecodeError as exc:
                raise RuleConfigurationError(f"Invalid TOML in {candidate}: {exc}") from exc
    if suffix not in _YAML_SUFFIXES:
        raise RuleConfigurationError(f"Unsupported file type '{suffix}' for {candidate}")
    with candidate.open("r", encoding="utf-8") as buffer:
        payload = buffer.read()
    try:
        return yaml.safe_load(payload)
    except yaml.YAMLError as exc:
        raise RuleConfigurationError(f"Invalid YAML in {candidate}") from exc


def _entries(path: str | Path, section: str) -> list[Any]:
    data = load_document(path)
    if data is None:
        return []
    if isinstance(data, MappingABC):
        data = data.get(section, [])
    if isinstance(data, MappingABC) and section == "metrics":
        # ``{name: datapoints}`` shorthand
        return [{"name": name, "datapoints": points} for name, points in data.items()]
    if not isinstance(data, list):
        raise RuleConfigurationError(f"'{section}' in {path} must be a list")
    return data


def load_rules(path: str | Path) -> list[Rule]:
    rules: list[Rule] = []
    for index, entry in enumerate(_entries(path, "rules")):
        if not isinstance(entry, MappingABC):
            raise RuleConfigurationError(f"rule #{index} in {path} must be a mapping")
        try:
            rules.append(Rule.from_mapping(entry))
        except (TypeError, ValueError) as exc:
            alias = entry.get("alias", f"#{index}")
            raise RuleConfigurationError(f"rule {alias} in {path}: {exc}") from exc
    return rules


def load_registry(path: str | Path, **kwargs: Any) -> RuleRegistry:
    return RuleRegistry(load_rules(path), **kwargs)


def load_cells(path: str | Path) -> list[MemoryCell]:
    cells: list[MemoryCell] = []
    for index, entry in enumerate(_entries(path, "cells")):
        if not isinstance(entry, MappingABC):
            raise RuleConfigurationError(f"cell #{index} in {path} must be a mapping")
        cells.append(MemoryCell.from_mapping(entry))
    return cells


def _metric_from_mapping(entry: Mapping[str, Any]) -> Metric:
    kind = str(entry.get("kind", "series"))
    if kind == "table":
        return TableMetric(str(entry.get("ref_id", entry.get("name", "A"))), entry.get("rows", []))
    if kind == "series":
        return SeriesMetric(str(entry["name"]), entry.get("datapoints", []))
    raise RuleConfigurationError(f"unknown metric kind '{kind}'")


def load_metrics(path: str | Path) -> list[Metric]:
    metrics: list[Metric] = []
    for index, entry in enumerate(_entries(path, "metrics")):
        if not isinstance(entry, MappingABC):
            raise RuleConfigurationError(f"metric #{index} in {path} must be a mapping")
        try:
            metrics.append(_metric_from_mapping(entry))
        except KeyError as exc:
            raise RuleConfigurationError(f"metric #{index} in {path} is missing {exc}") from exc
    return metrics
