from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from cellstyle.config_loader import load_cells, load_document, load_metrics, load_registry, load_rules
from cellstyle.errors import RuleConfigurationError
from cellstyle.metrics import MetricKind
from cellstyle.thresholds import ValueType

RULES_YAML = """\
rules:
  - alias: cpu
    pattern: "cpu.*"
    unit: none
    thresholds:
      - {color: red, value: 0}
      - {color: orange, value: 50}
      - {color: green, value: 80}
    shapes:
      - {pattern: "srv-.*", style: strokeColor}
  - alias: status
    type: string
    pattern: "status"
    thresholds:
      - {color: red, value: "/.*/"}
      - {color: green, value: "*ok*"}
    events:
      - {pattern: "srv-1", style: blink, value: "500", event_on: co}
"""

RULES_TOML = """\
[[rules]]
alias = "cpu"
pattern = "cpu.*"
thresholds = [
    { color = "red", value = 0 },
    { color = "orange", value = 50 },
    { color = "green", value = 80 },
]
shapes = [{ pattern = "srv-1" }]
"""


def _write(directory: Path, name: str, contents: str) -> Path:
    target = directory / name
    target.write_text(dedent(contents), encoding="utf8")
    return target


def test_load_rules_from_yaml(tmp_path: Path) -> None:
    rules = load_rules(_write(tmp_path, "rules.yaml", RULES_YAML))
    cpu, status = rules
    assert cpu.level_for_value(65) == 1
    assert cpu.shape_maps[0].style.value == "strokeColor"
    assert status.value_type is ValueType.STRING
    assert status.event_maps[0].is_eligible(2)
    assert not status.event_maps[0].is_eligible(1)


def test_load_rules_from_toml(tmp_path: Path) -> None:
    (rule,) = load_rules(_write(tmp_path, "rules.toml", RULES_TOML))
    assert [threshold.color for threshold in rule.thresholds] == ["red", "orange", "green"]


def test_load_registry_orders_rules(tmp_path: Path) -> None:
    registry = load_registry(_write(tmp_path, "rules.yml", RULES_YAML))
    assert [(rule.alias, rule.order) for rule in registry] == [("cpu", 0), ("status", 1)]


def test_bare_list_documents_are_accepted(tmp_path: Path) -> None:
    path = _write(tmp_path, "cells.json", '[{"id": "srv-1", "style": "rounded;fillColor=#fff;"}]')
    (cell,) = load_cells(path)
    assert cell.cell_id == "srv-1"
    assert cell.style == {"shape": "rounded", "fillColor": "#fff"}


def test_load_metrics_shorthand_and_tables(tmp_path: Path) -> None:
    shorthand = _write(tmp_path, "metrics.yaml", "metrics:\n  cpu.load: [[0, 65], [1000, 70]]\n")
    (series,) = load_metrics(shorthand)
    assert series.name == "cpu.load"
    assert series.get_value("current") == 70

    tables = _write(
        tmp_path,
        "tables.yaml",
        """\
        metrics:
          - kind: table
            ref_id: B
            rows: [{load: 5}, {load: 9}]
        """,
    )
    (table,) = load_metrics(tables)
    assert table.kind is MetricKind.TABLE
    assert table.get_value("max", "load") == 9.0


def test_empty_document_yields_nothing(tmp_path: Path) -> None:
    assert load_rules(_write(tmp_path, "empty.yaml", "")) == []


@pytest.mark.parametrize(
    ("name", "contents"),
    [
        ("rules.ini", "[rules]"),
        ("rules.yaml", "rules: [unclosed"),
        ("rules.toml", "rules = ["),
        ("rules.yaml", "rules: {alias: cpu}"),
        ("rules.yaml", "rules: [42]"),
        ("rules.yaml", "rules: [{alias: cpu, colour: red}]"),
    ],
)
def test_invalid_rule_files_raise_configuration_errors(tmp_path: Path, name: str, contents: str) -> None:
    with pytest.raises(RuleConfigurationError):
        load_rules(_write(tmp_path, name, contents))


def test_missing_files_raise_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_document(tmp_path / "missing.yaml")


def test_unknown_metric_kind_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "metrics.yaml", "metrics: [{kind: logs, name: x}]")
    with pytest.raises(RuleConfigurationError):
        load_metrics(path)
    path = _write(tmp_path, "broken.yaml", "metrics: [{kind: series}]")
    with pytest.raises(RuleConfigurationError, match="missing"):
        load_metrics(path)
