"""Argument parsing for the ``cellstyle`` command."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from .commands import handle_evaluate, handle_levels


def _default_rules(config: Mapping[str, Any]) -> Optional[Path]:
    engine_cfg = config.get("engine", {})
    if not isinstance(engine_cfg, Mapping):
        return None
    value = engine_cfg.get("default_rule_file")
    return Path(value) if value else None


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = dict(config.get("logging", {}))
    default_rules = _default_rules(config)

    parser = argparse.ArgumentParser(
        prog="cellstyle",
        description="Evaluate conditional styling rules against metric snapshots.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml holding a [tool.cellstyle] table.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Run refresh cycles over a cell snapshot and print the resulting cell states.",
    )
    evaluate_parser.add_argument(
        "--rules",
        type=Path,
        default=default_rules,
        required=default_rules is None,
        help="Rule definition file (YAML or TOML; default: engine.default_rule_file).",
    )
    evaluate_parser.add_argument("--cells", type=Path, required=True, help="Cell snapshot file.")
    evaluate_parser.add_argument("--metrics", type=Path, required=True, help="Metric snapshot file.")
    evaluate_parser.add_argument(
        "--cycles",
        type=int,
        default=1,
        help="Number of refresh cycles to run over the same data (default: 1).",
    )
    evaluate_parser.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="Schedule the apply step on an asyncio event loop.",
    )
    evaluate_parser.set_defaults(handler=handle_evaluate)

    levels_parser = subparsers.add_parser(
        "levels",
        help="Print the threshold index, level and colour of a value for every rule.",
    )
    levels_parser.add_argument(
        "--rules",
        type=Path,
        default=default_rules,
        required=default_rules is None,
        help="Rule definition file (YAML or TOML; default: engine.default_rule_file).",
    )
    levels_parser.add_argument("--value", required=True, help="Raw metric value to resolve.")
    levels_parser.set_defaults(handler=handle_levels)

    return parser
