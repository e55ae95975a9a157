"""Command line entry point for ``cellstyle``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from ..configuration import load_config
from ..logging.config import setup_logging
from .errors import CliError, log_cli_error
from .parser import build_parser

# Logging flags are read before the full parser so setup happens first.
_LOGGING_OVERRIDES = (
    ("--log-level", "level"),
    ("--log-output", "output"),
    ("--log-format", "format"),
)


def run_cli(args: Optional[Sequence[str]] = None) -> str:
    """Execute the ``cellstyle`` command line interface."""

    preliminary_parser = argparse.ArgumentParser(add_help=False)
    preliminary_parser.add_argument("--config", dest="config_path", type=Path, default=None)
    for option, key in _LOGGING_OVERRIDES:
        preliminary_parser.add_argument(option, dest=f"log_{key}", default=None)
    preliminary, remaining = preliminary_parser.parse_known_args(args)

    config = load_config(preliminary.config_path)
    overrides = {
        key: getattr(preliminary, f"log_{key}")
        for _, key in _LOGGING_OVERRIDES
        if getattr(preliminary, f"log_{key}") is not None
    }
    config["logging"] = {**config.get("logging", {}), **overrides}
    setup_logging(config)

    parser = build_parser(config)
    namespace = parser.parse_args(list(remaining), namespace=preliminary)
    namespace.config_path = preliminary.config_path or config.get("_config_path")

    handler = getattr(namespace, "handler", None)
    if handler is None:  # pragma: no cover - subcommands are required
        raise CliError(f"Unknown command '{namespace.command}'.", category="usage")

    try:
        result = handler(namespace, config=config)
    except CliError as exc:
        if not exc.logged:
            log_cli_error(exc.payload, exc_info=exc)
            exc.logged = True
        sys.stdout.write(exc.payload.message.rstrip("\n") + "\n")
        raise SystemExit(exc.status_code) from exc
    if result:
        sys.stdout.write(result)
        if not result.endswith("\n"):
            sys.stdout.write("\n")
    return result


def main() -> None:  # pragma: no cover - thin wrapper
    run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
