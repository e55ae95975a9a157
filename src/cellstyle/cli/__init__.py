"""Command line utilities for cellstyle."""

from cellstyle.cli.app import main, run_cli

__all__ = ["main", "run_cli"]
