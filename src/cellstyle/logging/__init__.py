"""Logging utilities for cellstyle."""

from cellstyle.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
