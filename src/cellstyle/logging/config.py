"""Logging configuration helpers."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, TextIO

__all__ = ["JsonFormatter", "setup_logging"]


_ROOT_LOGGER_NAME = "cellstyle"
_HANDLER_MARKER = "_cellstyle_handler"

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON documents.

    Fields passed through ``extra`` are merged into the payload so that
    structured events such as ``{"event": "reconciler.apply_failed"}`` stay
    machine readable.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, sort_keys=False)


def _resolve_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    name = str(value or "info").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"unknown logging level '{value}'")
    return level


def _resolve_stream(output: str) -> logging.Handler:
    target = (output or "stderr").strip()
    if target.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target.lower() == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(target).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf8")


def setup_logging(
    config: Mapping[str, Any] | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the ``cellstyle`` logger hierarchy.

    Parameters
    ----------
    config:
        Mapping with an optional ``logging`` table holding ``level``,
        ``output`` (``stdout``, ``stderr`` or a file path) and ``format``
        (``json`` or ``text``).
    stream:
        Explicit stream overriding ``output``; mostly useful in tests.
    """

    logging_cfg: Mapping[str, Any] = {}
    if config:
        raw = config.get("logging", {})
        if isinstance(raw, Mapping):
            logging_cfg = raw

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    logger.setLevel(_resolve_level(logging_cfg.get("level", "info")))

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    if stream is not None:
        handler: logging.Handler = logging.StreamHandler(stream)
    else:
        handler = _resolve_stream(str(logging_cfg.get("output", "stderr")))

    fmt = str(logging_cfg.get("format", "json")).lower()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    elif fmt == "text":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    else:
        raise ValueError(f"unknown logging format '{fmt}'")

    setattr(handler, _HANDLER_MARKER, True)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
