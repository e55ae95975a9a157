from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from cellstyle.logging import JsonFormatter, setup_logging


def test_json_formatter_merges_extra_fields() -> None:
    stream = io.StringIO()
    logger = setup_logging({"logging": {"level": "debug"}}, stream=stream)
    logging.getLogger("cellstyle.reconciler").debug(
        "Applied.", extra={"event": "reconciler.applied", "key": "fillColor"}
    )
    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["level"] == "debug"
    assert payload["logger"] == "cellstyle.reconciler"
    assert payload["event"] == "reconciler.applied"
    assert payload["key"] == "fillColor"
    assert logger.propagate is False


def test_exceptions_are_serialised() -> None:
    record = logging.LogRecord("cellstyle", logging.ERROR, __file__, 1, "boom", None, None)
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record.exc_info = sys.exc_info()
    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]


def test_setup_logging_replaces_its_own_handler() -> None:
    first, second = io.StringIO(), io.StringIO()
    setup_logging(stream=first)
    logger = setup_logging({"logging": {"format": "text", "level": "warning"}}, stream=second)
    marked = [handler for handler in logger.handlers if getattr(handler, "_cellstyle_handler", False)]
    assert len(marked) == 1
    logging.getLogger("cellstyle.engine").info("hidden")
    logging.getLogger("cellstyle.engine").warning("shown")
    assert first.getvalue() == ""
    assert "WARNING cellstyle.engine: shown" in second.getvalue()
    assert "hidden" not in second.getvalue()


@pytest.mark.parametrize("config", [{"logging": {"level": "loud"}}, {"logging": {"format": "xml"}}])
def test_invalid_logging_settings_raise(config) -> None:
    with pytest.raises(ValueError):
        setup_logging(config, stream=io.StringIO())
