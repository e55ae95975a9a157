"""Display formatting of metric values."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from .dates import to_datetime
from .thresholds import coerce_number

__all__ = ["DEFAULT_DATE_FORMAT", "decimal_places", "format_date", "format_number"]

DEFAULT_DATE_FORMAT = "YYYY-MM-DD HH:mm:ss"

_SHORT_SUFFIXES = ("", "k", "M", "B", "T")
_BYTE_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")
_DATE_TOKENS = re.compile(r"YYYY|MM|DD|HH|mm|ss")
_DATE_DIRECTIVES = {
    "YYYY": "%Y",
    "MM": "%m",
    "DD": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}


def decimal_places(value: Any) -> int:
    """Number of significant decimals in ``value`` (at most 20)."""

    number = coerce_number(value)
    if number is None or number == int(number):
        return 0
    text = repr(number)
    if "e" in text:
        mantissa, _, exponent = text.partition("e")
        digits = len(mantissa.partition(".")[2])
        return max(0, min(20, digits - int(exponent)))
    return min(20, len(text.partition(".")[2]))


def _fixed(number: float, decimals: int | None) -> str:
    if decimals is None:
        decimals = min(decimal_places(number), 2) if abs(number) < 1000 else 0
    return f"{number:.{decimals}f}"


def _scaled(
    number: float, base: float, suffixes: tuple[str, ...], decimals: int | None, separator: str = ""
) -> str:
    index = 0
    while abs(number) >= base and index < len(suffixes) - 1:
        number /= base
        index += 1
    if decimals is None:
        decimals = 0 if index == 0 and number == int(number) else 1
    suffix = suffixes[index]
    return f"{number:.{decimals}f}{separator if suffix else ''}{suffix}"


def format_number(value: Any, unit: str = "none", decimals: int | None = None) -> str:
    """Format ``value`` with ``unit``.

    Non numeric values are returned as text. Unknown units are appended as a
    literal suffix.
    """

    number = coerce_number(value)
    if number is None:
        if isinstance(value, float) and math.isinf(value):
            return "-Inf" if value < 0 else "Inf"
        return "" if value is None else str(value)
    unit = unit or "none"
    if unit == "none":
        return _fixed(number, decimals)
    if unit == "short":
        return _scaled(number, 1000.0, _SHORT_SUFFIXES, decimals)
    if unit == "percent":
        return f"{_fixed(number, decimals)}%"
    if unit == "percentunit":
        return f"{_fixed(number * 100.0, decimals)}%"
    if unit == "bytes":
        return _scaled(number, 1024.0, _BYTE_SUFFIXES, decimals, separator=" ")
    if unit == "ms":
        if abs(number) >= 1000.0:
            return f"{_fixed(number / 1000.0, 1 if decimals is None else decimals)} s"
        return f"{_fixed(number, decimals)} ms"
    if unit == "s":
        if abs(number) >= 3600.0:
            return f"{_fixed(number / 3600.0, 1 if decimals is None else decimals)} hour"
        if abs(number) >= 60.0:
            return f"{_fixed(number / 60.0, 1 if decimals is None else decimals)} min"
        return f"{_fixed(number, decimals)} s"
    return f"{_fixed(number, decimals)} {unit}"


def format_date(value: Any, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Render ``value`` (epoch ms, ISO string or datetime) using ``fmt`` tokens."""

    moment = to_datetime(value)
    if moment is None:
        return "" if value is None else str(value)
    moment = moment.astimezone(timezone.utc)
    pattern = _DATE_TOKENS.sub(lambda match: _DATE_DIRECTIVES[match.group(0)], fmt.replace("%", "%%"))
    return datetime.strftime(moment, pattern)
