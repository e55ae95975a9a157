"""Date coercion and relative-duration parsing for date threshold scales."""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any

__all__ = [
    "parse_relative",
    "resolve_reference",
    "to_datetime",
]

_RELATIVE_PATTERN = re.compile(r"^\s*(?:now)?\s*([+-]?\d+(?:\.\d+)?)\s*([smhdwMy])\s*$")

_UNIT_SECONDS = {
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 7 * 86400.0,
    "M": 30 * 86400.0,
    "y": 365 * 86400.0,
}


def parse_relative(text: str) -> timedelta | None:
    """Parse ``-1d``, ``2h``, ``0d`` or ``now-1w`` into a :class:`timedelta`.

    Returns ``None`` when ``text`` is not a relative expression.
    """

    match = _RELATIVE_PATTERN.match(str(text))
    if match is None:
        return None
    amount, unit = match.groups()
    return timedelta(seconds=float(amount) * _UNIT_SECONDS[unit])


def to_datetime(value: Any) -> datetime | None:
    """Coerce epoch milliseconds, ISO strings or datetimes into aware datetimes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (OSError, OverflowError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        numeric = float(text)
    except ValueError:
        pass
    else:
        return to_datetime(numeric)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def resolve_reference(value: Any, now: datetime | None = None) -> datetime | None:
    """Resolve a threshold value (relative or absolute) against ``now``."""

    now = now or datetime.now(tz=timezone.utc)
    delta = parse_relative(value) if isinstance(value, str) else None
    if delta is not None:
        return now + delta
    return to_datetime(value)
