"""Colour parsing and gradient helpers used by threshold scales."""

from __future__ import annotations

import logging
import re
from typing import Sequence

import numpy as np
from matplotlib import colors as mcolors

from .errors import ColorError

__all__ = [
    "format_color",
    "interpolate_color",
    "parse_color",
    "ratio_for_value",
    "value_for_ratio",
]

logger = logging.getLogger(__name__)

_FUNCTIONAL_PATTERN = re.compile(
    r"^\s*rgba?\(\s*([^,\s]+)\s*,\s*([^,\s]+)\s*,\s*([^,\s)]+)\s*(?:,\s*([^,\s)]+)\s*)?\)\s*$",
    re.IGNORECASE,
)


def _parse_functional(text: str) -> np.ndarray | None:
    match = _FUNCTIONAL_PATTERN.match(text)
    if match is None:
        return None
    red, green, blue, alpha = match.groups()
    try:
        channels = [float(red) / 255.0, float(green) / 255.0, float(blue) / 255.0]
        channels.append(1.0 if alpha is None else float(alpha))
    except ValueError as exc:
        raise ColorError(f"invalid colour '{text}'") from exc
    return np.clip(np.asarray(channels, dtype=float), 0.0, 1.0)


def parse_color(color: str | Sequence[float]) -> np.ndarray:
    """Return ``color`` as an RGBA array of floats in ``[0, 1]``.

    CSS names and hexadecimal notations are delegated to
    :func:`matplotlib.colors.to_rgba`; the ``rgb()``/``rgba()`` functional
    notation found in dashboard configurations is parsed here.
    """

    if isinstance(color, str):
        functional = _parse_functional(color)
        if functional is not None:
            return functional
        text = color.strip()
    else:
        text = color
    try:
        return np.asarray(mcolors.to_rgba(text), dtype=float)
    except (ValueError, TypeError) as exc:
        raise ColorError(f"invalid colour {color!r}") from exc


def format_color(rgba: Sequence[float]) -> str:
    """Format an RGBA array as ``#rrggbb`` or ``#rrggbbaa`` when translucent."""

    values = np.clip(np.asarray(rgba, dtype=float), 0.0, 1.0)
    keep_alpha = bool(values.shape[0] > 3 and values[3] < 1.0)
    return mcolors.to_hex(tuple(values), keep_alpha=keep_alpha)


def ratio_for_value(begin: float, end: float, value: float) -> float:
    """Position of ``value`` inside ``[begin, end]`` clamped to ``[0, 1]``."""

    span = float(end) - float(begin)
    if span == 0:
        return 0.0
    ratio = (float(value) - float(begin)) / span
    return float(min(1.0, max(0.0, ratio)))


def value_for_ratio(begin: float, end: float, ratio: float) -> float:
    return float(begin) + (float(end) - float(begin)) * float(ratio)


def interpolate_color(begin: str, end: str, ratio: float) -> str:
    """Blend two colours in linear-light RGB.

    The boundaries are exact: a ratio of ``0`` returns ``begin`` and a ratio
    of ``1`` returns ``end`` untouched, whatever notation they use.
    """

    ratio = float(min(1.0, max(0.0, ratio)))
    if ratio == 0.0:
        return begin
    if ratio == 1.0:
        return end
    try:
        start = parse_color(begin)
        stop = parse_color(end)
    except ColorError:
        logger.warning(
            "Unable to interpolate colours; falling back to end colour.",
            extra={"event": "colors.interpolation_failed", "begin": begin, "end": end},
        )
        return end
    rgb = np.sqrt(start[:3] ** 2 * (1.0 - ratio) + stop[:3] ** 2 * ratio)
    alpha = start[3] + (stop[3] - start[3]) * ratio
    return format_color(np.append(rgb, alpha))
