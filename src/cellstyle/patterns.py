"""String pattern matching shared by thresholds and property maps."""

from __future__ import annotations

import fnmatch
import logging
import re
from functools import lru_cache

__all__ = ["is_regex_literal", "match_pattern"]

logger = logging.getLogger(__name__)


def is_regex_literal(pattern: str) -> bool:
    return len(pattern) >= 2 and pattern.startswith("/") and pattern.rfind("/") > 0


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str] | None:
    source = pattern
    flags = 0
    if is_regex_literal(pattern):
        end = pattern.rfind("/")
        source = pattern[1:end]
        if "i" in pattern[end + 1 :]:
            flags |= re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error:
        logger.warning(
            "Invalid regular expression ignored.",
            extra={"event": "patterns.invalid_regex", "pattern": pattern},
        )
        return None


def match_pattern(text: str | None, pattern: str | None, enable_regex: bool = True) -> bool:
    """Return ``True`` when ``text`` matches ``pattern``.

    ``/.../flags`` literals are always regular expressions. Other patterns
    are full-match regular expressions when ``enable_regex`` is set, and
    shell-style globs (``*``, ``?``) otherwise.
    """

    if text is None or pattern is None:
        return False
    text = str(text)
    pattern = str(pattern)
    if is_regex_literal(pattern) or enable_regex:
        compiled = _compile(pattern)
        if compiled is None:
            return False
        if is_regex_literal(pattern):
            return compiled.search(text) is not None
        return compiled.fullmatch(text) is not None
    return fnmatch.fnmatchcase(text, pattern)
