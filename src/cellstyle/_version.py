"""Package version lookup."""

from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path

from packaging.version import InvalidVersion, Version

_DISTRIBUTION = "cellstyle"
_HEADING = re.compile(r"^## v(\d+\.\d+\.\d+)\b", re.MULTILINE)


def _version_from_changelog() -> str:
    """Return the newest ``## vX.Y.Z`` heading of ``CHANGELOG.md``.

    Source checkouts have no distribution metadata, so the changelog sitting
    next to ``src/`` is the fallback.
    """

    candidates = (parent / "CHANGELOG.md" for parent in Path(__file__).resolve().parents[1:3])
    for changelog in candidates:
        if changelog.is_file():
            found = _HEADING.search(changelog.read_text(encoding="utf-8"))
            if found:
                return found.group(1)
    raise RuntimeError(f"no version for {_DISTRIBUTION!r}: not installed and no changelog heading")


def _checked(raw: str) -> str:
    try:
        release = Version(raw).release
    except InvalidVersion as exc:
        raise RuntimeError(f"{_DISTRIBUTION!r} has an unparsable version {raw!r}") from exc
    if len(release) != 3:
        raise RuntimeError(f"{_DISTRIBUTION!r} version {raw!r} is not MAJOR.MINOR.PATCH")
    return raw


def _load_version() -> str:
    try:
        return _checked(metadata.version(_DISTRIBUTION))
    except metadata.PackageNotFoundError:
        return _checked(_version_from_changelog())


__version__ = _load_version()

__all__ = ["__version__"]
