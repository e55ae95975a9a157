"""Project configuration read from the ``[tool.cellstyle]`` table of ``pyproject.toml``."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping as ABCMapping
from pathlib import Path
from typing import Any

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG",
    "load_config",
    "load_project_config",
]

PYPROJECT = "pyproject.toml"
CONFIG_ENV_VAR = "CELLSTYLE_CONFIG"

DEFAULT_CONFIG: ABCMapping[str, Any] = {
    "logging": {"level": "info", "output": "stderr", "format": "json"},
    "engine": {"default_rule_file": None},
}


def _plain(value: Any) -> Any:
    """Copy TOML tables and arrays into plain dicts and lists."""

    if isinstance(value, ABCMapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def _pyproject_for(candidate: Path) -> Path | None:
    """Accept either a ``pyproject.toml`` path or the directory holding one."""

    candidate = candidate.expanduser()
    if candidate.name == PYPROJECT:
        return candidate.resolve(strict=False)
    if candidate.suffix:
        return None
    return (candidate / PYPROJECT).resolve(strict=False)


def _candidates(explicit: Path | None) -> Iterable[Path]:
    paths = []
    if explicit is not None:
        paths.append(explicit)
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        paths.append(Path(from_env))
    paths.append(Path.cwd())
    # dict.fromkeys keeps the first occurrence of each resolved path
    return dict.fromkeys(path.expanduser().resolve(strict=False) for path in paths)


def _with_defaults(section: ABCMapping[str, Any]) -> dict[str, Any]:
    merged = _plain(DEFAULT_CONFIG)
    for name, value in section.items():
        current = merged.get(name)
        if isinstance(current, dict) and isinstance(value, ABCMapping):
            current.update(_plain(value))
        else:
            merged[name] = _plain(value)
    return merged


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Return the merged ``[tool.cellstyle]`` table and the file it came from.

    ``None`` means there is no ``pyproject.toml`` at ``path`` or that it has
    no ``[tool.cellstyle]`` table.
    """

    pyproject = _pyproject_for(path)
    if pyproject is None or not pyproject.is_file():
        return None
    with pyproject.open("rb") as handle:
        document = tomllib.load(handle)
    section = document.get("tool", {}).get("cellstyle")
    if not isinstance(section, ABCMapping):
        return None
    return _with_defaults(section), pyproject


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Resolve the effective configuration.

    ``path`` wins over the ``CELLSTYLE_CONFIG`` environment variable, which
    wins over the working directory. Built-in defaults are returned when no
    ``[tool.cellstyle]`` table is found.
    """

    for candidate in _candidates(path):
        loaded = load_project_config(candidate)
        if loaded is not None:
            config, source = loaded
            config["_config_path"] = source
            return config
    config = _with_defaults({})
    config["_config_path"] = None
    return config
