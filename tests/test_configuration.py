from __future__ import annotations

from pathlib import Path

import pytest

from cellstyle.configuration import CONFIG_ENV_VAR, load_config, load_project_config
from tests.conftest import write_pyproject


def test_load_config_defaults_without_pyproject(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config = load_config()
    assert config["_config_path"] is None
    assert config["logging"] == {"level": "info", "output": "stderr", "format": "json"}
    assert config["engine"] == {"default_rule_file": None}


def test_project_section_is_merged_over_defaults(tmp_path: Path) -> None:
    path = write_pyproject(
        tmp_path,
        """
        [tool.cellstyle.logging]
        level = "debug"

        [tool.cellstyle.extra]
        enabled = true
        """,
    )
    config, source = load_project_config(tmp_path)
    assert source == path.resolve()
    assert config["logging"] == {"level": "debug", "output": "stderr", "format": "json"}
    assert config["extra"] == {"enabled": True}


def test_pyproject_without_tool_section_is_ignored(tmp_path: Path) -> None:
    write_pyproject(tmp_path, '[project]\nname = "demo"\n')
    assert load_project_config(tmp_path) is None
    assert load_project_config(tmp_path / "settings.toml") is None


def test_environment_variable_beats_working_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    cwd = tmp_path / "cwd"
    env = tmp_path / "env"
    cwd.mkdir()
    env.mkdir()
    write_pyproject(cwd, '[tool.cellstyle.logging]\nlevel = "warning"\n')
    env_path = write_pyproject(env, '[tool.cellstyle.logging]\nlevel = "error"\n')
    monkeypatch.chdir(cwd)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(env_path))

    assert load_config()["logging"]["level"] == "error"
    assert load_config(cwd)["logging"]["level"] == "warning"
