"""Tests for configuration file discovery and lint table parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from semcheck.config import DEFAULT_RULE_TIMEOUT, default_config_template, load_app_config
from semcheck.overrides import ConfigError, LintOverride


def _write(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_defaults_without_any_config(tmp_path: Path) -> None:
    config = load_app_config(tmp_path)

    assert config.format == "human"
    assert config.witnesses is True
    assert config.jobs is None
    assert config.rule_timeout == DEFAULT_RULE_TIMEOUT
    assert config.overrides == []
    assert config.source is None


def test_dedicated_file_wins_over_pyproject(tmp_path: Path) -> None:
    _write(tmp_path / "pyproject.toml", ["[tool.semcheck]", 'format = "json"'])
    _write(tmp_path / ".semcheck.toml", ['format = "human"', "jobs = 2"])

    config = load_app_config(tmp_path)
    assert config.format == "human"
    assert config.jobs == 2
    assert config.source == str((tmp_path / ".semcheck.toml").resolve())


def test_pyproject_tool_section_is_used(tmp_path: Path) -> None:
    _write(
        tmp_path / "pyproject.toml",
        [
            "[project]",
            'name = "demo"',
            "",
            "[tool.semcheck]",
            "witnesses = false",
            "rule_timeout = 5",
            "",
            "[tool.semcheck.lints]",
            'function_missing = "warn"',
        ],
    )

    config = load_app_config(tmp_path)
    assert config.witnesses is False
    assert config.rule_timeout == 5.0
    assert [(item.target, item.level) for item in config.overrides] == [
        ("function_missing", "warn")
    ]


def test_lint_entries_accept_strings_and_tables(tmp_path: Path) -> None:
    _write(
        tmp_path / ".semcheck.toml",
        [
            "[lints]",
            'must_use_added = "ALLOW"',
            'enum_variant_added = { level = "deny", required-update = "minor", priority = 3 }',
        ],
    )

    config = load_app_config(tmp_path)
    source = str((tmp_path / ".semcheck.toml").resolve())
    assert config.overrides == [
        LintOverride(
            scope="package",
            target="enum_variant_added",
            level="deny",
            required_bump="minor",
            priority=3,
            source=source,
        ),
        LintOverride(scope="package", target="must_use_added", level="allow", source=source),
    ]


def test_workspace_lints_from_separate_directory(tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    package = workspace / "crates" / "demo"
    _write(workspace / ".semcheck.toml", ["[workspace.lints]", 'deprecated = "deny"'])
    _write(package / ".semcheck.toml", ["[lints]", 'deprecated = "allow"'])

    config = load_app_config(package, workspace_dir=workspace)
    scopes = sorted((item.scope, item.target, item.level) for item in config.overrides)
    assert scopes == [("package", "deprecated", "allow"), ("workspace", "deprecated", "deny")]
    assert config.workspace_source == str((workspace / ".semcheck.toml").resolve())


def test_workspace_lints_in_package_file(tmp_path: Path) -> None:
    _write(tmp_path / ".semcheck.toml", ["[workspace.lints]", 'removed = "warn"'])

    config = load_app_config(tmp_path)
    assert [(item.scope, item.target) for item in config.overrides] == [("workspace", "removed")]


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config file does not exist"):
        load_app_config(tmp_path, Path("missing.toml"))


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    _write(tmp_path / ".semcheck.toml", ["[lints", "oops"])

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_app_config(tmp_path)


def test_unknown_lint_keys_are_rejected(tmp_path: Path) -> None:
    _write(tmp_path / ".semcheck.toml", ["[lints]", 'function_missing = { lvl = "warn" }'])

    with pytest.raises(ConfigError, match="lints.function_missing has unknown keys: lvl"):
        load_app_config(tmp_path)


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
    _write(tmp_path / ".semcheck.toml", ["jobs = 0"])
    with pytest.raises(ConfigError, match="jobs must be > 0"):
        load_app_config(tmp_path)

    _write(tmp_path / ".semcheck.toml", ["[lints]", 'function_missing = "loud"'])
    with pytest.raises(ConfigError, match="level must be one of"):
        load_app_config(tmp_path)

    _write(tmp_path / ".semcheck.toml", ["[lints]", "function_missing = { priority = 1.5 }"])
    with pytest.raises(ConfigError, match="priority must be an integer"):
        load_app_config(tmp_path)


def test_default_template_round_trips(tmp_path: Path) -> None:
    path = tmp_path / ".semcheck.toml"
    path.write_text(default_config_template(), encoding="utf-8")

    config = load_app_config(tmp_path)
    assert config.format == "human"
    assert config.rule_timeout == DEFAULT_RULE_TIMEOUT
    assert config.overrides == []
