"""Configuration loading for semcheck.

Configuration is only ever read from the *current* version's package
directory (and, optionally, its workspace root). The baseline version's
files are never consulted, so they cannot silence findings about the
current version.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from semcheck.overrides import ConfigError, LintOverride, Scope

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".semcheck.toml", "semcheck.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("semcheck",)
DEFAULT_RULE_TIMEOUT = 30.0


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    witnesses: bool = True
    jobs: int | None = None
    rule_timeout: float = DEFAULT_RULE_TIMEOUT
    overrides: list[LintOverride] = field(default_factory=list)
    source: str | None = None
    workspace_source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "witnesses": self.witnesses,
            "jobs": self.jobs,
            "rule_timeout": self.rule_timeout,
            "overrides": [item.to_dict() for item in self.overrides],
            "source": self.source,
            "workspace_source": self.workspace_source,
        }


def load_app_config(
    package_dir: Path,
    config_path: Path | None = None,
    *,
    workspace_dir: Path | None = None,
) -> AppConfig:
    """Load config from an explicit path or the package's own files, plus workspace lints."""
    package_dir = package_dir.resolve()
    config = AppConfig()

    located = _locate(package_dir, config_path)
    if located is not None:
        path, mapping = located
        config = _from_mapping(mapping, source=str(path))
        config.overrides.extend(_parse_lints(mapping.get("lints"), "package", str(path)))
        workspace_table = _as_table(mapping.get("workspace"), "workspace")
        if workspace_dir is None or workspace_dir.resolve() == package_dir:
            config.overrides.extend(
                _parse_lints(workspace_table.get("lints"), "workspace", str(path))
            )

    if workspace_dir is not None and workspace_dir.resolve() != package_dir:
        workspace_located = _locate(workspace_dir.resolve(), None)
        if workspace_located is not None:
            workspace_path, workspace_mapping = workspace_located
            workspace_table = _as_table(workspace_mapping.get("workspace"), "workspace")
            config.overrides.extend(
                _parse_lints(workspace_table.get("lints"), "workspace", str(workspace_path))
            )
            config.workspace_source = str(workspace_path)

    logger.debug(
        "loaded %d lint overrides (package: %s, workspace: %s)",
        len(config.overrides),
        config.source or "defaults",
        config.workspace_source or "none",
    )
    return config


def default_config_template() -> str:
    """Return a starter config template users can customize."""
    return "\n".join(
        [
            'format = "human"',
            "witnesses = true",
            "# jobs = 4",
            "rule_timeout = 30.0",
            "",
            "# Package-level lint overrides. Keys are rule ids or lint group ids.",
            "[lints]",
            '# function_missing = "warn"',
            '# must_use_added = { level = "allow" }',
            '# enum_variant_added = { level = "deny", required-update = "minor", priority = 1 }',
            "",
            "# Workspace-level overrides apply to every package of the workspace;",
            "# package-level entries win over them at equal priority.",
            "[workspace.lints]",
            '# deprecated = { level = "deny" }',
            "",
        ]
    )


def _locate(directory: Path, config_path: Path | None) -> tuple[Path, dict[str, Any]] | None:
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (directory / config_path)
        if not resolved.exists():
            raise ConfigError("Config file does not exist", path=str(resolved))
        return resolved, _extract_config_mapping(_load_toml(resolved), source_path=resolved)

    for filename in CONFIG_FILENAMES:
        resolved = directory / filename
        if resolved.exists():
            return resolved, _extract_config_mapping(_load_toml(resolved), source_path=resolved)

    pyproject_path = directory / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return pyproject_path, mapping
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML: {exc}", path=str(path)) from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config: {exc.strerror or exc}", path=str(path)) from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    try:
        format_value = _as_choice(mapping.get("format", "human"), {"human", "json"}, "format")
        witnesses = _as_bool(mapping.get("witnesses", True), "witnesses")
        raw_jobs = mapping.get("jobs")
        jobs = None if raw_jobs is None else _as_int(raw_jobs, "jobs")
        if jobs is not None and jobs <= 0:
            raise ValueError("jobs must be > 0")
        rule_timeout = _as_float(mapping.get("rule_timeout", DEFAULT_RULE_TIMEOUT), "rule_timeout")
        if rule_timeout <= 0:
            raise ValueError("rule_timeout must be > 0")
    except ValueError as exc:
        raise ConfigError(str(exc), path=source) from exc

    return AppConfig(
        format=format_value,
        witnesses=witnesses,
        jobs=jobs,
        rule_timeout=rule_timeout,
        source=source,
    )


def _parse_lints(value: Any, scope: Scope, source: str) -> list[LintOverride]:
    """Parse ``name = "level"`` or ``name = { level, required-update, priority }`` entries."""
    prefix = "lints" if scope == "package" else "workspace.lints"
    try:
        table = _as_table(value, prefix)
    except ValueError as exc:
        raise ConfigError(str(exc), path=source) from exc

    overrides: list[LintOverride] = []
    for target in sorted(table):
        entry = table[target]
        field_name = f"{prefix}.{target}"
        if isinstance(entry, str):
            overrides.append(
                LintOverride(scope=scope, target=target, level=entry.lower(), source=source)
            )
            continue
        if not isinstance(entry, dict):
            raise ConfigError(f"{field_name} must be a string or a table", path=source)

        unknown_keys = set(entry) - {"level", "required-update", "required_update", "priority"}
        if unknown_keys:
            raise ConfigError(
                f"{field_name} has unknown keys: {', '.join(sorted(unknown_keys))}", path=source
            )
        try:
            level = entry.get("level")
            bump = entry.get("required-update", entry.get("required_update"))
            priority = entry.get("priority")
            overrides.append(
                LintOverride(
                    scope=scope,
                    target=target,
                    level=None if level is None else _as_str(level, f"{field_name}.level").lower(),
                    required_bump=None
                    if bump is None
                    else _as_str(bump, f"{field_name}.required-update").lower(),
                    priority=None
                    if priority is None
                    else _as_int(priority, f"{field_name}.priority"),
                    source=source,
                )
            )
        except ConfigError:
            raise
        except ValueError as exc:
            raise ConfigError(str(exc), path=source) from exc
    return overrides


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


def _as_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"{field_name} must be a number")
    return float(value)


def _as_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{field_name} must be true or false")
    return value
