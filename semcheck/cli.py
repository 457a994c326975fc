"""CLI entrypoint for semcheck."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import typer

from semcheck import __version__
from semcheck.config import AppConfig, default_config_template, load_app_config
from semcheck.engine import effective_config, evaluate
from semcheck.overrides import ConfigError, EffectiveConfig
from semcheck.output import render_human, render_json
from semcheck.rules import list_lint_groups, list_rule_info
from semcheck.semver import REQUIRED_BUMPS
from semcheck.snapshot import SnapshotError, SnapshotPair, load_snapshot_pair

app = typer.Typer(
    name="semcheck",
    no_args_is_help=True,
    help="Classify API changes between two library snapshots and check the version bump.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """Root command callback."""
    _ = version


@app.command("check")
def check_command(
    baseline: Annotated[Path, typer.Option(help="Snapshot JSON of the released version.")],
    current: Annotated[Path, typer.Option(help="Snapshot JSON of the new version.")],
    package_dir: Annotated[
        Path, typer.Option(help="Directory of the new version's package configuration.")
    ] = Path("."),
    workspace_dir: Annotated[
        Path | None, typer.Option(help="Workspace root holding [workspace.lints].")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
    release_type: Annotated[
        str | None,
        typer.Option(help="Use this bump instead of comparing versions: major|minor|patch."),
    ] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    witnesses: Annotated[
        bool | None,
        typer.Option("--witnesses/--no-witnesses", help="Render example breaking code."),
    ] = None,
    jobs: Annotated[int | None, typer.Option(help="Worker threads for rules.")] = None,
    rule_timeout: Annotated[
        float | None, typer.Option(help="Seconds a single rule may run.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable debug logging.")] = False,
) -> None:
    """Check that the version bump covers every detected API change."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    app_config = _load_config_or_raise(package_dir, config_file, workspace_dir)
    output_format = _choice_or_default(
        value=format,
        default=app_config.format,
        allowed={"human", "json"},
        field_name="--format",
    )
    if release_type is not None:
        release_type = _choice_or_default(
            value=release_type,
            default="major",
            allowed=set(REQUIRED_BUMPS),
            field_name="--release-type",
        )
    if jobs is not None and jobs <= 0:
        raise typer.BadParameter("jobs must be > 0", param_hint="--jobs")
    if rule_timeout is not None and rule_timeout <= 0:
        raise typer.BadParameter("rule timeout must be > 0", param_hint="--rule-timeout")

    pair = _load_pair_or_raise(baseline, current)
    try:
        report = evaluate(
            pair,
            app_config.overrides,
            release_type=release_type,
            jobs=jobs if jobs is not None else app_config.jobs,
            rule_timeout=rule_timeout if rule_timeout is not None else app_config.rule_timeout,
            witnesses=witnesses if witnesses is not None else app_config.witnesses,
        )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc

    crate = pair.current.crate
    if output_format == "json":
        typer.echo(render_json(report, crate=crate))
    else:
        typer.echo(render_human(report, crate=crate))

    if not report.success:
        raise typer.Exit(code=1)


@app.command("rules")
def rules_command(
    package_dir: Annotated[Path, typer.Option(help="Package directory.")] = Path("."),
    workspace_dir: Annotated[Path | None, typer.Option(help="Workspace root.")] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List catalog rules with their effective level and required bump."""
    output_format = _choice_or_default(
        value=format, default="human", allowed={"human", "json"}, field_name="--format"
    )
    app_config = _load_config_or_raise(package_dir, config_file, workspace_dir)
    effective = _resolve_or_raise(app_config)
    rule_info = list_rule_info()

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "description": item.description,
                    "category": item.category,
                    "groups": list(item.groups),
                    "default_level": item.default_level,
                    "default_required_bump": item.default_required_bump,
                    "level": effective.get(item.rule_id).level,
                    "required_bump": effective.get(item.rule_id).required_bump,
                    "witness_template": item.witness_template,
                }
                for item in rule_info
            ],
            "groups": [
                {
                    "group_id": group.group_id,
                    "description": group.description,
                    "default_level": group.default_level,
                    "default_required_bump": group.default_required_bump,
                }
                for group in list_lint_groups()
            ],
            "meta": {"config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in rule_info:
        rule_config = effective.get(item.rule_id)
        lines.append(
            f"- {item.rule_id} [{rule_config.level}, {rule_config.required_bump}] "
            f"- {item.description}"
        )
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    package_dir: Annotated[Path, typer.Option(help="Package directory.")] = Path("."),
    workspace_dir: Annotated[Path | None, typer.Option(help="Workspace root.")] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _choice_or_default(
        value=format, default="human", allowed={"human", "json"}, field_name="--format"
    )
    app_config = _load_config_or_raise(package_dir, config_file, workspace_dir)
    effective = _resolve_or_raise(app_config)
    payload = app_config.to_dict()
    payload["overridden_rules"] = {
        rule_id: rule_config.to_dict()
        for rule_id, rule_config in effective.rules.items()
        if rule_config.level_origin != "default" or rule_config.bump_origin != "default"
    }
    payload["disabled_rule_ids"] = [
        rule_id for rule_id, rule_config in effective.rules.items() if not rule_config.enabled
    ]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- workspace_source: {payload['workspace_source'] or 'none'}",
        f"- format: {payload['format']}",
        f"- witnesses: {payload['witnesses']}",
        f"- jobs: {payload['jobs'] or 'auto'}",
        f"- rule_timeout: {payload['rule_timeout']}",
        f"- disabled_rule_ids: {payload['disabled_rule_ids']}",
    ]
    for rule_id, rule_config in payload["overridden_rules"].items():
        lines.append(
            f"- {rule_id}: {rule_config['level']} ({rule_config['level_origin']}), "
            f"{rule_config['required_bump']} ({rule_config['bump_origin']})"
        )
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".semcheck.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Replace an existing config file."),
    ] = False,
) -> None:
    """Write a commented .semcheck.toml with every lint table."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"{out_path} already exists; pass --force to replace it.", param_hint="--out"
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Created {out_path}")


@app.command("config-validate")
def config_validate_command(
    package_dir: Annotated[Path, typer.Option(help="Package directory.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".semcheck.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file, including lint override conflicts."""
    output_format = _choice_or_default(
        value=format, default="human", allowed={"human", "json"}, field_name="--format"
    )
    app_config = _load_config_or_raise(package_dir, config_file, None)
    effective = _resolve_or_raise(app_config)
    payload = {
        "ok": True,
        "source": app_config.source,
        "overrides": len(app_config.overrides),
        "disabled_rule_ids": [
            rule_id for rule_id, rule_config in effective.rules.items() if not rule_config.enabled
        ],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- overrides: {payload['overrides']}",
                f"- disabled_rule_ids: {payload['disabled_rule_ids']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _load_config_or_raise(
    package_dir: Path, config_file: Path | None, workspace_dir: Path | None
) -> AppConfig:
    try:
        return load_app_config(package_dir, config_path=config_file, workspace_dir=workspace_dir)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _resolve_or_raise(app_config: AppConfig) -> EffectiveConfig:
    try:
        return effective_config(app_config.overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.lints") from exc


def _load_pair_or_raise(baseline: Path, current: Path) -> SnapshotPair:
    try:
        return load_snapshot_pair(baseline, current)
    except SnapshotError as exc:
        raise typer.BadParameter(str(exc), param_hint="snapshot") from exc


def _choice_or_default(
    *,
    value: str | None,
    default: str,
    allowed: set[str],
    field_name: str,
) -> str:
    resolved = (value or default).lower()
    if resolved not in allowed:
        choices = ", ".join(sorted(allowed))
        raise typer.BadParameter(f"{field_name} must be one of: {choices}", param_hint=field_name)
    return resolved
