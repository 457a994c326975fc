"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from semcheck import __version__
from semcheck.report import Report
from semcheck.rules import list_rule_info
from semcheck.rules.base import Finding
from semcheck.semver import BUMP_ORDER


def render_human(report: Report, *, crate: str | None = None) -> str:
    """Render findings, witnesses and the verdict in a compact colorized form."""
    lines: list[str] = []
    descriptions = {info.rule_id: info.description for info in list_rule_info()}

    for rule_id, findings in report.findings_by_rule().items():
        level = findings[0].level
        label, color = ("FAIL", "red") if level == "deny" else ("WARN", "yellow")
        header = f"--- {label} {rule_id} ({findings[0].required_bump}) ---"
        lines.append(click.style(header, fg=color, bold=True))
        if rule_id in descriptions:
            lines.append(descriptions[rule_id])
        for finding in findings:
            lines.append(_finding_line(finding))
            lines.extend(f"    {key}: {value}" for key, value in sorted(finding.facts.items()))
            witness = report.witness_for(finding)
            if witness is None:
                continue
            if witness.hint:
                lines.append(f"  hint: {witness.hint}")
            if witness.snippet is not None:
                lines.append("  note: downstream code like this breaks:")
                lines.extend(f"    {line}" for line in witness.snippet.splitlines())
            else:
                lines.append(f"  note: no witness available ({witness.failure})")
        lines.append("")

    for run in report.errors:
        lines.append(click.style(f"ERROR {run.rule_id}: {run.reason}", fg="red", bold=True))

    if report.additions:
        lines.append(f"INFO {len(report.additions)} public items added")
    warning_line = _warning_line(report, crate=crate)
    if warning_line:
        lines.append(warning_line)
    lines.append(_summary_line(report, crate=crate))
    return "\n".join(lines)


def _finding_line(finding: Finding) -> str:
    where = f" in {finding.location}" if finding.location else ""
    return f"  {finding.message}{where}"


def _counts_text(counts: dict[str, int]) -> str:
    return f"{counts['major']} major, {counts['minor']} minor and {counts['patch']} patch"


def _warning_line(report: Report, *, crate: str | None) -> str | None:
    if report.suggested_bump is None:
        return None
    subject = f"{crate}: " if crate else ""
    text = f"WARN {subject}produced {_counts_text(report.suggested_counts)} level warnings"
    required_rank = BUMP_ORDER[report.required_bump] if report.required_bump else 0
    if BUMP_ORDER[report.suggested_bump] > required_rank:
        text += f"; warnings suggest new {report.suggested_bump} version"
    return click.style(text, fg="yellow", bold=True)


def _summary_line(report: Report, *, crate: str | None) -> str:
    subject = f"{crate}: " if crate else ""
    if report.success:
        if report.required_bump is None:
            detail = "no semver update required"
        else:
            detail = f"{report.required_bump} update required, {report.detected_bump} detected"
        return click.style(f"PASS {subject}{detail}", fg="green", bold=True)

    if report.errors:
        return click.style(
            f"FAIL {subject}{len(report.errors)} rules failed to run; the result is incomplete",
            fg="red",
            bold=True,
        )
    return click.style(
        f"FAIL {subject}semver requires new {report.required_bump} version: "
        f"{_counts_text(report.required_counts)} checks failed",
        fg="red",
        bold=True,
    )


def render_json(report: Report, *, crate: str | None = None) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(report, crate=crate), sort_keys=True)


def build_json_payload(report: Report, *, crate: str | None = None) -> dict[str, Any]:
    """Build the JSON payload; it carries no timing so identical runs give identical bytes."""
    payload = report.to_dict()
    payload["meta"] = {"crate": crate, "version": __version__}
    return payload
