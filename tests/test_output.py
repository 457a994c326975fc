"""Tests for human and JSON report rendering."""

from __future__ import annotations

import json

import click

from semcheck import __version__
from semcheck.evaluator import RuleRun
from semcheck.output import render_human, render_json
from semcheck.report import aggregate
from semcheck.rules.base import Finding
from semcheck.witness import Witness


def _finding(rule_id: str, *, level: str = "deny", bump: str = "major") -> Finding:
    return Finding(
        rule_id=rule_id,
        item="demo::Status",
        level=level,  # type: ignore[arg-type]
        required_bump=bump,
        message="enum demo::Status gained variant Pending",
    )


def test_human_output_groups_findings_and_shows_witness_notes() -> None:
    findings = [
        _finding("enum_variant_added"),
        _finding("enum_marked_deprecated", level="warn", bump="minor"),
    ]
    witnesses = [
        Witness(
            rule_id="enum_variant_added",
            item="demo::Status",
            template="exhaustive_match",
            snippet="fn witness() {}",
            hint="an exhaustive match on demo::Status is no longer exhaustive",
        ),
        Witness(
            rule_id="enum_marked_deprecated",
            item="demo::Status",
            template="import_item",
            failure="not rendered",
        ),
    ]
    report = aggregate(findings, "minor", witnesses=witnesses)

    text = click.unstyle(render_human(report, crate="demo"))

    assert "--- FAIL enum_variant_added (major) ---" in text
    assert "--- WARN enum_marked_deprecated (minor) ---" in text
    assert (
        "  hint: an exhaustive match on demo::Status is no longer exhaustive\n"
        "  note: downstream code like this breaks:\n"
        "    fn witness() {}"
    ) in text
    assert "  note: no witness available (not rendered)" in text
    assert text.splitlines()[-2:] == [
        "WARN demo: produced 0 major, 1 minor and 0 patch level warnings",
        "FAIL demo: semver requires new major version: 1 major, 0 minor and 0 patch checks failed",
    ]


def test_warnings_above_the_required_bump_are_called_out() -> None:
    report = aggregate(
        [_finding("enum_marked_deprecated", level="warn", bump="minor")],
        "patch",
        additions=["demo::Mode"],
    )

    lines = click.unstyle(render_human(report, crate="demo")).splitlines()

    assert lines[-3:] == [
        "INFO 1 public items added",
        "WARN demo: produced 0 major, 1 minor and 0 patch level warnings; "
        "warnings suggest new minor version",
        "PASS demo: no semver update required",
    ]


def test_human_output_lists_finding_facts() -> None:
    finding = Finding(
        rule_id="enum_discriminant_changed",
        item="demo::Status::Ready",
        level="deny",
        required_bump="major",
        message="variant demo::Status::Ready changed discriminant from 1 to 2",
        facts={"old_discriminant": "1", "new_discriminant": "2"},
    )

    text = click.unstyle(render_human(aggregate([finding], "patch")))

    assert "    new_discriminant: 2\n    old_discriminant: 1" in text


def test_human_output_reports_incomplete_runs() -> None:
    runs = [RuleRun(rule_id="trait_newly_sealed", status="timed_out", reason="exceeded 1.0s")]
    report = aggregate([], "patch", runs=runs)

    lines = click.unstyle(render_human(report)).splitlines()

    assert lines == [
        "ERROR trait_newly_sealed: exceeded 1.0s",
        "FAIL 1 rules failed to run; the result is incomplete",
    ]


def test_json_output_is_stable_and_carries_meta() -> None:
    report = aggregate([_finding("enum_variant_added", bump="minor")], "minor")

    first = render_json(report, crate="demo")
    assert first == render_json(report, crate="demo")
    payload = json.loads(first)
    assert payload["meta"] == {"crate": "demo", "version": __version__}
    assert payload["success"] is True
    assert payload["summary"]["levels"] == {"deny": 1, "warn": 0}
    assert payload["findings"][0]["witness"] is None
    assert payload["findings"][0]["facts"] == {}
    assert payload["suggested_bump"] is None
    assert "elapsed_ms" not in first
