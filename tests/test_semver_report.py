"""Tests for version classification and report aggregation."""

from __future__ import annotations

import pytest

from semcheck.evaluator import RuleRun
from semcheck.report import aggregate
from semcheck.rules.base import Finding
from semcheck.semver import (
    BUMP_ORDER,
    classify_version_change,
    max_bump,
    parse_version,
    satisfies,
)


@pytest.mark.parametrize(
    ("baseline", "current", "expected"),
    [
        ("1.2.3", "2.0.0", "major"),
        ("1.2.3", "1.3.0", "minor"),
        ("1.2.3", "1.2.4", "patch"),
        ("0.1.0", "0.2.0", "major"),
        ("0.1.0", "0.1.1", "minor"),
        ("0.0.1", "0.0.2", "major"),
        ("1.0.0-alpha.1", "1.0.0-alpha.2", "major"),
        ("1.0.0-rc.1", "1.0.0", "major"),
        ("1.0.0", "1.1.0-alpha.1", "minor"),
        ("1.0.0", "2.0.0-rc.1", "major"),
        ("1.2.3-beta", "1.2.4", "patch"),
        ("0.1.0-alpha", "0.1.1", "minor"),
        ("0.1.0-alpha", "0.2.0", "major"),
        ("1.2.3", "1.2.3+build.7", "not_changed"),
        ("1.2.3", "1.2.3", "not_changed"),
        (None, "1.2.3", "not_changed"),
        ("1.2", "1.3", "not_changed"),
    ],
)
def test_classify_version_change(baseline: str | None, current: str, expected: str) -> None:
    assert classify_version_change(baseline, current) == expected


def test_parse_version_rejects_garbage() -> None:
    assert str(parse_version("v1.2.3-beta+abc")) == "1.2.3-beta"
    with pytest.raises(ValueError, match="Invalid semantic version"):
        parse_version("01.2.3")


def test_bump_ordering_helpers() -> None:
    assert max_bump([]) is None
    assert max_bump(["patch", "major", "minor"]) == "major"
    assert satisfies("not_changed", None)
    assert satisfies("major", "minor")
    assert not satisfies("patch", "minor")


def _finding(rule_id: str, item: str, *, level: str = "deny", bump: str = "major") -> Finding:
    return Finding(
        rule_id=rule_id,
        item=item,
        level=level,  # type: ignore[arg-type]
        required_bump=bump,
        message=f"{item} changed",
    )


def test_aggregate_sorts_findings_and_takes_largest_bump() -> None:
    findings = [
        _finding("function_missing", "demo::b"),
        _finding("enum_variant_added", "demo::E", bump="minor"),
        _finding("function_missing", "demo::a"),
    ]

    report = aggregate(findings, "minor")

    assert [(f.rule_id, f.item) for f in report.findings] == [
        ("enum_variant_added", "demo::E"),
        ("function_missing", "demo::a"),
        ("function_missing", "demo::b"),
    ]
    assert report.required_bump == "major"
    assert report.success is False
    assert report.required_counts == {"major": 2, "minor": 1, "patch": 0}


def test_warnings_suggest_a_bump_without_requiring_it() -> None:
    findings = [
        _finding("function_marked_deprecated", "demo::f", level="warn", bump="minor"),
        _finding("function_missing", "demo::g", bump="patch"),
    ]

    report = aggregate(findings, "patch")

    assert report.required_bump == "patch"
    assert report.suggested_bump == "minor"
    assert report.required_counts == {"major": 0, "minor": 0, "patch": 1}
    assert report.suggested_counts == {"major": 0, "minor": 1, "patch": 0}
    assert report.level_counts == {"deny": 1, "warn": 1}
    assert report.success is True
    assert report.to_dict()["suggested_bump"] == "minor"


def test_warnings_alone_never_fail_the_check() -> None:
    report = aggregate(
        [_finding("function_marked_deprecated", "demo::f", level="warn")], "not_changed"
    )

    assert report.required_bump is None
    assert report.suggested_bump == "major"
    assert report.success is True


def test_required_bump_never_decreases_as_findings_are_added() -> None:
    findings: list[Finding] = []
    previous = 0
    for index, bump in enumerate(["patch", "minor", "patch", "major", "minor"]):
        findings.append(_finding("function_missing", f"demo::f{index}", bump=bump))
        rank = BUMP_ORDER[aggregate(findings, "major").required_bump or "not_changed"]
        assert rank >= previous
        previous = rank
    assert aggregate(findings, "minor").required_bump == "major"


def test_report_lists_additions_sorted() -> None:
    report = aggregate([], "minor", additions=["demo::z", "demo::a"])

    assert report.additions == ["demo::a", "demo::z"]
    payload = report.to_dict()
    assert payload["additions"] == ["demo::a", "demo::z"]
    assert payload["summary"]["additions"] == 2


def test_no_findings_passes_even_without_a_version_change() -> None:
    report = aggregate([], "not_changed")

    assert report.required_bump is None
    assert report.success is True
    assert report.to_dict()["summary"]["findings"] == 0


def test_not_changed_fails_when_anything_is_required() -> None:
    report = aggregate([_finding("x", "demo::x", bump="patch")], "not_changed")
    assert report.success is False


def test_failed_rule_run_forces_failure() -> None:
    runs = [
        RuleRun(rule_id="function_missing", status="ran", reason="completed"),
        RuleRun(rule_id="trait_newly_sealed", status="failed", reason="KeyError: 'x'"),
    ]

    report = aggregate([], "major", runs=runs)

    assert report.success is False
    payload = report.to_dict()
    assert payload["summary"]["rules_run"] == 2
    assert payload["summary"]["rule_errors"] == 1
    assert payload["errors"] == [
        {
            "rule_id": "trait_newly_sealed",
            "status": "failed",
            "reason": "KeyError: 'x'",
            "findings": 0,
        }
    ]
