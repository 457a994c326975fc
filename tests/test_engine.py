"""End-to-end tests for the evaluate entry point."""

from __future__ import annotations

import json
import threading

import pytest

from semcheck.engine import evaluate
from semcheck.overrides import ConfigError, LintOverride
from semcheck.rules import all_rules
from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import PairView
from tests.helpers_snapshot import SnapshotBuilder, make_pair


class _RaisingRule(CatalogRule):
    rule_id = "always_raises"
    category = "test"
    description = "Raises on every run."

    def __init__(self) -> None:
        self.calls = 0

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        self.calls += 1
        raise RuntimeError("boom")


class _BlockingRule(CatalogRule):
    rule_id = "blocks"
    category = "test"
    description = "Waits until released."

    def __init__(self) -> None:
        self.release = threading.Event()

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        self.release.wait(timeout=10)
        return []


def _library() -> tuple[SnapshotBuilder, SnapshotBuilder]:
    baseline = SnapshotBuilder()
    net = baseline.add("module", "net")
    socket = baseline.add("struct", "Socket", parent=net, struct_kind="plain")
    baseline.add("struct_field", "fd", parent=socket, type="i32")
    baseline.add("function", "connect", parent=net, params=[{"name": "addr", "type": "&str"}])
    color = baseline.add("enum", "Color")
    baseline.add("variant", "Red", parent=color, struct_kind="unit")
    baseline.add("function", "parse", params=[{"name": "input", "type": "&str"}])

    current = baseline.copy(version="1.1.0")
    for item_id in ("net::Socket::fd", "net::Socket", "net::connect", "net"):
        current.remove(item_id)
    current.add("variant", "Blue", parent="Color", struct_kind="unit")
    current.set("parse", params=[{"name": "input", "type": "String"}])
    return baseline, current


def test_removed_module_reports_each_item_once() -> None:
    baseline, current = _library()

    report = evaluate(make_pair(baseline, current))
    by_rule = report.findings_by_rule()

    assert [f.item for f in by_rule["module_missing"]] == ["demo::net"]
    assert [f.item for f in by_rule["struct_missing"]] == ["demo::net::Socket"]
    assert [f.item for f in by_rule["function_missing"]] == ["demo::net::connect"]
    assert "struct_pub_field_missing" not in by_rule
    assert report.required_bump == "major"
    assert report.detected_bump == "minor"
    assert report.success is False


def test_evaluate_is_idempotent() -> None:
    baseline, current = _library()
    pair = make_pair(baseline, current)

    first = evaluate(pair, jobs=4)
    second = evaluate(pair, jobs=1)

    assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(
        second.to_dict(), sort_keys=True
    )
    keys = [(f.rule_id, f.item) for f in first.findings]
    assert keys == sorted(keys)


def test_release_type_overrides_detected_bump() -> None:
    baseline, current = _library()
    pair = make_pair(baseline, current)

    assert evaluate(pair, release_type="major").success is True
    assert evaluate(pair, release_type="major").detected_bump == "major"
    with pytest.raises(ValueError, match="release type must be one of"):
        evaluate(pair, release_type="huge")


def test_overrides_change_levels_and_required_bumps() -> None:
    baseline, current = _library()
    overrides = [
        LintOverride(scope="package", target="removed", level="allow"),
        LintOverride(scope="package", target="function_parameter_type_changed", level="allow"),
        LintOverride(scope="package", target="enum_variant_added", required_bump="minor"),
    ]

    report = evaluate(make_pair(baseline, current), overrides)

    assert [f.rule_id for f in report.findings] == ["enum_variant_added"]
    assert report.required_bump == "minor"
    assert report.success is True
    assert all(run.rule_id != "function_missing" for run in report.runs)


def test_raising_rule_is_isolated() -> None:
    baseline, current = _library()
    raising = _RaisingRule()

    report = evaluate(make_pair(baseline, current), rules=[*all_rules(), raising])

    assert raising.calls == 1
    assert [run.rule_id for run in report.errors] == ["always_raises"]
    assert report.errors[0].reason == "RuntimeError: boom"
    assert "function_missing" in report.findings_by_rule()
    assert report.success is False


def test_slow_rule_times_out_without_blocking_others() -> None:
    baseline, current = _library()
    blocking = _BlockingRule()
    try:
        report = evaluate(
            make_pair(baseline, current),
            release_type="major",
            rule_timeout=0.5,
            rules=[blocking, *all_rules()],
        )
    finally:
        blocking.release.set()

    assert [(run.rule_id, run.status) for run in report.errors] == [("blocks", "timed_out")]
    assert "function_missing" in report.findings_by_rule()
    assert report.success is False


def test_hung_rule_does_not_starve_queued_rules_on_one_worker() -> None:
    baseline, current = _library()
    blocking = _BlockingRule()
    try:
        report = evaluate(
            make_pair(baseline, current),
            jobs=1,
            rule_timeout=0.5,
            rules=[blocking, *all_rules()],
        )
        abandoned = [t for t in threading.enumerate() if t.name == "semcheck-rule-blocks"]
        assert abandoned and all(thread.daemon for thread in abandoned)
    finally:
        blocking.release.set()

    assert [(run.rule_id, run.status) for run in report.errors] == [("blocks", "timed_out")]
    assert report.runs[0].rule_id == "blocks"
    assert all(run.status == "ran" for run in report.runs[1:])
    assert [f.item for f in report.findings_by_rule()["struct_missing"]] == ["demo::net::Socket"]



def test_configuration_errors_raise_before_any_rule_runs() -> None:
    baseline, current = _library()
    raising = _RaisingRule()

    with pytest.raises(ConfigError, match="Unknown lints or lint groups: bogus"):
        evaluate(
            make_pair(baseline, current),
            [LintOverride(scope="package", target="bogus", level="warn")],
            rules=[raising],
        )
    assert raising.calls == 0


def test_report_carries_additions_and_finding_facts() -> None:
    baseline, current = _library()
    current.add("function", "render")

    payload = evaluate(make_pair(baseline, current), witnesses=False).to_dict()

    assert "demo::render" in payload["additions"]
    assert "demo::parse" not in payload["additions"]
    changed = [
        f for f in payload["findings"] if f["rule_id"] == "function_parameter_type_changed"
    ]
    assert changed[0]["facts"] == {
        "new_signature": "fn parse(input: String)",
        "old_signature": "fn parse(input: &str)",
    }
