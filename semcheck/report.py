"""Report aggregation."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from semcheck.evaluator import RuleRun
from semcheck.rules.base import Finding
from semcheck.semver import max_bump, satisfies
from semcheck.witness import Witness


@dataclass(slots=True)
class Report:
    """Everything one check produced, ready for rendering."""

    findings: list[Finding] = field(default_factory=list)
    witnesses: list[Witness] = field(default_factory=list)
    runs: list[RuleRun] = field(default_factory=list)
    detected_bump: str = "not_changed"
    required_bump: str | None = None
    suggested_bump: str | None = None
    additions: list[str] = field(default_factory=list)
    success: bool = True

    @property
    def errors(self) -> list[RuleRun]:
        return [run for run in self.runs if run.failed]

    @property
    def level_counts(self) -> dict[str, int]:
        counts = Counter(finding.level for finding in self.findings)
        return {"deny": counts.get("deny", 0), "warn": counts.get("warn", 0)}

    @property
    def required_counts(self) -> dict[str, int]:
        return _bump_counts(finding for finding in self.findings if finding.level == "deny")

    @property
    def suggested_counts(self) -> dict[str, int]:
        return _bump_counts(finding for finding in self.findings if finding.level == "warn")

    def findings_by_rule(self) -> dict[str, list[Finding]]:
        grouped: dict[str, list[Finding]] = {}
        for finding in self.findings:
            grouped.setdefault(finding.rule_id, []).append(finding)
        return grouped

    def witness_for(self, finding: Finding) -> Witness | None:
        for witness in self.witnesses:
            if witness.rule_id == finding.rule_id and witness.item == finding.item:
                return witness
        return None

    def to_dict(self) -> dict[str, Any]:
        findings: list[dict[str, Any]] = []
        for finding in self.findings:
            payload = finding.to_dict()
            witness = self.witness_for(finding)
            payload["witness"] = witness.to_dict() if witness is not None else None
            findings.append(payload)
        return {
            "success": self.success,
            "detected_bump": self.detected_bump,
            "required_bump": self.required_bump,
            "suggested_bump": self.suggested_bump,
            "summary": {
                "findings": len(self.findings),
                "levels": self.level_counts,
                "required_bumps": self.required_counts,
                "suggested_bumps": self.suggested_counts,
                "additions": len(self.additions),
                "rules_run": len(self.runs),
                "rule_errors": len(self.errors),
            },
            "findings": findings,
            "additions": list(self.additions),
            "errors": [run.to_dict() for run in self.errors],
        }


def _bump_counts(findings: Iterable[Finding]) -> dict[str, int]:
    counts = Counter(finding.required_bump for finding in findings)
    return {bump: counts.get(bump, 0) for bump in ("major", "minor", "patch")}


def aggregate(
    findings: list[Finding],
    detected_bump: str,
    *,
    witnesses: list[Witness] | None = None,
    runs: list[RuleRun] | None = None,
    additions: list[str] | None = None,
) -> Report:
    """Combine findings into a verdict.

    ``required_bump`` is the largest bump a deny-level finding asks for and
    ``suggested_bump`` the largest a warn-level finding asks for; either is
    ``None`` when no such finding exists. Only the required bump decides the
    verdict: the check succeeds when the detected bump meets it and no rule
    failed to run, since a failed rule may have hidden a breaking change.
    """
    ordered = sorted(findings, key=Finding.sort_key)
    run_list = list(runs or [])
    required = max_bump([finding.required_bump for finding in ordered if finding.level == "deny"])
    suggested = max_bump([finding.required_bump for finding in ordered if finding.level == "warn"])
    success = satisfies(detected_bump, required) and not any(run.failed for run in run_list)
    return Report(
        findings=ordered,
        witnesses=list(witnesses or []),
        runs=run_list,
        detected_bump=detected_bump,
        required_bump=required,
        suggested_bump=suggested,
        additions=sorted(additions or []),
        success=success,
    )
