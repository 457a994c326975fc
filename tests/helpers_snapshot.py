"""Helpers for building interface snapshots in tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from semcheck.rules import all_rules
from semcheck.rules.base import RuleMatch
from semcheck.rules.query import PairView
from semcheck.snapshot import Snapshot, SnapshotPair, parse_snapshot


class SnapshotBuilder:
    """Accumulates snapshot items; ``build`` parses them like a real file."""

    def __init__(self, crate: str = "demo", version: str | None = "1.0.0") -> None:
        self.crate = crate
        self.version = version
        self.items: dict[str, dict[str, Any]] = {
            "root": {"kind": "module", "name": crate, "children": []}
        }

    def add(
        self,
        kind: str,
        name: str | None = None,
        *,
        parent: str | None = "root",
        item_id: str | None = None,
        **fields: Any,
    ) -> str:
        if item_id is None:
            base = name or kind
            item_id = base if parent in (None, "root") else f"{parent}::{base}"
        entry: dict[str, Any] = {"kind": kind, "children": []}
        if name is not None:
            entry["name"] = name
        entry.update(fields)
        self.items[item_id] = entry
        if parent is not None:
            self.items[parent]["children"].append(item_id)
        return item_id

    def set(self, item_id: str, **fields: Any) -> None:
        self.items[item_id].update(fields)

    def remove(self, item_id: str) -> None:
        del self.items[item_id]
        for entry in self.items.values():
            if item_id in entry.get("children", []):
                entry["children"].remove(item_id)

    def copy(self, *, version: str | None = None) -> SnapshotBuilder:
        other = SnapshotBuilder(self.crate, version if version is not None else self.version)
        other.items = copy.deepcopy(self.items)
        return other

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": 1,
            "crate": self.crate,
            "version": self.version,
            "root": "root",
            "items": copy.deepcopy(self.items),
        }

    def build(self) -> Snapshot:
        return parse_snapshot(self.to_dict(), source=f"{self.crate}@{self.version}")

    def write(self, path: Path) -> Path:
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return path


def make_pair(baseline: SnapshotBuilder, current: SnapshotBuilder) -> SnapshotPair:
    return SnapshotPair(baseline=baseline.build(), current=current.build())


def run_rule(rule_id: str, baseline: SnapshotBuilder, current: SnapshotBuilder) -> list[RuleMatch]:
    """Evaluate one catalog rule directly, without configuration."""
    rule = next(rule for rule in all_rules() if rule.rule_id == rule_id)
    return rule.evaluate(PairView(make_pair(baseline, current)))


def matched_items(rule_id: str, baseline: SnapshotBuilder, current: SnapshotBuilder) -> list[str]:
    return [match.item for match in run_rule(rule_id, baseline, current)]
