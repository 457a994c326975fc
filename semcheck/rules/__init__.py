"""Rule catalog."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from semcheck.rules.attributes import attribute_rules
from semcheck.rules.base import CatalogRule, Rule
from semcheck.rules.exhaustiveness import exhaustiveness_rules
from semcheck.rules.generics import generics_rules
from semcheck.rules.hidden import hidden_rules
from semcheck.rules.layout import layout_rules
from semcheck.rules.removed import removal_rules
from semcheck.rules.sealing import sealing_rules
from semcheck.rules.signature import signature_rules
from semcheck.rules.structure import structure_rules


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and configuration."""

    rule_id: str
    description: str
    category: str
    groups: tuple[str, ...]
    default_level: str
    default_required_bump: str
    witness_template: str | None


@dataclass(frozen=True, slots=True)
class LintGroup:
    """A named set of rules that can be configured together.

    ``default_level`` and ``default_required_bump`` sit between the rule's own
    defaults and any user override; ``None`` leaves the rule default in place.
    """

    group_id: str
    description: str
    default_level: str | None = None
    default_required_bump: str | None = None


LINT_GROUPS: tuple[LintGroup, ...] = (
    LintGroup("removed", "Items and members that are no longer available."),
    LintGroup("doc_hidden", "Items and members newly hidden from the public API."),
    LintGroup("deprecated", "Newly deprecated items.", default_level="warn"),
    LintGroup("must_use_added", "Newly #[must_use] items."),
    LintGroup("target_features", "Functions requiring additional target features."),
    LintGroup("unsafety", "Changes to `unsafe` on functions and methods."),
    LintGroup("constness", "Functions and methods that are no longer const."),
    LintGroup("abi", "Calling convention and exported symbol changes."),
    LintGroup("exhaustiveness", "#[non_exhaustive] transitions."),
    LintGroup("layout", "Representation and discriminant changes."),
    LintGroup("sealing", "Changes to which traits downstream code can implement."),
    LintGroup("signature", "Parameter and return type changes."),
    LintGroup("generics", "Generic parameter changes."),
    LintGroup("structure", "Constructibility, variant shape and trait impl changes."),
    LintGroup(
        "future_compat",
        "Changes that are compatible today but commit to more API.",
        default_level="warn",
    ),
)


@dataclass(frozen=True, slots=True)
class _RuleSpec:
    rule_id: str
    rule: Rule
    description: str
    category: str
    groups: tuple[str, ...]


def all_rules() -> list[Rule]:
    """Instantiate the full catalog in its fixed order."""
    return [spec.rule for spec in _ordered_rule_specs()]


def list_rule_info() -> list[RuleInfo]:
    """Return metadata for every catalog rule."""
    info: list[RuleInfo] = []
    for rule in all_rules():
        info.append(
            RuleInfo(
                rule_id=rule.rule_id,
                description=rule.description,
                category=rule.category,
                groups=tuple(rule.groups),
                default_level=rule.default_level,
                default_required_bump=rule.default_required_bump,
                witness_template=rule.witness_template,
            )
        )
    return info


def list_lint_groups() -> list[LintGroup]:
    return list(LINT_GROUPS)


def witness_templates(rules: list[Rule]) -> dict[str, str]:
    return {
        rule.rule_id: rule.witness_template for rule in rules if rule.witness_template is not None
    }


def _ordered_rule_specs() -> list[_RuleSpec]:
    families: list[Callable[[], list[CatalogRule]]] = [
        removal_rules,
        hidden_rules,
        attribute_rules,
        exhaustiveness_rules,
        layout_rules,
        sealing_rules,
        signature_rules,
        generics_rules,
        structure_rules,
    ]
    specs: list[_RuleSpec] = []
    seen: set[str] = set()
    known_groups = {group.group_id for group in LINT_GROUPS}
    for family in families:
        for rule in family():
            if rule.rule_id in seen:
                raise ValueError(f"Duplicate rule id in catalog: {rule.rule_id}")
            unknown = [group for group in rule.groups if group not in known_groups]
            if unknown:
                raise ValueError(f"Rule {rule.rule_id} names unknown groups: {', '.join(unknown)}")
            seen.add(rule.rule_id)
            specs.append(_spec(rule))
    return specs


def _spec(rule: CatalogRule) -> _RuleSpec:
    return _RuleSpec(
        rule_id=rule.rule_id,
        rule=rule,
        description=rule.description,
        category=rule.category,
        groups=tuple(rule.groups),
    )
