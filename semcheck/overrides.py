"""Lint override resolution across configuration scopes.

Each rule's lint level and required bump are resolved independently. Every
override that targets the rule, or one of its lint groups, is a candidate;
the candidate with the highest ``(priority, scope)`` wins, where a missing
priority counts as 0 and package scope outranks workspace scope. Without any
candidate, the first of the rule's groups that declares a default applies,
then the rule's own default. Two candidates with equal ``(priority, scope)``
that disagree are a configuration error rather than an arbitrary pick.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from semcheck.rules import LintGroup
from semcheck.rules.base import LINT_LEVELS, Rule
from semcheck.semver import REQUIRED_BUMPS

logger = logging.getLogger(__name__)

Scope = Literal["workspace", "package"]
SCOPE_RANK: dict[str, int] = {"workspace": 1, "package": 2}


class ConfigError(ValueError):
    """Invalid or conflicting lint configuration."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


@dataclass(frozen=True, slots=True)
class LintOverride:
    """One ``[lints]`` entry: a level and/or required bump for a rule or group."""

    scope: Scope
    target: str
    level: str | None = None
    required_bump: str | None = None
    priority: int | None = None
    source: str | None = None

    def __post_init__(self) -> None:
        if self.scope not in SCOPE_RANK:
            raise ConfigError(f"Unknown override scope '{self.scope}'", path=self.source)
        if self.level is not None and self.level not in LINT_LEVELS:
            choices = ", ".join(LINT_LEVELS)
            raise ConfigError(
                f"lints.{self.target}: level must be one of: {choices}", path=self.source
            )
        if self.required_bump is not None and self.required_bump not in REQUIRED_BUMPS:
            choices = ", ".join(REQUIRED_BUMPS)
            raise ConfigError(
                f"lints.{self.target}: required-update must be one of: {choices}",
                path=self.source,
            )

    @property
    def rank(self) -> tuple[int, int]:
        return (self.priority or 0, SCOPE_RANK[self.scope])

    def describe(self) -> str:
        where = f" ({self.source})" if self.source else ""
        return f"{self.scope} override of '{self.target}'{where}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "target": self.target,
            "level": self.level,
            "required_bump": self.required_bump,
            "priority": self.priority,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class RuleConfig:
    rule_id: str
    level: str
    required_bump: str
    level_origin: str = "default"
    bump_origin: str = "default"

    @property
    def enabled(self) -> bool:
        return self.level != "allow"

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "required_bump": self.required_bump,
            "enabled": self.enabled,
            "level_origin": self.level_origin,
            "bump_origin": self.bump_origin,
        }


@dataclass(slots=True)
class EffectiveConfig:
    rules: dict[str, RuleConfig] = field(default_factory=dict)

    def get(self, rule_id: str) -> RuleConfig:
        return self.rules[rule_id]

    def is_enabled(self, rule_id: str) -> bool:
        return self.rules[rule_id].enabled

    def enabled_ids(self) -> list[str]:
        return [rule_id for rule_id, config in self.rules.items() if config.enabled]

    def to_dict(self) -> dict[str, Any]:
        return {rule_id: config.to_dict() for rule_id, config in self.rules.items()}


def resolve_config(
    rules: list[Rule],
    groups: Iterable[LintGroup],
    overrides: Iterable[LintOverride],
) -> EffectiveConfig:
    """Resolve one ``(level, required_bump)`` pair per rule."""
    group_table = {group.group_id: group for group in groups}
    override_list = list(overrides)
    known_targets = {rule.rule_id for rule in rules} | set(group_table)
    unknown = sorted({item.target for item in override_list if item.target not in known_targets})
    if unknown:
        sources = sorted(
            {item.source for item in override_list if item.target in unknown and item.source}
        )
        raise ConfigError(
            f"Unknown lints or lint groups: {', '.join(unknown)}",
            path=", ".join(sources) or None,
        )

    effective = EffectiveConfig()
    for rule in rules:
        targets = {rule.rule_id, *rule.groups}
        candidates = [item for item in override_list if item.target in targets]

        level, level_origin = _pick(rule.rule_id, "level", candidates)
        if level is None:
            level, level_origin = _group_default(rule, group_table, "default_level")
        if level is None:
            level, level_origin = rule.default_level, "default"

        bump, bump_origin = _pick(rule.rule_id, "required_bump", candidates)
        if bump is None:
            bump, bump_origin = _group_default(rule, group_table, "default_required_bump")
        if bump is None:
            bump, bump_origin = rule.default_required_bump, "default"

        effective.rules[rule.rule_id] = RuleConfig(
            rule_id=rule.rule_id,
            level=level,
            required_bump=bump,
            level_origin=level_origin,
            bump_origin=bump_origin,
        )

    disabled = [rule_id for rule_id, config in effective.rules.items() if not config.enabled]
    if disabled:
        logger.debug("disabled by configuration: %s", ", ".join(disabled))
    return effective


def _pick(
    rule_id: str,
    attribute: str,
    candidates: list[LintOverride],
) -> tuple[str | None, str]:
    relevant = [item for item in candidates if getattr(item, attribute) is not None]
    if not relevant:
        return None, "default"
    top_rank = max(item.rank for item in relevant)
    winners = [item for item in relevant if item.rank == top_rank]
    values = {getattr(item, attribute) for item in winners}
    if len(values) > 1:
        described = "; ".join(
            f"{item.describe()} sets {getattr(item, attribute)}" for item in winners
        )
        raise ConfigError(
            f"Conflicting {attribute.replace('_', ' ')} for '{rule_id}' at equal precedence: "
            f"{described}. Add an explicit priority to one of them."
        )
    winner = winners[0]
    return getattr(winner, attribute), f"{winner.scope}:{winner.target}"


def _group_default(
    rule: Rule,
    group_table: dict[str, LintGroup],
    attribute: str,
) -> tuple[str | None, str]:
    for group_id in rule.groups:
        group = group_table.get(group_id)
        if group is None:
            continue
        value = getattr(group, attribute)
        if value is not None:
            return value, f"group:{group_id}"
    return None, "default"
