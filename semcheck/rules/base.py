"""Base rule protocol and match/finding models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol

from semcheck.snapshot import Span

if TYPE_CHECKING:
    from semcheck.rules.query import PairView

LintLevel = Literal["allow", "warn", "deny"]
LINT_LEVELS = ("allow", "warn", "deny")


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """A raw match emitted by a rule before configuration is applied."""

    item: str
    message: str
    span: Span | None = None
    baseline_id: str | None = None
    current_id: str | None = None
    facts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Finding:
    """A configured breaking-change finding."""

    rule_id: str
    item: str
    level: LintLevel
    required_bump: str
    message: str
    span: Span | None = None
    baseline_id: str | None = None
    current_id: str | None = None
    facts: dict[str, str] = field(default_factory=dict)

    @property
    def location(self) -> str:
        return str(self.span) if self.span is not None else ""

    def sort_key(self) -> tuple[str, str, str, str]:
        return (self.rule_id, self.item, self.location, self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "item": self.item,
            "level": self.level,
            "required_bump": self.required_bump,
            "message": self.message,
            "location": self.location or None,
            "facts": dict(sorted(self.facts.items())),
        }


class Rule(Protocol):
    """Protocol for catalog rules."""

    rule_id: str
    category: str
    description: str
    groups: tuple[str, ...]
    default_level: LintLevel
    default_required_bump: str
    witness_template: str | None

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        """Inspect the snapshot pair and return raw matches."""


class CatalogRule:
    """Defaults shared by catalog rules; subclasses set ``rule_id`` and ``evaluate``."""

    rule_id = ""
    category = ""
    description = ""
    groups: tuple[str, ...] = ()
    default_level: LintLevel = "deny"
    default_required_bump = "major"
    witness_template: str | None = None

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        raise NotImplementedError
