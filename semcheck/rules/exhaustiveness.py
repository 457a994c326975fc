"""Rules for ``#[non_exhaustive]`` transitions on structs, enums and variants."""

from __future__ import annotations

from semcheck.identity import Side
from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import PairView
from semcheck.snapshot import Item

EXHAUSTIVENESS = "exhaustiveness"


def _all_variants_sealed(view: PairView, side: Side, enum: Item) -> bool:
    variants = view.members(side, enum, "variant")
    return bool(variants) and all(view.has_non_public_field(side, variant) for variant in variants)


class StructMarkedNonExhaustive(CatalogRule):
    """Struct literals and exhaustive patterns stop compiling downstream."""

    rule_id = "struct_marked_non_exhaustive"
    category = EXHAUSTIVENESS
    groups = ("exhaustiveness",)
    witness_template = "struct_literal"
    description = "A public struct that could be constructed downstream is now #[non_exhaustive]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("struct"):
            if old.non_exhaustive or not new.non_exhaustive:
                continue
            # Already impossible to build with a literal.
            if view.has_non_public_field("baseline", old):
                continue
            matches.append(
                view.match(
                    f"struct {view.identity(old)} is now #[non_exhaustive]",
                    baseline=old,
                    current=new,
                )
            )
        return matches


class EnumMarkedNonExhaustive(CatalogRule):
    """Exhaustive matches on the enum now need a wildcard arm."""

    rule_id = "enum_marked_non_exhaustive"
    category = EXHAUSTIVENESS
    groups = ("exhaustiveness",)
    witness_template = "exhaustive_match"
    description = "A public enum is now #[non_exhaustive]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("enum"):
            if old.non_exhaustive or not new.non_exhaustive:
                continue
            if _all_variants_sealed(view, "baseline", old) and _all_variants_sealed(
                view, "current", new
            ):
                continue
            matches.append(
                view.match(
                    f"enum {view.identity(old)} is now #[non_exhaustive]",
                    baseline=old,
                    current=new,
                )
            )
        return matches


class VariantMarkedNonExhaustive(CatalogRule):
    """The variant can no longer be constructed or matched without ``..``."""

    rule_id = "enum_variant_marked_non_exhaustive"
    category = EXHAUSTIVENESS
    groups = ("exhaustiveness",)
    witness_template = "variant_pattern"
    description = "A public enum variant is now #[non_exhaustive]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_enum, new_enum in view.matched("enum"):
            for old, new in view.member_pairs(old_enum, new_enum, "variant"):
                if new is None or not (old.public_api_eligible and new.public_api_eligible):
                    continue
                if old.non_exhaustive or not new.non_exhaustive:
                    continue
                if view.has_non_public_field("baseline", old):
                    continue
                identity = view.member_identity(old_enum, old)
                matches.append(
                    view.match(
                        f"variant {identity} is now #[non_exhaustive]",
                        baseline=old,
                        current=new,
                        item=identity,
                    )
                )
        return matches


class NoLongerNonExhaustive(CatalogRule):
    """Dropping ``#[non_exhaustive]`` commits to the current shape forever.

    Nothing breaks today, so this is a warning that asks for a minor bump,
    and only when the item actually becomes constructible downstream.
    """

    category = EXHAUSTIVENESS
    groups = ("exhaustiveness", "future_compat")
    default_level = "warn"
    default_required_bump = "minor"

    def __init__(self, rule_id: str, kind: str) -> None:
        self.rule_id = rule_id
        self.kind = kind
        noun = "enum variant" if kind == "variant" else kind
        self.noun = noun
        self.description = f"A public {noun} is no longer #[non_exhaustive]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new, identity in self._candidates(view):
            if not old.non_exhaustive or new.non_exhaustive:
                continue
            if self._still_sealed(view, new):
                continue
            matches.append(
                view.match(
                    f"{self.noun} {identity} is no longer #[non_exhaustive]",
                    baseline=old,
                    current=new,
                    item=identity,
                )
            )
        return matches

    def _candidates(self, view: PairView) -> list[tuple[Item, Item, str]]:
        if self.kind != "variant":
            return [(old, new, view.identity(old)) for old, new in view.matched(self.kind)]
        output: list[tuple[Item, Item, str]] = []
        for old_enum, new_enum in view.matched("enum"):
            for old, new in view.member_pairs(old_enum, new_enum, "variant"):
                if new is not None and old.public_api_eligible and new.public_api_eligible:
                    output.append((old, new, view.member_identity(old_enum, old)))
        return output

    def _still_sealed(self, view: PairView, new: Item) -> bool:
        if self.kind == "enum":
            return _all_variants_sealed(view, "current", new)
        return view.has_non_public_field("current", new)


def exhaustiveness_rules() -> list[CatalogRule]:
    return [
        StructMarkedNonExhaustive(),
        EnumMarkedNonExhaustive(),
        VariantMarkedNonExhaustive(),
        NoLongerNonExhaustive("struct_no_longer_non_exhaustive", "struct"),
        NoLongerNonExhaustive("enum_no_longer_non_exhaustive", "enum"),
        NoLongerNonExhaustive("enum_variant_no_longer_non_exhaustive", "variant"),
    ]
