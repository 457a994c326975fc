"""Trait sealing analysis and the rules that depend on it.

A trait is sealed when downstream code cannot implement it. Sealing is
*unconditional* when some supertrait, required item or required method
signature refers to an item that is not importable at all, and
*public-API* sealed when the dependency is importable only through
``#[doc(hidden)]`` paths. Adding required items to a sealed trait is not
breaking, so those rules only look at traits unsealed in both versions.
"""

from __future__ import annotations

from typing import Literal

from semcheck.identity import PathIndex, Side
from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import PairView
from semcheck.snapshot import Item

SealKind = Literal["unsealed", "public_api_sealed", "unconditionally_sealed"]
SEAL_ORDER: dict[str, int] = {
    "unsealed": 0,
    "public_api_sealed": 1,
    "unconditionally_sealed": 2,
}
SEALING = "sealing"


def trait_sealing(view: PairView, side: Side, trait: Item) -> SealKind:
    return _sealing(view.resolver.index(side), trait, frozenset())


def _sealing(index: PathIndex, trait: Item, seen: frozenset[str]) -> SealKind:
    if trait.id in seen:
        return "unsealed"
    seen = seen | {trait.id}
    snapshot = index.snapshot
    state: SealKind = "unsealed"

    for supertrait_id in trait.supertraits:
        supertrait = snapshot.get(supertrait_id)
        if supertrait is None:
            continue
        if not index.is_importable(supertrait.id):
            return "unconditionally_sealed"
        if not index.is_public_api(supertrait.id):
            state = _stronger(state, "public_api_sealed")
        state = _stronger(state, _sealing(index, supertrait, seen))

    for member in snapshot.children(trait, "method", "assoc_type", "assoc_const"):
        if member.has_default:
            continue
        if member.doc_hidden and not member.deprecated:
            state = _stronger(state, "public_api_sealed")
        refs = list(member.output_refs) + list(member.refs)
        for param in member.params:
            refs.extend(param.refs)
        for ref in refs:
            if snapshot.get(ref) is None:
                continue
            if not index.is_importable(ref):
                return "unconditionally_sealed"
            if not index.is_public_api(ref):
                state = _stronger(state, "public_api_sealed")
    return state


def _stronger(left: SealKind, right: SealKind) -> SealKind:
    return left if SEAL_ORDER[left] >= SEAL_ORDER[right] else right


def unsealed_in_both(view: PairView, old: Item, new: Item) -> bool:
    return (
        trait_sealing(view, "baseline", old) == "unsealed"
        and trait_sealing(view, "current", new) == "unsealed"
    )


class TraitNewlySealed(CatalogRule):
    """A trait downstream code could implement can no longer be implemented."""

    rule_id = "trait_newly_sealed"
    category = SEALING
    groups = ("sealing",)
    witness_template = "trait_impl"
    description = "A previously implementable public trait is now sealed."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("trait"):
            if trait_sealing(view, "baseline", old) != "unsealed":
                continue
            state = trait_sealing(view, "current", new)
            if state == "unsealed":
                continue
            kind = "unconditionally" if state == "unconditionally_sealed" else "public-API"
            matches.append(
                view.match(
                    f"trait {view.identity(old)} is now {kind} sealed",
                    baseline=old,
                    current=new,
                    facts={"sealing": state},
                )
            )
        return matches


class SealedTraitBecameUnsealed(CatalogRule):
    """A sealed trait can now be implemented downstream, which is a new commitment."""

    rule_id = "sealed_trait_became_unsealed"
    category = SEALING
    groups = ("sealing", "future_compat")
    default_level = "warn"
    default_required_bump = "minor"
    description = "A sealed public trait became implementable downstream."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(
                f"trait {view.identity(old)} is no longer sealed",
                baseline=old,
                current=new,
            )
            for old, new in view.matched("trait")
            if trait_sealing(view, "baseline", old) != "unsealed"
            and trait_sealing(view, "current", new) == "unsealed"
        ]


class TraitRequiredItemAdded(CatalogRule):
    """A new item without a default breaks every downstream implementation."""

    category = SEALING
    groups = ("sealing",)
    witness_template = "trait_impl"

    def __init__(self, rule_id: str, *, member_kind: str, noun: str) -> None:
        self.rule_id = rule_id
        self.member_kind = member_kind
        self.noun = noun
        self.description = f"A required {noun} was added to an unsealed public trait."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("trait"):
            if not unsealed_in_both(view, old, new):
                continue
            known = {member.name for member in view.trait_items("baseline", old, self.member_kind)}
            for member in view.trait_items("current", new, self.member_kind):
                if member.name in known or member.has_default:
                    continue
                matches.append(
                    view.match(
                        f"trait {view.identity(old)} gained required {self.noun} {member.name}",
                        baseline=old,
                        current=member,
                        item=view.identity(old),
                        facts={"member": member.name or ""},
                    )
                )
        return matches


class TraitDefaultRemoved(CatalogRule):
    """A trait item lost its default, so implementors must now provide it."""

    category = SEALING
    groups = ("sealing",)
    witness_template = "trait_impl"

    def __init__(self, rule_id: str, *, member_kind: str, noun: str) -> None:
        self.rule_id = rule_id
        self.member_kind = member_kind
        self.noun = noun
        self.description = f"A trait {noun} lost its default value or implementation."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_trait, new_trait in view.matched("trait"):
            if not unsealed_in_both(view, old_trait, new_trait):
                continue
            for old, new in view.member_pairs(old_trait, new_trait, self.member_kind):
                if new is None or not old.has_default or new.has_default:
                    continue
                matches.append(
                    view.match(
                        f"{self.noun} {view.member_identity(old_trait, old)} "
                        "no longer has a default",
                        baseline=old,
                        current=new,
                        item=view.member_identity(old_trait, old),
                    )
                )
        return matches


def supertrait_names(view: PairView, side: Side, trait: Item) -> set[str]:
    """Comparable supertrait names: local traits by identity, external ones verbatim."""
    snapshot = view.snapshot(side)
    names: set[str] = set()
    for supertrait_id in trait.supertraits:
        supertrait = snapshot.get(supertrait_id)
        if supertrait is None:
            names.add(supertrait_id)
        else:
            names.add(view.identity(supertrait, side))
    return names


class TraitAddedSupertrait(CatalogRule):
    """Implementors of an unsealed trait must now also implement the new supertrait."""

    rule_id = "trait_added_supertrait"
    category = SEALING
    groups = ("sealing",)
    description = "An unsealed public trait gained a supertrait."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("trait"):
            if not unsealed_in_both(view, old, new):
                continue
            added = supertrait_names(view, "current", new) - supertrait_names(
                view, "baseline", old
            )
            for name in sorted(added):
                matches.append(
                    view.match(
                        f"trait {view.identity(old)} gained supertrait {name}",
                        baseline=old,
                        current=new,
                        facts={"supertrait": name},
                    )
                )
        return matches


class TraitRemovedSupertrait(CatalogRule):
    """Code relying on the supertrait bound through this trait stops compiling."""

    rule_id = "trait_removed_supertrait"
    category = SEALING
    groups = ("sealing",)
    description = "A public trait lost a supertrait."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("trait"):
            removed = supertrait_names(view, "baseline", old) - supertrait_names(
                view, "current", new
            )
            for name in sorted(removed):
                matches.append(
                    view.match(
                        f"trait {view.identity(old)} no longer has supertrait {name}",
                        baseline=old,
                        current=new,
                        facts={"supertrait": name},
                    )
                )
        return matches


def sealing_rules() -> list[CatalogRule]:
    return [
        TraitNewlySealed(),
        SealedTraitBecameUnsealed(),
        TraitRequiredItemAdded("trait_method_added", member_kind="method", noun="method"),
        TraitRequiredItemAdded(
            "trait_associated_type_added", member_kind="assoc_type", noun="associated type"
        ),
        TraitRequiredItemAdded(
            "trait_associated_const_added",
            member_kind="assoc_const",
            noun="associated constant",
        ),
        TraitDefaultRemoved(
            "trait_method_default_impl_removed", member_kind="method", noun="method"
        ),
        TraitDefaultRemoved(
            "trait_associated_const_default_removed",
            member_kind="assoc_const",
            noun="associated constant",
        ),
        TraitAddedSupertrait(),
        TraitRemovedSupertrait(),
    ]
