"""Generic parameter rules for types, functions and inherent methods."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable

from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.snapshot import GenericParam, Item

GENERICS = "generics"

GenericsCheck = Callable[[Item, Item], str | None]


def _explicit(generics: tuple[GenericParam, ...], *kinds: str) -> list[GenericParam]:
    return [param for param in generics if param.kind in kinds and not param.synthetic]


def kind_sequence(item: Item) -> list[str]:
    """Kinds of the parameters a turbofish or type path spells out, lifetimes excluded."""
    return [param.kind for param in _explicit(item.generics, "type", "const")]


def generics_reordered(old: Item, new: Item) -> str | None:
    old_kinds = kind_sequence(old)
    new_kinds = kind_sequence(new)
    if old_kinds == new_kinds or Counter(old_kinds) != Counter(new_kinds):
        return None
    old_text = ", ".join(param.name for param in _explicit(old.generics, "type", "const"))
    new_text = ", ".join(param.name for param in _explicit(new.generics, "type", "const"))
    return f"reordered its generic parameters from <{old_text}> to <{new_text}>"


def mismatched_lifetimes(old: Item, new: Item) -> str | None:
    old_count = len(_explicit(old.generics, "lifetime"))
    new_count = len(_explicit(new.generics, "lifetime"))
    if old_count == new_count:
        return None
    return f"now has {new_count} lifetime parameters instead of {old_count}"


def _requires_more(kind: str, noun: str) -> GenericsCheck:
    def check(old: Item, new: Item) -> str | None:
        available = len(_explicit(old.generics, kind))
        required = len([param for param in _explicit(new.generics, kind) if not param.has_default])
        if required <= available:
            return None
        return f"now requires {required} {noun} parameters, previously accepted {available}"

    return check


def _requires_different(kind: str, noun: str) -> GenericsCheck:
    def check(old: Item, new: Item) -> str | None:
        old_count = len(_explicit(old.generics, kind))
        new_count = len(_explicit(new.generics, kind))
        if old_count == new_count:
            return None
        return f"now takes {new_count} {noun} parameters instead of {old_count}"

    return check


class GenericsRule(CatalogRule):
    category = GENERICS
    groups = ("generics",)

    def __init__(
        self,
        rule_id: str,
        *,
        kinds: tuple[str, ...],
        check: GenericsCheck,
        description: str,
        inherent_methods: bool = False,
    ) -> None:
        self.rule_id = rule_id
        self.kinds = kinds
        self.check = check
        self.description = description
        self.inherent_methods = inherent_methods

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched(*self.kinds):
            if self.inherent_methods:
                matches.extend(self._methods(view, old, new))
                continue
            reason = self.check(old, new)
            if reason is not None:
                message = f"{old.kind} {view.identity(old)} {reason}"
                matches.append(view.match(message, baseline=old, current=new))
        return matches

    def _methods(self, view: PairView, old_owner: Item, new_owner: Item) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.inherent_member_pairs(old_owner, new_owner, "method"):
            if new is None or not view.inherent_member_public_api("current", new):
                continue
            reason = self.check(old, new)
            if reason is None:
                continue
            identity = view.member_identity(old_owner, old)
            matches.append(
                view.match(f"method {identity} {reason}", baseline=old, current=new, item=identity)
            )
        return matches


def generics_rules() -> list[CatalogRule]:
    return [
        GenericsRule(
            "type_generics_reordered",
            kinds=TYPE_KINDS,
            check=generics_reordered,
            description="A public type reordered generic parameters of different kinds.",
        ),
        GenericsRule(
            "function_generics_reordered",
            kinds=("function",),
            check=generics_reordered,
            description="A public function reordered generic parameters of different kinds.",
        ),
        GenericsRule(
            "inherent_method_generics_reordered",
            kinds=TYPE_KINDS,
            check=generics_reordered,
            description="A public method reordered generic parameters of different kinds.",
            inherent_methods=True,
        ),
        GenericsRule(
            "type_mismatched_generic_lifetimes",
            kinds=TYPE_KINDS,
            check=mismatched_lifetimes,
            description="A public type changed its number of lifetime parameters.",
        ),
        GenericsRule(
            "type_requires_more_generic_type_params",
            kinds=TYPE_KINDS + ("trait",),
            check=_requires_more("type", "type"),
            description="A public type or trait requires more generic type parameters.",
        ),
        GenericsRule(
            "type_requires_more_const_generic_params",
            kinds=TYPE_KINDS + ("trait",),
            check=_requires_more("const", "const"),
            description="A public type or trait requires more const generic parameters.",
        ),
        GenericsRule(
            "function_requires_different_generic_type_params",
            kinds=("function",),
            check=_requires_different("type", "generic type"),
            description="A public function changed its number of generic type parameters.",
        ),
        GenericsRule(
            "function_requires_different_const_generic_params",
            kinds=("function",),
            check=_requires_different("const", "const generic"),
            description="A public function changed its number of const generic parameters.",
        ),
    ]
