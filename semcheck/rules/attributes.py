"""Attribute-transition rules: deprecation, must_use, unsafety, constness, ABI, target features.

Each rule fires only on a transition between the two versions, never on an
attribute that is present (or absent) in both. Member rules stay quiet when
the owning item is itself going through the same transition.
"""

from __future__ import annotations

from collections.abc import Callable

from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.rules.sealing import trait_sealing
from semcheck.snapshot import Item

ATTRIBUTE_CHANGED = "attribute_changed"

Transition = Callable[[Item, Item], bool]


def flag_added(attr: str) -> Transition:
    def check(old: Item, new: Item) -> bool:
        return not getattr(old, attr) and bool(getattr(new, attr))

    return check


def flag_removed(attr: str) -> Transition:
    def check(old: Item, new: Item) -> bool:
        return bool(getattr(old, attr)) and not getattr(new, attr)

    return check


def _split_abi(abi: str) -> tuple[str, bool]:
    abi = abi.strip() or "Rust"
    if abi.endswith("-unwind"):
        return abi[: -len("-unwind")], True
    return abi, False


def abi_changed(old: Item, new: Item) -> bool:
    return _split_abi(old.abi)[0] != _split_abi(new.abi)[0]


def abi_no_longer_unwind(old: Item, new: Item) -> bool:
    old_abi, old_unwind = _split_abi(old.abi)
    new_abi, new_unwind = _split_abi(new.abi)
    return old_abi == new_abi and old_unwind and not new_unwind


def export_name_changed(old: Item, new: Item) -> bool:
    return old.export_name is not None and old.export_name != new.export_name


def safe_requires_more_features(old: Item, new: Item) -> bool:
    return not old.unsafe and not new.unsafe and bool(new.target_features - old.target_features)


def unsafe_requires_more_features(old: Item, new: Item) -> bool:
    return old.unsafe and new.unsafe and bool(new.target_features - old.target_features)


class ItemTransitionRule(CatalogRule):
    """Transition on a top-level importable item."""

    category = ATTRIBUTE_CHANGED

    def __init__(
        self,
        rule_id: str,
        *,
        kinds: tuple[str, ...],
        transition: Transition,
        summary: str,
        groups: tuple[str, ...],
        required_bump: str = "major",
        level: str = "deny",
        witness_template: str | None = None,
    ) -> None:
        self.rule_id = rule_id
        self.kinds = kinds
        self.transition = transition
        self.summary = summary
        self.groups = groups
        self.default_required_bump = required_bump
        self.default_level = level
        self.witness_template = witness_template
        self.description = f"A public item {summary}."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(
                f"{old.kind} {view.identity(old)} {self.summary}",
                baseline=old,
                current=new,
                facts=_transition_facts(old, new),
            )
            for old, new in view.matched(*self.kinds)
            if self.transition(old, new)
        ]


class MemberTransitionRule(CatalogRule):
    """Transition on a member of a still-public owner.

    ``owner_transition`` names the owner-level change that takes precedence
    over this member-level one.
    """

    category = ATTRIBUTE_CHANGED

    def __init__(
        self,
        rule_id: str,
        *,
        owner_kinds: tuple[str, ...],
        member_kind: str,
        transition: Transition,
        summary: str,
        groups: tuple[str, ...],
        owner_transition: Transition | None = None,
        inherent: bool = False,
        trait_filter: Callable[[PairView, Item, Item], bool] | None = None,
        required_bump: str = "major",
        level: str = "deny",
        witness_template: str | None = None,
    ) -> None:
        self.rule_id = rule_id
        self.owner_kinds = owner_kinds
        self.member_kind = member_kind
        self.transition = transition
        self.summary = summary
        self.groups = groups
        self.owner_transition = owner_transition
        self.inherent = inherent
        self.trait_filter = trait_filter
        self.default_required_bump = required_bump
        self.default_level = level
        self.witness_template = witness_template
        self.description = f"A public {member_kind.replace('_', ' ')} {summary}."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_owner, new_owner in view.matched(*self.owner_kinds):
            if self.owner_transition is not None and self.owner_transition(old_owner, new_owner):
                continue
            if self.trait_filter is not None and not self.trait_filter(view, old_owner, new_owner):
                continue
            for old, new in self._pairs(view, old_owner, new_owner):
                if not self.transition(old, new):
                    continue
                identity = view.member_identity(old_owner, old)
                matches.append(
                    view.match(
                        f"{identity} {self.summary}",
                        baseline=old,
                        current=new,
                        item=identity,
                        facts=_transition_facts(old, new),
                    )
                )
        return matches

    def _pairs(self, view: PairView, old_owner: Item, new_owner: Item) -> list[tuple[Item, Item]]:
        if self.inherent:
            candidates = view.inherent_member_pairs(old_owner, new_owner, self.member_kind)
            return [
                (old, new)
                for old, new in candidates
                if new is not None and view.inherent_member_public_api("current", new)
            ]
        return [
            (old, new)
            for old, new in view.member_pairs(old_owner, new_owner, self.member_kind)
            if new is not None and old.public_api_eligible and new.public_api_eligible
        ]


def _transition_facts(old: Item, new: Item) -> dict[str, str]:
    facts: dict[str, str] = {}
    if new.deprecation_note:
        facts["note"] = new.deprecation_note
    elif new.must_use_note:
        facts["note"] = new.must_use_note
    added_features = sorted(new.target_features - old.target_features)
    if added_features:
        facts["target_features"] = ", ".join(added_features)
    if old.abi != new.abi:
        facts["abi"] = f"{old.abi} -> {new.abi}"
    if old.export_name != new.export_name and old.export_name is not None:
        facts["export_name"] = f"{old.export_name} -> {new.export_name or '(mangled)'}"
    return facts


def _unsealed_in_current(view: PairView, old: Item, new: Item) -> bool:
    return trait_sealing(view, "current", new) == "unsealed"


def _deprecation_rules() -> list[CatalogRule]:
    added = flag_added("deprecated")
    common = {"groups": ("deprecated",), "required_bump": "minor", "summary": "is now deprecated"}
    return [
        ItemTransitionRule(
            "function_marked_deprecated", kinds=("function",), transition=added, **common
        ),
        ItemTransitionRule("type_marked_deprecated", kinds=TYPE_KINDS, transition=added, **common),
        ItemTransitionRule("trait_marked_deprecated", kinds=("trait",), transition=added, **common),
        ItemTransitionRule(
            "macro_marked_deprecated", kinds=("macro", "proc_macro"), transition=added, **common
        ),
        ItemTransitionRule(
            "global_value_marked_deprecated",
            kinds=("constant", "static"),
            transition=added,
            **common,
        ),
        MemberTransitionRule(
            "enum_variant_marked_deprecated",
            owner_kinds=("enum",),
            member_kind="variant",
            transition=added,
            owner_transition=added,
            **common,
        ),
        MemberTransitionRule(
            "struct_field_marked_deprecated",
            owner_kinds=("struct", "union"),
            member_kind="struct_field",
            transition=added,
            owner_transition=added,
            **common,
        ),
        MemberTransitionRule(
            "inherent_method_marked_deprecated",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=added,
            owner_transition=added,
            inherent=True,
            **common,
        ),
        MemberTransitionRule(
            "trait_method_marked_deprecated",
            owner_kinds=("trait",),
            member_kind="method",
            transition=added,
            owner_transition=added,
            **common,
        ),
    ]


def _must_use_rules() -> list[CatalogRule]:
    added = flag_added("must_use")
    common = {
        "groups": ("must_use_added",),
        "required_bump": "minor",
        "summary": "is now #[must_use]",
    }
    return [
        ItemTransitionRule(
            "function_must_use_added", kinds=("function",), transition=added, **common
        ),
        ItemTransitionRule("struct_must_use_added", kinds=("struct",), transition=added, **common),
        ItemTransitionRule("enum_must_use_added", kinds=("enum",), transition=added, **common),
        ItemTransitionRule("union_must_use_added", kinds=("union",), transition=added, **common),
        ItemTransitionRule("trait_must_use_added", kinds=("trait",), transition=added, **common),
        MemberTransitionRule(
            "inherent_method_must_use_added",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=added,
            inherent=True,
            **common,
        ),
        MemberTransitionRule(
            "trait_method_must_use_added",
            owner_kinds=("trait",),
            member_kind="method",
            transition=added,
            **common,
        ),
    ]


def _target_feature_rules() -> list[CatalogRule]:
    summary = "requires more target features"
    return [
        ItemTransitionRule(
            "safe_function_requires_more_target_features",
            kinds=("function",),
            transition=safe_requires_more_features,
            summary=summary,
            groups=("target_features",),
        ),
        ItemTransitionRule(
            "unsafe_function_requires_more_target_features",
            kinds=("function",),
            transition=unsafe_requires_more_features,
            summary=summary,
            groups=("target_features",),
            level="warn",
        ),
        MemberTransitionRule(
            "safe_inherent_method_requires_more_target_features",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=safe_requires_more_features,
            summary=summary,
            groups=("target_features",),
            inherent=True,
        ),
        MemberTransitionRule(
            "unsafe_inherent_method_requires_more_target_features",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=unsafe_requires_more_features,
            summary=summary,
            groups=("target_features",),
            inherent=True,
            level="warn",
        ),
    ]


def _unsafety_and_constness_rules() -> list[CatalogRule]:
    unsafe_added = flag_added("unsafe")
    const_removed = flag_removed("const")
    return [
        ItemTransitionRule(
            "function_unsafe_added",
            kinds=("function",),
            transition=unsafe_added,
            summary="is now unsafe",
            groups=("unsafety",),
        ),
        MemberTransitionRule(
            "inherent_method_unsafe_added",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=unsafe_added,
            summary="is now unsafe",
            groups=("unsafety",),
            inherent=True,
        ),
        MemberTransitionRule(
            "trait_method_unsafe_added",
            owner_kinds=("trait",),
            member_kind="method",
            transition=unsafe_added,
            summary="is now unsafe",
            groups=("unsafety",),
        ),
        MemberTransitionRule(
            "trait_method_unsafe_removed",
            owner_kinds=("trait",),
            member_kind="method",
            transition=flag_removed("unsafe"),
            summary="is no longer unsafe, so existing unsafe impls no longer match",
            groups=("unsafety",),
            trait_filter=_unsealed_in_current,
        ),
        ItemTransitionRule(
            "function_const_removed",
            kinds=("function",),
            transition=const_removed,
            summary="is no longer const",
            groups=("constness",),
        ),
        MemberTransitionRule(
            "inherent_method_const_removed",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=const_removed,
            summary="is no longer const",
            groups=("constness",),
            inherent=True,
        ),
    ]


def _abi_rules() -> list[CatalogRule]:
    return [
        ItemTransitionRule(
            "function_changed_abi",
            kinds=("function",),
            transition=abi_changed,
            summary="changed its calling convention",
            groups=("abi",),
        ),
        ItemTransitionRule(
            "function_abi_no_longer_unwind",
            kinds=("function",),
            transition=abi_no_longer_unwind,
            summary="no longer allows unwinding across its ABI boundary",
            groups=("abi",),
        ),
        ItemTransitionRule(
            "function_export_name_changed",
            kinds=("function",),
            transition=export_name_changed,
            summary="changed its exported symbol name",
            groups=("abi",),
        ),
        MemberTransitionRule(
            "inherent_method_export_name_changed",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            transition=export_name_changed,
            summary="changed its exported symbol name",
            groups=("abi",),
            inherent=True,
        ),
    ]


def attribute_rules() -> list[CatalogRule]:
    return [
        *_deprecation_rules(),
        *_must_use_rules(),
        *_target_feature_rules(),
        *_unsafety_and_constness_rules(),
        *_abi_rules(),
    ]
