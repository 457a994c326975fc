"""Structural rules: constructibility, variant shape, statics and trait impls."""

from __future__ import annotations

from semcheck.identity import Side
from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.snapshot import Item

CONSTRUCTIBILITY = "constructibility"

AUTO_TRAITS = ("Send", "Sync", "Unpin", "UnwindSafe", "RefUnwindSafe")
DERIVE_TRAITS = (
    "Clone",
    "Copy",
    "Debug",
    "Default",
    "PartialEq",
    "Eq",
    "PartialOrd",
    "Ord",
    "Hash",
)


def externally_constructible(view: PairView, side: Side, struct: Item) -> bool:
    """A struct literal works downstream: exhaustive and every field public API."""
    return not struct.non_exhaustive and not view.has_non_public_field(side, struct)


class ConstructibleStructAddsField(CatalogRule):
    """Struct literals written against the old fields stop compiling."""

    category = CONSTRUCTIBILITY
    groups = ("structure",)
    witness_template = "struct_literal"

    def __init__(self, rule_id: str, *, public: bool) -> None:
        self.rule_id = rule_id
        self.public = public
        visibility = "public" if public else "private"
        self.description = f"A struct constructible downstream gained a {visibility} field."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("struct"):
            if old.struct_kind != new.struct_kind or new.non_exhaustive:
                continue
            if not externally_constructible(view, "baseline", old):
                continue
            known = {field.name for field in view.members("baseline", old, "struct_field")}
            for field in view.members("current", new, "struct_field"):
                if field.name in known or field.public_api_eligible != self.public:
                    continue
                kind = "public" if self.public else "private"
                matches.append(
                    view.match(
                        f"struct {view.identity(old)} gained {kind} field {field.name}",
                        baseline=old,
                        current=field,
                        item=view.identity(old),
                        facts={"member": field.name or ""},
                    )
                )
        return matches


class StructChangedKind(CatalogRule):
    """Switching between plain, tuple and unit struct syntax breaks literals and patterns."""

    rule_id = "struct_changed_kind"
    category = CONSTRUCTIBILITY
    groups = ("structure",)
    description = "A public struct changed between plain, tuple and unit form."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("struct"):
            old_kind = old.struct_kind or "plain"
            new_kind = new.struct_kind or "plain"
            if old_kind == new_kind:
                continue
            observable = old_kind == "unit" or any(
                field.public_api_eligible for field in view.members("baseline", old, "struct_field")
            )
            if not observable:
                continue
            matches.append(
                view.match(
                    f"struct {view.identity(old)} changed from {old_kind} to {new_kind} struct",
                    baseline=old,
                    current=new,
                )
            )
        return matches


class EnumVariantAdded(CatalogRule):
    """Exhaustive matches on an exhaustive enum miss the new variant."""

    rule_id = "enum_variant_added"
    category = CONSTRUCTIBILITY
    groups = ("structure",)
    witness_template = "exhaustive_match"
    description = "A variant was added to a public exhaustive enum."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("enum"):
            if old.non_exhaustive or new.non_exhaustive:
                continue
            known = {variant.name for variant in view.members("baseline", old, "variant")}
            for variant in view.members("current", new, "variant"):
                if variant.name in known or not variant.public_api_eligible:
                    continue
                matches.append(
                    view.match(
                        f"enum {view.identity(old)} gained variant {variant.name}",
                        baseline=old,
                        current=variant,
                        item=view.identity(old),
                        facts={"member": variant.name or ""},
                    )
                )
        return matches


def _variant_pairs(view: PairView, old_enum: Item, new_enum: Item) -> list[tuple[Item, Item]]:
    return [
        (old, new)
        for old, new in view.member_pairs(old_enum, new_enum, "variant")
        if new is not None and old.public_api_eligible and new.public_api_eligible
    ]


class EnumVariantFieldAdded(CatalogRule):
    """Patterns and literals naming every field of the variant stop compiling."""

    rule_id = "enum_variant_field_added"
    category = CONSTRUCTIBILITY
    groups = ("structure",)
    witness_template = "variant_pattern"
    description = "A field was added to an exhaustive variant of a public enum."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_enum, new_enum in view.matched("enum"):
            for old, new in _variant_pairs(view, old_enum, new_enum):
                if old.non_exhaustive or new.non_exhaustive:
                    continue
                if old.struct_kind != new.struct_kind:
                    continue
                known = {field.name for field in view.members("baseline", old, "struct_field")}
                identity = view.member_identity(old_enum, old)
                for field in view.members("current", new, "struct_field"):
                    if field.name in known:
                        continue
                    matches.append(
                        view.match(
                            f"variant {identity} gained field {field.name}",
                            baseline=old,
                            current=field,
                            item=identity,
                            facts={
                                "owner": view.identity(old_enum),
                                "variant": old.name or "",
                                "member": field.name or "",
                            },
                        )
                    )
        return matches


class EnumVariantChangedKind(CatalogRule):
    rule_id = "enum_variant_changed_kind"
    category = CONSTRUCTIBILITY
    groups = ("structure",)
    witness_template = "variant_pattern"
    description = "A public enum variant changed between plain, tuple and unit form."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_enum, new_enum in view.matched("enum"):
            for old, new in _variant_pairs(view, old_enum, new_enum):
                old_kind = old.struct_kind or "unit"
                new_kind = new.struct_kind or "unit"
                if old_kind == new_kind:
                    continue
                identity = view.member_identity(old_enum, old)
                matches.append(
                    view.match(
                        f"variant {identity} changed from {old_kind} to {new_kind} variant",
                        baseline=old,
                        current=new,
                        item=identity,
                        facts={"owner": view.identity(old_enum), "variant": old.name or ""},
                    )
                )
        return matches


class PubStaticMutNowImmutable(CatalogRule):
    rule_id = "pub_static_mut_now_immutable"
    category = CONSTRUCTIBILITY
    groups = ("structure",)
    description = "A public `static mut` is no longer mutable."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(
                f"static {view.identity(old)} is no longer mutable", baseline=old, current=new
            )
            for old, new in view.matched("static")
            if old.mutable and not new.mutable
        ]


class TraitImplRemoved(CatalogRule):
    """A public type no longer implements a trait downstream code may rely on."""

    category = CONSTRUCTIBILITY
    groups = ("structure",)

    def __init__(self, rule_id: str, *, traits: tuple[str, ...], description: str) -> None:
        self.rule_id = rule_id
        self.traits = traits
        self.description = description

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched(*TYPE_KINDS):
            old_traits = view.trait_impl_names("baseline", old)
            new_traits = view.trait_impl_names("current", new)
            for trait in self.traits:
                if trait in old_traits and trait not in new_traits:
                    matches.append(
                        view.match(
                            f"{old.kind} {view.identity(old)} no longer implements {trait}",
                            baseline=old,
                            current=new,
                            facts={"trait": trait},
                        )
                    )
        return matches


def structure_rules() -> list[CatalogRule]:
    return [
        ConstructibleStructAddsField("constructible_struct_adds_field", public=True),
        ConstructibleStructAddsField("constructible_struct_adds_private_field", public=False),
        StructChangedKind(),
        EnumVariantAdded(),
        EnumVariantFieldAdded(),
        EnumVariantChangedKind(),
        PubStaticMutNowImmutable(),
        TraitImplRemoved(
            "auto_trait_impl_removed",
            traits=AUTO_TRAITS,
            description="A public type stopped implementing an auto trait.",
        ),
        TraitImplRemoved(
            "derive_trait_impl_removed",
            traits=DERIVE_TRAITS,
            description="A public type stopped implementing a derivable trait.",
        ),
    ]
