"""Rules for items and members that disappear from the public API."""

from __future__ import annotations

from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.snapshot import Item

ITEM_REMOVED = "item_removed"


class MissingItemRule(CatalogRule):
    """An importable item has no remaining path in the new version."""

    category = ITEM_REMOVED
    groups = ("removed",)
    witness_template = "import_item"

    def __init__(self, rule_id: str, kinds: tuple[str, ...], noun: str) -> None:
        self.rule_id = rule_id
        self.kinds = kinds
        self.noun = noun
        self.description = f"A public {noun} was removed or is no longer importable."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(
                f"{self.noun} {view.identity(item)} is no longer importable",
                baseline=item,
            )
            for item in view.removed(*self.kinds)
            if self._applies(view, item)
        ]

    def _applies(self, view: PairView, item: Item) -> bool:
        return True


class DeclarativeMacroMissing(MissingItemRule):
    """An exported ``macro_rules!`` macro no longer exists at all."""

    def __init__(self) -> None:
        super().__init__("declarative_macro_missing", ("macro",), "macro")

    def _applies(self, view: PairView, item: Item) -> bool:
        return not _current_macro_named(view, item.name)


class MacroNoLongerExported(CatalogRule):
    """A macro still exists but is no longer exported."""

    rule_id = "macro_no_longer_exported"
    category = ITEM_REMOVED
    groups = ("removed",)
    witness_template = "import_item"
    description = "A macro is still defined but is no longer exported."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(f"macro {item.name}! is no longer exported", baseline=item)
            for item in view.removed("macro")
            if _current_macro_named(view, item.name)
        ]


def _current_macro_named(view: PairView, name: str | None) -> bool:
    return any(
        item.kind == "macro" and item.name == name for item in view.current.items.values()
    )


class MissingMemberRule(CatalogRule):
    """A member of a still-public owner is gone or no longer public."""

    category = ITEM_REMOVED
    groups = ("removed",)

    def __init__(
        self,
        rule_id: str,
        *,
        owner_kinds: tuple[str, ...],
        member_kind: str,
        noun: str,
        witness_template: str | None = None,
        inherent: bool = False,
    ) -> None:
        self.rule_id = rule_id
        self.owner_kinds = owner_kinds
        self.member_kind = member_kind
        self.noun = noun
        self.inherent = inherent
        self.witness_template = witness_template
        self.description = f"A public {noun} was removed from a type that is still public."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_owner, current_owner in view.matched(*self.owner_kinds):
            if not self._owner_comparable(baseline_owner, current_owner):
                continue
            if self.inherent:
                pairs = view.inherent_member_pairs(baseline_owner, current_owner, self.member_kind)
            else:
                pairs = [
                    (old, new)
                    for old, new in view.member_pairs(
                        baseline_owner, current_owner, self.member_kind
                    )
                    if old.public_api_eligible
                ]
            for old, new in pairs:
                if new is not None and new.is_public:
                    continue
                matches.append(
                    view.match(
                        f"{self.noun} {old.name} of {view.identity(baseline_owner)} "
                        "is missing or no longer public",
                        baseline=old,
                        item=view.member_identity(baseline_owner, old),
                        facts={"owner": view.identity(baseline_owner), "member": old.name or ""},
                    )
                )
        return matches

    def _owner_comparable(self, baseline_owner: Item, current_owner: Item) -> bool:
        if self.member_kind == "struct_field":
            return baseline_owner.struct_kind == current_owner.struct_kind
        return True


class EnumVariantFieldMissing(CatalogRule):
    """A field was removed from an enum variant that still exists."""

    rule_id = "enum_variant_field_missing"
    category = ITEM_REMOVED
    groups = ("removed",)
    witness_template = "variant_pattern"
    description = "A field of a public enum variant was removed."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_enum, current_enum in view.matched("enum"):
            for old_variant, new_variant in view.member_pairs(
                baseline_enum, current_enum, "variant"
            ):
                if new_variant is None or not old_variant.public_api_eligible:
                    continue
                if not new_variant.public_api_eligible:
                    continue
                if old_variant.struct_kind != new_variant.struct_kind:
                    continue
                variant_path = view.member_identity(baseline_enum, old_variant)
                for old_field, new_field in view.member_pairs(
                    old_variant, new_variant, "struct_field"
                ):
                    if new_field is not None or not old_field.public_api_eligible:
                        continue
                    matches.append(
                        view.match(
                            f"field {old_field.name} of variant {variant_path} is missing",
                            baseline=old_field,
                            item=f"{variant_path}::{old_field.name}",
                            facts={
                                "owner": view.identity(baseline_enum),
                                "variant": old_variant.name or "",
                                "member": old_field.name or "",
                            },
                        )
                    )
        return matches


class TraitItemMissing(CatalogRule):
    """A method, associated type or constant was removed from a public trait."""

    category = ITEM_REMOVED
    groups = ("removed",)

    def __init__(self, rule_id: str, *, member_kind: str, noun: str) -> None:
        self.rule_id = rule_id
        self.member_kind = member_kind
        self.noun = noun
        self.description = f"A trait {noun} was removed from a public trait."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_trait, current_trait in view.matched("trait"):
            for old, new in view.member_pairs(baseline_trait, current_trait, self.member_kind):
                if new is not None or not old.public_api_eligible:
                    continue
                matches.append(
                    view.match(
                        f"{self.noun} {old.name} of trait {view.identity(baseline_trait)} "
                        "is missing",
                        baseline=old,
                        item=view.member_identity(baseline_trait, old),
                    )
                )
        return matches


def removal_rules() -> list[CatalogRule]:
    return [
        MissingItemRule("struct_missing", ("struct",), "struct"),
        MissingItemRule("enum_missing", ("enum",), "enum"),
        MissingItemRule("union_missing", ("union",), "union"),
        MissingItemRule("trait_missing", ("trait",), "trait"),
        MissingItemRule("function_missing", ("function",), "function"),
        MissingItemRule("module_missing", ("module",), "module"),
        MissingItemRule("pub_module_level_const_missing", ("constant",), "constant"),
        MissingItemRule("pub_static_missing", ("static",), "static"),
        DeclarativeMacroMissing(),
        MissingItemRule("proc_macro_missing", ("proc_macro",), "procedural macro"),
        MacroNoLongerExported(),
        MissingMemberRule(
            "enum_variant_missing",
            owner_kinds=("enum",),
            member_kind="variant",
            noun="variant",
            witness_template="variant_pattern",
        ),
        MissingMemberRule(
            "struct_pub_field_missing",
            owner_kinds=("struct",),
            member_kind="struct_field",
            noun="field",
            witness_template="field_access",
        ),
        MissingMemberRule(
            "union_field_missing",
            owner_kinds=("union",),
            member_kind="struct_field",
            noun="field",
            witness_template="field_access",
        ),
        EnumVariantFieldMissing(),
        MissingMemberRule(
            "inherent_method_missing",
            owner_kinds=TYPE_KINDS,
            member_kind="method",
            noun="method",
            witness_template="method_call",
            inherent=True,
        ),
        MissingMemberRule(
            "inherent_associated_pub_const_missing",
            owner_kinds=TYPE_KINDS,
            member_kind="assoc_const",
            noun="associated constant",
            inherent=True,
        ),
        TraitItemMissing("trait_method_missing", member_kind="method", noun="method"),
        TraitItemMissing(
            "trait_associated_type_removed", member_kind="assoc_type", noun="associated type"
        ),
        TraitItemMissing(
            "trait_associated_const_removed",
            member_kind="assoc_const",
            noun="associated constant",
        ),
    ]
