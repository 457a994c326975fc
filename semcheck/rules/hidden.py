"""Rules for items that remain defined but leave the public API via ``#[doc(hidden)]``."""

from __future__ import annotations

from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.snapshot import Item

HIDDEN = "hidden"


def _newly_hidden(old: Item, new: Item) -> bool:
    return not old.doc_hidden and new.doc_hidden and not new.deprecated


def _enclosing_module_public(view: PairView, item: Item) -> bool:
    parent = view.current.parent(item)
    if parent is None or parent.kind != "module":
        return True
    return view.is_public_api(parent, "current")


class ItemNowDocHidden(CatalogRule):
    """The item itself gained ``#[doc(hidden)]``.

    When an enclosing module is what became hidden, the item's own flag does
    not change and only ``module_now_doc_hidden`` reports it.
    """

    category = HIDDEN
    groups = ("doc_hidden",)
    witness_template = "import_item"

    def __init__(self, rule_id: str, kinds: tuple[str, ...], noun: str) -> None:
        self.rule_id = rule_id
        self.kinds = kinds
        self.noun = noun
        self.description = f"A public {noun} is now #[doc(hidden)]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        return [
            view.match(
                f"{self.noun} {view.identity(old)} is now #[doc(hidden)]",
                baseline=old,
                current=new,
            )
            for old, new in view.hidden(*self.kinds)
            if _newly_hidden(old, new) and _enclosing_module_public(view, new)
        ]


class MemberNowDocHidden(CatalogRule):
    """A field, variant or trait item of a still-public owner is now hidden."""

    category = HIDDEN
    groups = ("doc_hidden",)

    def __init__(
        self,
        rule_id: str,
        *,
        owner_kinds: tuple[str, ...],
        member_kind: str,
        noun: str,
    ) -> None:
        self.rule_id = rule_id
        self.owner_kinds = owner_kinds
        self.member_kind = member_kind
        self.noun = noun
        self.description = f"A public {noun} is now #[doc(hidden)]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_owner, current_owner in view.matched(*self.owner_kinds):
            for old, new in view.member_pairs(baseline_owner, current_owner, self.member_kind):
                if new is None or not old.public_api_eligible or not new.is_public:
                    continue
                if _newly_hidden(old, new):
                    matches.append(
                        view.match(
                            f"{self.noun} {view.member_identity(baseline_owner, old)} "
                            "is now #[doc(hidden)]",
                            baseline=old,
                            current=new,
                            item=view.member_identity(baseline_owner, old),
                        )
                    )
        return matches


class EnumVariantFieldNowDocHidden(CatalogRule):
    """A field of a public enum variant is now hidden."""

    rule_id = "enum_variant_field_now_doc_hidden"
    category = HIDDEN
    groups = ("doc_hidden",)
    description = "A field of a public enum variant is now #[doc(hidden)]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_enum, current_enum in view.matched("enum"):
            for old_variant, new_variant in view.member_pairs(
                baseline_enum, current_enum, "variant"
            ):
                if new_variant is None:
                    continue
                if not (old_variant.public_api_eligible and new_variant.public_api_eligible):
                    continue
                variant_path = view.member_identity(baseline_enum, old_variant)
                for old, new in view.member_pairs(old_variant, new_variant, "struct_field"):
                    if new is None or not old.public_api_eligible:
                        continue
                    if _newly_hidden(old, new):
                        matches.append(
                            view.match(
                                f"field {old.name} of {variant_path} is now #[doc(hidden)]",
                                baseline=old,
                                current=new,
                                item=f"{variant_path}::{old.name}",
                            )
                        )
        return matches


class InherentMemberNowDocHidden(CatalogRule):
    """An inherent method, or the impl block holding it, is now hidden."""

    rule_id = "inherent_method_now_doc_hidden"
    category = HIDDEN
    groups = ("doc_hidden",)
    witness_template = "method_call"
    description = "A public inherent method is now #[doc(hidden)]."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for baseline_owner, current_owner in view.matched(*TYPE_KINDS):
            for old, new in view.inherent_member_pairs(baseline_owner, current_owner, "method"):
                if new is None or not new.is_public:
                    continue
                if view.inherent_member_public_api("current", new):
                    continue
                identity = view.member_identity(baseline_owner, old)
                matches.append(
                    view.match(
                        f"method {identity} is now #[doc(hidden)]",
                        baseline=old,
                        current=new,
                        item=identity,
                    )
                )
        return matches


def hidden_rules() -> list[CatalogRule]:
    return [
        ItemNowDocHidden("struct_now_doc_hidden", ("struct",), "struct"),
        ItemNowDocHidden("enum_now_doc_hidden", ("enum",), "enum"),
        ItemNowDocHidden("union_now_doc_hidden", ("union",), "union"),
        ItemNowDocHidden("trait_now_doc_hidden", ("trait",), "trait"),
        ItemNowDocHidden("function_now_doc_hidden", ("function",), "function"),
        ItemNowDocHidden("pub_module_level_const_now_doc_hidden", ("constant",), "constant"),
        ItemNowDocHidden("pub_static_now_doc_hidden", ("static",), "static"),
        ItemNowDocHidden("module_now_doc_hidden", ("module",), "module"),
        ItemNowDocHidden("macro_now_doc_hidden", ("macro", "proc_macro"), "macro"),
        MemberNowDocHidden(
            "struct_pub_field_now_doc_hidden",
            owner_kinds=("struct",),
            member_kind="struct_field",
            noun="field",
        ),
        MemberNowDocHidden(
            "union_pub_field_now_doc_hidden",
            owner_kinds=("union",),
            member_kind="struct_field",
            noun="field",
        ),
        MemberNowDocHidden(
            "enum_variant_now_doc_hidden",
            owner_kinds=("enum",),
            member_kind="variant",
            noun="variant",
        ),
        EnumVariantFieldNowDocHidden(),
        InherentMemberNowDocHidden(),
        MemberNowDocHidden(
            "trait_method_now_doc_hidden",
            owner_kinds=("trait",),
            member_kind="method",
            noun="trait method",
        ),
        MemberNowDocHidden(
            "trait_associated_type_now_doc_hidden",
            owner_kinds=("trait",),
            member_kind="assoc_type",
            noun="associated type",
        ),
        MemberNowDocHidden(
            "trait_associated_const_now_doc_hidden",
            owner_kinds=("trait",),
            member_kind="assoc_const",
            noun="associated constant",
        ),
    ]
