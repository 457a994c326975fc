"""Function and method signature rules."""

from __future__ import annotations

from collections.abc import Callable

from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import TYPE_KINDS, PairView
from semcheck.snapshot import Item

SIGNATURE = "signature"

SignatureCheck = Callable[[Item, Item], str | None]


def normalize_type(text: str | None) -> str:
    return "".join((text or "()").split())


def returns_unit(item: Item) -> bool:
    return normalize_type(item.output) == "()"


def parameter_count_changed(old: Item, new: Item) -> str | None:
    if len(old.params) == len(new.params):
        return None
    return f"now takes {len(new.params)} parameters instead of {len(old.params)}"


def parameter_type_changed(old: Item, new: Item) -> str | None:
    if len(old.params) != len(new.params):
        return None
    changed = [
        f"parameter {index} ({old_param.name}) changed type from "
        f"{old_param.type} to {new_param.type}"
        for index, (old_param, new_param) in enumerate(zip(old.params, new.params, strict=True))
        if normalize_type(old_param.type) != normalize_type(new_param.type)
    ]
    return "; ".join(changed) or None


def now_returns_unit(old: Item, new: Item) -> str | None:
    if returns_unit(old) or not returns_unit(new):
        return None
    return f"no longer returns a value (previously {old.output})"


def _signature_facts(old: Item, new: Item) -> dict[str, str]:
    return {
        "old_signature": render_signature(old),
        "new_signature": render_signature(new),
    }


def render_signature(item: Item) -> str:
    params = [f"{param.name}: {param.type}" for param in item.params]
    if item.receiver:
        params.insert(0, item.receiver)
    text = f"fn {item.name}({', '.join(params)})"
    if not returns_unit(item):
        text += f" -> {item.output}"
    return text


class FunctionSignatureRule(CatalogRule):
    category = SIGNATURE
    groups = ("signature",)

    def __init__(
        self,
        rule_id: str,
        *,
        check: SignatureCheck,
        description: str,
        witness: str | None,
    ) -> None:
        self.rule_id = rule_id
        self.check = check
        self.description = description
        self.witness_template = witness

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched("function"):
            reason = self.check(old, new)
            if reason is None:
                continue
            matches.append(
                view.match(
                    f"function {view.identity(old)} {reason}",
                    baseline=old,
                    current=new,
                    facts=_signature_facts(old, new),
                )
            )
        return matches


class MethodSignatureRule(CatalogRule):
    """Signature checks for inherent methods or trait methods."""

    category = SIGNATURE
    groups = ("signature",)

    def __init__(
        self,
        rule_id: str,
        *,
        check: SignatureCheck,
        description: str,
        witness: str | None,
        owner_kinds: tuple[str, ...] = TYPE_KINDS,
        inherent: bool = True,
    ) -> None:
        self.rule_id = rule_id
        self.check = check
        self.description = description
        self.witness_template = witness
        self.owner_kinds = owner_kinds
        self.inherent = inherent

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_owner, new_owner in view.matched(*self.owner_kinds):
            for old, new in self._pairs(view, old_owner, new_owner):
                reason = self.check(old, new)
                if reason is None:
                    continue
                identity = view.member_identity(old_owner, old)
                matches.append(
                    view.match(
                        f"method {identity} {reason}",
                        baseline=old,
                        current=new,
                        item=identity,
                        facts=_signature_facts(old, new),
                    )
                )
        return matches

    def _pairs(self, view: PairView, old_owner: Item, new_owner: Item) -> list[tuple[Item, Item]]:
        if self.inherent:
            return [
                (old, new)
                for old, new in view.inherent_member_pairs(old_owner, new_owner, "method")
                if new is not None and view.inherent_member_public_api("current", new)
            ]
        return [
            (old, new)
            for old, new in view.member_pairs(old_owner, new_owner, "method")
            if new is not None and old.public_api_eligible and new.public_api_eligible
        ]


def signature_rules() -> list[CatalogRule]:
    return [
        FunctionSignatureRule(
            "function_parameter_count_changed",
            check=parameter_count_changed,
            description="A public function changed its number of parameters.",
            witness="function_call",
        ),
        FunctionSignatureRule(
            "function_parameter_type_changed",
            check=parameter_type_changed,
            description="A public function changed the type of a parameter.",
            witness="function_call",
        ),
        MethodSignatureRule(
            "inherent_method_parameter_count_changed",
            check=parameter_count_changed,
            description="A public inherent method changed its number of parameters.",
            witness="method_call",
        ),
        MethodSignatureRule(
            "inherent_method_parameter_type_changed",
            check=parameter_type_changed,
            description="A public inherent method changed the type of a parameter.",
            witness="method_call",
        ),
        MethodSignatureRule(
            "trait_method_parameter_count_changed",
            check=parameter_count_changed,
            description="A public trait method changed its number of parameters.",
            witness="method_call",
            owner_kinds=("trait",),
            inherent=False,
        ),
        FunctionSignatureRule(
            "function_now_returns_unit",
            check=now_returns_unit,
            description="A public function no longer returns a value.",
            witness=None,
        ),
        MethodSignatureRule(
            "inherent_method_now_returns_unit",
            check=now_returns_unit,
            description="A public inherent method no longer returns a value.",
            witness=None,
        ),
    ]
