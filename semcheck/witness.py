"""Witness snippets: minimal downstream code that compiles before and breaks after.

Synthesis always returns a :class:`Witness`. Missing structural facts and
templates without an implementation yield ``Witness.failure`` with a reason;
neither ever affects the finding the witness was requested for.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from semcheck.rules.base import Finding
from semcheck.rules.query import PairView
from semcheck.snapshot import Item, Param

logger = logging.getLogger(__name__)

METHOD_CALL_UNSUPPORTED = "witness generation for method calls is not implemented yet"


@dataclass(frozen=True, slots=True)
class Witness:
    rule_id: str
    item: str
    template: str
    snippet: str | None = None
    failure: str | None = None
    hint: str | None = None

    @property
    def rendered(self) -> bool:
        return self.snippet is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "item": self.item,
            "template": self.template,
            "rendered": self.rendered,
            "snippet": self.snippet,
            "failure": self.failure,
            "hint": self.hint,
        }


class WitnessError(Exception):
    """A structural fact a template needs could not be extracted."""


@dataclass(frozen=True, slots=True)
class FunctionArgs:
    """Parameter names and types of one function in both versions."""

    path: str
    baseline: tuple[Param, ...]
    current: tuple[Param, ...]


Template = Callable[["WitnessSynthesizer", Finding], str]


class WitnessSynthesizer:
    """Renders witness templates against a snapshot pair."""

    def __init__(self, view: PairView, templates: dict[str, str]) -> None:
        self.view = view
        self.templates = templates

    def synthesize(self, finding: Finding) -> Witness | None:
        """Return a witness for ``finding``, or ``None`` when its rule has no template."""
        template_id = self.templates.get(finding.rule_id)
        if template_id is None:
            return None
        if template_id == "method_call":
            return self._failed(finding, template_id, METHOD_CALL_UNSUPPORTED)
        renderer = TEMPLATES.get(template_id)
        if renderer is None:
            return self._failed(finding, template_id, f"unknown witness template '{template_id}'")
        try:
            snippet = renderer(self, finding)
        except WitnessError as exc:
            logger.debug("witness for %s at %s failed: %s", finding.rule_id, finding.item, exc)
            return self._failed(finding, template_id, str(exc))
        except Exception as exc:
            logger.warning(
                "witness template %s raised for %s at %s: %s",
                template_id,
                finding.rule_id,
                finding.item,
                exc,
            )
            return self._failed(finding, template_id, f"{exc.__class__.__name__}: {exc}")
        return Witness(
            rule_id=finding.rule_id,
            item=finding.item,
            template=template_id,
            snippet=snippet,
            hint=render_hint(template_id, finding),
        )

    def synthesize_all(self, findings: list[Finding], *, jobs: int | None = None) -> list[Witness]:
        """Synthesize in parallel, keeping the order of ``findings``."""
        with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="semcheck-witness") as pool:
            results = list(pool.map(self.synthesize, findings))
        return [witness for witness in results if witness is not None]

    def _failed(self, finding: Finding, template_id: str, reason: str) -> Witness:
        return Witness(
            rule_id=finding.rule_id,
            item=finding.item,
            template=template_id,
            failure=reason,
            hint=render_hint(template_id, finding),
        )

    # Structural fact extraction

    def baseline_item(self, finding: Finding) -> Item:
        item = self.view.baseline.get(finding.baseline_id)
        if item is None:
            raise WitnessError(f"baseline item for {finding.item} is unavailable")
        return item

    def current_item(self, finding: Finding) -> Item:
        item = self.view.current.get(finding.current_id)
        if item is None:
            raise WitnessError(f"current item for {finding.item} is unavailable")
        return item

    def owner(self, item: Item) -> Item:
        parent = self.view.baseline.parent(item)
        if parent is not None and parent.kind == "impl":
            parent = self.view.baseline.get(parent.target)
        if parent is None:
            raise WitnessError(f"owner of {item.name or item.id} is unavailable")
        return parent

    def extract_function_args(self, finding: Finding) -> FunctionArgs:
        old = self.baseline_item(finding)
        new = self.current_item(finding)
        if old.kind != "function" or new.kind != "function":
            raise WitnessError(f"{finding.item} is not a function in both versions")
        return FunctionArgs(path=finding.item, baseline=old.params, current=new.params)


def _rust_ident(text: str, fallback: str) -> str:
    cleaned = "".join(char if char.isalnum() or char == "_" else "_" for char in text)
    if not cleaned or cleaned[0].isdigit():
        return fallback
    return cleaned


def render_import_item(synth: WitnessSynthesizer, finding: Finding) -> str:
    return "\n".join(
        [
            f"use {finding.item};",
            "",
            f"// `{finding.item}` resolves against the old version only.",
        ]
    )


def render_function_call(synth: WitnessSynthesizer, finding: Finding) -> str:
    args = synth.extract_function_args(finding)
    lines = ["fn witness() {"]
    names: list[str] = []
    for index, param in enumerate(args.baseline):
        name = _rust_ident(param.name, f"arg{index}")
        if name in names:
            name = f"{name}_{index}"
        names.append(name)
        lines.append(f"    let {name}: {param.type} = todo!();")
    lines.append(f"    {args.path}({', '.join(names)});")
    lines.append("}")
    old_types = ", ".join(param.type for param in args.baseline)
    new_types = ", ".join(param.type for param in args.current)
    lines.append("")
    lines.append(f"// old parameters: ({old_types})")
    lines.append(f"// new parameters: ({new_types})")
    return "\n".join(lines)


def render_variant_pattern(synth: WitnessSynthesizer, finding: Finding) -> str:
    item = synth.baseline_item(finding)
    if item.kind == "struct_field":
        item = synth.view.baseline.parent(item) or item
    if item.kind != "variant":
        raise WitnessError(f"{finding.item} does not name an enum variant")
    enum = synth.owner(item)
    enum_path = synth.view.identity(enum)
    fields = synth.view.members("baseline", item, "struct_field")
    pattern = _pattern(f"{enum_path}::{item.name}", item.struct_kind, fields)
    return "\n".join(
        [
            f"fn witness(value: {enum_path}) {{",
            "    match value {",
            f"        {pattern} => {{}}",
            "        _ => {}",
            "    }",
            "}",
        ]
    )


def _pattern(path: str, struct_kind: str | None, fields: list[Item]) -> str:
    if struct_kind == "tuple":
        return f"{path}({', '.join('_' for _ in fields)})"
    if struct_kind == "plain" or fields:
        names = ", ".join(f"{field.name}: _" for field in fields)
        return f"{path} {{ {names} }}" if names else f"{path} {{}}"
    return path


def render_exhaustive_match(synth: WitnessSynthesizer, finding: Finding) -> str:
    enum = synth.baseline_item(finding)
    if enum.kind != "enum":
        raise WitnessError(f"{finding.item} is not an enum")
    enum_path = synth.view.identity(enum)
    variants = [
        variant
        for variant in synth.view.members("baseline", enum, "variant")
        if variant.public_api_eligible
    ]
    if not variants:
        raise WitnessError(f"enum {enum_path} has no public variants to match on")
    lines = [f"fn witness(value: {enum_path}) {{", "    match value {"]
    for variant in variants:
        fields = synth.view.members("baseline", variant, "struct_field")
        pattern = _pattern(f"{enum_path}::{variant.name}", variant.struct_kind, fields)
        lines.append(f"        {pattern} => {{}}")
    lines.extend(["    }", "}"])
    return "\n".join(lines)


def render_struct_literal(synth: WitnessSynthesizer, finding: Finding) -> str:
    struct = synth.baseline_item(finding)
    if struct.kind != "struct":
        raise WitnessError(f"{finding.item} is not a struct")
    path = synth.view.identity(struct)
    fields = synth.view.members("baseline", struct, "struct_field")
    if struct.struct_kind == "unit":
        literal = path
    elif struct.struct_kind == "tuple":
        literal = f"{path}({', '.join('todo!()' for _ in fields)})"
    else:
        literal = f"{path} {{ {', '.join(f'{field.name}: todo!()' for field in fields)} }}"
    return "\n".join(["fn witness() {", f"    let _value = {literal};", "}"])


def render_field_access(synth: WitnessSynthesizer, finding: Finding) -> str:
    field = synth.baseline_item(finding)
    owner = synth.owner(field)
    owner_path = synth.view.identity(owner)
    return "\n".join(
        [
            f"fn witness(value: &{owner_path}) {{",
            f"    let _field = &value.{field.name};",
            "}",
        ]
    )


def render_trait_impl(synth: WitnessSynthesizer, finding: Finding) -> str:
    trait = synth.baseline_item(finding)
    if trait.kind != "trait":
        raise WitnessError(f"{finding.item} is not a trait")
    path = synth.view.identity(trait)
    if trait.generics:
        raise WitnessError(f"trait {path} is generic; implementing it needs type arguments")
    body: list[str] = []
    for member in synth.view.members("baseline", trait, "method", "assoc_type", "assoc_const"):
        if member.has_default:
            continue
        if member.kind == "assoc_type":
            body.append(f"    type {member.name} = ();")
        elif member.kind == "assoc_const":
            body.append(f"    const {member.name}: {member.type or '()'} = todo!();")
        else:
            params = [f"{param.name}: {param.type}" for param in member.params]
            if member.receiver:
                params.insert(0, member.receiver)
            signature = f"fn {member.name}({', '.join(params)})"
            if member.output and member.output.replace(" ", "") != "()":
                signature += f" -> {member.output}"
            body.append(f"    {signature} {{ todo!() }}")
    lines = ["struct Witness;", "", f"impl {path} for Witness {{", *body, "}"]
    return "\n".join(lines)


def render_discriminant_cast(synth: WitnessSynthesizer, finding: Finding) -> str:
    old_value = finding.facts.get("old_discriminant")
    repr_type = finding.facts.get("repr", "isize")
    if old_value is None:
        raise WitnessError(f"old discriminant of {finding.item} is unknown")
    return "\n".join(
        [
            "fn witness() {",
            f"    const _: () = assert!({finding.item} as {repr_type} == {old_value});",
            "}",
        ]
    )


TEMPLATES: dict[str, Template] = {
    "import_item": render_import_item,
    "function_call": render_function_call,
    "variant_pattern": render_variant_pattern,
    "exhaustive_match": render_exhaustive_match,
    "struct_literal": render_struct_literal,
    "field_access": render_field_access,
    "trait_impl": render_trait_impl,
    "discriminant_cast": render_discriminant_cast,
}

HINTS: dict[str, str] = {
    "import_item": "importing {item} by this path no longer resolves",
    "function_call": "calling {item} with its old arguments no longer type-checks",
    "method_call": "calling method {item} with its old arguments no longer type-checks",
    "variant_pattern": "matching on variant {item} with its old shape no longer compiles",
    "exhaustive_match": "an exhaustive match on {item} is no longer exhaustive",
    "struct_literal": "building {item} with a literal no longer compiles",
    "field_access": "reading a field of {item} no longer compiles",
    "trait_impl": "implementing {item} outside its crate no longer compiles",
    "discriminant_cast": (
        "casting {item} to its integer value gives {new_discriminant} "
        "instead of {old_discriminant}"
    ),
}


class _HintFacts(dict):
    def __missing__(self, key: str) -> str:
        return "?"


def render_hint(template_id: str, finding: Finding) -> str | None:
    """One-line explanation of what the witness demonstrates, filled from finding facts."""
    text = HINTS.get(template_id)
    if text is None:
        return None
    return text.format_map(_HintFacts(finding.facts, item=finding.item))
