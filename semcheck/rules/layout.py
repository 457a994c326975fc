"""Representation and layout rules.

``#[repr(...)]`` annotations are normalised before comparison so that
``#[repr(C)] #[repr(u8)]`` and ``#[repr(C, u8)]`` are the same layout,
trailing commas are ignored, and a bare ``packed`` means ``packed(1)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from semcheck.identity import Side
from semcheck.rules.base import CatalogRule, RuleMatch
from semcheck.rules.query import PairView
from semcheck.snapshot import Item

REPRESENTATION = "representation"

INT_REPRS = frozenset(
    {
        "u8",
        "u16",
        "u32",
        "u64",
        "u128",
        "usize",
        "i8",
        "i16",
        "i32",
        "i64",
        "i128",
        "isize",
    }
)
ZERO_SIZED_TYPES = ("PhantomData", "core::marker::PhantomData", "std::marker::PhantomData")

_REPR_ATTR_RE = re.compile(r"^#\s*\[\s*repr\s*\((?P<body>.*)\)\s*\]$", re.DOTALL)
_SIZED_RE = re.compile(r"^(?P<name>packed|align)\s*(?:\(\s*(?P<value>\d+)\s*\))?$")


@dataclass(frozen=True, slots=True)
class Repr:
    c: bool = False
    transparent: bool = False
    int: str | None = None
    packed: int | None = None
    align: int | None = None

    def describe(self) -> str:
        parts: list[str] = []
        if self.c:
            parts.append("C")
        if self.transparent:
            parts.append("transparent")
        if self.int:
            parts.append(self.int)
        if self.packed is not None:
            parts.append(f"packed({self.packed})")
        if self.align is not None:
            parts.append(f"align({self.align})")
        return f"#[repr({', '.join(parts)})]" if parts else "(default repr)"


def parse_repr(attrs: tuple[str, ...]) -> Repr:
    """Merge every ``#[repr(...)]`` attribute into one canonical representation."""
    c = transparent = False
    int_repr: str | None = None
    packed: int | None = None
    align: int | None = None
    for attr in attrs:
        match = _REPR_ATTR_RE.match(attr.strip())
        if match is None:
            continue
        for raw_part in _split_top_level(match.group("body")):
            part = raw_part.strip()
            if not part:
                continue
            if part == "C":
                c = True
            elif part == "transparent":
                transparent = True
            elif part in INT_REPRS:
                int_repr = part
            else:
                sized = _SIZED_RE.match(part)
                if sized is None:
                    continue
                value = int(sized.group("value") or 1)
                if sized.group("name") == "packed":
                    packed = value
                else:
                    align = value
    return Repr(c=c, transparent=transparent, int=int_repr, packed=packed, align=align)


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in body:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def is_zero_sized(type_text: str | None) -> bool:
    text = (type_text or "").replace(" ", "")
    if text == "()":
        return True
    return any(text == name or text.startswith(f"{name}<") for name in ZERO_SIZED_TYPES)


class ReprRule(CatalogRule):
    """Compare canonical representations of matched types."""

    category = REPRESENTATION
    groups = ("layout",)

    def __init__(self, rule_id: str, *, kinds: tuple[str, ...], description: str) -> None:
        self.rule_id = rule_id
        self.kinds = kinds
        self.description = description

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old, new in view.matched(*self.kinds):
            old_repr = parse_repr(old.attrs)
            new_repr = parse_repr(new.attrs)
            reason = self.changed(view, old, old_repr, new_repr)
            if reason is None:
                continue
            matches.append(
                view.match(
                    f"{old.kind} {view.identity(old)} {reason}",
                    baseline=old,
                    current=new,
                    facts={"old_repr": old_repr.describe(), "new_repr": new_repr.describe()},
                )
            )
        return matches

    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        raise NotImplementedError


class ReprTransparentRemoved(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if not old_repr.transparent or new_repr.transparent:
            return None
        if old.kind == "struct" and not _sized_fields_public(view, old):
            return None
        return "is no longer #[repr(transparent)]"


def _sized_fields_public(view: PairView, struct: Item) -> bool:
    """Transparency is part of the public ABI only if the wrapped field is public."""
    sized = [
        field
        for field in view.members("baseline", struct, "struct_field")
        if not is_zero_sized(field.type)
    ]
    return all(field.public_api_eligible for field in sized)


class ReprCRemoved(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if old_repr.c and not new_repr.c:
            return "is no longer #[repr(C)]"
        return None


class EnumReprIntChanged(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if old_repr.int and new_repr.int and old_repr.int != new_repr.int:
            return f"changed its discriminant type from {old_repr.int} to {new_repr.int}"
        return None


class EnumReprIntRemoved(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if old_repr.int and not new_repr.int:
            return f"no longer has #[repr({old_repr.int})]"
        return None


class ReprPackedChanged(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if old_repr.packed == new_repr.packed:
            return None
        if new_repr.packed is None:
            return "is no longer packed"
        if old_repr.packed is None:
            return f"is now packed({new_repr.packed})"
        return f"changed packing from packed({old_repr.packed}) to packed({new_repr.packed})"


class ReprAlignChanged(ReprRule):
    def changed(self, view: PairView, old: Item, old_repr: Repr, new_repr: Repr) -> str | None:
        if old_repr.align == new_repr.align:
            return None
        old_text = f"align({old_repr.align})" if old_repr.align else "default alignment"
        new_text = f"align({new_repr.align})" if new_repr.align else "default alignment"
        return f"changed alignment from {old_text} to {new_text}"


def discriminants(view: PairView, side: Side, enum: Item) -> dict[str, int | None]:
    """Explicit discriminants, with implicit ones counted up from the previous variant."""
    values: dict[str, int | None] = {}
    previous: int | None = -1
    for variant in view.members(side, enum, "variant"):
        if variant.discriminant is not None:
            try:
                value: int | None = int(variant.discriminant.replace("_", ""), 0)
            except ValueError:
                value = None
        else:
            value = previous + 1 if previous is not None else None
        values[variant.name or variant.id] = value
        previous = value
    return values


def _discriminant_observable(view: PairView, side: Side, enum: Item) -> bool:
    """Discriminants are visible through ``as`` casts or an explicit integer repr."""
    if parse_repr(enum.attrs).int:
        return True
    if enum.non_exhaustive:
        return False
    variants = view.members(side, enum, "variant")
    return all(variant.struct_kind in (None, "unit") for variant in variants)


class EnumVariantDiscriminantChanged(CatalogRule):
    """A variant's numeric discriminant changed."""

    rule_id = "enum_variant_discriminant_changed"
    category = REPRESENTATION
    groups = ("layout",)
    witness_template = "discriminant_cast"
    description = "A public enum variant's discriminant value changed."

    def evaluate(self, view: PairView) -> list[RuleMatch]:
        matches: list[RuleMatch] = []
        for old_enum, new_enum in view.matched("enum"):
            if not (
                _discriminant_observable(view, "baseline", old_enum)
                and _discriminant_observable(view, "current", new_enum)
            ):
                continue
            old_values = discriminants(view, "baseline", old_enum)
            new_values = discriminants(view, "current", new_enum)
            for old, new in view.member_pairs(old_enum, new_enum, "variant"):
                if new is None or not (old.public_api_eligible and new.public_api_eligible):
                    continue
                old_value = old_values.get(old.name or old.id)
                new_value = new_values.get(new.name or new.id)
                if old_value is None or new_value is None or old_value == new_value:
                    continue
                identity = view.member_identity(old_enum, old)
                matches.append(
                    view.match(
                        f"variant {identity} changed discriminant from {old_value} to {new_value}",
                        baseline=old,
                        current=new,
                        item=identity,
                        facts={
                            "old_discriminant": str(old_value),
                            "new_discriminant": str(new_value),
                            "repr": parse_repr(old_enum.attrs).int or "isize",
                        },
                    )
                )
        return matches


def layout_rules() -> list[CatalogRule]:
    return [
        ReprTransparentRemoved(
            "struct_repr_transparent_removed",
            kinds=("struct",),
            description="A public struct whose wrapped field is public lost #[repr(transparent)].",
        ),
        ReprTransparentRemoved(
            "enum_repr_transparent_removed",
            kinds=("enum",),
            description="A public enum lost #[repr(transparent)].",
        ),
        ReprCRemoved(
            "struct_repr_c_removed",
            kinds=("struct",),
            description="A public struct lost #[repr(C)].",
        ),
        ReprCRemoved(
            "enum_repr_c_removed",
            kinds=("enum",),
            description="A public enum lost #[repr(C)].",
        ),
        ReprCRemoved(
            "union_repr_c_removed",
            kinds=("union",),
            description="A public union lost #[repr(C)].",
        ),
        EnumReprIntChanged(
            "enum_repr_int_changed",
            kinds=("enum",),
            description="A public enum changed its #[repr(<int>)] discriminant type.",
        ),
        EnumReprIntRemoved(
            "enum_repr_int_removed",
            kinds=("enum",),
            description="A public enum lost its #[repr(<int>)] attribute.",
        ),
        ReprPackedChanged(
            "repr_packed_changed",
            kinds=("struct", "union"),
            description="A public struct or union changed its #[repr(packed)] setting.",
        ),
        ReprAlignChanged(
            "repr_align_changed",
            kinds=("struct", "enum", "union"),
            description="A public type changed its #[repr(align)] setting.",
        ),
        EnumVariantDiscriminantChanged(),
    ]
