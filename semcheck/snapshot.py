"""Interface snapshot model and JSON loader."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

ItemKind = Literal[
    "module",
    "struct",
    "struct_field",
    "enum",
    "variant",
    "union",
    "trait",
    "function",
    "method",
    "impl",
    "constant",
    "static",
    "macro",
    "proc_macro",
    "type_alias",
    "assoc_const",
    "assoc_type",
    "use",
]
Visibility = Literal["public", "restricted", "private"]
StructKind = Literal["plain", "tuple", "unit"]
GenericKind = Literal["lifetime", "type", "const"]

ITEM_KINDS: frozenset[str] = frozenset(ItemKind.__args__)  # type: ignore[attr-defined]
VISIBILITIES: frozenset[str] = frozenset(Visibility.__args__)  # type: ignore[attr-defined]
STRUCT_KINDS: frozenset[str] = frozenset(StructKind.__args__)  # type: ignore[attr-defined]
GENERIC_KINDS: frozenset[str] = frozenset(GenericKind.__args__)  # type: ignore[attr-defined]


class SnapshotError(ValueError):
    """Raised when a snapshot cannot be read or is structurally invalid."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


@dataclass(frozen=True, slots=True)
class Span:
    filename: str
    line: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}"


@dataclass(frozen=True, slots=True)
class Param:
    name: str
    type: str
    refs: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class GenericParam:
    name: str
    kind: GenericKind = "type"
    has_default: bool = False
    synthetic: bool = False


@dataclass(frozen=True, slots=True, eq=False)
class Item:
    """One element of a library's interface, as produced by the extractor."""

    id: str
    kind: ItemKind
    name: str | None = None
    visibility: Visibility = "public"
    doc_hidden: bool = False
    deprecated: bool = False
    deprecation_note: str | None = None
    must_use: bool = False
    must_use_note: str | None = None
    non_exhaustive: bool = False
    unsafe: bool = False
    const: bool = False
    abi: str = "Rust"
    target_features: frozenset[str] = frozenset()
    export_name: str | None = None
    attrs: tuple[str, ...] = ()
    span: Span | None = None
    children: tuple[str, ...] = ()
    struct_kind: StructKind | None = None
    type: str | None = None
    refs: tuple[str, ...] = ()
    params: tuple[Param, ...] = ()
    output: str | None = None
    output_refs: tuple[str, ...] = ()
    receiver: str | None = None
    generics: tuple[GenericParam, ...] = ()
    discriminant: str | None = None
    mutable: bool = False
    has_default: bool = False
    supertraits: tuple[str, ...] = ()
    target: str | None = None
    rename: str | None = None
    glob: bool = False
    trait: str | None = None
    impls: tuple[str, ...] = ()
    exported: bool = False
    macro_kind: str | None = None

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    @property
    def public_api_eligible(self) -> bool:
        """Own flags allow downstream use; deprecation keeps hidden items in the API."""
        return self.is_public and (not self.doc_hidden or self.deprecated)


@dataclass(slots=True)
class Snapshot:
    """A read-only, indexed view over one version's items."""

    crate: str
    version: str | None
    root: str
    items: dict[str, Item]
    source: str | None = None
    _parents: dict[str, str] = field(init=False, repr=False)
    _impls: dict[str, list[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._parents = {}
        self._impls = {}
        for item in self.items.values():
            for child_id in item.children:
                self._parents.setdefault(child_id, item.id)
            if item.kind == "impl" and item.target is not None:
                self._impls.setdefault(item.target, []).append(item.id)
        for item in self.items.values():
            for impl_id in item.impls:
                known = self._impls.setdefault(item.id, [])
                if impl_id not in known and impl_id in self.items:
                    known.append(impl_id)

    @property
    def root_item(self) -> Item:
        return self.items[self.root]

    def item(self, item_id: str) -> Item:
        return self.items[item_id]

    def get(self, item_id: str | None) -> Item | None:
        if item_id is None:
            return None
        return self.items.get(item_id)

    def parent(self, item: Item) -> Item | None:
        return self.get(self._parents.get(item.id))

    def children(self, item: Item, *kinds: str) -> list[Item]:
        output: list[Item] = []
        for child_id in item.children:
            child = self.items.get(child_id)
            if child is None:
                continue
            if kinds and child.kind not in kinds:
                continue
            output.append(child)
        return output

    def impls_of(self, item: Item) -> list[Item]:
        return [self.items[impl_id] for impl_id in self._impls.get(item.id, [])]

    def inherent_impls(self, item: Item) -> list[Item]:
        return [impl for impl in self.impls_of(item) if impl.trait is None]

    def trait_impl_names(self, item: Item) -> set[str]:
        """Return the last path segment of every trait implemented for ``item``."""
        names: set[str] = set()
        for impl in self.impls_of(item):
            if impl.trait is None:
                continue
            names.add(impl.trait.split("::")[-1].split("<")[0].strip())
        return names


@dataclass(frozen=True, slots=True)
class SnapshotPair:
    baseline: Snapshot
    current: Snapshot


def load_snapshot(path: Path) -> Snapshot:
    """Read and validate a snapshot JSON file."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"cannot read snapshot: {exc.strerror or exc}", path=str(path)) from exc
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"invalid JSON: {exc}", path=str(path)) from exc
    snapshot = parse_snapshot(loaded, source=str(path))
    logger.debug("loaded snapshot %s with %d items", path, len(snapshot.items))
    return snapshot


def load_snapshot_pair(baseline: Path, current: Path) -> SnapshotPair:
    return SnapshotPair(baseline=load_snapshot(baseline), current=load_snapshot(current))


def parse_snapshot(mapping: Any, *, source: str | None = None) -> Snapshot:
    """Build a snapshot from decoded JSON data."""
    if not isinstance(mapping, dict):
        raise SnapshotError("snapshot must be a JSON object", path=source)

    format_version = mapping.get("format_version", FORMAT_VERSION)
    if format_version != FORMAT_VERSION:
        raise SnapshotError(
            f"unsupported format_version {format_version!r}, expected {FORMAT_VERSION}",
            path=source,
        )

    crate = mapping.get("crate")
    if not isinstance(crate, str) or not crate:
        raise SnapshotError("'crate' must be a non-empty string", path=source)
    version = mapping.get("version")
    if version is not None and not isinstance(version, str):
        raise SnapshotError("'version' must be a string", path=source)

    raw_items = mapping.get("items")
    if not isinstance(raw_items, dict):
        raise SnapshotError("'items' must be an object keyed by item id", path=source)

    items: dict[str, Item] = {}
    for item_id, raw_item in raw_items.items():
        items[str(item_id)] = _parse_item(str(item_id), raw_item, source=source)

    root = str(mapping.get("root", ""))
    if root not in items:
        raise SnapshotError(f"root item {root!r} is missing", path=source)
    if items[root].kind != "module":
        raise SnapshotError(f"root item {root!r} is not a module", path=source)

    for item in items.values():
        for child_id in item.children:
            if child_id not in items:
                raise SnapshotError(
                    f"item {item.id!r} lists unknown child {child_id!r}", path=source
                )

    return Snapshot(crate=crate, version=version, root=root, items=items, source=source)


def _parse_item(item_id: str, raw: Any, *, source: str | None) -> Item:
    where = f"items.{item_id}"
    if not isinstance(raw, dict):
        raise SnapshotError(f"{where} must be an object", path=source)

    kind = raw.get("kind")
    if kind not in ITEM_KINDS:
        raise SnapshotError(f"{where}.kind {kind!r} is not a known item kind", path=source)
    visibility = raw.get("visibility", "public")
    if visibility not in VISIBILITIES:
        raise SnapshotError(f"{where}.visibility {visibility!r} is invalid", path=source)
    struct_kind = raw.get("struct_kind")
    if struct_kind is not None and struct_kind not in STRUCT_KINDS:
        raise SnapshotError(f"{where}.struct_kind {struct_kind!r} is invalid", path=source)

    span = None
    raw_span = raw.get("span")
    if raw_span is not None:
        if not isinstance(raw_span, dict) or "filename" not in raw_span:
            raise SnapshotError(f"{where}.span must have a filename", path=source)
        span = Span(filename=str(raw_span["filename"]), line=int(raw_span.get("line", 0)))

    params: list[Param] = []
    for index, raw_param in enumerate(_as_list(raw.get("params"), f"{where}.params", source)):
        if not isinstance(raw_param, dict) or "type" not in raw_param:
            raise SnapshotError(f"{where}.params[{index}] must have a type", path=source)
        params.append(
            Param(
                name=str(raw_param.get("name", f"arg{index}")),
                type=str(raw_param["type"]),
                refs=_as_ids(raw_param.get("refs"), f"{where}.params[{index}].refs", source),
            )
        )

    generics: list[GenericParam] = []
    for index, raw_generic in enumerate(
        _as_list(raw.get("generics"), f"{where}.generics", source)
    ):
        generic_kind = raw_generic.get("kind", "type") if isinstance(raw_generic, dict) else None
        if generic_kind not in GENERIC_KINDS:
            raise SnapshotError(f"{where}.generics[{index}] has invalid kind", path=source)
        generics.append(
            GenericParam(
                name=str(raw_generic.get("name", f"G{index}")),
                kind=generic_kind,
                has_default=bool(raw_generic.get("has_default", False)),
                synthetic=bool(raw_generic.get("synthetic", False)),
            )
        )

    return Item(
        id=item_id,
        kind=kind,
        name=_as_opt_str(raw.get("name")),
        visibility=visibility,
        doc_hidden=bool(raw.get("doc_hidden", False)),
        deprecated=bool(raw.get("deprecated", False)),
        deprecation_note=_as_opt_str(raw.get("deprecation_note")),
        must_use=bool(raw.get("must_use", False)),
        must_use_note=_as_opt_str(raw.get("must_use_note")),
        non_exhaustive=bool(raw.get("non_exhaustive", False)),
        unsafe=bool(raw.get("unsafe", False)),
        const=bool(raw.get("const", False)),
        abi=str(raw.get("abi", "Rust")),
        target_features=frozenset(
            _as_ids(raw.get("target_features"), f"{where}.target_features", source)
        ),
        export_name=_as_opt_str(raw.get("export_name")),
        attrs=_as_ids(raw.get("attrs"), f"{where}.attrs", source),
        span=span,
        children=_as_ids(raw.get("children"), f"{where}.children", source),
        struct_kind=struct_kind,
        type=_as_opt_str(raw.get("type")),
        refs=_as_ids(raw.get("refs"), f"{where}.refs", source),
        params=tuple(params),
        output=_as_opt_str(raw.get("output")),
        output_refs=_as_ids(raw.get("output_refs"), f"{where}.output_refs", source),
        receiver=_as_opt_str(raw.get("receiver")),
        generics=tuple(generics),
        discriminant=_as_opt_str(raw.get("discriminant")),
        mutable=bool(raw.get("mutable", False)),
        has_default=bool(raw.get("has_default", False)),
        supertraits=_as_ids(raw.get("supertraits"), f"{where}.supertraits", source),
        target=_as_opt_str(raw.get("target")),
        rename=_as_opt_str(raw.get("rename")),
        glob=bool(raw.get("glob", False)),
        trait=_as_opt_str(raw.get("trait")),
        impls=_as_ids(raw.get("impls"), f"{where}.impls", source),
        exported=bool(raw.get("exported", False)),
        macro_kind=_as_opt_str(raw.get("macro_kind")),
    )


def _as_list(value: Any, field_name: str, source: str | None) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotError(f"{field_name} must be a list", path=source)
    return value


def _as_ids(value: Any, field_name: str, source: str | None) -> tuple[str, ...]:
    return tuple(str(entry) for entry in _as_list(value, field_name, source))


def _as_opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
