"""Importable-path index and cross-version identity resolution.

Every item that downstream code can name is reachable through one or more
import paths. The index walks the module tree of a snapshot, following
re-exports (plain, renamed, glob) and equivalent type aliases, and records
each path together with whether any element of that path is hidden from the
public API. Cross-version identity is then a path lookup: a baseline item is
still present when at least one of its baseline paths resolves, in the
current snapshot, to an item of the same kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from semcheck.snapshot import Item, Snapshot, SnapshotPair

logger = logging.getLogger(__name__)

Side = Literal["baseline", "current"]

# Item kinds that can be named by an import path.
IMPORTABLE_KINDS = frozenset(
    {
        "module",
        "struct",
        "enum",
        "union",
        "trait",
        "function",
        "constant",
        "static",
        "macro",
        "proc_macro",
        "type_alias",
    }
)


@dataclass(frozen=True, slots=True, order=True)
class ImportablePath:
    segments: tuple[str, ...]
    public_api: bool

    def __str__(self) -> str:
        return "::".join(self.segments)


@dataclass(frozen=True, slots=True)
class _Frame:
    module_id: str
    prefix: tuple[str, ...]
    hidden: bool
    chain: frozenset[str]


class PathIndex:
    """Importable paths of one snapshot, in both directions."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self._paths: dict[str, dict[tuple[str, ...], bool]] = {}
        self._by_path: dict[tuple[str, ...], list[str]] = {}

    def add(self, item_id: str, segments: tuple[str, ...], *, hidden: bool) -> None:
        item = self.snapshot.item(item_id)
        public_api = not hidden or item.deprecated
        known = self._paths.setdefault(item_id, {})
        if segments not in known:
            owners = self._by_path.setdefault(segments, [])
            if item_id not in owners:
                owners.append(item_id)
        known[segments] = known.get(segments, False) or public_api

    def paths(self, item_id: str) -> list[ImportablePath]:
        known = self._paths.get(item_id, {})
        return sorted(
            ImportablePath(segments, public_api) for segments, public_api in known.items()
        )

    def resolve(self, segments: tuple[str, ...]) -> list[Item]:
        return [self.snapshot.item(item_id) for item_id in self._by_path.get(segments, [])]

    def is_importable(self, item_id: str) -> bool:
        return bool(self._paths.get(item_id))

    def is_public_api(self, item_id: str) -> bool:
        return any(self._paths.get(item_id, {}).values())

    def item_ids(self) -> list[str]:
        return sorted(self._paths)


def build_path_index(snapshot: Snapshot) -> PathIndex:
    """Walk the module tree with an explicit stack, never re-entering a module on its own chain."""
    index = PathIndex(snapshot)
    root = snapshot.root_item
    crate = (snapshot.crate,)
    index.add(root.id, crate, hidden=False)

    stack = [_Frame(root.id, crate, False, frozenset({root.id}))]
    while stack:
        frame = stack.pop()
        module = snapshot.item(frame.module_id)
        for target, name, hidden in _module_exports(snapshot, module, frozenset({module.id})):
            segments = frame.prefix + (name,)
            path_hidden = frame.hidden or hidden
            index.add(target.id, segments, hidden=path_hidden)
            alias_target = _equivalent_alias_target(snapshot, target)
            if alias_target is not None:
                index.add(alias_target.id, segments, hidden=path_hidden or alias_target.doc_hidden)
            if target.kind != "module":
                continue
            if target.id in frame.chain:
                logger.debug("re-export cycle at %s; not expanding again", "::".join(segments))
                continue
            stack.append(_Frame(target.id, segments, path_hidden, frame.chain | {target.id}))

    for item in snapshot.items.values():
        if item.kind == "macro" and item.exported and item.name:
            index.add(item.id, crate + (item.name,), hidden=item.doc_hidden)

    logger.debug(
        "indexed %d importable items for %s %s",
        len(index.item_ids()),
        snapshot.crate,
        snapshot.version or "(unversioned)",
    )
    return index


def _module_exports(
    snapshot: Snapshot,
    module: Item,
    globbed: frozenset[str],
) -> list[tuple[Item, str, bool]]:
    """Return ``(item, exported name, hidden)`` for each public name a module exposes."""
    exports: list[tuple[Item, str, bool]] = []
    for child in snapshot.children(module):
        if not child.is_public:
            continue
        if child.kind == "use":
            exports.extend(_use_exports(snapshot, child, globbed))
            continue
        if child.kind == "macro" or child.kind not in IMPORTABLE_KINDS or not child.name:
            continue
        exports.append((child, child.name, child.doc_hidden))
    return exports


def _use_exports(
    snapshot: Snapshot,
    use: Item,
    globbed: frozenset[str],
) -> list[tuple[Item, str, bool]]:
    target, hidden = _follow_use(snapshot, use)
    if target is None:
        return []
    if use.glob:
        if target.kind != "module" or target.id in globbed:
            return []
        return [
            (item, name, hidden or item_hidden)
            for item, name, item_hidden in _module_exports(
                snapshot, target, globbed | {target.id}
            )
        ]
    name = use.rename or target.name
    if not name or target.kind not in IMPORTABLE_KINDS:
        return []
    return [(target, name, hidden or target.doc_hidden)]


def _follow_use(snapshot: Snapshot, use: Item) -> tuple[Item | None, bool]:
    """Resolve a chain of ``use`` items to the item it finally names."""
    hidden = use.doc_hidden
    seen = {use.id}
    current = snapshot.get(use.target)
    while current is not None and current.kind == "use" and not use.glob:
        if current.id in seen:
            return None, hidden
        seen.add(current.id)
        hidden = hidden or current.doc_hidden
        current = snapshot.get(current.target)
    return current, hidden


def _equivalent_alias_target(snapshot: Snapshot, alias: Item) -> Item | None:
    """A type alias that forwards every generic unchanged names the same type as its target."""
    if alias.kind != "type_alias":
        return None
    target = snapshot.get(alias.target)
    if target is None or target.kind not in {"struct", "enum", "union"}:
        return None
    if len(alias.generics) != len(target.generics):
        return None
    for alias_param, target_param in zip(alias.generics, target.generics, strict=True):
        if alias_param.kind != target_param.kind:
            return None
        if alias_param.has_default != target_param.has_default:
            return None
    forwarded = [param.name for param in alias.generics]
    if alias.generics and _alias_arguments(alias) != forwarded:
        return None
    return target


def _alias_arguments(alias: Item) -> list[str]:
    """Extract the generic arguments the alias passes, e.g. ``Foo<'a, T>`` -> ``["'a", "T"]``."""
    text = alias.type or ""
    start = text.find("<")
    if start < 0 or not text.endswith(">"):
        return []
    return [part.strip() for part in text[start + 1 : -1].split(",") if part.strip()]


class IdentityResolver:
    """Correlates baseline items with their current counterparts."""

    def __init__(self, pair: SnapshotPair) -> None:
        self.pair = pair
        self.baseline = build_path_index(pair.baseline)
        self.current = build_path_index(pair.current)
        self._counterparts: dict[str, str] = {}
        for item_id in self.baseline.item_ids():
            counterpart = self._find_counterpart(pair.baseline.item(item_id))
            if counterpart is not None:
                self._counterparts[item_id] = counterpart.id

    def index(self, side: Side) -> PathIndex:
        return self.baseline if side == "baseline" else self.current

    def snapshot(self, side: Side) -> Snapshot:
        return self.pair.baseline if side == "baseline" else self.pair.current

    def paths(self, item: Item, side: Side = "baseline") -> list[ImportablePath]:
        return self.index(side).paths(item.id)

    def is_importable(self, item: Item, side: Side = "baseline") -> bool:
        return self.index(side).is_importable(item.id)

    def is_public_api(self, item: Item, side: Side = "baseline") -> bool:
        return self.index(side).is_public_api(item.id)

    def counterpart(self, item: Item) -> Item | None:
        """Current item reachable through any baseline path of ``item``."""
        return self.pair.current.get(self._counterparts.get(item.id))

    def identity(self, item: Item, side: Side = "baseline") -> str:
        """Stable display key: the smallest public-API path, else the smallest path."""
        paths = self.paths(item, side)
        public = [path for path in paths if path.public_api]
        if public:
            return str(public[0])
        if paths:
            return str(paths[0])
        snapshot = self.snapshot(side)
        owner = _owner(snapshot, item)
        if owner is not None and owner.id != item.id:
            return f"{self.identity(owner, side)}::{item.name or item.id}"
        return f"{snapshot.crate}::{item.name or item.id}"

    def additions(self) -> list[Item]:
        """Current public-API items that have no baseline counterpart."""
        matched = set(self._counterparts.values())
        added = [
            self.pair.current.item(item_id)
            for item_id in self.current.item_ids()
            if item_id not in matched and self.current.is_public_api(item_id)
        ]
        return sorted(added, key=lambda item: self.identity(item, "current"))

    def _find_counterpart(self, item: Item) -> Item | None:
        paths = self.baseline.paths(item.id)
        ordered = [path for path in paths if path.public_api] + [
            path for path in paths if not path.public_api
        ]
        for path in ordered:
            for candidate in self.current.resolve(path.segments):
                if _same_kind(item, candidate):
                    return candidate
        return None


def _same_kind(baseline: Item, current: Item) -> bool:
    return baseline.kind == current.kind


def _owner(snapshot: Snapshot, item: Item) -> Item | None:
    """Nearest importable owner of a member: the type for impl items, else the parent."""
    parent = snapshot.parent(item)
    if parent is not None and parent.kind == "impl":
        return snapshot.get(parent.target)
    if parent is not None and parent.kind == "module":
        return None
    return parent
