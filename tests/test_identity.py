"""Tests for importable-path indexing and cross-version identity."""

from __future__ import annotations

from semcheck.identity import IdentityResolver, build_path_index
from tests.helpers_snapshot import SnapshotBuilder, make_pair, matched_items


def _paths(builder: SnapshotBuilder, item_id: str) -> list[str]:
    index = build_path_index(builder.build())
    return [str(path) for path in index.paths(item_id)]


def test_moved_item_with_reexport_keeps_identity() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Foo", struct_kind="unit")

    current = SnapshotBuilder(version="1.0.1")
    inner = current.add("module", "inner", visibility="private")
    moved = current.add("struct", "Foo", parent=inner, struct_kind="unit")
    current.add("use", "Foo", target=moved)

    resolver = IdentityResolver(make_pair(baseline, current))
    foo = resolver.pair.baseline.item("Foo")
    counterpart = resolver.counterpart(foo)

    assert counterpart is not None
    assert counterpart.id == "inner::Foo"
    assert resolver.identity(counterpart, "current") == "demo::Foo"
    assert matched_items("struct_missing", baseline, current) == []


def test_rename_without_alias_is_a_removal() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Foo", struct_kind="unit")
    current = SnapshotBuilder()
    current.add("struct", "Bar", struct_kind="unit")

    assert matched_items("struct_missing", baseline, current) == ["demo::Foo"]


def test_rename_with_compatibility_alias_is_not_a_removal() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Foo", struct_kind="unit")
    current = SnapshotBuilder()
    bar = current.add("struct", "Bar", struct_kind="unit")
    current.add("use", item_id="use-foo", target=bar, rename="Foo")

    assert matched_items("struct_missing", baseline, current) == []
    assert _paths(current, bar) == ["demo::Bar", "demo::Foo"]


def test_one_surviving_path_is_enough() -> None:
    baseline = SnapshotBuilder()
    prelude = baseline.add("module", "prelude")
    widget = baseline.add("struct", "Widget", struct_kind="unit")
    baseline.add("use", "Widget", parent=prelude, target=widget)

    current = baseline.copy()
    current.remove("prelude::Widget")

    resolver = IdentityResolver(make_pair(baseline, current))
    assert resolver.counterpart(resolver.pair.baseline.item(widget)) is not None
    assert matched_items("struct_missing", baseline, current) == []


def test_reexport_cycles_terminate() -> None:
    builder = SnapshotBuilder()
    builder.add("struct", "Foo", struct_kind="unit")
    loop = builder.add("module", "a")
    builder.add("use", "again", parent=loop, target="root", rename="again")
    builder.add("use", parent=loop, item_id="a::glob", target="root", glob=True)

    paths = _paths(builder, "Foo")
    assert paths == ["demo::Foo", "demo::a::Foo"]
    assert "demo::a::again" in _paths(builder, "root")


def test_use_chain_cycle_is_ignored() -> None:
    builder = SnapshotBuilder()
    builder.add("use", "first", item_id="first", target="second")
    builder.add("use", "second", item_id="second", target="first")

    index = build_path_index(builder.build())
    assert index.item_ids() == ["root"]


def test_hidden_module_paths_are_not_public_api() -> None:
    builder = SnapshotBuilder()
    internals = builder.add("module", "internals", doc_hidden=True)
    builder.add("function", "helper", parent=internals)
    builder.add("function", "old_helper", parent=internals, deprecated=True)

    index = build_path_index(builder.build())
    assert index.is_importable("internals::helper")
    assert not index.is_public_api("internals::helper")
    assert index.is_public_api("internals::old_helper")


def test_private_items_are_not_importable() -> None:
    builder = SnapshotBuilder()
    builder.add("function", "secret", visibility="private")
    private_mod = builder.add("module", "detail", visibility="restricted")
    builder.add("function", "inner", parent=private_mod)

    index = build_path_index(builder.build())
    assert not index.is_importable("secret")
    assert not index.is_importable("detail::inner")


def test_equivalent_type_alias_preserves_identity() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Foo", struct_kind="unit", generics=[{"name": "T"}])

    current = SnapshotBuilder()
    inner = current.add("module", "imp", visibility="private")
    target = current.add(
        "struct", "FooImpl", parent=inner, struct_kind="unit", generics=[{"name": "T"}]
    )
    current.add("type_alias", "Foo", target=target, type="FooImpl<T>", generics=[{"name": "T"}])

    assert matched_items("struct_missing", baseline, current) == []


def test_specializing_type_alias_is_not_the_same_type() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Foo", struct_kind="unit", generics=[{"name": "T"}])

    current = SnapshotBuilder()
    inner = current.add("module", "imp", visibility="private")
    target = current.add(
        "struct", "FooImpl", parent=inner, struct_kind="unit", generics=[{"name": "T"}]
    )
    current.add("type_alias", "Foo", target=target, type="FooImpl<u8>")

    assert matched_items("struct_missing", baseline, current) == ["demo::Foo"]


def test_exported_macros_live_at_the_crate_root() -> None:
    builder = SnapshotBuilder()
    hidden = builder.add("module", "macros", visibility="private")
    builder.add("macro", "make_it", parent=hidden, exported=True)

    assert _paths(builder, "macros::make_it") == ["demo::make_it"]


def test_identity_of_members_uses_owner_path() -> None:
    builder = SnapshotBuilder()
    struct = builder.add("struct", "Point", struct_kind="plain")
    field = builder.add("struct_field", "x", parent=struct, type="i32")
    builder.add("impl", parent=None, item_id="impl-point", target=struct)
    method = builder.add("method", "norm", parent="impl-point")

    resolver = IdentityResolver(make_pair(builder, builder.copy()))
    snapshot = resolver.pair.baseline
    assert resolver.identity(snapshot.item(field)) == "demo::Point::x"
    assert resolver.identity(snapshot.item(method)) == "demo::Point::norm"


def test_additions_lists_new_public_items() -> None:
    baseline = SnapshotBuilder()
    baseline.add("function", "old")
    current = baseline.copy()
    current.add("function", "new")
    current.add("function", "hidden_new", doc_hidden=True)

    resolver = IdentityResolver(make_pair(baseline, current))
    assert [resolver.identity(item, "current") for item in resolver.additions()] == ["demo::new"]
