"""Tests for representation, discriminant and exhaustiveness rules."""

from __future__ import annotations

from semcheck.rules.layout import parse_repr
from tests.helpers_snapshot import SnapshotBuilder, matched_items, run_rule


def _wrapper(field_visibility: str) -> SnapshotBuilder:
    builder = SnapshotBuilder()
    foo = builder.add("struct", "Foo", struct_kind="tuple", attrs=["#[repr(transparent)]"])
    builder.add("struct_field", "0", parent=foo, type="Bar", visibility=field_visibility)
    builder.add("struct_field", "1", parent=foo, type="PhantomData<T>")
    return builder


def test_parse_repr_merges_attributes_and_normalizes() -> None:
    assert parse_repr(("#[repr(C)]", "#[repr(u8)]")) == parse_repr(("#[repr(C, u8,)]",))
    packed = parse_repr(("#[repr(packed)]", "#[derive(Debug)]"))
    assert packed.packed == 1
    assert parse_repr(("#[repr(align(8))]",)).align == 8
    assert parse_repr(()).describe() == "(default repr)"


def test_repr_transparent_removed_with_public_field() -> None:
    baseline = _wrapper("public")
    current = _wrapper("public")
    current.set("Foo", attrs=[])

    matches = run_rule("struct_repr_transparent_removed", baseline, current)
    assert [match.item for match in matches] == ["demo::Foo"]
    assert matches[0].facts == {
        "old_repr": "#[repr(transparent)]",
        "new_repr": "(default repr)",
    }


def test_repr_transparent_removed_with_private_field_is_not_breaking() -> None:
    baseline = _wrapper("private")
    current = _wrapper("private")
    current.set("Foo", attrs=[])

    assert matched_items("struct_repr_transparent_removed", baseline, current) == []


def test_repr_c_and_int_changes() -> None:
    baseline = SnapshotBuilder()
    baseline.add("enum", "Code", attrs=["#[repr(C, u8)]"])
    baseline.add("enum", "Flag", attrs=["#[repr(u16)]"])
    current = baseline.copy()
    current.set("Code", attrs=["#[repr(u8)]"])
    current.set("Flag", attrs=["#[repr(u32)]"])

    assert matched_items("enum_repr_c_removed", baseline, current) == ["demo::Code"]
    assert matched_items("enum_repr_int_changed", baseline, current) == ["demo::Flag"]
    assert matched_items("enum_repr_int_removed", baseline, current) == []


def test_trailing_comma_is_not_a_repr_change() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Pod", struct_kind="plain", attrs=["#[repr(C)]"])
    current = baseline.copy()
    current.set("Pod", attrs=["#[repr(C,)]"])

    assert matched_items("struct_repr_c_removed", baseline, current) == []
    assert matched_items("repr_packed_changed", baseline, current) == []


def test_packed_and_align_changes() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Header", struct_kind="plain", attrs=["#[repr(C, packed)]"])
    current = baseline.copy()
    current.set("Header", attrs=["#[repr(C, packed(2))]", "#[repr(align(4))]"])

    assert matched_items("repr_packed_changed", baseline, current) == ["demo::Header"]
    assert matched_items("repr_align_changed", baseline, current) == ["demo::Header"]


def test_discriminant_change_counts_implicit_values() -> None:
    baseline = SnapshotBuilder()
    level = baseline.add("enum", "Level")
    baseline.add("variant", "Low", parent=level, struct_kind="unit")
    baseline.add("variant", "High", parent=level, struct_kind="unit")
    current = baseline.copy()
    current.set("Level::Low", discriminant="5")

    matches = run_rule("enum_variant_discriminant_changed", baseline, current)
    assert [match.item for match in matches] == ["demo::Level::Low", "demo::Level::High"]
    by_item = {match.item: match.facts for match in matches}
    assert by_item["demo::Level::Low"]["old_discriminant"] == "0"
    assert by_item["demo::Level::Low"]["new_discriminant"] == "5"
    assert by_item["demo::Level::High"]["new_discriminant"] == "6"
    assert by_item["demo::Level::High"]["repr"] == "isize"


def test_discriminant_of_enum_with_data_and_no_repr_is_not_observable() -> None:
    baseline = SnapshotBuilder()
    message = baseline.add("enum", "Message")
    baseline.add("variant", "Quit", parent=message, struct_kind="unit")
    baseline.add("variant", "Write", parent=message, struct_kind="tuple")
    current = baseline.copy()
    current.set("Message::Quit", discriminant="3")

    assert matched_items("enum_variant_discriminant_changed", baseline, current) == []


def test_enum_marked_non_exhaustive() -> None:
    baseline = SnapshotBuilder()
    color = baseline.add("enum", "Color")
    baseline.add("variant", "Red", parent=color, struct_kind="unit")
    current = baseline.copy()
    current.set("Color", non_exhaustive=True)

    assert matched_items("enum_marked_non_exhaustive", baseline, current) == ["demo::Color"]


def test_enum_marked_non_exhaustive_with_sealed_variants_is_not_breaking() -> None:
    baseline = SnapshotBuilder()
    token = baseline.add("enum", "Token")
    for name in ("A", "B"):
        variant = baseline.add("variant", name, parent=token, struct_kind="tuple")
        baseline.add("struct_field", "0", parent=variant, type="u8", visibility="private")
    current = baseline.copy()
    current.set("Token", non_exhaustive=True)

    assert matched_items("enum_marked_non_exhaustive", baseline, current) == []


def test_struct_marked_non_exhaustive_only_if_constructible() -> None:
    baseline = SnapshotBuilder()
    open_struct = baseline.add("struct", "Open", struct_kind="plain")
    baseline.add("struct_field", "a", parent=open_struct, type="u8")
    closed = baseline.add("struct", "Closed", struct_kind="plain")
    baseline.add("struct_field", "b", parent=closed, type="u8", visibility="private")
    current = baseline.copy()
    current.set("Open", non_exhaustive=True)
    current.set("Closed", non_exhaustive=True)

    assert matched_items("struct_marked_non_exhaustive", baseline, current) == ["demo::Open"]


def test_no_longer_non_exhaustive_is_a_minor_warning() -> None:
    baseline = SnapshotBuilder()
    baseline.add("struct", "Options", struct_kind="plain", non_exhaustive=True)
    current = baseline.copy()
    current.set("Options", non_exhaustive=False)

    assert matched_items("struct_no_longer_non_exhaustive", baseline, current) == [
        "demo::Options"
    ]
