"""Tests for attribute-transition rules."""

from __future__ import annotations

from tests.helpers_snapshot import SnapshotBuilder, matched_items, run_rule


def _api() -> SnapshotBuilder:
    builder = SnapshotBuilder()
    builder.add("function", "compute", params=[{"name": "x", "type": "u32"}], output="u32")
    config = builder.add("struct", "Config", struct_kind="plain")
    builder.add("struct_field", "level", parent=config, type="u8")
    builder.add("impl", parent=None, item_id="impl-config", target=config)
    builder.add("method", "apply", parent="impl-config", receiver="&self")
    mode = builder.add("enum", "Mode")
    builder.add("variant", "Fast", parent=mode, struct_kind="unit")
    builder.add("variant", "Slow", parent=mode, struct_kind="unit")
    return builder


def test_function_marked_deprecated_carries_note() -> None:
    baseline = _api()
    current = _api()
    current.set("compute", deprecated=True, deprecation_note="use compute_v2")

    matches = run_rule("function_marked_deprecated", baseline, current)
    assert [match.item for match in matches] == ["demo::compute"]
    assert matches[0].facts["note"] == "use compute_v2"


def test_already_deprecated_item_is_not_reported_again() -> None:
    baseline = _api()
    baseline.set("compute", deprecated=True)
    current = _api()
    current.set("compute", deprecated=True)

    assert matched_items("function_marked_deprecated", baseline, current) == []


def test_variant_deprecation_is_suppressed_when_enum_is_deprecated_too() -> None:
    baseline = _api()
    current = _api()
    current.set("Mode", deprecated=True)
    current.set("Mode::Fast", deprecated=True)

    assert matched_items("type_marked_deprecated", baseline, current) == ["demo::Mode"]
    assert matched_items("enum_variant_marked_deprecated", baseline, current) == []

    only_variant = _api()
    only_variant.set("Mode::Fast", deprecated=True)
    assert matched_items("enum_variant_marked_deprecated", baseline, only_variant) == [
        "demo::Mode::Fast"
    ]


def test_must_use_added_on_inherent_method() -> None:
    baseline = _api()
    current = _api()
    current.set("impl-config::apply", must_use=True)

    assert matched_items("inherent_method_must_use_added", baseline, current) == [
        "demo::Config::apply"
    ]


def test_safe_function_requiring_more_target_features() -> None:
    baseline = _api()
    baseline.set("compute", target_features=["sse2"])
    current = _api()
    current.set("compute", target_features=["sse2", "avx2"])

    matches = run_rule("safe_function_requires_more_target_features", baseline, current)
    assert [match.item for match in matches] == ["demo::compute"]
    assert matches[0].facts["target_features"] == "avx2"
    assert matched_items("unsafe_function_requires_more_target_features", baseline, current) == []


def test_unsafe_function_requiring_more_target_features_is_separate() -> None:
    baseline = _api()
    baseline.set("compute", unsafe=True)
    current = _api()
    current.set("compute", unsafe=True, target_features=["avx512f"])

    assert matched_items("unsafe_function_requires_more_target_features", baseline, current) == [
        "demo::compute"
    ]
    assert matched_items("safe_function_requires_more_target_features", baseline, current) == []


def test_function_unsafe_added_and_const_removed() -> None:
    baseline = _api()
    baseline.set("compute", const=True)
    current = _api()
    current.set("compute", unsafe=True)

    assert matched_items("function_unsafe_added", baseline, current) == ["demo::compute"]
    assert matched_items("function_const_removed", baseline, current) == ["demo::compute"]


def test_trait_method_unsafe_removed_only_for_unsealed_traits() -> None:
    baseline = SnapshotBuilder()
    trait = baseline.add("trait", "Backend")
    baseline.add("method", "raw", parent=trait, unsafe=True, receiver="&self")
    current = baseline.copy()
    current.set("Backend::raw", unsafe=False)

    assert matched_items("trait_method_unsafe_removed", baseline, current) == [
        "demo::Backend::raw"
    ]

    sealed = current.copy()
    private = sealed.add("module", "private", visibility="private")
    token = sealed.add("trait", "Sealed", parent=private)
    sealed.set("Backend", supertraits=[token])
    assert matched_items("trait_method_unsafe_removed", baseline, sealed) == []


def test_abi_changes() -> None:
    baseline = SnapshotBuilder()
    baseline.add("function", "ffi_entry", abi="C-unwind", export_name="entry")
    baseline.add("function", "callback", abi="C")

    current = baseline.copy()
    current.set("ffi_entry", abi="C", export_name="entry_v2")
    current.set("callback", abi="system")

    assert matched_items("function_abi_no_longer_unwind", baseline, current) == ["demo::ffi_entry"]
    assert matched_items("function_changed_abi", baseline, current) == ["demo::callback"]
    matches = run_rule("function_export_name_changed", baseline, current)
    assert [match.item for match in matches] == ["demo::ffi_entry"]
    assert matches[0].facts["export_name"] == "entry -> entry_v2"
