# file: board_kernel/test_layout.py
"""
Board Kernel — Layout Mutation Tests

20 deterministic tests:
  1-7:    Row and box split / unsplit / add / remove
  8-9:    Path addressing (invalid paths, deep trees)
  10-18:  update_box validation, per-row type uniqueness, local rules
  19-20:  Immutability

Run:  python -m board_kernel.test_layout
"""

from __future__ import annotations

import os
import sys
from dataclasses import replace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from board_kernel.catalog import EQUIPMENT_TYPES, PERSONNEL_TYPES, ResourceType, RowType
from board_kernel.domain_types import (
    APPLIED,
    INVALID_PATH,
    REJECTED,
    UNCHANGED,
    BoxAttachmentRule,
    JobRowConfig,
    LeafBox,
    SplitBox,
)
from board_kernel.invariants import validate_row_config
from board_kernel.layout import (
    LayoutValidationError,
    add_box,
    remove_box,
    remove_sub_box,
    split_box,
    split_row,
    unsplit_box,
    unsplit_row,
    update_box,
    upsert_box_attachment_rule,
)
from board_kernel.tree import depth, get_box, iter_boxes, leaf_paths


# ══════════════════════════════════════════════════════════════
# Test Fixtures
# ══════════════════════════════════════════════════════════════

def _row() -> JobRowConfig:
    return JobRowConfig(job_id="J1", row_type=RowType.EQUIPMENT)


def _split() -> JobRowConfig:
    return split_row(_row()).config


def _deep() -> JobRowConfig:
    """Depth-3 tree: [0] -> [0,0] -> [0,0,0] / [0,0,1]."""
    cfg = _split()
    cfg = split_box(cfg, (0,)).config
    cfg = split_box(cfg, (0, 0)).config
    return cfg


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


# ══════════════════════════════════════════════════════════════
# Split / Unsplit / Add / Remove (1 – 7)
# ══════════════════════════════════════════════════════════════

def test_01_split_row_default_partition() -> None:
    _header("Test 01 — split_row default partition")
    base = _row()
    result = split_row(base)
    assert result.status == APPLIED
    cfg = result.config
    assert cfg.is_split and len(cfg.boxes) == 2
    first, second = cfg.boxes
    assert first.id == "J1-Equipment-box1" and second.id == "J1-Equipment-box2"
    assert first.name == "Equipment" and second.name == "Personnel"
    assert first.max_count == 10 and second.max_count == 10
    assert first.allowed_types == EQUIPMENT_TYPES
    assert second.allowed_types == PERSONNEL_TYPES
    assert not (first.allowed_types & second.allowed_types)
    assert cfg.version == base.version + 1
    validate_row_config(cfg)
    assert not base.is_split and base.version == 0
    print("  [PASS]")


def test_02_split_row_already_split_is_rejected() -> None:
    _header("Test 02 — split_row on a split row")
    cfg = _split()
    result = split_row(cfg)
    assert result.status == REJECTED
    assert result.config is cfg
    empty = split_row(_row(), "A", "B", default_partition=False).config
    assert all(not b.allowed_types for b in empty.boxes)
    assert [b.name for b in empty.boxes] == ["A", "B"]
    print("  [PASS]")


def test_03_split_then_unsplit_row_is_identity() -> None:
    _header("Test 03 — split_row then unsplit_row")
    base = _row()
    back = unsplit_row(split_row(base).config)
    assert back.status == APPLIED
    assert replace(back.config, version=base.version) == base
    again = unsplit_row(base)
    assert again.status == UNCHANGED and again.config is base
    print("  [PASS]")


def test_04_add_box() -> None:
    _header("Test 04 — add_box")
    cfg = add_box(_split()).config
    assert len(cfg.boxes) == 3
    box = cfg.boxes[2]
    assert isinstance(box, LeafBox)
    assert box.name == "Box 3" and box.max_count == 5
    assert box.id == "J1-Equipment-box3"
    assert not box.allowed_types
    named = add_box(cfg, name="Tack").config
    assert named.boxes[3].name == "Tack"
    assert len({b.id for _, b in iter_boxes(named.boxes)}) == 4
    print("  [PASS]")


def test_05_remove_box() -> None:
    _header("Test 05 — remove_box")
    cfg = _split()
    out = remove_box(cfg, 0)
    assert out.status == APPLIED and len(out.config.boxes) == 1
    assert out.config.boxes[0].id == "J1-Equipment-box2"

    last = remove_box(out.config, 0)
    assert last.status == REJECTED and last.config is out.config

    for bad in (2, -1, 99):
        res = remove_box(cfg, bad)
        assert res.status == INVALID_PATH, f"index {bad}: {res.status}"
        assert res.config is cfg
    print("  [PASS]")


def test_06_split_box_halves_capacity() -> None:
    _header("Test 06 — split_box children")
    for total in (0, 1, 2, 7, 10):
        cfg = update_box(_split(), (0,), max_count=total).config
        node = get_box(split_box(cfg, (0,)).config, (0,))
        left, right = node.sub_boxes
        assert left.max_count + right.max_count == total, total
        assert left.max_count == (total + 1) // 2 and left.max_count >= right.max_count
        print(f"  max {total:>2} -> {left.max_count} + {right.max_count}")

    cfg = _split()
    cfg = update_box(cfg, (0,), max_count=5).config
    before = get_box(cfg, (0,))
    result = split_box(cfg, (0,))
    assert result.status == APPLIED
    node = get_box(result.config, (0,))
    assert isinstance(node, SplitBox)
    left, right = node.sub_boxes
    assert (left.name, right.name) == ("Left", "Right")
    assert (left.max_count, right.max_count) == (3, 2)
    assert node.max_count == 5
    assert not left.allowed_types and not right.allowed_types
    assert left.id == f"{before.id}-1" and right.id == f"{before.id}-2"
    assert node.dormant_allowed_types == before.allowed_types

    again = split_box(result.config, (0,))
    assert again.status == REJECTED and again.config is result.config
    validate_row_config(result.config)
    print("  [PASS]")


def test_07_unsplit_box_restores_dormant_settings() -> None:
    _header("Test 07 — unsplit_box")
    cfg = _split()
    original = get_box(cfg, (1,))
    split = split_box(cfg, (1,)).config
    back = unsplit_box(split, (1,))
    assert back.status == APPLIED
    restored = get_box(back.config, (1,))
    assert restored == original

    leaf = unsplit_box(cfg, (1,))
    assert leaf.status == UNCHANGED and leaf.config is cfg
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Path Addressing (8 – 9)
# ══════════════════════════════════════════════════════════════

def test_08_invalid_paths_are_noops() -> None:
    _header("Test 08 — Invalid paths never throw or mutate")
    cfg = _deep()
    snapshot = cfg.to_dict()
    bad_paths = [(), (9,), (0, 5), (0, 0, 0, 0), (-1,), (True,), "ab", None, 3, (0, "x")]
    ops = [
        lambda p: split_box(cfg, p),
        lambda p: unsplit_box(cfg, p),
        lambda p: update_box(cfg, p, name="X"),
        lambda p: remove_sub_box(cfg, p),
        lambda p: upsert_box_attachment_rule(
            cfg, p, BoxAttachmentRule(ResourceType.OPERATOR, ResourceType.PAVER),
        ),
    ]
    for op in ops:
        for path in bad_paths:
            res = op(path)
            assert res.status == INVALID_PATH, f"{path!r}: {res.status}"
            assert res.config is cfg
    assert cfg.to_dict() == snapshot
    print(f"  {len(ops) * len(bad_paths)} invalid-path calls were no-ops")
    print("  [PASS]")


def test_09_deep_update_leaves_siblings_untouched() -> None:
    _header("Test 09 — Depth-3 update touches only its spine")
    cfg = _deep()
    assert depth(cfg) == 3
    target = (0, 0, 1)
    result = update_box(cfg, target, name="Rollers")
    assert result.status == APPLIED
    new = result.config
    assert get_box(new, target).name == "Rollers"

    spine = {target[:i] for i in range(1, len(target) + 1)}
    old_boxes = dict(iter_boxes(cfg.boxes))
    for path, box in iter_boxes(new.boxes):
        if path in spine:
            continue
        assert box is old_boxes[path], f"sibling at {list(path)} was rebuilt"
    assert sorted(leaf_paths(new)) == sorted(leaf_paths(cfg))
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# update_box (10 – 18)
# ══════════════════════════════════════════════════════════════

def test_10_update_box_rejects_bad_fields() -> None:
    _header("Test 10 — Unknown keys and negative max_count")
    cfg = _split()
    for updates in ({"colour": "red"}, {"max_count": -1}, {"max_count": "3"}, {"name": ""}):
        try:
            update_box(cfg, (0,), updates)
            raise AssertionError(f"Expected LayoutValidationError for {updates}")
        except LayoutValidationError as e:
            print(f"  Caught: {e}")
    print("  [PASS]")


def test_11_update_box_rule_scope() -> None:
    _header("Test 11 — Attachment rules must stay inside the box")
    cfg = _split()
    outside = BoxAttachmentRule(ResourceType.OPERATOR, ResourceType.PAVER)
    try:
        update_box(cfg, (0,), attachment_rules=[outside])
        raise AssertionError("Expected LayoutValidationError for out-of-scope rule")
    except LayoutValidationError as e:
        assert e.rule == "attachment_rule_scope"

    selfish = BoxAttachmentRule(ResourceType.PAVER, ResourceType.PAVER)
    try:
        update_box(cfg, (0,), attachment_rules=[selfish])
        raise AssertionError("Expected LayoutValidationError for self attachment")
    except LayoutValidationError as e:
        assert e.rule == "self_attachment"

    ok = update_box(
        cfg, (0,),
        allowed_types=["paver", "operator"],
        attachment_rules=[{"source_type": "operator", "target_type": "paver"}],
    )
    assert ok.status == APPLIED
    assert get_box(ok.config, (0,)).attachment_rules[0].key == (
        ResourceType.OPERATOR, ResourceType.PAVER,
    )
    print("  [PASS]")


def test_12_type_is_unique_per_row() -> None:
    _header("Test 12 — Allowing a type strips it from other boxes")
    cfg = _split()
    result = update_box(cfg, (0,), allowed_types={ResourceType.PAVER, ResourceType.OPERATOR})
    assert result.status == APPLIED
    personnel = get_box(result.config, (1,))
    assert ResourceType.OPERATOR not in personnel.allowed_types
    assert ResourceType.LABORER in personnel.allowed_types
    validate_row_config(result.config)
    print("  [PASS]")


def test_13_narrowing_drops_stale_rules() -> None:
    _header("Test 13 — Narrowing allowed_types trims local rules")
    cfg = _split()
    cfg = update_box(
        cfg, (0,),
        allowed_types=["paver", "operator"],
        attachment_rules=[BoxAttachmentRule("operator", "paver")],
    ).config
    narrowed = update_box(cfg, (0,), allowed_types=["paver"]).config
    box = get_box(narrowed, (0,))
    assert box.allowed_types == frozenset({ResourceType.PAVER})
    assert box.attachment_rules == ()
    print("  [PASS]")


def test_14_split_box_lists_are_inert() -> None:
    _header("Test 14 — Split boxes reject allow-list updates")
    cfg = split_box(_split(), (0,)).config
    res = update_box(cfg, (0,), allowed_types=["paver"])
    assert res.status == REJECTED and res.config is cfg
    renamed = update_box(cfg, (0,), name="Heavy")
    assert renamed.status == APPLIED
    assert get_box(renamed.config, (0,)).name == "Heavy"
    print("  [PASS]")


def test_15_identical_update_is_unchanged() -> None:
    _header("Test 15 — No-op update")
    cfg = _split()
    box = get_box(cfg, (1,))
    res = update_box(cfg, (1,), name=box.name, max_count=box.max_count)
    assert res.status == UNCHANGED and res.config is cfg
    assert res.config.version == cfg.version
    print("  [PASS]")


def test_16_upsert_box_attachment_rule() -> None:
    _header("Test 16 — upsert_box_attachment_rule replaces by pair")
    cfg = update_box(_split(), (0,), allowed_types=["paver", "roller", "operator"]).config
    first = upsert_box_attachment_rule(cfg, (0,), BoxAttachmentRule("operator", "paver"))
    assert first.status == APPLIED
    second = upsert_box_attachment_rule(
        first.config, (0,), BoxAttachmentRule("operator", "roller", priority=2),
    ).config
    third = upsert_box_attachment_rule(
        second, (0,), BoxAttachmentRule("operator", "paver", can_attach=False),
    )
    rules = get_box(third.config, (0,)).attachment_rules
    assert [r.target_type for r in rules] == [ResourceType.PAVER, ResourceType.ROLLER]
    assert rules[0].can_attach is False
    assert third.operation == "upsert_box_attachment_rule"

    split = split_box(cfg, (0,)).config
    res = upsert_box_attachment_rule(split, (0,), BoxAttachmentRule("operator", "paver"))
    assert res.status == REJECTED
    print("  [PASS]")


def test_17_remove_sub_box() -> None:
    _header("Test 17 — remove_sub_box")
    cfg = split_box(_split(), (0,)).config
    out = remove_sub_box(cfg, (0, 1))
    assert out.status == APPLIED
    parent = get_box(out.config, (0,))
    assert len(parent.sub_boxes) == 1 and parent.sub_boxes[0].name == "Left"
    last = remove_sub_box(out.config, (0, 0))
    assert last.status == REJECTED and last.config is out.config
    top = remove_sub_box(cfg, (1,))
    assert top.status == APPLIED and len(top.config.boxes) == 1
    print("  [PASS]")


def test_18_uniqueness_reaches_dormant_settings() -> None:
    _header("Test 18 — Stripping includes dormant allow-lists")
    cfg = split_box(_split(), (0,)).config
    assert ResourceType.PAVER in get_box(cfg, (0,)).dormant_allowed_types
    cfg = update_box(cfg, (1,), allowed_types=["paver", "laborer"]).config
    assert ResourceType.PAVER not in get_box(cfg, (0,)).dormant_allowed_types
    restored = unsplit_box(cfg, (0,)).config
    validate_row_config(restored)
    assert ResourceType.PAVER not in get_box(restored, (0,)).allowed_types
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Immutability (19 – 20)
# ══════════════════════════════════════════════════════════════

def test_19_inputs_are_never_mutated() -> None:
    _header("Test 19 — Inputs unchanged after every operation")
    cfg = _deep()
    before = cfg.to_dict()
    split_row(cfg)
    unsplit_row(cfg)
    add_box(cfg)
    remove_box(cfg, 1)
    split_box(cfg, (1,))
    unsplit_box(cfg, (0, 0))
    update_box(cfg, (1,), allowed_types=["operator"])
    remove_sub_box(cfg, (0, 1))
    assert cfg.to_dict() == before
    print("  [PASS]")


def test_20_versions_increase_only_when_applied() -> None:
    _header("Test 20 — Version bumps")
    cfg = _row()
    versions = [cfg.version]
    for op in (split_row, add_box, lambda c: split_box(c, (2,)), unsplit_row):
        cfg = op(cfg).config
        versions.append(cfg.version)
    assert versions == [0, 1, 2, 3, 4], versions
    assert split_row(_split()).config.version == 1
    print("  [PASS]")


def main() -> None:
    tests = [
        test_01_split_row_default_partition,
        test_02_split_row_already_split_is_rejected,
        test_03_split_then_unsplit_row_is_identity,
        test_04_add_box,
        test_05_remove_box,
        test_06_split_box_halves_capacity,
        test_07_unsplit_box_restores_dormant_settings,
        test_08_invalid_paths_are_noops,
        test_09_deep_update_leaves_siblings_untouched,
        test_10_update_box_rejects_bad_fields,
        test_11_update_box_rule_scope,
        test_12_type_is_unique_per_row,
        test_13_narrowing_drops_stale_rules,
        test_14_split_box_lists_are_inert,
        test_15_identical_update_is_unchanged,
        test_16_upsert_box_attachment_rule,
        test_17_remove_sub_box,
        test_18_uniqueness_reaches_dormant_settings,
        test_19_inputs_are_never_mutated,
        test_20_versions_increase_only_when_applied,
    ]
    results = []
    for fn in tests:
        try:
            fn()
            results.append(True)
        except Exception as e:
            print(f"\n[ERROR] {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            results.append(False)

    passed = sum(results)
    total = len(results)
    print(f"\n{'='*60}")
    print(f"  RESULTS: {passed}/{total} tests passed")
    print(f"{'='*60}")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
