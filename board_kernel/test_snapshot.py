# file: board_kernel/test_snapshot.py
"""
Board Kernel — Document Encoder / Decoder Tests

10 deterministic tests:
  1-4:   Per-document canonical encoding
  5-8:   Strict decoding (missing / unknown / wrong types / enums)
  9-10:  Settings bundle and canonical hash

Run:  python -m board_kernel.test_snapshot
"""

from __future__ import annotations

import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from board_kernel.catalog import RowType
from board_kernel.context import BoardContext
from board_kernel.domain_types import BoxAttachmentRule, JobRowConfig, SplitBox
from board_kernel.hashing import canonical_hash
from board_kernel.layout import split_box, split_row, update_box
from board_kernel.snapshot import (
    DeserializationError,
    InvariantViolationSnapshotError,
    SnapshotError,
    decode_drop_rules,
    decode_job_types,
    decode_magnet_rules,
    decode_row_configs,
    encode_drop_rules,
    encode_job_types,
    encode_magnet_rules,
    encode_row_configs,
    export_settings,
    import_settings,
)
from board_kernel.templates import default_drop_rules, default_job_types, default_magnet_rules


# ══════════════════════════════════════════════════════════════
# Test Fixtures
# ══════════════════════════════════════════════════════════════

def _row_config() -> JobRowConfig:
    cfg = split_row(JobRowConfig("J1", RowType.EQUIPMENT)).config
    cfg = update_box(
        cfg, (0,),
        allowed_types=["paver", "roller", "operator"],
        attachment_rules=[BoxAttachmentRule("operator", "paver", is_auto_attach=True, priority=2)],
    ).config
    return split_box(cfg, (0,)).config


def _context() -> BoardContext:
    ctx = BoardContext.with_defaults()
    ctx.update_job_row_config(_row_config())
    return ctx


def _expect_decode_error(decoder, text: str) -> None:
    try:
        decoder(text)
        raise AssertionError("Expected DeserializationError")
    except DeserializationError as e:
        print(f"  Caught: {e}")


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


# ══════════════════════════════════════════════════════════════
# Encoding (1 – 4)
# ══════════════════════════════════════════════════════════════

def test_01_magnet_rules_encode_decode_encode() -> None:
    _header("Test 01 — magnet_rules encode -> decode -> encode")
    json1 = encode_magnet_rules(default_magnet_rules())
    json2 = encode_magnet_rules(decode_magnet_rules(json1))
    assert json1 == json2
    raw = json.loads(json1)
    assert raw["magnetRules"][0]["sourceType"] == "operator"
    print("  [PASS]")


def test_02_drop_rules_and_job_types() -> None:
    _header("Test 02 — drop_rules / job_types")
    drop = default_drop_rules()
    assert decode_drop_rules(encode_drop_rules(drop)) == drop
    types = default_job_types()
    assert decode_job_types(encode_job_types(types)) == types
    print("  [PASS]")


def test_03_row_configs_keep_dormant_settings() -> None:
    _header("Test 03 — row_configs preserve split boxes")
    cfg = _row_config()
    decoded = decode_row_configs(encode_row_configs([cfg]))[0]
    assert decoded == cfg
    node = decoded.boxes[0]
    assert isinstance(node, SplitBox)
    assert node.dormant_attachment_rules[0].priority == 2
    raw = json.loads(encode_row_configs([cfg]))["rowConfigs"][0]
    assert raw["isSplit"] is True and raw["boxes"][0]["isSplit"] is True
    print("  [PASS]")


def test_04_encoding_is_canonical() -> None:
    _header("Test 04 — Same content, same bytes")
    a = encode_magnet_rules(list(default_magnet_rules()))
    b = encode_magnet_rules(reversed(list(default_magnet_rules())))
    # Plain lists keep caller order; tables sort by key.
    assert a != b
    ctx1, ctx2 = _context(), _context()
    assert export_settings(ctx1) == export_settings(ctx2)
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Strict decoding (5 – 8)
# ══════════════════════════════════════════════════════════════

def test_05_missing_and_unknown_fields() -> None:
    _header("Test 05 — Missing / unknown fields")
    raw = json.loads(encode_magnet_rules(default_magnet_rules()))
    del raw["magnetRules"][0]["maxCount"]
    _expect_decode_error(decode_magnet_rules, json.dumps(raw))

    raw = json.loads(encode_drop_rules(default_drop_rules()))
    raw["dropRules"][0]["wildcard"] = True
    _expect_decode_error(decode_drop_rules, json.dumps(raw))

    _expect_decode_error(decode_drop_rules, json.dumps({"rules": []}))
    print("  [PASS]")


def test_06_wrong_types() -> None:
    _header("Test 06 — Wrong JSON types and floats")
    raw = json.loads(encode_magnet_rules(default_magnet_rules()))
    raw["magnetRules"][0]["maxCount"] = 1.0
    _expect_decode_error(decode_magnet_rules, json.dumps(raw))
    raw["magnetRules"][0]["maxCount"] = True
    _expect_decode_error(decode_magnet_rules, json.dumps(raw))
    raw["magnetRules"][0]["maxCount"] = -3
    _expect_decode_error(decode_magnet_rules, json.dumps(raw))
    _expect_decode_error(decode_magnet_rules, "[]")
    _expect_decode_error(decode_magnet_rules, "{not json")
    print("  [PASS]")


def test_07_unknown_enum_values() -> None:
    _header("Test 07 — Unknown resource / row types")
    raw = json.loads(encode_drop_rules(default_drop_rules()))
    raw["dropRules"][0]["allowedTypes"].append("crane")
    _expect_decode_error(decode_drop_rules, json.dumps(raw))
    raw = json.loads(encode_drop_rules(default_drop_rules()))
    raw["dropRules"][0]["rowType"] = "Office"
    _expect_decode_error(decode_drop_rules, json.dumps(raw))
    print("  [PASS]")


def test_08_structural_and_invariant_errors() -> None:
    _header("Test 08 — isSplit mismatch and invariant violations")
    raw = json.loads(encode_row_configs([_row_config()]))
    raw["rowConfigs"][0]["boxes"][0]["subBoxes"] = []
    _expect_decode_error(decode_row_configs, json.dumps(raw))

    raw = json.loads(encode_row_configs([_row_config()]))
    raw["rowConfigs"][0]["boxes"][1]["id"] = raw["rowConfigs"][0]["boxes"][0]["id"]
    try:
        decode_row_configs(json.dumps(raw))
        raise AssertionError("Expected InvariantViolationSnapshotError")
    except InvariantViolationSnapshotError as e:
        assert e.original.rule == "duplicate_box_id"
        assert isinstance(e, SnapshotError)
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Settings bundle (9 – 10)
# ══════════════════════════════════════════════════════════════

def test_09_export_import_settings() -> None:
    _header("Test 09 — export_settings -> import_settings")
    ctx = _context()
    text = export_settings(ctx)
    restored = import_settings(text)
    assert export_settings(restored) == text
    assert restored.get_job_row_config("J1", RowType.EQUIPMENT) == _row_config()

    raw = json.loads(text)
    raw["formatVersion"] = 2
    _expect_decode_error(import_settings, json.dumps(raw))
    raw = json.loads(text)
    raw["magnetRules"].append(raw["magnetRules"][0])
    _expect_decode_error(import_settings, json.dumps(raw))
    print("  [PASS]")


def test_10_canonical_hash() -> None:
    _header("Test 10 — canonical_hash tracks content")
    ctx = _context()
    h1 = canonical_hash(ctx)
    assert h1 == canonical_hash(import_settings(export_settings(ctx)))
    assert len(h1) == 64 and h1 == h1.lower()
    ctx.update_drop_rule(RowType.MPT, ["laborer"])
    assert canonical_hash(ctx) != h1
    print("  [PASS]")


def main() -> None:
    tests = [
        test_01_magnet_rules_encode_decode_encode,
        test_02_drop_rules_and_job_types,
        test_03_row_configs_keep_dormant_settings,
        test_04_encoding_is_canonical,
        test_05_missing_and_unknown_fields,
        test_06_wrong_types,
        test_07_unknown_enum_values,
        test_08_structural_and_invariant_errors,
        test_09_export_import_settings,
        test_10_canonical_hash,
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
