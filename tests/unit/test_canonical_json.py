"""
Canonicalization Unit Tests
File: tests/unit/test_canonical_json.py

Purpose: the record string that record signatures cover must be
byte-stable across runs and key orders.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from core.schemas import (
    CanonicalizationException,
    canonical_record_string,
    dumps_canonical,
)
from core.schemas.canonical import format_timestamp, parse_timestamp


def make_record_dict(**overrides):
    record = {
        "id": "rec-1",
        "issuer_id": "acme",
        "batch": "2026-spring",
        "merkle_root": "0x" + "ab" * 32,
        "signature": "0x" + "cd" * 65,
        "proof_json": {"network": "memory", "proofs": []},
        "file_paths": ["a.pdf"],
        "description": None,
        "expiry_date": None,
        "created_at": "2026-01-27T21:35:00.000Z",
        "proof_signature": "0x" + "ef" * 65,
    }
    record.update(overrides)
    return record


class TestDumpsCanonical:
    def test_sorted_keys_no_whitespace(self):
        assert dumps_canonical({"b": 2, "a": 1}) == '{"a":1,"b":2}'

    def test_key_order_independent(self):
        assert dumps_canonical({"z": 1, "a": {"y": 2, "b": 3}}) == dumps_canonical(
            {"a": {"b": 3, "y": 2}, "z": 1}
        )

    def test_none_dropped_by_default(self):
        assert dumps_canonical({"a": None, "b": 1}) == '{"b":1}'

    def test_none_kept_when_asked(self):
        assert dumps_canonical({"a": None}, keep_none=True) == '{"a":null}'

    def test_bytes_as_hex(self):
        assert dumps_canonical({"h": b"\x01\xff"}) == '{"h":"0x01ff"}'

    def test_non_ascii_preserved(self):
        assert dumps_canonical({"name": "Zoë"}) == '{"name":"Zoë"}'

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_floats_rejected(self, value):
        with pytest.raises(CanonicalizationException):
            dumps_canonical({"x": value})


class TestRecordString:
    def test_excludes_record_signature(self):
        text = canonical_record_string(make_record_dict())

        assert "proof_signature" not in text
        assert '"description":null' in text

    def test_record_signature_does_not_change_string(self):
        a = canonical_record_string(make_record_dict(proof_signature="0x01"))
        b = canonical_record_string(make_record_dict(proof_signature=None))

        assert a == b

    def test_content_change_changes_string(self):
        a = canonical_record_string(make_record_dict())
        b = canonical_record_string(make_record_dict(batch="2026-fall"))

        assert a != b

    def test_unknown_version_rejected(self):
        with pytest.raises(CanonicalizationException, match="Unknown record serialization"):
            canonical_record_string(make_record_dict(), "v9")


class TestTimestamps:
    def test_format_naive_as_utc(self):
        assert format_timestamp(datetime(2026, 1, 27, 21, 35, 0)) == "2026-01-27T21:35:00.000Z"

    def test_format_converts_offsets(self):
        dt = datetime(2026, 1, 27, 23, 35, 0, 120000, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(dt) == "2026-01-27T21:35:00.120Z"

    def test_parse_round_trip(self):
        text = "2026-01-27T21:35:00.000Z"

        assert format_timestamp(parse_timestamp(text)) == text

    def test_parse_date_only(self):
        assert parse_timestamp("2027-06-30") == datetime(2027, 6, 30, tzinfo=timezone.utc)
