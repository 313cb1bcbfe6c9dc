import json
from datetime import datetime

import pytest

from mediascribe.utils import (
    DEFAULT_NANOS_TIME,
    RandomSource,
    fixed_to_string,
    format_timestamp,
    string_to_fixed,
    to_json_format,
)


def test_string_to_fixed_pads_with_zeros():
    fixed = string_to_fixed("abc")
    assert len(fixed) == 32
    assert fixed[:3] == b"abc"
    assert set(fixed[3:]) == {0}


def test_string_to_fixed_truncates():
    assert string_to_fixed("x" * 40) == b"x" * 32


@pytest.mark.parametrize("text", ["hello", "", "ünïcode", "y" * 32])
def test_fixed_round_trip(text):
    assert fixed_to_string(string_to_fixed(text)) == text


def test_fixed_to_string_stops_at_zero():
    assert fixed_to_string(b"ab\x00cd" + b"\x00" * 27) == "ab"


def test_fixed_to_string_invalid_utf8_is_empty():
    assert fixed_to_string(b"\xff\xfe" + b"\x00" * 30) == ""


def test_to_json_format_is_pretty():
    assert to_json_format({"a": 1}) == '{\n  "a": 1\n}'


def test_to_json_format_round_trip():
    value = {"name": "clip", "sizes": [1, 2, 3], "nested": {"ok": True}}
    assert json.loads(to_json_format(value)) == value


def test_to_json_format_rejects_unknown_objects():
    with pytest.raises(TypeError):
        to_json_format(object())


def test_format_timestamp_epoch():
    assert format_timestamp(0) == "1970-01-01T00:00:00Z"


def test_format_timestamp_drops_sub_second_part():
    assert format_timestamp(DEFAULT_NANOS_TIME - 1) == format_timestamp(0)


def test_format_timestamp_parses_back():
    ns = 1_700_000_123 * DEFAULT_NANOS_TIME + 456
    text = format_timestamp(ns)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    assert int(parsed.timestamp()) == ns // DEFAULT_NANOS_TIME


def test_format_timestamp_negative_rejected():
    with pytest.raises(ValueError):
        format_timestamp(-1)


def test_random_source_requires_seed():
    with pytest.raises(RuntimeError):
        RandomSource().fill_bytes(4)


def test_random_source_rejects_bad_seed_length():
    with pytest.raises(ValueError):
        RandomSource().seed(b"\x01" * 16)


def test_random_source_is_deterministic_per_seed():
    first, second = RandomSource(), RandomSource()
    first.seed(b"\x07" * 32)
    second.seed(b"\x07" * 32)
    out = first.fill_bytes(16)
    assert len(out) == 16
    assert out == second.fill_bytes(16)
    assert first.is_seeded