"""Tests for cutplan.utils module."""

from __future__ import annotations

from cutplan.utils import canonical_json, clamp, clean_text, format_ms, stable_hash


class TestCleanText:
    def test_strips_control_chars_and_collapses_whitespace(self) -> None:
        assert clean_text("  hello\x00\n\tworld  ") == "hello world"

    def test_empty_and_none(self) -> None:
        assert clean_text(None) == ""
        assert clean_text("\x01\x02") == ""

    def test_max_length(self) -> None:
        assert clean_text("abc def", max_length=4) == "abc"


class TestHashing:
    def test_canonical_json_sorts_keys(self) -> None:
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_stable_hash_ignores_key_order(self) -> None:
        assert stable_hash({"a": 1, "b": 2}) == stable_hash({"b": 2, "a": 1})
        assert len(stable_hash({})) == 64


class TestClamp:
    def test_clamp(self) -> None:
        assert clamp(5, 0, 3) == 3
        assert clamp(-1, 0, 3) == 0
        assert clamp(0.5, 0, 1) == 0.5


class TestFormatMs:
    def test_minutes(self) -> None:
        assert format_ms(65_432) == "01:05.432"

    def test_hours(self) -> None:
        assert format_ms(3_723_004) == "1:02:03.004"

    def test_negative_clamps_to_zero(self) -> None:
        assert format_ms(-5) == "00:00.000"
