"""Tests for value coercion and comparison helpers."""

from __future__ import annotations

import copy
import math
import pickle

from dynaform.lib.values import (
    UNDEFINED,
    is_blank,
    is_missing,
    strict_contains,
    strict_equals,
    to_display_string,
    to_number,
)


class TestUndefined:
    """Tests for the UNDEFINED sentinel."""

    def test_is_falsy_and_distinct_from_none(self) -> None:
        assert not UNDEFINED
        assert UNDEFINED is not None
        assert repr(UNDEFINED) == "UNDEFINED"

    def test_survives_copy_and_pickle(self) -> None:
        assert copy.copy(UNDEFINED) is UNDEFINED
        assert copy.deepcopy({"a": UNDEFINED})["a"] is UNDEFINED
        assert pickle.loads(pickle.dumps(UNDEFINED)) is UNDEFINED

    def test_is_missing(self) -> None:
        assert is_missing(UNDEFINED)
        assert is_missing(None)
        assert not is_missing("")
        assert not is_missing(0)


class TestToNumber:
    """Tests for JavaScript-style numeric coercion."""

    def test_strings(self) -> None:
        assert to_number("42") == 42.0
        assert to_number("  3.5 ") == 3.5
        assert to_number("") == 0.0
        assert to_number("   ") == 0.0
        assert to_number("1e3") == 1000.0
        assert to_number("0x1A") == 26.0
        assert to_number("Infinity") == math.inf
        assert math.isnan(to_number("abc"))
        assert math.isnan(to_number("inf"))
        assert math.isnan(to_number("1_000"))

    def test_non_strings(self) -> None:
        assert to_number(None) == 0.0
        assert to_number(True) == 1.0
        assert to_number(False) == 0.0
        assert to_number(7) == 7.0
        assert math.isnan(to_number(UNDEFINED))
        assert math.isnan(to_number({"a": 1}))

    def test_lists(self) -> None:
        assert to_number([]) == 0.0
        assert to_number(["5"]) == 5.0
        assert math.isnan(to_number([1, 2]))


class TestToDisplayString:
    """Tests for JavaScript-style string rendering."""

    def test_numbers(self) -> None:
        assert to_display_string(5.0) == "5"
        assert to_display_string(2.5) == "2.5"
        assert to_display_string(math.nan) == "NaN"
        assert to_display_string(-math.inf) == "-Infinity"

    def test_other_values(self) -> None:
        assert to_display_string(None) == "null"
        assert to_display_string(UNDEFINED) == "undefined"
        assert to_display_string(True) == "true"
        assert to_display_string([1, None, "a"]) == "1,,a"
        assert to_display_string({"a": 1}) == "[object Object]"


class TestStrictEquals:
    """Tests for coercion-free equality."""

    def test_booleans_never_equal_numbers(self) -> None:
        assert not strict_equals(True, 1)
        assert not strict_equals(0, False)
        assert strict_equals(True, True)

    def test_numbers(self) -> None:
        assert strict_equals(1, 1.0)
        assert not strict_equals(math.nan, math.nan)
        assert not strict_equals("1", 1)

    def test_missing_values(self) -> None:
        assert strict_equals(None, None)
        assert strict_equals(UNDEFINED, UNDEFINED)
        assert not strict_equals(None, UNDEFINED)

    def test_containers_compare_by_value(self) -> None:
        assert strict_equals([1, "a"], [1, "a"])
        assert not strict_equals([1, True], [1, 1])
        assert strict_equals({"a": [1]}, {"a": [1]})
        assert not strict_equals({"a": 1}, {"b": 1})

    def test_strict_contains(self) -> None:
        assert strict_contains(["a", 1], 1)
        assert not strict_contains([1], True)
        assert not strict_contains("abc", "a")


class TestIsBlank:
    """Tests for emptiness used by the empty operator."""

    def test_blank_values(self) -> None:
        for value in (None, UNDEFINED, "", "   ", [], {}, set()):
            assert is_blank(value), value

    def test_non_blank_values(self) -> None:
        for value in ("x", 0, False, [0], {"a": None}):
            assert not is_blank(value), value
