"""Form value semantics shared by operators and validators.

Form data arrives as plain Python values (str, int, float, bool, None,
lists, dicts) but schemas are frequently authored for browser front-ends,
so comparisons and coercions follow the JavaScript rules those schemas were
written against. The rules are reproduced deliberately here instead of
relying on Python's ``float()``/``str()``, which disagree on many edge cases
(``float("inf")``, ``str(5.0)``, ``True == 1``).

``UNDEFINED`` marks "no value at this path" and is distinct from ``None``
(an explicit null).
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

__all__ = [
    "UNDEFINED",
    "is_blank",
    "is_missing",
    "is_number",
    "is_sequence",
    "js_trim",
    "strict_contains",
    "strict_equals",
    "to_display_string",
    "to_number",
]


class _Undefined:
    """Singleton type for ``UNDEFINED``."""

    _instance: "_Undefined | None" = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, memo: Any) -> "_Undefined":
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()

# Decimal literal as accepted by JS Number(): no underscores, no "inf"/"nan"
_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INFINITY_PATTERN = re.compile(r"^([+-]?)Infinity$")
_RADIX_PATTERN = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}

# JS String.prototype.trim whitespace set, including the BOM
_JS_WHITESPACE = (
    " \t\n\r\v\f\u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)


def is_missing(value: Any) -> bool:
    """True for ``None`` and ``UNDEFINED``."""
    return value is None or value is UNDEFINED


def is_number(value: Any) -> bool:
    """True for int/float values that are not booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_sequence(value: Any) -> bool:
    """True for list and tuple values (the JS array equivalents)."""
    return isinstance(value, (list, tuple))


def js_trim(text: str) -> str:
    """Strip leading and trailing whitespace the way ``String.prototype.trim`` does."""
    return text.strip(_JS_WHITESPACE)


def _string_to_number(text: str) -> float:
    text = js_trim(text)
    if text == "":
        return 0.0
    if _DECIMAL_PATTERN.match(text):
        return float(text)
    infinity = _INFINITY_PATTERN.match(text)
    if infinity:
        return -math.inf if infinity.group(1) == "-" else math.inf
    radix = _RADIX_PATTERN.match(text)
    if radix:
        try:
            return float(int(radix.group(2), _RADIX_BASES[radix.group(1).lower()]))
        except ValueError:
            return math.nan
    return math.nan


def to_number(value: Any) -> float:
    """Coerce a value to a float following JavaScript ``Number()``.

    Never raises; values that cannot be coerced yield ``nan``.

    Example:
        >>> to_number("  42 ")
        42.0
        >>> to_number("")
        0.0
        >>> to_number(None)
        0.0
        >>> math.isnan(to_number(UNDEFINED))
        True
    """
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        return _string_to_number(value)
    if is_sequence(value):
        # Number([]) is 0, Number([x]) is Number(String(x)), longer arrays are NaN
        return _string_to_number(to_display_string(value))
    return math.nan


def _number_to_string(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_display_string(value: Any) -> str:
    """Render a value the way JavaScript ``String()`` would.

    Example:
        >>> to_display_string(5.0)
        '5'
        >>> to_display_string([1, None, "a"])
        '1,,a'
        >>> to_display_string(True)
        'true'
    """
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number_to_string(value)
    if isinstance(value, str):
        return value
    if is_sequence(value):
        return ",".join("" if is_missing(item) else to_display_string(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without type coercion.

    Booleans never equal numbers, ``1`` equals ``1.0``, NaN never equals
    itself and ``None`` never equals ``UNDEFINED``. Containers compare by
    value, element-wise with the same rules.
    """
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) or is_number(right):
        return is_number(left) and is_number(right) and left == right
    if isinstance(left, str) or isinstance(right, str):
        return isinstance(left, str) and isinstance(right, str) and left == right
    if is_sequence(left) and is_sequence(right):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            strict_equals(left[key], right[key]) for key in left
        )
    return left is right or left == right


def strict_contains(items: Any, candidate: Any) -> bool:
    """Membership test using ``strict_equals``; False for non-sequences."""
    if not is_sequence(items):
        return False
    return any(strict_equals(item, candidate) for item in items)


def is_blank(value: Any) -> bool:
    """Emptiness as used by the ``empty`` operator.

    True for ``None``/``UNDEFINED``, whitespace-only strings, empty
    sequences and mappings with no keys.
    """
    if is_missing(value):
        return True
    if isinstance(value, str):
        return js_trim(value) == ""
    if is_sequence(value) or isinstance(value, (Mapping, set, frozenset)):
        return len(value) == 0
    return False
