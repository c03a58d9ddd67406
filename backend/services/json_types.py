# Cirrus/backend/services/json_types.py
"""JSON value model shared by the comparator and the validators.

Config values and context values are plain decoded JSON (``None``,
``bool``, ``int``/``float``, ``str``, ``list``, ``dict``). This module
classifies them the way JSON does (a boolean is never a number) and
provides the string parsing used for type casting.
"""


from __future__ import annotations

import json
import math
import re
from decimal import Decimal
from typing import Any, Optional, Union

Number = Union[int, float]

_INTEGER_RE = re.compile(r"^[-+]?[0-9]+$")
_NUMBER_RE = re.compile(r"^[-+]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?$")


def json_type(value: Any) -> str:
    """Return the JSON type name of a decoded value.

    Returns one of ``"null"``, ``"boolean"``, ``"number"``, ``"string"``,
    ``"array"``, ``"object"``, or ``"unknown"`` for anything that did not
    come out of a JSON decoder.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "unknown"


def parse_number_string(text: str) -> Optional[Number]:
    """Parse an unambiguous numeric string.

    Surrounding whitespace is ignored. Empty strings, ``"nan"``,
    ``"inf"``, hex literals and the like are not numbers here.

    Returns:
        The parsed ``int`` or ``float``, or ``None`` if ``text`` is not
        numeric.
    """
    stripped = text.strip()
    if _INTEGER_RE.match(stripped):
        return int(stripped)
    if _NUMBER_RE.match(stripped):
        parsed = float(stripped)
        if math.isfinite(parsed):
            return parsed
    return None


def parse_boolean_string(text: str) -> Optional[bool]:
    """Parse ``"true"`` / ``"false"`` (case-insensitive), else ``None``."""
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def strict_equals(left: Any, right: Any) -> bool:
    """JSON equality: types must agree at every level.

    Plain ``==`` treats ``True == 1`` and ``[1] == [True]`` as equal,
    which JSON does not.
    """
    left_type = json_type(left)
    if left_type != json_type(right):
        return False
    if left_type == "array":
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    if left_type == "object":
        return left.keys() == right.keys() and all(
            strict_equals(left[key], right[key]) for key in left
        )
    return left == right


def display(value: Any) -> str:
    """Render a value as compact JSON for reason strings."""
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return repr(value)


def number_to_string(value: Number) -> str:
    """Format a number exactly like JavaScript's ``String(number)``.

    ``repr`` already yields the shortest round-trip digits, which is what
    JavaScript prints too. Only the layout differs: JavaScript writes
    plain notation for decimal exponents from -6 to 20 and switches to
    ``1e+21`` / ``1e-7`` outside that range. Integers beyond 2**53 are
    first rounded to a double, as a JavaScript client would have done
    when decoding them.
    """
    if isinstance(value, int) and abs(value) <= 2 ** 53:
        return str(value)

    try:
        number = float(value)
    except OverflowError:
        number = math.inf if value > 0 else -math.inf
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number == 0:
        return "0"

    sign = "-" if number < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(number))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    # position of the decimal point relative to the first digit
    point = exponent + len(digits)

    if len(digits) <= point <= 21:
        text = digits + "0" * (point - len(digits))
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        power = point - 1
        mantissa = digits if len(digits) == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if power >= 0 else '-'}{abs(power)}"
    return sign + text


def to_plain_string(value: Any) -> str:
    """Stringify a scalar the way a JavaScript client would.

    ``True`` -> ``"true"``, ``1.0`` -> ``"1"``, ``1e21`` -> ``"1e+21"``,
    strings unchanged. Used wherever a value feeds a hash or a substring
    test, so the same context produces the same result on every SDK.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return number_to_string(value)
    return display(value)


def serialized_size(value: Any) -> int:
    """Size in bytes of the compact UTF-8 JSON encoding of ``value``."""
    encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return len(encoded.encode("utf-8"))
