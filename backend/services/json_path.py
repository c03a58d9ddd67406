# Cirrus/backend/services/json_path.py
"""JSON path helpers used by config references.

A path is a list of parts: strings index objects, integers index arrays.
``["plans", 0, "price"]`` is written ``plans[0].price`` in the dashboard.

Lookups return :data:`MISSING` when a step does not exist, so a path that
exists and holds JSON ``null`` still yields ``None``.
"""


from __future__ import annotations

import re
from typing import Any, List, Sequence, Union

PathPart = Union[str, int]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_INDEX_RE = re.compile(r"[0-9]+")


class _Missing:
    """Marker for a value that does not exist (as opposed to ``null``)."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def get_value_by_path(obj: Any, path: Sequence[PathPart]) -> Any:
    """Read the value at ``path`` inside ``obj``.

    Returns:
        The value found (possibly ``None``), or :data:`MISSING` when any
        step is missing, out of range, or indexes into a scalar.
    """
    current = obj

    for part in path:
        if isinstance(current, dict):
            if not isinstance(part, str) or part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list):
            if isinstance(part, bool) or not isinstance(part, int):
                return MISSING
            if part < 0 or part >= len(current):
                return MISSING
            current = current[part]
        else:
            return MISSING

    return current


def format_json_path(path: Sequence[PathPart]) -> str:
    """Format a path for display, e.g. ``["a", 0, "b c"]`` -> ``a[0]["b c"]``."""
    rendered = []
    for index, part in enumerate(path):
        if isinstance(part, int):
            rendered.append(f"[{part}]")
        elif index == 0:
            rendered.append(part)
        elif _IDENTIFIER_RE.match(part):
            rendered.append(f".{part}")
        else:
            rendered.append(f'["{part}"]')
    return "".join(rendered)


def parse_json_path(text: str) -> List[PathPart]:
    """Parse a dotted/bracketed path string.

    Examples:
        ``"foo.bar"`` -> ``["foo", "bar"]``
        ``"foo[0]"`` -> ``["foo", 0]``
        ``'foo["x y"][1].baz'`` -> ``["foo", "x y", 1, "baz"]``

    Raises:
        ValueError: On unbalanced brackets or an empty segment.
    """
    if not text:
        return []

    parts: List[PathPart] = []
    current = ""
    position = 0

    while position < len(text):
        char = text[position]
        if char == ".":
            if not current:
                raise ValueError(f"Empty segment in JSON path: {text!r}")
            parts.append(current)
            current = ""
            position += 1
        elif char == "[":
            if current:
                parts.append(current)
                current = ""
            end = text.find("]", position)
            if end == -1:
                raise ValueError(f"Unclosed bracket in JSON path: {text!r}")
            inner = text[position + 1:end].strip()
            if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "\"'":
                parts.append(inner[1:-1])
            elif _INDEX_RE.fullmatch(inner):
                parts.append(int(inner))
            else:
                raise ValueError(f"Invalid bracket segment {inner!r} in {text!r}")
            position = end + 1
            # a dot right after a bracket only separates segments
            if position < len(text) and text[position] == ".":
                position += 1
        else:
            current += char
            position += 1

    if current:
        parts.append(current)
    elif text.endswith("."):
        raise ValueError(f"Empty segment in JSON path: {text!r}")

    return parts
