# Cirrus/backend/services/comparator.py
"""Type-casting comparator for override conditions.

Compares a context-supplied value against the rule-side literal of a
condition. Config authors type rule values into a form, so ``"18"``
must match an ``age`` of ``25`` under ``greater_than`` and ``"true"``
must match a boolean flag. Casting rules (booleans are never numbers):

    same JSON type       -> compared directly
    number <-> string    -> the string side is parsed as a number
    boolean <-> string   -> the string side must be "true"/"false"
    anything else        -> incompatible, never matches

Two strings always compare as strings, so ordering operators on two
strings are lexicographic (``"10" < "9"``).

Reasons never include the property name; the condition evaluator
prefixes it. A reason says "casted" whenever a side was coerced and
"expected" on every mismatch. The debug UI looks for both words.
"""


from __future__ import annotations

import operator as op
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from services.json_types import (
    display,
    json_type,
    parse_boolean_string,
    parse_number_string,
    strict_equals,
    to_plain_string,
)


EQUALITY_OPERATORS = frozenset({"equals", "not_equals"})
MEMBERSHIP_OPERATORS = frozenset({"in", "not_in"})
CONTAINMENT_OPERATORS = frozenset({"contains", "not_contains"})

# operator -> (predicate, symbol when it holds, symbol when it does not)
ORDERING_OPERATORS: Dict[str, Tuple[Callable[[Any, Any], bool], str, str]] = {
    "less_than": (op.lt, "<", ">="),
    "less_than_or_equal": (op.le, "<=", ">"),
    "greater_than": (op.gt, ">", "<="),
    "greater_than_or_equal": (op.ge, ">=", "<"),
}

SUPPORTED_OPERATORS = (
    EQUALITY_OPERATORS
    | MEMBERSHIP_OPERATORS
    | CONTAINMENT_OPERATORS
    | frozenset(ORDERING_OPERATORS)
)


@dataclass(frozen=True)
class Comparison:
    """Outcome of a single comparison.

    Attributes:
        matched: Whether the operator holds.
        reason: Human readable explanation, without the property name.
        casted: True when either side was coerced before comparing.
        expected_value: The rule-side value actually compared (after
            casting, when a cast happened).
    """
    matched: bool
    reason: str
    casted: bool = False
    expected_value: Any = None


@dataclass(frozen=True)
class _CastPair:
    context_value: Any
    rule_value: Any
    casted: bool

    def note(self, original_context: Any, original_rule: Any) -> str:
        """Suffix describing the cast, or an empty string."""
        if not self.casted:
            return ""
        if not strict_equals(self.rule_value, original_rule):
            return f" (casted from {display(original_rule)})"
        return f" (context value casted from {display(original_context)})"


def _cast_scalar(value: Any, target_type: str) -> Tuple[bool, Any]:
    """Cast ``value`` to ``target_type``; returns ``(ok, casted_value)``."""
    source_type = json_type(value)
    if source_type == "string" and target_type == "number":
        parsed = parse_number_string(value)
        return parsed is not None, parsed
    if source_type == "string" and target_type == "boolean":
        parsed_bool = parse_boolean_string(value)
        return parsed_bool is not None, parsed_bool
    return False, None


def cast_pair(context_value: Any, rule_value: Any) -> Optional[_CastPair]:
    """Bring both sides to a common JSON type.

    Returns:
        The (possibly coerced) pair, or ``None`` when the types are
        incompatible.
    """
    context_type = json_type(context_value)
    rule_type = json_type(rule_value)

    if context_type == rule_type:
        return _CastPair(context_value, rule_value, casted=False)

    types = {context_type, rule_type}
    if types == {"number", "string"}:
        target = "number"
    elif types == {"boolean", "string"}:
        target = "boolean"
    else:
        return None

    if context_type != target:
        ok, casted_context = _cast_scalar(context_value, target)
        if not ok:
            return None
        return _CastPair(casted_context, rule_value, casted=True)

    ok, casted_rule = _cast_scalar(rule_value, target)
    if not ok:
        return None
    return _CastPair(context_value, casted_rule, casted=True)


def _incompatible(context_value: Any, rule_value: Any) -> Comparison:
    return Comparison(
        matched=False,
        reason=(
            f"({display(context_value)}) could not compare incompatible types "
            f"({json_type(context_value)} and {json_type(rule_value)}), "
            f"expected {display(rule_value)}"
        ),
        expected_value=rule_value,
    )


def _compare_equality(
    context_value: Any, rule_value: Any, operator: str
) -> Comparison:
    pair = cast_pair(context_value, rule_value)
    if pair is None:
        return _incompatible(context_value, rule_value)

    note = pair.note(context_value, rule_value)
    equal = strict_equals(pair.context_value, pair.rule_value)
    shown = display(pair.rule_value)

    if operator == "equals":
        if equal:
            reason = f"equals {shown}{note}"
        else:
            reason = f"is {display(context_value)}, expected {shown}{note}"
        matched = equal
    else:
        if equal:
            reason = f"equals {shown}{note}, expected a different value"
        else:
            reason = f"is {display(context_value)}, not {shown}{note}"
        matched = not equal

    return Comparison(matched, reason, pair.casted, pair.rule_value)


def _compare_ordering(
    context_value: Any, rule_value: Any, operator: str
) -> Comparison:
    pair = cast_pair(context_value, rule_value)
    if pair is None:
        return _incompatible(context_value, rule_value)

    predicate, holds, fails = ORDERING_OPERATORS[operator]
    left, right = pair.context_value, pair.rule_value
    kind = json_type(left)
    if kind not in ("number", "string"):
        return Comparison(
            matched=False,
            reason=(
                f"({display(context_value)}) cannot be ordered: both values must "
                f"be numbers or strings (got {kind}), expected {holds} "
                f"{display(right)}"
            ),
            casted=pair.casted,
            expected_value=right,
        )

    note = pair.note(context_value, rule_value)
    suffix = " (lexicographic)" if kind == "string" else ""
    matched = predicate(left, right)
    if matched:
        reason = f"({display(left)}) {holds} {display(right)}{note}{suffix}"
    else:
        reason = (
            f"({display(left)}) {fails} {display(right)}, expected {holds} "
            f"{display(right)}{note}{suffix}"
        )
    return Comparison(matched, reason, pair.casted, right)


@dataclass(frozen=True)
class _Membership:
    found: bool
    casted: bool
    # False when the list is non-empty and no element shares a type with
    # the value, even after casting
    comparable: bool


def _find_member(value: Any, candidates: Any) -> _Membership:
    """Look for ``value`` in ``candidates`` with per-element casting."""
    comparable = not candidates
    for candidate in candidates:
        pair = cast_pair(value, candidate)
        if pair is None:
            continue
        comparable = True
        if strict_equals(pair.context_value, pair.rule_value):
            return _Membership(True, pair.casted, True)
    return _Membership(False, False, comparable)


def _compare_membership(
    context_value: Any, rule_value: Any, operator: str
) -> Comparison:
    if json_type(rule_value) != "array":
        return Comparison(
            matched=False,
            reason=(
                f"({display(context_value)}) cannot be checked: expected value "
                f"must be an array, got {json_type(rule_value)}"
            ),
            expected_value=rule_value,
        )

    membership = _find_member(context_value, rule_value)
    if not membership.comparable:
        return _incompatible(context_value, rule_value)

    found, casted = membership.found, membership.casted
    note = " (casted)" if casted else ""
    listed = display(rule_value)
    shown = display(context_value)

    if operator == "in":
        matched = found
        if found:
            reason = f"({shown}) is in {listed}{note}"
        else:
            reason = f"({shown}) not in list, expected one of {listed}"
    else:
        matched = not found
        if found:
            reason = f"({shown}) found in {listed}{note}, expected a value outside the list"
        else:
            reason = f"({shown}) is not in {listed}"

    return Comparison(matched, reason, casted, rule_value)


def _compare_containment(
    context_value: Any, rule_value: Any, operator: str
) -> Comparison:
    context_type = json_type(context_value)
    rule_type = json_type(rule_value)

    if context_type == "string" and rule_type in ("string", "number", "boolean"):
        needle = to_plain_string(rule_value)
        casted = rule_type != "string"
        found = needle in context_value
        note = f" (casted from {display(rule_value)})" if casted else ""
        target = display(needle)
    elif context_type == "array":
        membership = _find_member(rule_value, context_value)
        if not membership.comparable:
            return _incompatible(context_value, rule_value)
        found, casted = membership.found, membership.casted
        note = " (casted)" if casted else ""
        target = display(rule_value)
    else:
        return _incompatible(context_value, rule_value)

    shown = display(context_value)
    if operator == "contains":
        matched = found
        if found:
            reason = f"({shown}) contains {target}{note}"
        else:
            reason = f"({shown}) does not contain {target}, expected it to{note}"
    else:
        matched = not found
        if found:
            reason = f"({shown}) contains {target}{note}, expected it not to"
        else:
            reason = f"({shown}) does not contain {target}"

    return Comparison(matched, reason, casted, rule_value)


def compare(context_value: Any, rule_value: Any, operator: str) -> Comparison:
    """Compare a context value against a rule value.

    Args:
        context_value: Value read from the evaluation context.
        rule_value: Literal configured on the condition.
        operator: One of :data:`SUPPORTED_OPERATORS`.

    Returns:
        A :class:`Comparison`. A ``None`` context value never matches,
        whatever the operator.

    Raises:
        ValueError: If ``operator`` is not a comparison operator. Shapes
            are validated upstream, so this is a programming error.
    """
    if operator not in SUPPORTED_OPERATORS:
        raise ValueError(f"Unsupported comparison operator: {operator!r}")

    if context_value is None:
        return Comparison(
            matched=False,
            reason=f"is null, expected {display(rule_value)}",
            expected_value=rule_value,
        )

    if operator in EQUALITY_OPERATORS:
        return _compare_equality(context_value, rule_value, operator)
    if operator in MEMBERSHIP_OPERATORS:
        return _compare_membership(context_value, rule_value, operator)
    if operator in CONTAINMENT_OPERATORS:
        return _compare_containment(context_value, rule_value, operator)
    return _compare_ordering(context_value, rule_value, operator)
