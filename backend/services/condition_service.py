# Cirrus/backend/services/condition_service.py
"""Condition evaluation with a full debug trace.

Every node of a condition tree produces a :class:`ConditionEvaluation`.
Composite nodes always evaluate all of their children so that the trace
shown in the dashboard explains every branch, not just the first one
that decided the result.
"""


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from services.comparator import compare
from services.conditions import (
    AndCondition,
    ComparisonCondition,
    Condition,
    MalformedConditionError,
    NotCondition,
    OrCondition,
    SegmentationCondition,
    parse_condition,
)
from services.json_types import display, strict_equals
from services.segmentation import unit_interval

MATCHED = "matched"
NOT_MATCHED = "not_matched"

_MISSING = object()


@dataclass(frozen=True)
class ConditionEvaluation:
    """Trace entry for one condition node.

    ``nested_evaluations`` is set for ``and`` / ``or`` (one entry per
    child, in order) and for ``not`` (exactly one entry). Leaves leave
    it as ``None``.
    """
    condition: Condition
    result: str
    reason: str
    context_value: Any = None
    expected_value: Any = None
    nested_evaluations: Optional[List["ConditionEvaluation"]] = None

    @property
    def matched(self) -> bool:
        return self.result == MATCHED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "condition": self.condition.to_dict(),
            "result": self.result,
            "reason": self.reason,
        }
        if isinstance(self.condition, (ComparisonCondition, SegmentationCondition)):
            data["contextValue"] = self.context_value
        if isinstance(self.condition, ComparisonCondition):
            data["expectedValue"] = self.expected_value
        if self.nested_evaluations is not None:
            data["nestedEvaluations"] = [e.to_dict() for e in self.nested_evaluations]
        return data


def _result(matched: bool) -> str:
    return MATCHED if matched else NOT_MATCHED


def _evaluate_comparison(
    condition: ComparisonCondition, context: Mapping[str, Any]
) -> ConditionEvaluation:
    prop = condition.property
    context_value = context.get(prop, _MISSING)

    if context_value is _MISSING:
        return ConditionEvaluation(
            condition=condition,
            result=NOT_MATCHED,
            reason=f'Property "{prop}" not found in context, expected {display(condition.value)}',
            expected_value=condition.value,
        )

    comparison = compare(context_value, condition.value, condition.operator)
    expected: Any = condition.value
    if comparison.casted and not strict_equals(comparison.expected_value, condition.value):
        expected = {"original": condition.value, "casted": comparison.expected_value}

    return ConditionEvaluation(
        condition=condition,
        result=_result(comparison.matched),
        reason=f"{prop} {comparison.reason}",
        context_value=context_value,
        expected_value=expected,
    )


def _evaluate_segmentation(
    condition: SegmentationCondition, context: Mapping[str, Any]
) -> ConditionEvaluation:
    prop = condition.property
    context_value = context.get(prop)
    bounds = f"[{condition.from_percentage}, {condition.to_percentage})"

    if context_value is None:
        return ConditionEvaluation(
            condition=condition,
            result=NOT_MATCHED,
            reason=f'Property "{prop}" not found in context, expected a value to bucket into {bounds}',
        )

    unit = unit_interval(context_value, condition.seed)
    matched = condition.from_percentage / 100 <= unit < condition.to_percentage / 100
    if matched:
        reason = f"{prop} ({display(context_value)}) in range {bounds} (unit value: {unit})"
    else:
        reason = (
            f"{prop} ({display(context_value)}) not in range {bounds} "
            f"(unit value: {unit}), expected within range"
        )
    return ConditionEvaluation(
        condition=condition,
        result=_result(matched),
        reason=reason,
        context_value=context_value,
    )


def _evaluate_composite(
    condition: Union[AndCondition, OrCondition], context: Mapping[str, Any]
) -> ConditionEvaluation:
    nested = [_evaluate(child, context) for child in condition.conditions]
    matched_count = sum(1 for e in nested if e.matched)

    if isinstance(condition, AndCondition):
        matched = matched_count == len(nested)
        label = "AND"
    else:
        matched = matched_count > 0
        label = "OR"

    return ConditionEvaluation(
        condition=condition,
        result=_result(matched),
        reason=f"{label}: {matched_count}/{len(nested)} conditions matched",
        nested_evaluations=nested,
    )


def _evaluate_not(
    condition: NotCondition, context: Mapping[str, Any]
) -> ConditionEvaluation:
    nested = _evaluate(condition.condition, context)
    if nested.matched:
        reason = "NOT: Condition matched (inverted to not matched)"
    else:
        reason = "NOT: Condition did not match (inverted to matched)"
    return ConditionEvaluation(
        condition=condition,
        result=_result(not nested.matched),
        reason=reason,
        nested_evaluations=[nested],
    )


def _evaluate(condition: Condition, context: Mapping[str, Any]) -> ConditionEvaluation:
    if isinstance(condition, ComparisonCondition):
        return _evaluate_comparison(condition, context)
    if isinstance(condition, SegmentationCondition):
        return _evaluate_segmentation(condition, context)
    if isinstance(condition, (AndCondition, OrCondition)):
        return _evaluate_composite(condition, context)
    if isinstance(condition, NotCondition):
        return _evaluate_not(condition, context)
    raise MalformedConditionError(f"Unknown condition type: {condition!r}")


def evaluate_condition(
    condition: Union[Condition, Mapping[str, Any]], context: Mapping[str, Any]
) -> ConditionEvaluation:
    """Evaluate a rendered condition against a context.

    Args:
        condition: A :data:`Condition`, or its JSON form with literal
            values.
        context: Caller-supplied attributes. Missing keys and ``None``
            values make leaves ``not_matched``; they never raise.

    Returns:
        ConditionEvaluation: Result, reason and nested trace.

    Raises:
        MalformedConditionError: If ``condition`` is not a valid shape.
    """
    if isinstance(condition, Mapping):
        condition = parse_condition(condition)
    return _evaluate(condition, context)
