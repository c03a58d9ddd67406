# Cirrus/backend/services/override_service.py
"""Override evaluation service for Cirrus.

Provides a pure, stateless function that picks the effective value of a
config for a given request context, together with a trace explaining
why each override did or did not match.
"""


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from services.condition_service import (
    MATCHED,
    NOT_MATCHED,
    ConditionEvaluation,
    evaluate_condition,
)
from services.conditions import RenderedOverride, parse_rendered_override


@dataclass(frozen=True)
class OverrideEvaluation:
    """Trace entry for one override: one condition evaluation per condition."""
    override: RenderedOverride
    result: str
    condition_evaluations: List[ConditionEvaluation]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "override": self.override.to_dict(),
            "result": self.result,
            "conditionEvaluations": [e.to_dict() for e in self.condition_evaluations],
        }


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of :func:`evaluate_config_value`.

    Only ``final_value`` reaches SDK clients; the rest feeds the preview
    endpoint used by the dashboard.
    """
    final_value: Any
    matched_override: Optional[RenderedOverride]
    override_evaluations: List[OverrideEvaluation]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finalValue": self.final_value,
            "matchedOverride": (
                self.matched_override.to_dict() if self.matched_override else None
            ),
            "overrideEvaluations": [e.to_dict() for e in self.override_evaluations],
        }


def evaluate_override(
    override: RenderedOverride, context: Mapping[str, Any]
) -> OverrideEvaluation:
    """Evaluate an override's conditions as an implicit AND.

    Every condition is evaluated and traced, even after one fails. An
    override without conditions always matches.
    """
    evaluations = [evaluate_condition(c, context) for c in override.conditions]
    matched = all(e.matched for e in evaluations)
    return OverrideEvaluation(
        override=override,
        result=MATCHED if matched else NOT_MATCHED,
        condition_evaluations=evaluations,
    )


def evaluate_config_value(
    config: Mapping[str, Any], context: Mapping[str, Any]
) -> EvaluationResult:
    """Pure evaluation of a config's overrides for a given context.

    Args:
        config: dict with:
            - "value": the base value (any JSON)
            - "overrides": list of rendered overrides, either
              :class:`RenderedOverride` objects or their JSON form
              (``{"name", "conditions", "value"}`` with literal values).
              May be empty, ``None`` or absent.
        context: request attributes (e.g. {"country": "CA", "age": 31}).

    Rules:
        - Overrides are evaluated in list order; index 0 has the highest
          priority.
        - Every override is evaluated and traced, even after a match.
        - The first matching override provides ``final_value``;
          otherwise the base value is returned.

    Returns:
        EvaluationResult: final value, matched override (or None) and
        one OverrideEvaluation per override.

    Raises:
        MalformedConditionError: If an override is not a valid shape.
    """
    base_value = config.get("value")
    overrides: Sequence[Union[RenderedOverride, Mapping[str, Any]]] = (
        config.get("overrides") or []
    )

    override_evaluations: List[OverrideEvaluation] = []
    matched_override: Optional[RenderedOverride] = None
    final_value = base_value

    for raw in overrides:
        override = raw if isinstance(raw, RenderedOverride) else parse_rendered_override(raw)
        evaluation = evaluate_override(override, context)
        override_evaluations.append(evaluation)

        if evaluation.result == MATCHED and matched_override is None:
            matched_override = override
            final_value = override.value

    return EvaluationResult(
        final_value=final_value,
        matched_override=matched_override,
        override_evaluations=override_evaluations,
    )
