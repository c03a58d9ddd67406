# Cirrus/backend/validators/override_references_validator.py
"""Cross-project checks for config references inside overrides.

A config may only read values from configs of its own project; the
evaluation API resolves references inside a single project snapshot.
"""


from __future__ import annotations

from typing import Iterable, List, Optional

from errors.handlers import BadRequest
from services.conditions import (
    AndCondition,
    ComparisonCondition,
    Condition,
    ConfigReference,
    MalformedConditionError,
    NotCondition,
    OrCondition,
    Override,
    SegmentationCondition,
)


def extract_condition_references(condition: Condition) -> List[ConfigReference]:
    """Collect every config reference in a condition tree, depth first."""
    if isinstance(condition, ComparisonCondition):
        if isinstance(condition.value, ConfigReference):
            return [condition.value]
        return []
    if isinstance(condition, SegmentationCondition):
        return []
    if isinstance(condition, (AndCondition, OrCondition)):
        references: List[ConfigReference] = []
        for child in condition.conditions:
            references.extend(extract_condition_references(child))
        return references
    if isinstance(condition, NotCondition):
        return extract_condition_references(condition.condition)
    raise MalformedConditionError(f"Unknown condition type: {condition!r}")


def extract_override_references(override: Override) -> List[ConfigReference]:
    """Collect the references of an override: its value, then its conditions."""
    references: List[ConfigReference] = []
    if isinstance(override.value, ConfigReference):
        references.append(override.value)
    for condition in override.conditions:
        references.extend(extract_condition_references(condition))
    return references


def validate_override_references(
    overrides: Optional[Iterable[Override]], config_project_id: str
) -> None:
    """Reject overrides that reference configs of another project.

    Raises:
        BadRequest: Listing each offending override and the foreign
            project it points to.
    """
    invalid = []
    for override in overrides or []:
        for reference in extract_override_references(override):
            if reference.project_id != config_project_id:
                invalid.append(
                    f'Override "{override.name}" references project {reference.project_id}'
                )

    if invalid:
        raise BadRequest(
            "Override references must use the same project ID as the config. "
            + "; ".join(invalid)
        )
