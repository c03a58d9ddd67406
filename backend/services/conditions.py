# Cirrus/backend/services/conditions.py
"""Override and condition model for Cirrus.

Conditions form a closed set of variants keyed by ``operator``:

- comparison leaves (``equals``, ``in``, ``greater_than``, ...),
- ``segmentation`` leaves (percentage bucketing on a property),
- ``and`` / ``or`` composites holding a list of children,
- ``not`` holding a single child.

Overrides exist in two forms. A source :class:`Override` is what config
authors save: its value and its comparison values are tagged value
sources (``{"type": "literal", ...}`` or ``{"type": "config_reference",
...}``). A :class:`RenderedOverride` is what the evaluator consumes:
every value is a plain JSON literal.
"""


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple, Union

from services.comparator import SUPPORTED_OPERATORS as COMPARISON_OPERATORS
from services.json_path import PathPart, parse_json_path


MAX_CONDITION_DEPTH = 32

COMPOSITE_OPERATORS = frozenset({"and", "or"})


class MalformedConditionError(ValueError):
    """Raised when a condition or override does not have the expected shape.

    Shapes are validated before they reach the evaluator, so this always
    signals a bug upstream rather than bad end-user input.
    """
    pass


# ---------- Value sources ----------


@dataclass(frozen=True)
class LiteralValue:
    """A value given inline by the config author."""
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "literal", "value": self.value}


@dataclass(frozen=True)
class ConfigReference:
    """A value read from another config at render time."""
    project_id: str
    config_name: str
    path: Tuple[PathPart, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "config_reference",
            "projectId": self.project_id,
            "configName": self.config_name,
            "path": list(self.path),
        }


ValueSource = Union[LiteralValue, ConfigReference]


# ---------- Conditions ----------


@dataclass(frozen=True)
class ComparisonCondition:
    """Leaf comparing ``context[property]`` with ``value``.

    ``value`` is a :data:`ValueSource` in source form and a literal once
    rendered.
    """
    operator: str
    property: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, (LiteralValue, ConfigReference)):
            value = value.to_dict()
        return {"operator": self.operator, "property": self.property, "value": value}


@dataclass(frozen=True)
class SegmentationCondition:
    """Leaf placing ``context[property]`` into a percentage bucket."""
    property: str
    from_percentage: float
    to_percentage: float
    seed: str

    operator = "segmentation"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "property": self.property,
            "fromPercentage": self.from_percentage,
            "toPercentage": self.to_percentage,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class AndCondition:
    conditions: Tuple["Condition", ...]

    operator = "and"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "conditions": [c.to_dict() for c in self.conditions],
        }


@dataclass(frozen=True)
class OrCondition:
    conditions: Tuple["Condition", ...]

    operator = "or"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "conditions": [c.to_dict() for c in self.conditions],
        }


@dataclass(frozen=True)
class NotCondition:
    condition: "Condition"

    operator = "not"

    def to_dict(self) -> Dict[str, Any]:
        return {"operator": self.operator, "condition": self.condition.to_dict()}


Condition = Union[
    ComparisonCondition,
    SegmentationCondition,
    AndCondition,
    OrCondition,
    NotCondition,
]


# ---------- Overrides ----------


@dataclass(frozen=True)
class Override:
    """An override as authored: value and comparison values are sources."""
    name: str
    conditions: Tuple[Condition, ...]
    value: ValueSource

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "conditions": [c.to_dict() for c in self.conditions],
            "value": self.value.to_dict(),
        }


@dataclass(frozen=True)
class RenderedOverride:
    """An override ready for evaluation: every value is a literal."""
    name: str
    conditions: Tuple[Condition, ...]
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "conditions": [c.to_dict() for c in self.conditions],
            "value": self.value,
        }


# ---------- Parsing ----------


def _require(data: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise MalformedConditionError(f"{what} is missing {key!r}: {data!r}")
    return data[key]


def parse_value_source(data: Any) -> ValueSource:
    """Parse a tagged value (``literal`` or ``config_reference``)."""
    if not isinstance(data, Mapping):
        raise MalformedConditionError(f"Value source must be an object: {data!r}")

    kind = data.get("type")
    if kind == "literal":
        return LiteralValue(value=_require(data, "value", "Literal value"))
    if kind == "config_reference":
        project_id = _require(data, "projectId", "Config reference")
        config_name = _require(data, "configName", "Config reference")
        if not isinstance(project_id, str) or not isinstance(config_name, str):
            raise MalformedConditionError(
                f"Config reference ids must be strings: {data!r}"
            )
        path = data.get("path") or []
        # the dashboard may send the written form, e.g. "plans[0].price"
        if isinstance(path, str):
            try:
                path = parse_json_path(path)
            except ValueError as exc:
                raise MalformedConditionError(str(exc)) from exc
        if not isinstance(path, list) or not all(
            isinstance(p, (str, int)) and not isinstance(p, bool) for p in path
        ):
            raise MalformedConditionError(f"Invalid reference path: {path!r}")
        return ConfigReference(project_id, config_name, tuple(path))

    raise MalformedConditionError(f"Unknown value source type: {kind!r}")


def _parse_percentage(data: Mapping[str, Any], key: str) -> float:
    raw = _require(data, key, "Segmentation condition")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not 0 <= raw <= 100:
        raise MalformedConditionError(
            f"{key} must be a number between 0 and 100, got {raw!r}"
        )
    return raw


def parse_condition(
    data: Any, *, rendered: bool = True, depth: int = 0
) -> Condition:
    """Build a :data:`Condition` from its JSON form.

    Args:
        data: Decoded JSON object describing the condition.
        rendered: When True, comparison values are plain literals; when
            False they are tagged value sources.
        depth: Current nesting level (callers leave the default).

    Raises:
        MalformedConditionError: On unknown operators, missing keys,
            wrong types, or nesting deeper than ``MAX_CONDITION_DEPTH``.
    """
    if depth > MAX_CONDITION_DEPTH:
        raise MalformedConditionError(
            f"Conditions are nested deeper than {MAX_CONDITION_DEPTH} levels"
        )
    if not isinstance(data, Mapping):
        raise MalformedConditionError(f"Condition must be an object: {data!r}")

    operator = data.get("operator")

    if operator in COMPARISON_OPERATORS:
        prop = _require(data, "property", "Condition")
        if not isinstance(prop, str):
            raise MalformedConditionError(f"Condition property must be a string: {prop!r}")
        raw_value = _require(data, "value", "Condition")
        value = raw_value if rendered else parse_value_source(raw_value)
        return ComparisonCondition(operator=operator, property=prop, value=value)

    if operator == "segmentation":
        prop = _require(data, "property", "Segmentation condition")
        seed = _require(data, "seed", "Segmentation condition")
        if not isinstance(prop, str) or not isinstance(seed, str):
            raise MalformedConditionError(
                f"Segmentation property and seed must be strings: {data!r}"
            )
        return SegmentationCondition(
            property=prop,
            from_percentage=_parse_percentage(data, "fromPercentage"),
            to_percentage=_parse_percentage(data, "toPercentage"),
            seed=seed,
        )

    if operator in COMPOSITE_OPERATORS:
        children = _require(data, "conditions", f"{operator!r} condition")
        if not isinstance(children, list):
            raise MalformedConditionError(
                f"{operator!r} conditions must be a list: {children!r}"
            )
        parsed = tuple(
            parse_condition(c, rendered=rendered, depth=depth + 1) for c in children
        )
        return AndCondition(parsed) if operator == "and" else OrCondition(parsed)

    if operator == "not":
        child = _require(data, "condition", "'not' condition")
        return NotCondition(parse_condition(child, rendered=rendered, depth=depth + 1))

    raise MalformedConditionError(f"Unknown condition operator: {operator!r}")


def _parse_override_parts(data: Any) -> Tuple[str, list]:
    if not isinstance(data, Mapping):
        raise MalformedConditionError(f"Override must be an object: {data!r}")
    name = _require(data, "name", "Override")
    if not isinstance(name, str):
        raise MalformedConditionError(f"Override name must be a string: {name!r}")
    conditions = data.get("conditions")
    if conditions is None:
        conditions = []
    if not isinstance(conditions, list):
        raise MalformedConditionError(
            f"Override conditions must be a list: {conditions!r}"
        )
    _require(data, "value", "Override")
    return name, conditions


def parse_override(data: Any) -> Override:
    """Parse an override in source form (tagged values)."""
    name, conditions = _parse_override_parts(data)
    return Override(
        name=name,
        conditions=tuple(parse_condition(c, rendered=False) for c in conditions),
        value=parse_value_source(data["value"]),
    )


def parse_rendered_override(data: Any) -> RenderedOverride:
    """Parse an override whose values are already literals."""
    name, conditions = _parse_override_parts(data)
    return RenderedOverride(
        name=name,
        conditions=tuple(parse_condition(c) for c in conditions),
        value=data["value"],
    )
