"""
Validator for config payloads (admin upserts and preview requests).

Loads the Config JSON Schema once at import time. On top of the schema
it enforces the size limits of the platform and makes sure every
override parses into the condition model, so anything that passes here
can be rendered and evaluated without shape errors.
"""


from pathlib import Path
import json
from typing import Any, Iterable, List, Optional

from jsonschema import validate as js_validate, ValidationError

from errors.handlers import BadRequest
from services.conditions import MalformedConditionError, Override, parse_override
from services.json_types import serialized_size
from validators.override_references_validator import validate_override_references


MAX_VALUE_BYTES = 1024 * 1024

# Resolve schema path
SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "config.schema.json"

# Load schema
with SCHEMA_PATH.open("r", encoding="utf-8") as f:
    CONFIG_SCHEMA = json.load(f)

OVERRIDES_SCHEMA = {
    "$schema": CONFIG_SCHEMA["$schema"],
    "$defs": CONFIG_SCHEMA["$defs"],
    "$ref": "#/$defs/overrides",
}


def _check_value_size(value: Any, where: str) -> None:
    if serialized_size(value) > MAX_VALUE_BYTES:
        raise BadRequest(f"{where} exceeds the {MAX_VALUE_BYTES} byte limit.")


def _parse_overrides(overrides: Iterable[Any]) -> List[Override]:
    try:
        return [parse_override(o) for o in overrides]
    except MalformedConditionError as e:
        raise BadRequest(f"Invalid override: {e}")


def validate_overrides(overrides: Optional[list], project_id: str) -> List[Override]:
    """
    Validate a list of source overrides.

    Args:
        overrides: Overrides in JSON form (``None`` means no overrides).
        project_id: Project owning the config; references must stay in it.

    Returns:
        The parsed overrides.

    Raises:
        BadRequest: If the list violates the schema, nests too deep, or
            references another project.
    """
    overrides = overrides or []
    try:
        js_validate(instance=overrides, schema=OVERRIDES_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid overrides: {msg}")

    parsed = _parse_overrides(overrides)
    validate_override_references(parsed, config_project_id=project_id)
    return parsed


def validate_config(payload: dict) -> None:
    """
    Validate an admin Config payload.

    Args:
        payload: Parsed JSON body for a config.

    Raises:
        BadRequest: If payload is not an object, violates the schema or
            the size limits, or references another project.
    """
    if not isinstance(payload, dict):
        raise BadRequest("Body must be a JSON object.")

    try:
        js_validate(instance=payload, schema=CONFIG_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid Config: {msg}")

    project_id = payload["project_id"]

    _check_value_size(payload["value"], "Config value")
    validate_overrides(payload.get("overrides"), project_id)

    for environment_id, variant in (payload.get("variants") or {}).items():
        _check_value_size(variant["value"], f"Value of variant {environment_id!r}")
        validate_overrides(variant.get("overrides"), project_id)
