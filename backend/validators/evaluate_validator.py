# Cirrus/backend/validators/evaluate_validator.py
"""
Validators for /evaluate/ requests using JSON Schema.

This module loads the EvaluateRequest and PreviewRequest JSON Schemas
once at import time and exposes helpers to validate incoming payloads,
raising BadRequest on error.
"""


from pathlib import Path
import json
from typing import List

from jsonschema import validate as js_validate, ValidationError

from errors.handlers import BadRequest
from services.conditions import Override
from validators.config_validator import validate_overrides


# Resolve schema paths
SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"

# Load schemas
with (SCHEMAS_DIR / "evaluate_request.schema.json").open("r", encoding="utf-8") as f:
    EVALUATE_REQUEST_SCHEMA = json.load(f)

with (SCHEMAS_DIR / "preview_request.schema.json").open("r", encoding="utf-8") as f:
    PREVIEW_REQUEST_SCHEMA = json.load(f)


def validate_eval_payload(payload: dict) -> None:
    """
    Validate the evaluation request body against the EvaluateRequest schema.

    Args:
        payload: Parsed JSON body.

    Raises:
        BadRequest: If payload is not JSON or doesn't match the schema.
    """
    if not isinstance(payload, dict):
        raise BadRequest("Payload must be a JSON object.")

    try:
        js_validate(instance=payload, schema=EVALUATE_REQUEST_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid EvaluateRequest: {msg}")


def validate_preview_payload(payload: dict) -> List[Override]:
    """
    Validate a preview request and the overrides it carries.

    Args:
        payload: Parsed JSON body.

    Returns:
        The parsed source overrides of ``payload["config"]``.

    Raises:
        BadRequest: If the envelope or any override is invalid.
    """
    if not isinstance(payload, dict):
        raise BadRequest("Payload must be a JSON object.")

    try:
        js_validate(instance=payload, schema=PREVIEW_REQUEST_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid PreviewRequest: {msg}")

    return validate_overrides(payload["config"].get("overrides"), payload["project_id"])
