"""Runtime evaluation endpoints for Cirrus configs.

This blueprint exposes:
- the public `/evaluate/` API used by SDKs to fetch the effective value
  of a stored config for a request context,
- `/evaluate/preview`, used by the dashboard to evaluate an unsaved
  config and explain which overrides matched and why.
"""

from __future__ import annotations

import asyncio
from typing import Any, List

from flask import Blueprint, current_app, jsonify, request

from errors.handlers import NotFound
from log_config import get_logger
from repositories import memory_repo
from services.conditions import Override
from services.override_service import evaluate_config_value
from services.render_service import memoize_resolver, render_overrides
from validators.evaluate_validator import (
    validate_eval_payload,
    validate_preview_payload,
)


evaluate_bp = Blueprint("evaluate_bp", __name__, url_prefix="/evaluate")

logger = get_logger(__name__)


def _environment_id(payload: dict) -> str:
    return payload.get("environment_id") or current_app.config["SETTINGS"].default_environment_id


def _render(overrides: List[Any], environment_id: str) -> list:
    """Render overrides against the in-memory store, sharing lookups."""
    resolver = memoize_resolver(memory_repo.resolve_config_value)
    return asyncio.run(
        render_overrides(
            overrides,
            config_resolver=resolver,
            environment_id=environment_id,
        )
    )


@evaluate_bp.post("/")
def post_evaluate() -> tuple[Any, int]:
    """Evaluate a stored config for a context (public API).

    Request JSON body (EvaluateRequest):
        {
            "project_id": "string",
            "config_name": "string",
            "environment_id": "string",   (optional)
            "context": { ... }
        }

    Behaviour:
        - Returns 404 with {"error": "NotFound"} if the config does not
            exist.
        - Otherwise renders the overrides of the environment, evaluates
            them and returns 200 with ``{"finalValue": ...}`` only.

    Returns:
        A tuple ``(response, status_code)``.
    """
    payload = request.get_json(silent=True) or {}
    validate_eval_payload(payload)

    environment_id = _environment_id(payload)
    record = memory_repo.get_config(payload["project_id"], payload["config_name"])
    if record is None:
        raise NotFound(f"Config {payload['config_name']!r} not found.")

    config = memory_repo.config_for_environment(record, environment_id)
    rendered = _render(config["overrides"], environment_id)

    result = evaluate_config_value(
        {"value": config["value"], "overrides": rendered},
        payload["context"],
    )

    return jsonify({"finalValue": result.final_value}), 200


@evaluate_bp.post("/preview")
def post_preview() -> tuple[Any, int]:
    """Evaluate an unsaved config and return the full trace.

    Request JSON body (PreviewRequest):
        {
            "project_id": "string",
            "environment_id": "string",   (optional)
            "config": {"value": ..., "overrides": [...]},
            "context": { ... }
        }

    References inside the overrides are resolved against the stored
    configs of ``project_id``.

    Returns:
        A tuple ``(response, status_code)`` where the response holds
        ``finalValue``, ``matchedOverride`` and ``overrideEvaluations``.
    """
    payload = request.get_json(silent=True) or {}
    overrides: List[Override] = validate_preview_payload(payload)

    environment_id = _environment_id(payload)
    rendered = _render(overrides, environment_id)
    if len(rendered) < len(overrides):
        logger.info(
            "preview_overrides_excluded",
            project_id=payload["project_id"],
            excluded=len(overrides) - len(rendered),
        )

    result = evaluate_config_value(
        {"value": payload["config"]["value"], "overrides": rendered},
        payload["context"],
    )

    return jsonify(result.to_dict()), 200
