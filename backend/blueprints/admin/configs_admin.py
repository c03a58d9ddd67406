# Cirrus/backend/blueprints/admin/configs_admin.py
"""Admin-facing config management endpoints for Cirrus.

Provides upsert, lookup, listing and deletion of configs in the
in-memory store.
"""


from __future__ import annotations

from typing import Any

from flask import Blueprint, request, jsonify

from errors.handlers import NotFound
from log_config import get_logger
from repositories import memory_repo
from validators.config_validator import validate_config


configs_admin_bp = Blueprint("configs_admin", __name__, url_prefix="/admin/configs")

logger = get_logger(__name__)


def _serialize_config(record: dict) -> dict:
    """Serialize a stored config record into a JSON-safe dict."""
    return {
        "project_id": record["project_id"],
        "name": record["name"],
        "description": record.get("description", ""),
        "value": record["value"],
        "overrides": record.get("overrides") or [],
        "variants": record.get("variants") or {},
    }


@configs_admin_bp.post("/")
def post_upsert_config() -> tuple[Any, int]:
    """Create or update a config.

    - Validates the payload against config.schema.json, the size limits
      and the reference rules via validate_config.
    - Stores it with memory_repo.save_config.

    Returns:
        tuple: (JSON response, HTTP status code).
    """
    payload = request.get_json(silent=True) or {}

    # Validate payload shape (raises BadRequest -> 400 if invalid)
    validate_config(payload)

    record = memory_repo.save_config(payload)
    logger.info(
        "config_saved",
        project_id=record["project_id"],
        name=record["name"],
        overrides=len(record["overrides"]),
    )

    return jsonify(_serialize_config(record)), 200


@configs_admin_bp.get("/")
def list_configs() -> tuple[Any, int]:
    """
    List configs.

    Query params:
        - project_id (optional): restrict the listing to one project.

    Returns:
        tuple: (JSON list of config representations, HTTP status code).
    """
    project_id = request.args.get("project_id") or None
    records = memory_repo.list_configs(project_id=project_id)
    return jsonify([_serialize_config(r) for r in records]), 200


@configs_admin_bp.get("/<string:project_id>/<string:name>")
def get_config(project_id: str, name: str) -> tuple[Any, int]:
    """Retrieve a config by project and name.

    Returns:
        tuple: (JSON config representation, HTTP status code).

    Raises:
        NotFound: If the config does not exist.
    """
    record = memory_repo.get_config(project_id, name)
    if record is None:
        raise NotFound(f"Config {name!r} not found in project {project_id!r}.")

    return jsonify(_serialize_config(record)), 200


@configs_admin_bp.delete("/<string:project_id>/<string:name>")
def delete_config(project_id: str, name: str) -> tuple[str, int]:
    """Delete a config.

    Deleting a config that does not exist still returns 204.

    Returns:
        tuple: ("", 204) on success.
    """
    memory_repo.delete_config(project_id, name)
    return "", 204
