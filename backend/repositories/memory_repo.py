# Cirrus/backend/repositories/memory_repo.py
"""In-memory config repository for Cirrus.

This repository keeps config records in process memory, keyed by
``(project_id, name)``. It backs the admin and evaluation endpoints and
serves as the default config resolver for override references. It is
not persisted.
"""


from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from services.json_path import MISSING

# In-memory store keyed by (project_id, config name)
_CONFIGS: Dict[Tuple[str, str], dict] = {}


def save_config(config: dict) -> dict:
    """Upsert a config record by its ``(project_id, name)``.

    Args:
        config: A dictionary with at least ``project_id``, ``name``,
            ``value`` and ``overrides``; ``variants`` is optional.

    Returns:
        A copy of the stored record.
    """
    record = copy.deepcopy(config)
    record.setdefault("overrides", [])
    record.setdefault("variants", {})
    _CONFIGS[(record["project_id"], record["name"])] = record
    return copy.deepcopy(record)


def get_config(project_id: str, name: str) -> Optional[dict]:
    """Retrieve a single config record.

    Returns:
        A copy of the record if present, otherwise ``None``.
    """
    record = _CONFIGS.get((project_id, name))
    return copy.deepcopy(record) if record is not None else None


def list_configs(project_id: Optional[str] = None) -> List[dict]:
    """Return stored configs, optionally restricted to one project."""
    return [
        copy.deepcopy(record)
        for (owner, _), record in sorted(_CONFIGS.items())
        if project_id is None or owner == project_id
    ]


def delete_config(project_id: str, name: str) -> None:
    """Delete a config; deleting a missing config is a no-op."""
    _CONFIGS.pop((project_id, name), None)


def clear() -> None:
    """Drop every config (used by tests)."""
    _CONFIGS.clear()


def config_for_environment(record: dict, environment_id: str) -> dict:
    """Pick the value and overrides that apply in ``environment_id``.

    A config may carry per-environment variants; when the environment has
    one, its value and overrides replace the base ones entirely.

    Returns:
        dict with ``value`` and ``overrides``.
    """
    variant = (record.get("variants") or {}).get(environment_id)
    source = variant if variant is not None else record
    return {
        "value": source.get("value"),
        "overrides": source.get("overrides") or [],
    }


def resolve_config_value(
    *, project_id: str, config_name: str, environment_id: str
) -> Any:
    """Config resolver backed by this repository.

    Returns:
        The referenced config's value in ``environment_id`` (which may be
        ``None``), or :data:`services.json_path.MISSING` when the config
        does not exist.
    """
    record = _CONFIGS.get((project_id, config_name))
    if record is None:
        return MISSING
    return copy.deepcopy(config_for_environment(record, environment_id)["value"])
