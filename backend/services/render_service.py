# Cirrus/backend/services/render_service.py
"""Override rendering: resolve config references before evaluation.

Source overrides may take their value, or a condition's comparison
value, from another config (``{"type": "config_reference", ...}``).
:func:`render_overrides` resolves every reference through an injected
resolver and returns overrides whose values are plain literals, ready
for :func:`services.override_service.evaluate_config_value`.

Lookups run concurrently. An override with a reference that cannot be
resolved is dropped from the result instead of raising, so a dangling
reference never breaks evaluation.
"""


from __future__ import annotations

import asyncio
import inspect
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from log_config import get_logger
from services.conditions import (
    AndCondition,
    ComparisonCondition,
    Condition,
    ConfigReference,
    LiteralValue,
    MalformedConditionError,
    NotCondition,
    OrCondition,
    Override,
    RenderedOverride,
    SegmentationCondition,
    ValueSource,
    parse_override,
)
from services.json_path import MISSING, format_json_path, get_value_by_path


logger = get_logger(__name__)

# Called as resolver(project_id=..., config_name=..., environment_id=...).
# Returns the referenced config's current value (``None`` for a config whose
# value is null), or ``services.json_path.MISSING`` if it does not exist.
# May be a plain function or a coroutine function.
ConfigValueResolver = Callable[..., Union[Awaitable[Any], Any]]


async def _call_resolver(
    config_resolver: ConfigValueResolver,
    project_id: str,
    config_name: str,
    environment_id: str,
) -> Any:
    result = config_resolver(
        project_id=project_id,
        config_name=config_name,
        environment_id=environment_id,
    )
    if inspect.isawaitable(result):
        result = await result
    return result


async def _render_value(
    value: ValueSource,
    config_resolver: ConfigValueResolver,
    environment_id: str,
) -> Any:
    """Return the literal for ``value``, or ``MISSING``."""
    if isinstance(value, LiteralValue):
        return value.value
    if not isinstance(value, ConfigReference):
        raise MalformedConditionError(f"Unknown value source: {value!r}")

    try:
        resolved = await _call_resolver(
            config_resolver, value.project_id, value.config_name, environment_id
        )
    except Exception as exc:  # lookup failures count as a missing reference
        logger.warning(
            "config_reference_lookup_failed",
            project_id=value.project_id,
            config_name=value.config_name,
            environment_id=environment_id,
            error=str(exc),
        )
        return MISSING

    if resolved is MISSING:
        logger.debug(
            "config_reference_not_found",
            project_id=value.project_id,
            config_name=value.config_name,
            environment_id=environment_id,
        )
        return MISSING

    rendered = get_value_by_path(resolved, value.path)
    if rendered is MISSING:
        logger.debug(
            "config_reference_path_missing",
            config_name=value.config_name,
            path=format_json_path(value.path),
        )
    return rendered


async def _render_condition(
    condition: Condition,
    config_resolver: ConfigValueResolver,
    environment_id: str,
) -> Optional[Condition]:
    """Render one condition tree; ``None`` when a reference is missing."""
    if isinstance(condition, ComparisonCondition):
        rendered = await _render_value(condition.value, config_resolver, environment_id)
        if rendered is MISSING:
            return None
        return ComparisonCondition(condition.operator, condition.property, rendered)

    if isinstance(condition, SegmentationCondition):
        return condition

    if isinstance(condition, (AndCondition, OrCondition)):
        children = await asyncio.gather(
            *(
                _render_condition(c, config_resolver, environment_id)
                for c in condition.conditions
            )
        )
        if any(c is None for c in children):
            return None
        return type(condition)(tuple(children))

    if isinstance(condition, NotCondition):
        child = await _render_condition(condition.condition, config_resolver, environment_id)
        return None if child is None else NotCondition(child)

    raise MalformedConditionError(f"Unknown condition type: {condition!r}")


async def _render_override(
    override: Override,
    config_resolver: ConfigValueResolver,
    environment_id: str,
) -> Optional[RenderedOverride]:
    value_task = _render_value(override.value, config_resolver, environment_id)
    condition_tasks = [
        _render_condition(c, config_resolver, environment_id)
        for c in override.conditions
    ]
    value, *conditions = await asyncio.gather(value_task, *condition_tasks)

    if value is MISSING or any(c is None for c in conditions):
        logger.warning(
            "override_excluded_unresolved_reference",
            override=override.name,
            environment_id=environment_id,
        )
        return None

    return RenderedOverride(name=override.name, conditions=tuple(conditions), value=value)


async def render_overrides(
    overrides: Sequence[Union[Override, Mapping[str, Any]]],
    config_resolver: ConfigValueResolver,
    environment_id: str,
) -> List[RenderedOverride]:
    """Resolve every config reference in ``overrides``.

    Args:
        overrides: Source overrides (objects or their JSON form).
        config_resolver: Lookup for referenced configs, see
            :data:`ConfigValueResolver`.
        environment_id: Environment the references are resolved in.

    Returns:
        Rendered overrides in input order. Overrides with an
        unresolvable reference are left out; nothing is reordered or
        deduplicated.

    Raises:
        MalformedConditionError: If an override is not a valid shape.
    """
    parsed = [o if isinstance(o, Override) else parse_override(o) for o in overrides]
    rendered = await asyncio.gather(
        *(_render_override(o, config_resolver, environment_id) for o in parsed)
    )
    return [r for r in rendered if r is not None]


def memoize_resolver(config_resolver: ConfigValueResolver) -> ConfigValueResolver:
    """Share lookups for the same config within one rendering call.

    The returned resolver starts at most one lookup per
    ``(project_id, config_name, environment_id)``; concurrent callers
    await the same future. Create a new wrapper per request.
    """
    pending: Dict[Tuple[str, str, str], "asyncio.Future[Any]"] = {}

    def resolver(*, project_id: str, config_name: str, environment_id: str) -> Any:
        key = (project_id, config_name, environment_id)
        if key not in pending:
            pending[key] = asyncio.ensure_future(
                _call_resolver(config_resolver, project_id, config_name, environment_id)
            )
        return pending[key]

    return resolver
