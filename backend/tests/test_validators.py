# backend/tests/test_validators.py
"""
Unit tests for payload validators: config schema, platform size limits,
and cross-project reference checks.
"""


import copy

import pytest

from errors.handlers import BadRequest
from services.conditions import parse_override
from validators.config_validator import MAX_VALUE_BYTES, validate_config, validate_overrides
from validators.evaluate_validator import validate_eval_payload, validate_preview_payload
from validators.override_references_validator import (
    extract_override_references,
    validate_override_references,
)


def lit(value):
    return {"type": "literal", "value": value}


def ref(config_name, project_id="proj-1", path=None):
    return {
        "type": "config_reference",
        "projectId": project_id,
        "configName": config_name,
        "path": path or [],
    }


def make_override(name="US", value=None, conditions=None):
    return {
        "name": name,
        "conditions": conditions
        if conditions is not None
        else [{"operator": "equals", "property": "country", "value": lit("US")}],
        "value": value or lit("us-value"),
    }


VALID_CONFIG = {
    "project_id": "proj-1",
    "name": "checkout-banner",
    "value": "base",
    "overrides": [
        make_override(),
        make_override(
            "Rollout",
            conditions=[
                {
                    "operator": "or",
                    "conditions": [
                        {"operator": "segmentation", "property": "userId",
                         "fromPercentage": 0, "toPercentage": 10, "seed": "banner"},
                        {"operator": "not", "condition": {
                            "operator": "in", "property": "tier", "value": ref("tiers", path=["paid"]),
                        }},
                    ],
                }
            ],
            value=ref("banner-copy", path=["rollout"]),
        ),
    ],
    "variants": {"staging": {"value": "staging-base", "overrides": []}},
}


# ---------- Config schema ----------


def test_valid_config_passes():
    validate_config(copy.deepcopy(VALID_CONFIG))


def test_config_must_be_object():
    with pytest.raises(BadRequest):
        validate_config(["not", "an", "object"])


@pytest.mark.parametrize(
    "mutate",
    [
        lambda c: c.pop("value"),
        lambda c: c.update(name=""),
        lambda c: c.update(name="x" * 101),
        lambda c: c["overrides"][0].update(name="n" * 101),
        lambda c: c["overrides"][0]["conditions"][0].update(operator="matches"),
        lambda c: c["overrides"][0]["conditions"][0].update(value="raw-literal"),
        lambda c: c["overrides"][0].update(value={"type": "literal"}),
        lambda c: c["overrides"][0]["conditions"][0].pop("property"),
        lambda c: c.update(unexpected=True),
        lambda c: c["variants"].update(dev={"overrides": []}),
    ],
)
def test_schema_violations_are_rejected(mutate):
    config = copy.deepcopy(VALID_CONFIG)
    mutate(config)
    with pytest.raises(BadRequest):
        validate_config(config)


def test_segmentation_percentages_are_bounded():
    config = copy.deepcopy(VALID_CONFIG)
    segment = config["overrides"][1]["conditions"][0]["conditions"][0]
    segment["toPercentage"] = 101
    with pytest.raises(BadRequest):
        validate_config(config)


# ---------- Size limits ----------


def test_at_most_100_overrides():
    config = copy.deepcopy(VALID_CONFIG)
    config["overrides"] = [make_override(f"o{i}") for i in range(100)]
    validate_config(config)

    config["overrides"].append(make_override("one-too-many"))
    with pytest.raises(BadRequest):
        validate_config(config)


def test_at_most_100_conditions_per_override():
    condition = {"operator": "equals", "property": "a", "value": lit(1)}
    config = copy.deepcopy(VALID_CONFIG)
    config["overrides"] = [make_override(conditions=[condition] * 101)]
    with pytest.raises(BadRequest):
        validate_config(config)


def test_value_size_limit():
    config = copy.deepcopy(VALID_CONFIG)
    config["value"] = "x" * MAX_VALUE_BYTES
    with pytest.raises(BadRequest) as exc:
        validate_config(config)
    assert "byte limit" in exc.value.detail


def test_variant_value_size_limit():
    config = copy.deepcopy(VALID_CONFIG)
    config["variants"]["staging"]["value"] = "x" * MAX_VALUE_BYTES
    with pytest.raises(BadRequest):
        validate_config(config)


def test_deep_nesting_is_rejected():
    condition = {"operator": "equals", "property": "a", "value": lit(1)}
    for _ in range(40):
        condition = {"operator": "not", "condition": condition}
    with pytest.raises(BadRequest) as exc:
        validate_overrides([make_override(conditions=[condition])], "proj-1")
    assert "nested" in exc.value.detail


# ---------- References ----------


def test_extract_override_references_in_order():
    override = parse_override(VALID_CONFIG["overrides"][1])
    references = extract_override_references(override)
    assert [r.config_name for r in references] == ["banner-copy", "tiers"]
    assert references[1].path == ("paid",)


def test_cross_project_reference_is_rejected():
    config = copy.deepcopy(VALID_CONFIG)
    config["overrides"][1]["value"] = ref("banner-copy", project_id="other-proj")
    with pytest.raises(BadRequest) as exc:
        validate_config(config)
    assert 'Override "Rollout" references project other-proj' in exc.value.detail


def test_validate_override_references_accepts_empty():
    validate_override_references(None, config_project_id="proj-1")
    validate_override_references([], config_project_id="proj-1")


def test_written_reference_path_is_validated():
    config = copy.deepcopy(VALID_CONFIG)
    config["overrides"][1]["value"]["path"] = "rollout.copy[0]"
    rollout = validate_overrides(config["overrides"], "proj-1")[1]
    assert rollout.value.path == ("rollout", "copy", 0)

    config["overrides"][1]["value"]["path"] = "rollout..copy"
    with pytest.raises(BadRequest):
        validate_config(config)


# ---------- Request envelopes ----------


def test_evaluate_payload():
    validate_eval_payload({"project_id": "p", "config_name": "c", "context": {}})
    with pytest.raises(BadRequest):
        validate_eval_payload({"project_id": "p", "config_name": "c"})
    with pytest.raises(BadRequest):
        validate_eval_payload({"project_id": "p", "config_name": "c", "context": []})


def test_preview_payload_returns_parsed_overrides():
    overrides = validate_preview_payload(
        {
            "project_id": "proj-1",
            "config": {"value": 1, "overrides": [make_override()]},
            "context": {"country": "US"},
        }
    )
    assert [o.name for o in overrides] == ["US"]


def test_preview_payload_rejects_bad_overrides():
    with pytest.raises(BadRequest):
        validate_preview_payload(
            {
                "project_id": "proj-1",
                "config": {"value": 1, "overrides": [{"name": "x"}]},
                "context": {},
            }
        )
