# backend/tests/test_app.py
"""
Integration tests for the Cirrus Flask application.

These tests exercise the real Flask app with the in-memory config store
to ensure that validation, rendering and evaluation work together.

They intentionally:
- build the app through create_app() with explicit settings,
- hit the real HTTP routes with Flask's test client,
- clear the in-memory store between tests to keep them independent.
"""


import pytest

from app import create_app
from repositories import memory_repo
from settings import Settings


PROJECT = "proj-1"


def lit(value):
    return {"type": "literal", "value": value}


def ref(config_name, path=None):
    return {
        "type": "config_reference",
        "projectId": PROJECT,
        "configName": config_name,
        "path": path or [],
    }


@pytest.fixture
def client():
    memory_repo.clear()
    app = create_app(Settings(log_format="console", default_environment_id="production"))
    with app.test_client() as c:
        yield c
    memory_repo.clear()


def _seed_config(client, **extra):
    """Create the checkout config used by most tests."""
    body = {
        "project_id": PROJECT,
        "name": "checkout-discount",
        "value": 0,
        "overrides": [
            {
                "name": "Admin",
                "conditions": [
                    {"operator": "equals", "property": "userEmail", "value": lit("admin@example.com")}
                ],
                "value": lit(100),
            },
            {
                "name": "Premium",
                "conditions": [
                    {"operator": "equals", "property": "tier", "value": lit("premium")},
                    {"operator": "greater_than_or_equal", "property": "age", "value": lit("18")},
                ],
                "value": lit(40),
            },
        ],
    }
    body.update(extra)
    resp = client.post("/admin/configs/", json=body)
    assert resp.status_code == 200
    return body


def _evaluate(client, context, **extra):
    payload = {"project_id": PROJECT, "config_name": "checkout-discount", "context": context}
    payload.update(extra)
    return client.post("/evaluate/", json=payload)


def test_health(client):
    r = client.get("/health/")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok", "configs": 0}


# ---------- Admin ----------


def test_admin_upsert_get_list_delete(client):
    body = _seed_config(client)

    r = client.get(f"/admin/configs/{PROJECT}/checkout-discount")
    assert r.status_code == 200
    data = r.get_json()
    assert data["name"] == "checkout-discount"
    assert data["overrides"] == body["overrides"]

    r = client.get(f"/admin/configs/?project_id={PROJECT}")
    assert [c["name"] for c in r.get_json()] == ["checkout-discount"]
    assert client.get("/admin/configs/?project_id=other").get_json() == []

    assert client.delete(f"/admin/configs/{PROJECT}/checkout-discount").status_code == 204
    assert client.delete(f"/admin/configs/{PROJECT}/checkout-discount").status_code == 204
    r = client.get(f"/admin/configs/{PROJECT}/checkout-discount")
    assert r.status_code == 404
    assert r.get_json()["error"] == "NotFound"


def test_admin_rejects_invalid_config(client):
    r = client.post(
        "/admin/configs/",
        json={
            "project_id": PROJECT,
            "name": "broken",
            "value": 1,
            "overrides": [{"name": "x", "conditions": [{"operator": "xor"}], "value": lit(1)}],
        },
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "BadRequest"


def test_admin_rejects_cross_project_reference(client):
    foreign = ref("other")
    foreign["projectId"] = "proj-2"
    r = client.post(
        "/admin/configs/",
        json={
            "project_id": PROJECT,
            "name": "leaky",
            "value": 1,
            "overrides": [{"name": "Foreign", "conditions": [], "value": foreign}],
        },
    )
    assert r.status_code == 400
    assert "proj-2" in r.get_json()["detail"]


# ---------- Evaluate ----------


def test_evaluate_priority_and_fallback(client):
    _seed_config(client)

    r = _evaluate(client, {"userEmail": "admin@example.com", "tier": "premium", "age": 30})
    assert r.status_code == 200
    assert r.get_json() == {"finalValue": 100}

    # string rule "18" is casted against a numeric age
    assert _evaluate(client, {"tier": "premium", "age": 30}).get_json() == {"finalValue": 40}

    # missing attribute -> base value
    assert _evaluate(client, {"tier": "premium"}).get_json() == {"finalValue": 0}


def test_evaluate_unknown_config(client):
    r = _evaluate(client, {})
    assert r.status_code == 404
    assert r.get_json()["error"] == "NotFound"


def test_evaluate_invalid_payload(client):
    r = client.post("/evaluate/", json={"project_id": PROJECT})
    assert r.status_code == 400


def test_evaluate_uses_environment_variant(client):
    _seed_config(
        client,
        variants={
            "staging": {
                "value": 5,
                "overrides": [{"name": "All staging", "conditions": [], "value": lit(99)}],
            }
        },
    )

    assert _evaluate(client, {}, environment_id="staging").get_json() == {"finalValue": 99}
    assert _evaluate(client, {}, environment_id="production").get_json() == {"finalValue": 0}
    assert _evaluate(client, {}).get_json() == {"finalValue": 0}


def test_evaluate_resolves_references_from_store(client):
    client.post(
        "/admin/configs/",
        json={
            "project_id": PROJECT,
            "name": "discounts",
            "value": {"premium": 25},
            "variants": {"staging": {"value": {"premium": 75}}},
        },
    )
    _seed_config(
        client,
        overrides=[
            {
                "name": "Premium",
                "conditions": [{"operator": "equals", "property": "tier", "value": lit("premium")}],
                "value": ref("discounts", ["premium"]),
            },
            {
                "name": "Dangling",
                "conditions": [],
                "value": ref("missing-config"),
            },
        ],
    )

    assert _evaluate(client, {"tier": "premium"}).get_json() == {"finalValue": 25}
    assert _evaluate(client, {"tier": "premium"}, environment_id="staging").get_json() == {"finalValue": 75}
    # the dangling override is excluded, so the base value wins
    assert _evaluate(client, {"tier": "free"}).get_json() == {"finalValue": 0}


# ---------- Preview ----------


def test_preview_returns_full_trace(client):
    r = client.post(
        "/evaluate/preview",
        json={
            "project_id": PROJECT,
            "config": {
                "value": "base",
                "overrides": [
                    {
                        "name": "Complex",
                        "conditions": [
                            {
                                "operator": "and",
                                "conditions": [
                                    {"operator": "equals", "property": "country", "value": lit("US")},
                                    {"operator": "equals", "property": "tier", "value": lit("premium")},
                                ],
                            }
                        ],
                        "value": lit("special"),
                    },
                    {
                        "name": "Counted",
                        "conditions": [
                            {"operator": "equals", "property": "count", "value": lit("100")}
                        ],
                        "value": lit("counted"),
                    },
                ],
            },
            "context": {"country": "US", "tier": "free", "count": 100},
        },
    )
    assert r.status_code == 200
    data = r.get_json()

    assert data["finalValue"] == "counted"
    assert data["matchedOverride"]["name"] == "Counted"
    assert len(data["overrideEvaluations"]) == 2

    complex_eval, counted_eval = data["overrideEvaluations"]
    assert complex_eval["result"] == "not_matched"
    nested = complex_eval["conditionEvaluations"][0]["nestedEvaluations"]
    assert [n["result"] for n in nested] == ["matched", "not_matched"]
    assert "expected" in nested[1]["reason"]

    leaf = counted_eval["conditionEvaluations"][0]
    assert "casted" in leaf["reason"]
    assert leaf["expectedValue"] == {"original": "100", "casted": 100}


def test_preview_rejects_malformed_condition(client):
    r = client.post(
        "/evaluate/preview",
        json={
            "project_id": PROJECT,
            "config": {
                "value": 1,
                "overrides": [{"name": "x", "conditions": [{"operator": "not"}], "value": lit(2)}],
            },
            "context": {},
        },
    )
    assert r.status_code == 400


def test_evaluate_reference_to_null_config_is_kept(client):
    client.post(
        "/admin/configs/",
        json={"project_id": PROJECT, "name": "retired-discount", "value": None},
    )
    _seed_config(
        client,
        overrides=[{"name": "Retired", "conditions": [], "value": ref("retired-discount")}],
    )

    assert _evaluate(client, {}).get_json() == {"finalValue": None}
