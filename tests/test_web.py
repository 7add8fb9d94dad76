"""
Tests for the Flask API in `web/app.py`.

Covers status-code mapping for each error type, the share-link endpoints and
the crisis annotations on measurements.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bp_tracker import config
from bp_tracker.errors import ConfigurationError
from web.app import create_app


@pytest.fixture
def client(service):
    app = create_app(share_service=service)
    app.config["TESTING"] = True
    return app.test_client()


def _share_token(client, patient_id: str) -> str:
    response = client.post(f"/api/users/{patient_id}/share-measurement")
    assert response.status_code == 200
    return response.get_json()["share_url"].rsplit("/", 1)[-1]


# ============================================================
# APP FACTORY
# ============================================================

def test_create_app_fails_fast_without_secret(monkeypatch) -> None:
    monkeypatch.setattr(config, "JWT_SECRET", None)
    with pytest.raises(ConfigurationError):
        create_app()


def test_create_app_from_config() -> None:
    app = create_app()
    assert app.extensions["share_service"].app_url == config.APP_URL


# ============================================================
# PATIENTS
# ============================================================

def test_register_and_lookup(client) -> None:
    response = client.post("/api/users", json={"name": "Ana", "email": "ana@example.com"})
    assert response.status_code == 201
    patient_id = response.get_json()["id"]

    response = client.get("/api/users", query_string={"email": "ana@example.com"})
    assert response.get_json()["id"] == patient_id

    assert client.get("/api/users").status_code == 400
    assert client.get("/api/users", query_string={"email": "x@example.com"}).status_code == 404


def test_register_duplicate(client, patient_id: str) -> None:
    response = client.post("/api/users", json={"name": "Ana", "email": "ana@example.com"})
    assert response.status_code == 400
    assert "already exists" in response.get_json()["error"]


def test_update_profile(client, patient_id: str) -> None:
    response = client.patch(f"/api/users/{patient_id}", json={"height": 165, "weight": 60})
    assert response.status_code == 200
    assert response.get_json()["height"] == 165

    assert client.patch(f"/api/users/{patient_id}", json={}).status_code == 400
    assert client.patch("/api/users/missing", json={"height": 1}).status_code == 404


@pytest.mark.parametrize("body", [
    {"name": ["Ana"], "email": "ana@example.com"},
    {"name": "Ana", "email": {"address": "ana@example.com"}},
    {"name": "Ana", "email": "ana@example.com", "height": "tall"},
])
def test_register_badly_typed_field(client, body: dict) -> None:
    response = client.post("/api/users", json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_catalogues_sorted_by_name(client) -> None:
    medications = client.get("/api/medications").get_json()
    assert [m["name"] for m in medications] == sorted(config.DEFAULT_MEDICATIONS)

    conditions = client.get("/api/relevant-conditions").get_json()
    assert [c["name"] for c in conditions] == sorted(config.DEFAULT_RELEVANT_CONDITIONS)


def test_update_medications_and_conditions(client, patient_id: str) -> None:
    medications = {m["name"]: m["id"] for m in client.get("/api/medications").get_json()}
    conditions = {c["name"]: c["id"] for c in client.get("/api/relevant-conditions").get_json()}

    response = client.patch(f"/api/users/{patient_id}", json={
        "medications": [{"id": medications["Losartan"]}, medications["Amlodipine"]],
        "relevant_conditions": [conditions["Diabetes"]],
    })
    assert response.status_code == 200
    data = response.get_json()
    assert [m["name"] for m in data["medications"]] == ["Amlodipine", "Losartan"]
    assert [c["name"] for c in data["relevant_conditions"]] == ["Diabetes"]

    # Lists replace what was there; an empty list clears
    response = client.patch(f"/api/users/{patient_id}", json={"medications": []})
    data = response.get_json()
    assert data["medications"] == []
    assert [c["name"] for c in data["relevant_conditions"]] == ["Diabetes"]

    assert client.get(f"/api/users/{patient_id}").get_json()["medications"] == []


@pytest.mark.parametrize("body", [
    {"medications": [9999]},
    {"medications": "Losartan"},
    {"relevant_conditions": [["1"]]},
    {"name": ["Ana"]},
])
def test_update_rejects_bad_links_and_types(client, patient_id: str, body: dict) -> None:
    response = client.patch(f"/api/users/{patient_id}", json=body)
    assert response.status_code == 400


# ============================================================
# MEASUREMENTS
# ============================================================

def test_record_crisis_measurement(client, patient_id: str) -> None:
    response = client.post(f"/api/users/{patient_id}/measurements", json={
        "systolic_pressure": 182,
        "diastolic_pressure": 100,
        "heart_rate": 95,
        "tags": ["Morning"],
    })
    assert response.status_code == 201
    data = response.get_json()
    assert data["hypertensive_crisis"] is True
    assert data["status"] == "high"
    assert data["tags"] == ["Morning"]


@pytest.mark.parametrize("body", [
    {"diastolic_pressure": 80, "heart_rate": 70, "tags": ["Resting"]},
    {"systolic_pressure": 120, "diastolic_pressure": 80, "heart_rate": 70, "tags": []},
    {"systolic_pressure": 120, "diastolic_pressure": 80, "heart_rate": 70, "tags": ["Nope"]},
])
def test_record_measurement_validation(client, patient_id: str, body: dict) -> None:
    response = client.post(f"/api/users/{patient_id}/measurements", json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_list_measurements_with_status(client, patient_id: str, readings: list) -> None:
    response = client.get(f"/api/users/{patient_id}/measurements")
    data = response.get_json()
    assert [m["status"] for m in data] == ["low", "high", "normal"]
    assert data[0]["created_at"] == "2026-03-03T18:45:00"

    assert client.get("/api/users/missing/measurements").status_code == 404


def test_thresholds_endpoint(client, monkeypatch) -> None:
    monkeypatch.setenv("PSYS_HIGH", "170")
    assert client.get("/api/thresholds").get_json() == {
        "systolic_high": 170,
        "diastolic_high": 120,
        "systolic_low": 90,
        "diastolic_low": 60,
    }


# ============================================================
# NOTIFICATIONS
# ============================================================

def test_notification_crud(client, patient_id: str) -> None:
    base = f"/api/users/{patient_id}/notifications"
    response = client.post(base, json={
        "title": "Pills", "type": "medication", "start_date": "2026-04-01T08:00",
        "repeat_interval": 8, "additional_notes": "",
    })
    assert response.status_code == 201
    notification_id = response.get_json()["id"]

    assert len(client.get(base).get_json()) == 1
    assert client.get(f"{base}/{notification_id}").get_json()["start_date"] == "2026-04-01T08:00:00"

    response = client.patch(f"{base}/{notification_id}", json={
        "title": "Doctor", "type": "appointment", "start_date": "2026-04-02T10:00",
        "additional_notes": "Bring log",
    })
    assert response.get_json()["title"] == "Doctor"
    assert response.get_json()["repeat_interval"] == 8

    assert client.delete(f"{base}/{notification_id}").status_code == 200
    assert client.get(f"{base}/{notification_id}").status_code == 404
    assert client.delete(f"{base}/{notification_id}").status_code == 404


def test_notification_missing_title(client, patient_id: str) -> None:
    response = client.post(f"/api/users/{patient_id}/notifications", json={
        "type": "medication", "start_date": "2026-04-01T08:00", "additional_notes": "",
    })
    assert response.status_code == 400


@pytest.mark.parametrize("field, value", [
    ("type", ["medication"]),
    ("title", ["Pills"]),
    ("additional_notes", {"a": 1}),
    ("push_token", ["device-1"]),
])
def test_notification_badly_typed_field(client, patient_id: str, field: str, value) -> None:
    body = {"title": "Pills", "type": "medication", "start_date": "2026-04-01T08:00",
            "additional_notes": ""}
    body[field] = value
    response = client.post(f"/api/users/{patient_id}/notifications", json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()

# ============================================================
# SHARING
# ============================================================

def test_share_round_trip(client, patient_id: str, readings: list) -> None:
    token = _share_token(client, patient_id)

    response = client.post("/api/check-shared-measurement", json={"token": token})
    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["token_info"]["user_id"] == patient_id
    assert data["user"]["name"] == "Ana Diaz"
    assert [m["id"] for m in data["measurements"]] == list(reversed(readings))
    assert data["measurements"][1]["tags"] == "Morning, Stressed"

    assert client.get(f"/shared/{token}").get_json() == data


def test_share_unknown_patient(client) -> None:
    response = client.post("/api/users/nonexistent-id/share-measurement")
    assert response.status_code == 404


def test_check_requires_token(client) -> None:
    response = client.post("/api/check-shared-measurement", json={})
    assert response.status_code == 400
    assert "expired" not in response.get_json()


def test_check_expired_token(client, service, patient_id: str) -> None:
    token = service.issue_token(patient_id, now=datetime.now(timezone.utc) - timedelta(days=5))
    response = client.post("/api/check-shared-measurement", json={"token": token})
    assert response.status_code == 401
    assert response.get_json()["expired"] is True


def test_check_garbage_token_same_answer_as_expired(client, service, patient_id: str) -> None:
    expired = service.issue_token(patient_id, now=datetime.now(timezone.utc) - timedelta(days=5))
    expired_body = client.post("/api/check-shared-measurement", json={"token": expired}).get_json()
    garbage_body = client.post("/api/check-shared-measurement", json={"token": "junk"}).get_json()
    assert expired_body == garbage_body


def test_check_deleted_patient(client, patient_id: str) -> None:
    from bp_tracker.models import delete_patient

    token = _share_token(client, patient_id)
    delete_patient(patient_id)
    assert client.get(f"/shared/{token}").status_code == 404


def test_unknown_route_is_json(client) -> None:
    response = client.get("/nope")
    assert response.status_code == 404
    assert "error" in response.get_json()
