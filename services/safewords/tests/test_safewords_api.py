# pytest services/safewords/tests/test_safewords_api.py -q

import pytest
from fastapi.testclient import TestClient

from common.storage import MemoryStore
from conftest import FakeSmsGateway
from libs.location_provider import DeviceBridgeLocationProvider
from services.safewords.components import SafeWordsCore
from services.safewords.main import app, get_core
from services.verification.workflow import VerificationWorkflow


@pytest.fixture()
def core():
    core = SafeWordsCore(
        store=MemoryStore(),
        gateway=FakeSmsGateway(),
        provider=DeviceBridgeLocationProvider(timeout=1),
        countdown_ms=50,
    )
    core.verification = VerificationWorkflow(
        core.contacts, core.gateway, code_generator=lambda: "246810"
    )
    return core


@pytest.fixture()
def client(core):
    async def override_get_core():
        await core.load()
        return core

    app.dependency_overrides[get_core] = override_get_core
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _verify(client, number, name=None):
    r = client.post("/v1/verification/request", json={"number": number, "contact_name": name})
    assert r.json()["state"] == "code_sent"
    r = client.post("/v1/verification/submit", json={"code": "246810"})
    assert r.status_code == 200
    return r.json()["contact"]


def test_root_and_health(client):
    assert client.get("/").json() == {"service": "safewords", "status": "running"}
    assert client.get("/health").json()["status"] == "ok"


def test_metrics_exposed(client):
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "service_requests_total" in r.text


def test_gate_opens_panel_or_calculates(client):
    r = client.post("/v1/gate/enter", json={"entered": "1234"})
    assert r.json()["navigation"] == "enterEmergencyPanel"

    r = client.post("/v1/gate/enter", json={"entered": "2*21"})
    assert r.json() == {"authorized": False, "navigation": None, "display": "42", "error": None}


def test_change_access_code(client):
    r = client.post(
        "/v1/gate/access-code", json={"current": "0000", "new": "5678", "confirm": "5678"}
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_ACCESS_CODE_CHANGE"
    assert r.json()["error"]["message"] == "Current access code is incorrect"

    r = client.post(
        "/v1/gate/access-code", json={"current": "1234", "new": "5678", "confirm": "5678"}
    )
    assert r.status_code == 200
    assert client.post("/v1/gate/enter", json={"entered": "5678"}).json()["authorized"]


def test_verify_publish_and_list_contacts(client):
    contact = _verify(client, "555-123-4567", "Mum")
    assert contact == {"name": "Mum", "number": "555-123-4567", "verified": True}

    client.post("/v1/contacts/predefined/toggle", json={"number": "107"})

    r = client.post("/v1/contacts/publish")
    assert r.json()["count"] == 2
    assert r.json()["message"] == "Contacts pushed to emergency screen (2 contacts)"

    data = client.get("/v1/contacts").json()
    assert data["active"] == ["5551234567", "107"]
    assert data["contacts"][0]["display_number"] == "(555) 123-4567"
    assert len(data["contacts"]) == 1

    predefined = client.get("/v1/contacts/predefined").json()["predefined"]
    assert {p["number"]: p["enabled"] for p in predefined} == {
        "104": False,
        "107": True,
        "112": False,
    }


def test_wrong_code_and_duplicate(client):
    _verify(client, "999")

    client.post("/v1/verification/request", json={"number": "999"})
    r = client.post("/v1/verification/submit", json={"code": "000000"})
    assert r.status_code == 400
    assert r.json()["error"]["details"]["attempts_left"] == 4

    r = client.post("/v1/verification/submit", json={"code": "246810"})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "DUPLICATE_CONTACT"


def test_edit_and_delete_contact(client):
    _verify(client, "111", "A")

    assert client.get("/v1/contacts/0").json()["name"] == "A"
    assert client.delete("/v1/contacts/0").status_code == 200
    r = client.delete("/v1/contacts/0")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "CONTACT_NOT_FOUND"


def test_cancel_verification(client):
    client.post("/v1/verification/request", json={"number": "999"})
    assert client.post("/v1/verification/cancel").json()["state"] == "idle"
    assert client.get("/v1/verification").json()["target_number"] is None


def test_tracking_requires_permission(client):
    r = client.post("/v1/tracking/start")
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Please activate location first"

    assert client.post("/v1/tracking/stop").json() == {"tracking": False, "stopped": False}


def test_permission_fix_and_tracking_flow(client):
    assert client.post("/v1/location/permission", json={"granted": True}).json() == {
        "reported": "granted"
    }
    r = client.post(
        "/v1/location/fix",
        json={"latitude": 53.3438, "longitude": -6.2546, "timestamp": "2024-05-01T12:00:00Z"},
    )
    assert r.json()["delivered"] == 0

    r = client.post("/v1/location/permission/request")
    assert r.json()["permission"] == "granted"
    assert r.json()["current_fix"]["latitude"] == 53.3438

    assert client.post("/v1/tracking/start").json()["started"] is True
    r = client.post(
        "/v1/location/fix",
        json={"latitude": 53.35, "longitude": -6.2546, "timestamp": "2024-05-01T12:00:05Z"},
    )
    assert r.json()["delivered"] == 1
    assert client.post("/v1/tracking/stop").json()["stopped"] is True

    alerts = client.get("/v1/alerts").json()["alerts"]
    assert [a["message"] for a in alerts] == [
        "Tracking stopped",
        "Location update",
        "Tracking started",
    ]
    assert alerts[0]["location_text"] == "No location data"
    assert alerts[1]["location"] == {"latitude": 53.35, "longitude": -6.2546}


def test_press_and_release_panic(client):
    r = client.post("/v1/panic/press")
    assert r.json() == {"accepted": True, "state": "counting"}
    r = client.post("/v1/panic/release")
    assert r.json() == {"cancelled": True, "state": "idle"}

    panic = client.get("/v1/panic").json()
    assert panic["state"] == "idle"
    assert panic["last_report"] is None
    assert client.get("/v1/alerts").json()["alerts"] == []


def test_exit_and_settings_navigation(client):
    assert client.post("/v1/panic/exit").json() == {"navigation": "exitToDisguise"}
    assert client.get("/v1/navigation/settings").json()["navigation"] == "openSettings"
