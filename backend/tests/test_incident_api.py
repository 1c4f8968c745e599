import logging
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from starlette.websockets import WebSocketDisconnect

from rescue_app.api import dependencies
from rescue_app.api.dependencies import get_event_publisher, get_incident_service
from rescue_app.core.config import get_settings
from rescue_app.main import app
from rescue_app.models.fleet import VehicleStatus
from rescue_app.models.incident import IncidentStatus
from rescue_app.services.event_publisher import NoOpEventPublisher
from test_incident_service import _alert, _build_service, _crash, _vehicle

client = TestClient(app)


def _token(user_id: int, role: str) -> str:
    settings = get_settings()
    return jwt.encode({"sub": str(user_id), "role": role}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _auth(user_id: int, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(user_id, role)}"}


@pytest.fixture
def service():
    svc, _, _ = _build_service(
        incidents=[
            _alert(incident_id=1, user_id=1),
            _alert(incident_id=2, user_id=2, status=IncidentStatus.RESPONDING, vehicle_id=7),
            _crash(incident_id=1, user_id=1, minutes=5),
        ],
        vehicles=[_vehicle(7, VehicleStatus.RESPONDING), _vehicle(8)],
    )
    app.dependency_overrides[get_incident_service] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


def test_missing_token_is_unauthenticated(service) -> None:
    response = client.get("/api/v1/alerts")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"


def test_token_with_unknown_role_is_unauthenticated(service) -> None:
    response = client.get("/api/v1/alerts", headers=_auth(1, "superuser"))

    assert response.status_code == 401


def test_tampered_token_is_unauthenticated(service) -> None:
    response = client.get("/api/v1/alerts", headers={"Authorization": f"Bearer {_token(1, 'user')}x"})

    assert response.status_code == 401


def test_create_with_missing_fields_returns_400_with_trace_id(service) -> None:
    response = client.post(
        "/api/v1/alerts",
        json={"title": "No type"},
        headers={**_auth(1, "user"), "X-Correlation-ID": "corr-42"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["trace_id"] == "corr-42"
    assert response.headers["x-correlation-id"] == "corr-42"


def test_create_alert_returns_201_pending(service) -> None:
    response = client.post(
        "/api/v1/alerts",
        json={
            "alert_type": "fire",
            "severity": "critical",
            "title": "Kitchen fire",
            "location": "12 Elm St",
            "status": "resolved",
        },
        headers=_auth(1, "user"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["kind"] == "manual_alert"
    assert body["user_id"] == 1


def test_create_sos_requires_coordinates(service) -> None:
    response = client.post("/api/v1/sos", json={"type": "medical"}, headers=_auth(1, "user"))

    assert response.status_code == 400


def test_user_list_only_contains_own_alerts(service) -> None:
    response = client.get("/api/v1/alerts", headers=_auth(1, "user"))

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body["items"]] == [1]
    assert body["total"] == 1


def test_list_alerts_with_unknown_type_is_400(service) -> None:
    response = client.get("/api/v1/alerts?type=bogus", headers=_auth(10, "dispatcher"))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["type"] == "bogus"


def test_list_alerts_with_known_type(service) -> None:
    response = client.get("/api/v1/alerts?type=medical", headers=_auth(10, "dispatcher"))

    assert response.status_code == 200
    assert response.json()["total"] == 2


def test_user_get_other_users_alert_is_forbidden(service) -> None:
    response = client.get("/api/v1/alerts/2", headers=_auth(1, "user"))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCESS_DENIED"


def test_get_missing_alert_is_404(service) -> None:
    response = client.get("/api/v1/alerts/999", headers=_auth(10, "dispatcher"))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "INCIDENT_NOT_FOUND"


def test_put_rejects_lifecycle_fields(service) -> None:
    response = client.put("/api/v1/alerts/1", json={"status": "resolved"}, headers=_auth(10, "dispatcher"))

    assert response.status_code == 400


def test_put_by_user_is_forbidden(service) -> None:
    response = client.put("/api/v1/alerts/1", json={"title": "Mine"}, headers=_auth(1, "user"))

    assert response.status_code == 403


def test_status_patch_with_unknown_value_is_400(service) -> None:
    response = client.patch("/api/v1/alerts/1/status", json={"status": "closed"}, headers=_auth(20, "rescuer"))

    assert response.status_code == 400


def test_status_patch_invalid_transition_is_409(service) -> None:
    response = client.patch("/api/v1/alerts/1/status", json={"status": "resolved"}, headers=_auth(20, "rescuer"))

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INCIDENT_INVALID_TRANSITION"
    assert error["details"]["allowed_targets"] == ["cancelled", "pending", "responding"]


def test_status_patch_resolves_and_releases_vehicle(service) -> None:
    response = client.patch("/api/v1/alerts/2/status", json={"status": "resolved"}, headers=_auth(10, "dispatcher"))

    assert response.status_code == 200
    assert response.json()["status"] == "resolved"
    assert service.vehicles.vehicles[7].status == VehicleStatus.AVAILABLE


def test_assign_conflicting_vehicle_is_409(service) -> None:
    response = client.patch("/api/v1/alerts/1/assign", json={"vehicle_id": 7}, headers=_auth(10, "dispatcher"))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "VEHICLE_ALREADY_ASSIGNED"


def test_assign_free_vehicle(service) -> None:
    response = client.patch("/api/v1/alerts/1/assign", json={"vehicle_id": 8}, headers=_auth(10, "dispatcher"))

    assert response.status_code == 200
    assert response.json()["assigned_vehicle_id"] == 8
    assert service.vehicles.vehicles[8].status == VehicleStatus.ASSIGNED


def test_delete_by_non_admin_is_forbidden(service) -> None:
    response = client.delete("/api/v1/alerts/1", headers=_auth(1, "user"))

    assert response.status_code == 403


def test_delete_by_admin(service) -> None:
    response = client.delete("/api/v1/crash-events/1", headers=_auth(30, "admin"))

    assert response.status_code == 200
    assert response.json()["message"] == "Incident deleted successfully"


def test_feed_merges_sources(service) -> None:
    response = client.get("/api/v1/incidents/feed", headers=_auth(10, "dispatcher"))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["items"][0]["source"] == "crash"


def test_feed_rejects_unknown_source(service) -> None:
    response = client.get("/api/v1/incidents/feed?type=sos", headers=_auth(10, "dispatcher"))

    assert response.status_code == 400


def test_websocket_rejects_missing_token() -> None:
    with TestClient(app) as ws_client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with ws_client.websocket_connect("/api/v1/realtime/ws"):
                pass

    assert exc.value.code == 4401


def test_websocket_rejects_invalid_token() -> None:
    with TestClient(app) as ws_client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with ws_client.websocket_connect("/api/v1/realtime/ws?token=not-a-jwt"):
                pass

    assert exc.value.code == 4401


def test_websocket_connect_and_ping() -> None:
    with TestClient(app) as ws_client:
        with ws_client.websocket_connect(f"/api/v1/realtime/ws?token={_token(20, 'rescuer')}") as websocket:
            connected = websocket.receive_json()
            assert connected["type"] == "connected"
            assert connected["user_id"] == 20

            websocket.send_text("ping")
            assert websocket.receive_json()["type"] == "pong"


def test_missing_publisher_falls_back_with_single_critical_log(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setattr(dependencies, "_fallback_publisher", None)
    caplog.set_level(logging.CRITICAL)
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

    first = get_event_publisher(request)
    second = get_event_publisher(request)

    assert isinstance(first, NoOpEventPublisher)
    assert first is second
    assert len([record for record in caplog.records if record.levelno == logging.CRITICAL]) == 1


def test_installed_publisher_is_used_without_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.CRITICAL)
    installed = NoOpEventPublisher()
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(publisher=installed)))

    assert get_event_publisher(request) is installed
    assert caplog.records == []
